#!/usr/bin/env python3
import sys
import argparse
from debugger import Debugger, describe
from pipe_runner import ScriptedInput

def trace(code, steps=2000000, input_lines=(), out=print):
    dbg = Debugger(code, read_line=ScriptedInput(input_lines))
    out(f"Loaded {len(dbg.tokens)} tokens")

    for i in range(steps):
        if dbg.finished:
            out(f"Finished at step {i}")
            break

        token = dbg.tokens[dbg.ip]
        out(f"Step {i}: ip={dbg.ip} {describe(token)} cell={dbg.current_cell} depth={len(dbg.loop_stack)}")

        if not dbg.run_step():
            out(f"Error/Halt at step {i}: {dbg.error}")
            break
    else:
        if dbg.finished:
            out(f"Finished at step {steps}")
        else:
            out(f"Stopped after {steps} steps")

    out(f"Final IP: {dbg.ip}")
    out(f"Output: {dbg.output_text!r}")
    return dbg

def main(argv=None):
    parser = argparse.ArgumentParser(prog="pipe-trace", description="Print every step of a .pipe program")
    parser.add_argument("file")
    parser.add_argument("--steps", type=int, default=2000000)
    parser.add_argument("--input", action="append", default=[], help="line to feed an input instruction (repeatable)")
    args = parser.parse_args(argv)

    try:
        with open(args.file, 'r', errors='replace', newline='') as f:
            code = f.read()
    except OSError as e:
        print(f"Error: failed to read {args.file}: {e}", file=sys.stderr)
        return 1

    dbg = trace(code, steps=args.steps, input_lines=args.input)
    return 1 if dbg.error else 0

if __name__ == "__main__":
    sys.exit(main())
