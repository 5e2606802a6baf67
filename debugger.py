#!/usr/bin/env python3
import sys
import argparse
from pipe_runner import (PipeInterpreter, PipeError, Token,
                         tokenize, format_tokens)

class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    REVERSE = '\033[7m'

TOKEN_NAMES = {
    Token.LOOP: 'loop',
    Token.RESET: 'reset',
    Token.INCREMENT: 'inc',
    Token.DECREMENT: 'dec',
    Token.INPUT: 'input',
    Token.OUTPUT: 'output',
    Token.NEWLINE: 'newline',
}

def describe(token):
    symbol = '\\n' if token is Token.NEWLINE else token.value
    return f"{symbol} ({TOKEN_NAMES[token]})"

class Debugger(PipeInterpreter):
    def __init__(self, code, read_line=None, echo=False):
        super().__init__(read_line=read_line, write=self._capture)
        self.echo = echo
        self.output = []
        self.breakpoints = set()
        self.error = None
        self.load(tokenize(code))

    def _capture(self, text):
        self.output.append(text)
        if self.echo:
            sys.stdout.write(text)
            sys.stdout.flush()

    @property
    def output_text(self):
        return ''.join(self.output)

    def run_step(self):
        # Structural errors stop the session instead of propagating
        if self.error is not None:
            return False
        try:
            return self.step()
        except PipeError as e:
            self.error = e
            return False

    def continue_run(self, limit=None):
        """
        Run until the program finishes, an error occurs or a breakpoint is hit.
        Returns the number of steps executed.
        """
        steps = 0
        while self.run_step():
            steps += 1
            if self.ip in self.breakpoints:
                break
            if limit is not None and steps >= limit:
                break
        return steps

    def toggle_breakpoint(self, ip):
        if ip in self.breakpoints:
            self.breakpoints.remove(ip)
            return False
        self.breakpoints.add(ip)
        return True

    def memory(self, addr, count):
        end = min(len(self.tape), addr + count)
        return [(i, self.tape[i]) for i in range(max(0, addr), end)]

    def get_state(self, window=32):
        start = max(0, self.pointer - window // 2)
        end = min(len(self.tape), start + window)
        return {
            'ip': self.ip,
            'pointer': self.pointer,
            'cell': self.current_cell,
            'step_count': self.step_count,
            'finished': self.finished,
            'tape_size': len(self.tape),
            'loop_stack': list(self.loop_stack),
            'breakpoints': sorted(self.breakpoints),
            'output': self.output_text,
            'error': str(self.error) if self.error else None,
            'tape': {'start': start, 'data': self.tape[start:end]},
        }

    def print_state(self):
        print(f"\n{Colors.BOLD}--- Step {self.step_count} ---{Colors.ENDC}")
        print(f"IP: {self.ip} / {len(self.tokens)}")
        print(f"Ptr: {self.pointer}  Loops: {self.loop_stack}")

        # Tape window around ptr
        window = 8
        start = max(0, self.pointer - window)
        end = min(len(self.tape), self.pointer + window + 1)

        tape_str = ""
        for i in range(start, end):
            val = f"{self.tape[i]:05}"
            if i == self.pointer:
                tape_str += f"{Colors.REVERSE}[{val}]{Colors.ENDC} "
            else:
                tape_str += f" {val}  "
        print(f"Loc: {tape_str}")

        # Code window
        context_window = 2
        start_op = max(0, self.ip - context_window)
        end_op = min(len(self.tokens), self.ip + context_window + 1)

        for i in range(start_op, end_op):
            mark = '*' if i in self.breakpoints else ' '
            op_str = describe(self.tokens[i])
            if i == self.ip:
                print(f"{Colors.GREEN}->{mark}{i:04}: {op_str}{Colors.ENDC}")
            else:
                print(f"  {mark}{i:04}: {op_str}")

        if self.output:
            print(f"Out: {self.output_text!r}")

    def repl(self):
        print("Pipe Debugger started. Commands: (s)tep, (c)ontinue, (q)uit, (m)em dump, (b)reakpoint, (l)ist, enter to repeat last")
        last_cmd = 's'
        while not self.finished and self.error is None:
            self.print_state()
            try:
                cmd = input(f"{Colors.BLUE}(pipe-dbg){Colors.ENDC} ").strip()
            except EOFError:
                break

            if cmd == '':
                cmd = last_cmd

            last_cmd = cmd

            if cmd.startswith('s'):
                self.run_step()
            elif cmd.startswith('c'):
                self.continue_run()
                if self.ip in self.breakpoints and not self.finished:
                    print(f"Breakpoint hit at {self.ip}")
            elif cmd.startswith('q'):
                break
            elif cmd.startswith('l'):
                print(format_tokens(self.tokens).replace('\n', '\\n'))
            elif cmd.startswith('m'):
                try:
                    parts = cmd.split()
                    addr = int(parts[1]) if len(parts) > 1 else self.pointer
                    count = int(parts[2]) if len(parts) > 2 else 20
                except ValueError:
                    print("Usage: m [addr] [count]")
                    continue
                print("Memory Dump:")
                for i, val in self.memory(addr, count):
                    print(f"[{i:05}]: {val}")
            elif cmd.startswith('b'):
                try:
                    bp = int(cmd.split()[1])
                except (IndexError, ValueError):
                    print("Usage: b <ip>")
                    continue
                if self.toggle_breakpoint(bp):
                    print(f"Breakpoint set at {bp}")
                else:
                    print(f"Breakpoint removed at {bp}")

        if self.error is not None:
            print(f"{Colors.FAIL}Error: {self.error}{Colors.ENDC}")
        print("Execution finished.")

def main(argv=None):
    parser = argparse.ArgumentParser(prog="pipe-debug", description="Step through a .pipe program")
    parser.add_argument("file")
    args = parser.parse_args(argv)

    try:
        with open(args.file, 'r', errors='replace', newline='') as f:
            code = f.read()
    except OSError as e:
        print(f"Error: failed to read {args.file}: {e}", file=sys.stderr)
        return 1

    dbg = Debugger(code, echo=True)
    dbg.repl()
    return 1 if dbg.error else 0

if __name__ == '__main__':
    sys.exit(main())
