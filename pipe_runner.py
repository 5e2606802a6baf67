#!/usr/bin/env python3
import sys
import re
import logging
import argparse
from collections import deque
from enum import Enum

logger = logging.getLogger(__name__)

TAPE_SIZE = 30000
CELL_MODULUS = 30000

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1

INPUT_PROMPT = "Input: "
INVALID_INPUT_MSG = "Invalid input, storing 0 in the cell."


class Token(Enum):
    LOOP = '|'
    RESET = '#'
    INCREMENT = '-'
    DECREMENT = '!'
    INPUT = '/'
    OUTPUT = '\\'
    NEWLINE = '\n'


SYMBOLS = {token.value: token for token in Token}


class PipeError(Exception):
    pass


class UnmatchedLoopError(PipeError):
    def __init__(self, position):
        super().__init__(f"Unmatched loop start '|' at position {position}")
        self.position = position


class StepLimitExceeded(PipeError):
    def __init__(self, steps):
        super().__init__(f"Step limit of {steps} exceeded")
        self.steps = steps


def tokenize(code):
    # Everything outside the symbol table is a comment
    return [SYMBOLS[c] for c in code if c in SYMBOLS]


def format_tokens(tokens):
    return ''.join(t.value for t in tokens)


_INT_RE = re.compile(r'[+-]?[0-9]+')


def parse_int(text):
    """Parse a trimmed base-10 signed 32-bit integer, or return None."""
    text = text.strip()
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if value < INT32_MIN or value > INT32_MAX:
        return None
    return value


def stdin_readline():
    return sys.stdin.readline()


def stdout_write(text):
    sys.stdout.write(text)
    sys.stdout.flush()


class ScriptedInput:
    """Line reader fed from a fixed list; runs dry as end of input."""

    def __init__(self, lines=()):
        self.lines = deque(lines)

    def feed(self, *lines):
        self.lines.extend(lines)

    def __call__(self):
        if not self.lines:
            return ''
        return self.lines.popleft()


class PipeInterpreter:
    def __init__(self, read_line=None, write=None):
        self.read_line = read_line or stdin_readline
        self.write = write or stdout_write
        self.tape = [0] * TAPE_SIZE
        self.pointer = 0
        self.tokens = []
        self.ip = 0
        self.loop_stack = []
        self.step_count = 0

    @property
    def current_cell(self):
        return self.tape[self.pointer]

    @current_cell.setter
    def current_cell(self, value):
        if not 0 <= self.pointer < len(self.tape):
            raise IndexError(f"Position {self.pointer} outside tape of {len(self.tape)} cells")
        self.tape[self.pointer] = value

    @property
    def finished(self):
        return self.ip >= len(self.tokens)

    def reset(self):
        self.tape = [0] * TAPE_SIZE
        self.pointer = 0

    def load(self, tokens):
        self.tokens = list(tokens)
        self.ip = 0
        self.loop_stack = []
        self.step_count = 0

    def run(self, tokens, max_steps=None):
        self.load(tokens)
        while not self.finished:
            if max_steps is not None and self.step_count >= max_steps:
                raise StepLimitExceeded(max_steps)
            self.step()

    def step(self):
        if self.finished:
            return False

        token = self.tokens[self.ip]
        logger.debug("step %d: ip=%d token=%r cell=%d loops=%s",
                     self.step_count, self.ip, token, self.current_cell, self.loop_stack)
        self.step_count += 1

        if token is Token.LOOP:
            if self.current_cell == 0:
                self._skip_loop()
            else:
                self.loop_stack.append(self.ip)
        elif token is Token.RESET:
            self.reset()
        elif token is Token.INCREMENT:
            self.current_cell = (self.current_cell + 1) % CELL_MODULUS
        elif token is Token.DECREMENT:
            self.current_cell = (self.current_cell + CELL_MODULUS - 1) % CELL_MODULUS
        elif token is Token.INPUT:
            self._read_cell()
        elif token is Token.OUTPUT:
            value = self.current_cell
            self.write(chr(value) if 0 <= value <= 127 else '?')
        elif token is Token.NEWLINE:
            self.write('\n')

        self.ip += 1

        # A marker reached while a loop is open closes it
        if self.loop_stack and not self.finished and self.tokens[self.ip] is Token.LOOP:
            start = self.loop_stack.pop()
            if self.current_cell != 0:
                self.ip = start
            else:
                self.ip += 1
        return True

    def _skip_loop(self):
        # Every non-marker token counts as a close here, so the first
        # instruction after a lone marker ends the skip.
        depth = 1
        while depth > 0:
            self.ip += 1
            if self.ip >= len(self.tokens):
                raise UnmatchedLoopError(self.ip)
            if self.tokens[self.ip] is Token.LOOP:
                depth += 1
            else:
                depth -= 1

    def _read_cell(self):
        self.write(INPUT_PROMPT)
        value = parse_int(self.read_line())
        if value is None:
            self.write(INVALID_INPUT_MSG + '\n')
            value = 0
        self.current_cell = value


def run_pipe(code, **kwargs):
    max_steps = kwargs.pop('max_steps', None)
    interp = PipeInterpreter(**kwargs)
    interp.run(tokenize(code), max_steps=max_steps)
    return interp


def main(argv=None):
    parser = argparse.ArgumentParser(prog="pipe-run", description="Run a .pipe program")
    parser.add_argument("file", help="path to the .pipe source file")
    parser.add_argument("--max-steps", type=int, default=None, help="abort after this many steps")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every executed step")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        with open(args.file, 'r', errors='replace', newline='') as f:
            code = f.read()
    except OSError as e:
        print(f"Error: failed to read {args.file}: {e}", file=sys.stderr)
        return 1

    try:
        run_pipe(code, max_steps=args.max_steps)
    except PipeError as e:
        sys.stdout.flush()
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
