import io

import pytest

from pipe_runner import (
    PipeInterpreter, PipeError, UnmatchedLoopError, StepLimitExceeded,
    ScriptedInput, Token, TAPE_SIZE, INVALID_INPUT_MSG,
    tokenize, parse_int, run_pipe,
)


def make(lines=(), tape=None):
    out = []
    interp = PipeInterpreter(read_line=ScriptedInput(lines), write=out.append)
    if tape is not None:
        interp.tape[0] = tape
    return interp, out


def test_construction():
    interp = PipeInterpreter()
    assert len(interp.tape) == TAPE_SIZE == 30000
    assert not any(interp.tape)
    assert interp.pointer == 0
    assert interp.loop_stack == []


@pytest.mark.parametrize("value", [0, 1, 2, 12345, 29998, 29999])
def test_increment_then_decrement_is_identity(value):
    interp, _ = make(tape=value)
    interp.run([Token.INCREMENT, Token.DECREMENT])
    assert interp.tape[0] == value


def test_increment_wraps():
    interp, _ = make(tape=29999)
    interp.run([Token.INCREMENT])
    assert interp.tape[0] == 0


def test_decrement_wraps():
    interp, _ = make()
    interp.run([Token.DECREMENT])
    assert interp.tape[0] == 29999


def test_full_cycle_of_increments():
    interp, _ = make(tape=7)
    interp.run([Token.INCREMENT] * 30000)
    assert interp.tape[0] == 7


def test_reset_clears_tape():
    interp, _ = make(tape=99)
    interp.tape[123] = 5
    old = interp.tape
    interp.run([Token.INCREMENT, Token.RESET])
    assert interp.tape is not old
    assert interp.tape == [0] * 30000
    assert interp.pointer == 0


@pytest.mark.parametrize("value, expected", [
    (65, 'A'),
    (0, '\x00'),
    (127, '\x7f'),
    (128, '?'),
    (29999, '?'),
    (-1, '?'),
])
def test_output(value, expected):
    interp, out = make(tape=value)
    interp.run([Token.OUTPUT])
    assert out == [expected]


def test_newline_emits_line_break():
    interp, out = make()
    interp.run([Token.NEWLINE, Token.NEWLINE])
    assert ''.join(out) == '\n\n'


def test_loop_counts_down_to_zero():
    interp = run_pipe("-|!|", write=[].append)
    assert interp.tape[0] == 0
    assert interp.loop_stack == []
    assert interp.finished


def test_loop_repeats_body_until_zero():
    interp = run_pipe("-----|!|", write=[].append)
    assert interp.tape[0] == 0
    assert interp.loop_stack == []
    # 5 increments, then 5 rounds of (loop entry, decrement)
    assert interp.step_count == 15


def test_loop_runs_multi_instruction_body():
    out = []
    run_pipe("---|!\\|", write=out.append)
    assert out == ['\x02', '\x01', '\x00']


def test_zero_cell_skip_stops_at_first_instruction():
    # Only the first instruction after a marker on a zero cell is skipped;
    # the rest of the "body" still runs.
    interp = run_pipe("|---", write=[].append)
    assert interp.tape[0] == 2


def test_nested_markers_extend_skip():
    # Two markers need two non-marker tokens to finish the skip
    interp = run_pipe("||---", write=[].append)
    assert interp.tape[0] == 1


def test_unmatched_loop_start():
    with pytest.raises(UnmatchedLoopError) as exc:
        run_pipe("|", write=[].append)
    assert exc.value.position == 1
    assert "Unmatched loop start" in str(exc.value)


def test_unmatched_nested_loop_start():
    with pytest.raises(UnmatchedLoopError) as exc:
        run_pipe("||-", write=[].append)
    assert exc.value.position == 3
    assert isinstance(exc.value, PipeError)


def test_step_limit():
    with pytest.raises(StepLimitExceeded):
        run_pipe("-|-|", write=[].append, max_steps=100)


def test_step_limit_not_hit_by_exact_finish():
    interp = run_pipe("---", write=[].append, max_steps=3)
    assert interp.tape[0] == 3


def test_input_stores_value():
    interp, out = make(lines=["42\n"])
    interp.run([Token.INPUT])
    assert interp.tape[0] == 42
    assert ''.join(out) == "Input: "


def test_invalid_input_stores_zero():
    interp, out = make(lines=["abc\n"], tape=9)
    interp.run([Token.INPUT])
    assert interp.tape[0] == 0
    assert ''.join(out) == "Input: " + INVALID_INPUT_MSG + "\n"


def test_end_of_input_is_invalid():
    interp, out = make(tape=9)
    interp.run([Token.INPUT])
    assert interp.tape[0] == 0
    assert INVALID_INPUT_MSG in ''.join(out)


def test_input_is_not_wrapped():
    interp, out = make(lines=["40000", "-7"])
    interp.run([Token.INPUT, Token.OUTPUT])
    assert interp.tape[0] == 40000
    interp.run([Token.INPUT, Token.OUTPUT])
    assert interp.tape[0] == -7
    assert out.count('?') == 2


def test_arithmetic_after_out_of_range_input():
    interp, _ = make(lines=["-5"])
    interp.run([Token.INPUT, Token.INCREMENT])
    assert interp.tape[0] == 29996


@pytest.mark.parametrize("text, expected", [
    ("42", 42),
    ("  42 \n", 42),
    ("+5", 5),
    ("-17", -17),
    ("0", 0),
    ("2147483647", 2147483647),
    ("-2147483648", -2147483648),
    ("2147483648", None),
    ("", None),
    ("abc", None),
    ("4 2", None),
    ("1_000", None),
    ("0x10", None),
    ("3.0", None),
])
def test_parse_int(text, expected):
    assert parse_int(text) == expected


def test_only_comments_leaves_tape_untouched():
    interp = run_pipe("just some words, no symbols.", write=[].append)
    assert tokenize("just some words, no symbols.") == []
    assert interp.step_count == 0
    assert interp.tape == [0] * 30000


def test_default_io_uses_console(monkeypatch, capsys):
    monkeypatch.setattr('sys.stdin', io.StringIO("65\n"))
    interp = PipeInterpreter()
    interp.run(tokenize("/\\\n"))
    assert capsys.readouterr().out == "Input: A\n"


def test_scripted_input_feed():
    reader = ScriptedInput(["1"])
    reader.feed("2", "3")
    assert [reader(), reader(), reader(), reader()] == ["1", "2", "3", ""]


def test_tape_size_is_fixed():
    with pytest.raises(TypeError):
        PipeInterpreter(tape_size=0)
    interp, _ = make()
    interp.run([Token.RESET, Token.INCREMENT])
    assert len(interp.tape) == 30000


def test_zero_step_budget_runs_nothing():
    interp, _ = make()
    with pytest.raises(StepLimitExceeded):
        interp.run([Token.INCREMENT], max_steps=0)
    assert interp.step_count == 0
    assert interp.tape[0] == 0


def test_zero_step_budget_on_empty_program():
    interp, _ = make()
    interp.run([], max_steps=0)
    assert interp.finished
