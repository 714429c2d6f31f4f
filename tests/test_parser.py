import pytest

from minishell.parser import (
    Command,
    Flag,
    Stream,
    format_commands,
    get_cmds,
    get_flag,
    get_stream,
    parse_line,
    trim_commands,
)


@pytest.mark.parametrize(
    "line, index, expected",
    [
        ("a << b", 2, Flag.HEREDOC),
        ("a >> b", 2, Flag.APPEND),
        ("a | b", 2, Flag.PIPE),
        ("a < b", 2, Flag.INPUT),
        ("a > b", 2, Flag.OUTPUT),
        ("a > b", 0, Flag.NONE),
        ("ab", 2, Flag.NONE),
    ],
)
def test_get_flag(line, index, expected):
    assert get_flag(line, index) is expected


def test_flag_values_follow_characters():
    assert get_flag("|", 0) == ord("|")
    assert get_flag("<", 0) == ord("<")
    assert get_flag(">", 0).is_redirection
    assert not get_flag("|", 0).is_redirection


def test_get_cmds_splits_on_pipe():
    commands = get_cmds("ls -l | wc", [])
    assert [(c.argv, c.flag) for c in commands] == [
        (["ls", "-l"], Flag.PIPE),
        (["wc"], Flag.NONE),
    ]


def test_get_cmds_consumes_double_operator():
    commands = get_cmds("cat << EOF", [])
    assert [(c.argv, c.flag) for c in commands] == [
        (["cat"], Flag.HEREDOC),
        (["EOF"], Flag.NONE),
    ]


def test_quoted_operator_is_not_a_split():
    commands = parse_line("echo 'a|b'", [])
    assert len(commands) == 1
    assert commands[0].argv == ["echo", "a|b"]


def test_get_stream_redirections_and_pipe():
    commands = parse_line("cat < in > out | wc", [])
    assert len(commands) == 2
    first, second = commands
    assert first.argv == ["cat"]
    assert first.flag is Flag.PIPE
    assert first.in_streams == [Stream(Flag.INPUT, "in")]
    assert first.out_streams == [Stream(Flag.OUTPUT, "out")]
    assert second.argv == ["wc"]
    assert second.flag is Flag.NONE


def test_words_after_target_join_command():
    (command,) = parse_line("cat < in -e", [])
    assert command.argv == ["cat", "-e"]
    assert command.in_streams == [Stream(Flag.INPUT, "in")]


def test_redirection_without_command():
    (command,) = parse_line("> out", [])
    assert command.argv == []
    assert command.out_streams == [Stream(Flag.OUTPUT, "out")]


def test_heredoc_and_append_streams():
    (command,) = parse_line("cat << EOF >> log", [])
    assert command.in_streams == [Stream(Flag.HEREDOC, "EOF")]
    assert command.out_streams == [Stream(Flag.APPEND, "log")]


def test_missing_target_raises():
    with pytest.raises(ValueError):
        get_stream(get_cmds("ls >", []))


def test_variables_expanded():
    (command,) = parse_line("echo $HOME > f", ["HOME=/root"])
    assert command.argv == ["echo", "/root"]
    assert command.out_streams == [Stream(Flag.OUTPUT, "f")]


def test_get_stream_leaves_input_untouched():
    raw = get_cmds("cat < in", [])
    get_stream(raw)
    assert raw[0].argv == ["cat"]
    assert raw[1].argv == ["in"]


def test_trim_commands():
    commands = trim_commands([Command([" a\t", "\vb "])])
    assert commands[0].argv == ["a", "b"]


def test_format_commands():
    commands = parse_line("cat < in > out", [])
    assert format_commands(commands) == (
        "flag = 0\ncmd[0] = cat\ninfile = in\noutfile = out\n"
    )