import errno
import io
import os
import sys

import pytest

from minishell.builtins import ShellExit
from minishell.environment import Environment
from minishell.executor import (
    Executor,
    RedirectionError,
    exit_status,
    find_executable,
)
from minishell.parser import Command, Flag, Stream, parse_line


def _script(directory, name, body):
    path = directory / name
    path.write_text(f"#!{sys.executable}\n{body}")
    path.chmod(0o755)
    return path


@pytest.fixture
def bin_dir(tmp_path):
    directory = tmp_path / "bin"
    directory.mkdir()
    _script(directory, "greet", 'import sys\nprint(" ".join(sys.argv[1:]))\n')
    _script(directory, "upper", "import sys\nsys.stdout.write(sys.stdin.read().upper())\n")
    _script(directory, "fail", "import sys\nsys.exit(3)\n")
    plain = directory / "noexec"
    plain.write_text("nothing\n")
    plain.chmod(0o644)
    return directory


def make_executor(bin_dir, lines=()):
    env = Environment([f"PATH={bin_dir}"])
    out, err = io.StringIO(), io.StringIO()
    feed = iter(lines)

    def readline(prompt):
        try:
            return next(feed)
        except StopIteration:
            raise EOFError from None

    executor = Executor(
        env, stdin=io.StringIO(""), stdout=out, stderr=err, readline=readline
    )
    return executor, out, err


def test_exit_status_normal_codes():
    assert exit_status(0) == 0
    assert exit_status(3) == 3


def test_exit_status_signal():
    assert exit_status(-2) == 130


def test_find_executable(tmp_path):
    (tmp_path / "tool").write_text("")
    assert find_executable("tool", f"::{tmp_path}") == f"{tmp_path}/tool"
    assert find_executable("missing", str(tmp_path)) is None
    assert find_executable("tool", None) is None


def test_read_heredoc_stops_at_delimiter(bin_dir):
    executor, out, _ = make_executor(bin_dir, ["a", "b", "EOF", "c"])
    assert executor.read_heredoc("EOF") == "a\nb\n"
    assert out.getvalue() == ""


def test_read_heredoc_prefix_match(bin_dir):
    executor, _, _ = make_executor(bin_dir, ["x", "ENDING"])
    assert executor.read_heredoc("END") == "x\n"


def test_read_heredoc_end_of_file_warning(bin_dir):
    executor, out, _ = make_executor(bin_dir, ["one", "two"])
    assert executor.read_heredoc("EOF") == "one\ntwo\n"
    assert out.getvalue() == (
        "minishell: warning: here-document at line  3 delimited by "
        "end-of-file (wanted `EOF')\n"
    )


def test_read_heredoc_interrupted(bin_dir):
    def readline(prompt):
        raise KeyboardInterrupt

    out = io.StringIO()
    executor = Executor(Environment(), stdout=out, stderr=io.StringIO(), readline=readline)
    assert executor.read_heredoc("EOF") is None
    assert out.getvalue() == "\n"


def test_open_redirections_missing_input(bin_dir, tmp_path):
    executor, _, err = make_executor(bin_dir)
    missing = tmp_path / "missing.txt"
    command = Command(["cat"], in_streams=[Stream(Flag.INPUT, str(missing))])
    with pytest.raises(RedirectionError) as info:
        executor.open_redirections(command)
    assert info.value.status == 1
    assert err.getvalue() == f"minishell: {missing}: {os.strerror(errno.ENOENT)}\n"


def test_open_redirections_heredoc_and_output(bin_dir, tmp_path):
    executor, _, _ = make_executor(bin_dir, ["hi", "END"])
    target = tmp_path / "out.txt"
    command = Command(
        ["cat"],
        in_streams=[Stream(Flag.HEREDOC, "END")],
        out_streams=[Stream(Flag.OUTPUT, str(target))],
    )
    source, handle = executor.open_redirections(command)
    try:
        assert source == b"hi\n"
        assert handle.name == str(target)
    finally:
        handle.close()
    assert target.exists()


def test_open_redirections_heredoc_interrupt(bin_dir):
    def readline(prompt):
        raise KeyboardInterrupt

    executor = Executor(Environment(), stdout=io.StringIO(), readline=readline)
    command = Command(["cat"], in_streams=[Stream(Flag.HEREDOC, "END")])
    with pytest.raises(RedirectionError) as info:
        executor.open_redirections(command)
    assert info.value.status == 130


def test_run_command_builtin_echo_lowercases(bin_dir):
    executor, out, _ = make_executor(bin_dir)
    assert executor.run_command(Command(["ECHO", "hello", "world"])) == 0
    assert out.getvalue() == "hello world\n"


def test_run_command_not_found(bin_dir):
    executor, _, err = make_executor(bin_dir)
    assert executor.run_command(Command(["nosuchcmd"])) == 127
    assert err.getvalue() == "minishell: nosuchcmd: command not found\n"


def test_run_command_permission_denied(bin_dir):
    executor, _, _ = make_executor(bin_dir)
    assert executor.run_command(Command(["noexec"])) == 126


def test_run_command_external_output(bin_dir):
    executor, out, _ = make_executor(bin_dir)
    assert executor.run_command(Command(["greet", "hello", "world"])) == 0
    assert out.getvalue() == "hello world\n"


def test_run_export_changes_environment(bin_dir):
    executor, _, _ = make_executor(bin_dir)
    assert executor.run([Command(["export", "FOO=bar"])]) == 0
    assert executor.env.find("FOO") == "FOO=bar"


def test_run_exit_raises(bin_dir):
    executor, _, err = make_executor(bin_dir)
    with pytest.raises(ShellExit):
        executor.run([Command(["exit"])])
    assert err.getvalue() == "exit\n"


def test_run_output_redirection_and_append(bin_dir, tmp_path):
    executor, out, _ = make_executor(bin_dir)
    target = tmp_path / "out.txt"
    executor.run(parse_line(f"greet a > {target}", executor.env.entries()))
    executor.run(parse_line(f"greet b >> {target}", executor.env.entries()))
    assert target.read_text() == "a\nb\n"
    assert out.getvalue() == ""


def test_run_missing_input_status(bin_dir, tmp_path):
    executor, _, _ = make_executor(bin_dir)
    commands = parse_line(f"upper < {tmp_path}/absent", executor.env.entries())
    assert executor.run(commands) == 1
    assert executor.last_status == 1


def test_run_heredoc_feeds_command(bin_dir):
    executor, out, _ = make_executor(bin_dir, ["abc", "END"])
    assert executor.run(parse_line("upper << END", executor.env.entries())) == 0
    assert out.getvalue() == "ABC\n"


def test_pipeline_passes_output(bin_dir):
    executor, out, _ = make_executor(bin_dir)
    commands = parse_line("echo hello | upper", executor.env.entries())
    assert executor.run(commands) == 0
    assert out.getvalue() == "HELLO\n"


def test_pipeline_status_is_last_stage(bin_dir):
    executor, _, _ = make_executor(bin_dir)
    assert executor.run(parse_line("echo a | fail", executor.env.entries())) == 3
    assert executor.run(parse_line("fail | echo a", executor.env.entries())) == 0


def test_pipeline_redirected_stage_gives_empty_input(bin_dir, tmp_path):
    executor, out, _ = make_executor(bin_dir)
    target = tmp_path / "first.txt"
    commands = parse_line(f"greet a > {target} | upper", executor.env.entries())
    assert executor.run(commands) == 0
    assert target.read_text() == "a\n"
    assert out.getvalue() == ""


def test_pipeline_builtins_leave_state(bin_dir, tmp_path):
    executor, out, err = make_executor(bin_dir)
    before = os.getcwd()
    commands = parse_line(
        f"cd {tmp_path} | export FOO=bar | exit | echo done", executor.env.entries()
    )
    assert executor.run(commands) == 0
    assert os.getcwd() == before
    assert executor.env.find("FOO") is None
    assert out.getvalue() == "done\n"
    assert err.getvalue() == "exit\n"


def test_pipeline_heredoc_interrupt(bin_dir):
    calls = []

    def readline(prompt):
        calls.append(prompt)
        raise KeyboardInterrupt

    out = io.StringIO()
    executor = Executor(
        Environment([f"PATH={bin_dir}"]),
        stdin=io.StringIO(""),
        stdout=out,
        stderr=io.StringIO(),
        readline=readline,
    )
    commands = parse_line("echo a | upper << END", executor.env.entries())
    assert executor.run(commands) == 130
    assert calls == ["> "]
    assert out.getvalue() == "\n"