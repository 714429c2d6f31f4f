"""Running parsed commands: redirections, here-documents, builtins and pipes."""

from __future__ import annotations

import io
import os
import string
import subprocess
import sys
import threading
from collections.abc import Callable, Iterable, Sequence
from typing import IO, Any, BinaryIO, Union

from minishell import builtins as shell_builtins
from minishell.builtins import ShellExit, is_builtin
from minishell.environment import Environment
from minishell.parser import Command, Flag

SUCCESS = 0
GENERAL_ERROR = 1
PERMISSION_DENIED = 126
COMMAND_NOT_FOUND = 127
INTERRUPTED = 130
_EACCES_STATUS = 13

_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

Source = Union[bytes, BinaryIO, None]


class RedirectionError(Exception):
    """A redirection could not be set up; ``status`` is the command's status."""

    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


def exit_status(returncode: int) -> int:
    """Turn a child's return code into a shell status.

    A normal exit keeps its low eight bits; death by signal N gives 128 + N.
    """
    if returncode < 0:
        return 128 + (-returncode)
    return returncode & 0xFF


def _launch_status(code: int) -> int:
    return PERMISSION_DENIED if code == _EACCES_STATUS else code


def find_executable(name: str, path: str | None) -> str | None:
    """Return ``dir/name`` for the first ``path`` directory listing ``name``."""
    if not path or not name:
        return None
    for directory in path.split(":"):
        if not directory:
            continue
        try:
            names = os.listdir(directory)
        except OSError:
            continue
        if name in names:
            return f"{directory}/{name}"
    return None


def _fileno(stream: Any) -> int | None:
    if stream is None:
        return None
    if isinstance(stream, int):
        return stream
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _close(handle: Any) -> None:
    if handle is not None and hasattr(handle, "close"):
        handle.close()


def _flush(stream: Any) -> None:
    try:
        stream.flush()
    except (AttributeError, OSError, ValueError):
        pass


def _write_and_close(fd: int, data: bytes) -> None:
    view = memoryview(data)
    try:
        while view:
            view = view[os.write(fd, view):]
    except OSError:
        pass
    finally:
        os.close(fd)


def _read_into(fd: int, chunks: list[bytes]) -> None:
    try:
        while chunk := os.read(fd, 65536):
            chunks.append(chunk)
    finally:
        os.close(fd)


def _command_argv(command: Command) -> list[str]:
    if not command.argv:
        return []
    return [command.argv[0].translate(_LOWER), *command.argv[1:]]


def _pipeline_length(commands: Sequence[Command]) -> int:
    count = 1
    for command in commands:
        if command.flag is not Flag.PIPE:
            break
        count += 1
    return min(count, len(commands))


class _Plumbing:
    """Owns the pipe ends and helper threads that one run needs."""

    def __init__(self) -> None:
        self._owned: set[int] = set()
        self._threads: list[threading.Thread] = []
        self._sinks: list[tuple[list[bytes], Callable[[bytes], object]]] = []

    def _start(self, target: Callable[..., None], *args: Any) -> None:
        thread = threading.Thread(target=target, args=args, daemon=True)
        thread.start()
        self._threads.append(thread)

    def pipe(self) -> tuple[int, int]:
        read_end, write_end = os.pipe()
        self._owned.update((read_end, write_end))
        return read_end, write_end

    def feed(self, data: bytes) -> int:
        """Return a read end that yields ``data`` and then end-of-file."""
        read_end, write_end = os.pipe()
        self._owned.add(read_end)
        self._start(_write_and_close, write_end, data)
        return read_end

    def send(self, fd: int, data: bytes) -> None:
        """Write ``data`` to ``fd`` in the background."""
        self._start(_write_and_close, os.dup(fd), data)

    def collect(self, sink: Callable[[bytes], object]) -> int:
        """Return a write end whose output is handed to ``sink`` at the end."""
        read_end, write_end = os.pipe()
        self._owned.add(write_end)
        chunks: list[bytes] = []
        self._sinks.append((chunks, sink))
        self._start(_read_into, read_end, chunks)
        return write_end

    def release(self, *fds: int | None) -> None:
        for fd in fds:
            if fd is not None and fd in self._owned:
                self._owned.discard(fd)
                os.close(fd)

    def close(self) -> None:
        self.release(*list(self._owned))
        for thread in self._threads:
            thread.join()
        for chunks, sink in self._sinks:
            data = b"".join(chunks)
            if data:
                sink(data)


class Executor:
    """Runs commands against an environment and a set of standard streams."""

    def __init__(
        self,
        env: Environment | None = None,
        *,
        envp: dict[str, str] | None = None,
        stdin: IO[Any] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
        readline: Callable[[str], str] | None = None,
    ) -> None:
        self.env = env if env is not None else Environment()
        self.envp = dict(envp) if envp is not None else self.env.to_dict()
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.readline = readline if readline is not None else input
        self.last_status = SUCCESS
        self._interrupted = False

    # -- redirections -----------------------------------------------------

    def _report(self, path: str, exc: OSError) -> None:
        reason = exc.strerror or os.strerror(exc.errno or 0)
        self.stderr.write(f"minishell: {path}: {reason}\n")
        _flush(self.stderr)

    def read_heredoc(self, delimiter: str) -> str | None:
        """Read lines until one starts with ``delimiter``.

        Returns the text read, or None when the reading is interrupted.
        """
        lines: list[str] = []
        try:
            while True:
                try:
                    line = self.readline("> ")
                except EOFError:
                    self.stdout.write(
                        "minishell: warning: here-document at line "
                        f" {len(lines) + 1} delimited by end-of-file "
                        f"(wanted `{delimiter}')\n"
                    )
                    break
                if line.startswith(delimiter):
                    break
                lines.append(line)
        except KeyboardInterrupt:
            self.stdout.write("\n")
            return None
        return "".join(f"{line}\n" for line in lines)

    def open_redirections(self, command: Command) -> tuple[Source, BinaryIO | None]:
        """Open the command's redirections.

        Returns the input (an open file, here-document bytes or None) and the
        output file (or None); the caller closes them. Raises
        RedirectionError after reporting a file that cannot be opened, or
        with status 130 when a here-document is interrupted.
        """
        source: Source = None
        target: BinaryIO | None = None
        status = SUCCESS
        try:
            for stream in command.in_streams:
                if stream.flag is Flag.INPUT:
                    if status:
                        continue
                    try:
                        handle = open(stream.file, "r+b")
                    except OSError as exc:
                        self._report(stream.file, exc)
                        status = GENERAL_ERROR
                        continue
                    _close(source)
                    source = handle
                else:
                    text = self.read_heredoc(stream.file)
                    if text is None:
                        raise RedirectionError(INTERRUPTED)
                    if not status:
                        _close(source)
                        source = text.encode()
            if status:
                raise RedirectionError(status)
            for stream in command.out_streams:
                mode = "ab" if stream.flag is Flag.APPEND else "wb"
                try:
                    handle = open(stream.file, mode)
                except OSError as exc:
                    self._report(stream.file, exc)
                    raise RedirectionError(GENERAL_ERROR) from None
                _close(target)
                target = handle
        except BaseException:
            _close(source)
            _close(target)
            raise
        return source, target

    # -- stream plumbing --------------------------------------------------

    def _input_fd(self, source: Any, plumbing: _Plumbing) -> int:
        if source is None:
            source = self.stdin
        if source is None:
            return plumbing.feed(b"")
        if isinstance(source, (bytes, bytearray)):
            return plumbing.feed(bytes(source))
        fd = _fileno(source)
        if fd is not None:
            return fd
        data = source.read()
        if isinstance(data, str):
            data = data.encode()
        return plumbing.feed(data)

    def _text_sink(self, stream: IO[str]) -> Callable[[bytes], object]:
        return lambda data: stream.write(data.decode(errors="replace"))

    def _output_fd(self, target: Any, plumbing: _Plumbing) -> int:
        if target is None:
            fd = _fileno(self.stdout)
            if fd is not None:
                return fd
            return plumbing.collect(self._text_sink(self.stdout))
        fd = _fileno(target)
        if fd is not None:
            return fd
        return plumbing.collect(target.write)

    def _error_fd(self, plumbing: _Plumbing) -> int:
        fd = _fileno(self.stderr)
        if fd is not None:
            return fd
        return plumbing.collect(self._text_sink(self.stderr))

    def _emit(self, text: str, stdout: Any) -> None:
        if stdout is None:
            self.stdout.write(text)
            _flush(self.stdout)
        else:
            stdout.write(text.encode())
            _flush(stdout)

    # -- running ----------------------------------------------------------

    def _run_builtin(self, argv: list[str], out: IO[str], env: Environment) -> int:
        name = argv[0]
        if name == "echo":
            return shell_builtins.echo(argv, out)
        if name == "pwd":
            return shell_builtins.pwd(out)
        if name == "env":
            return shell_builtins.print_env(argv, env, out)
        if name == "cd":
            return shell_builtins.cd(argv, env, self.stderr)
        if name == "exit":
            return shell_builtins.exit_builtin(argv, self.stderr)
        if name == "export":
            return shell_builtins.export(argv, env, out, self.stderr)
        return shell_builtins.unset(argv, env, self.stderr)

    def _spawn(
        self, argv: list[str], stdin_fd: int, stdout_fd: int, stderr_fd: int
    ) -> subprocess.Popen[bytes] | int:
        name = argv[0]
        path = name if "/" in name else find_executable(name, self.env.get("PATH"))
        if path is None:
            self.stderr.write(f"minishell: {name}: command not found\n")
            _flush(self.stderr)
            return COMMAND_NOT_FOUND
        _flush(self.stdout)
        _flush(self.stderr)
        try:
            return subprocess.Popen(
                argv,
                executable=path,
                stdin=stdin_fd,
                stdout=stdout_fd,
                stderr=stderr_fd,
                env=self.envp,
            )
        except OSError as exc:
            reason = exc.strerror or os.strerror(exc.errno or 0)
            self.stderr.write(f"{path}: {reason}\n")
            _flush(self.stderr)
            return _launch_status((exc.errno or GENERAL_ERROR) & 0xFF)

    @staticmethod
    def _wait(launched: subprocess.Popen[bytes] | int) -> int:
        if isinstance(launched, int):
            return launched
        return _launch_status(exit_status(launched.wait()))

    def run_command(self, command: Command, stdin: Any = None, stdout: Any = None) -> int:
        """Run one command; ``stdin`` and ``stdout`` override the defaults.

        Builtins run in this process; ``exit`` raises ShellExit.
        """
        argv = _command_argv(command)
        if not argv:
            return SUCCESS
        if is_builtin(argv[0]):
            out = io.StringIO()
            status = self._run_builtin(argv, out, self.env)
            self._emit(out.getvalue(), stdout)
            return status
        plumbing = _Plumbing()
        try:
            stdin_fd = self._input_fd(stdin, plumbing)
            stdout_fd = self._output_fd(stdout, plumbing)
            stderr_fd = self._error_fd(plumbing)
            launched = self._spawn(argv, stdin_fd, stdout_fd, stderr_fd)
            plumbing.release(stdin_fd, stdout_fd, stderr_fd)
            return self._wait(launched)
        finally:
            plumbing.close()

    def _pipeline_builtin(
        self, argv: list[str], stdout_fd: int, plumbing: _Plumbing
    ) -> int:
        # Builtins inside a pipeline leave the shell's own state untouched.
        env = Environment(self.env.entries())
        out = io.StringIO()
        cwd = os.getcwd() if argv[0] == "cd" else None
        try:
            status = self._run_builtin(argv, out, env)
        except ShellExit as exc:
            status = exc.status
        finally:
            if cwd is not None:
                os.chdir(cwd)
        plumbing.send(stdout_fd, out.getvalue().encode())
        return status

    def _start_stage(
        self,
        command: Command,
        stdin_fd: int,
        stdout_fd: int,
        stderr_fd: int,
        plumbing: _Plumbing,
    ) -> subprocess.Popen[bytes] | int:
        argv = _command_argv(command)
        if not argv:
            return SUCCESS
        if is_builtin(argv[0]):
            return self._pipeline_builtin(argv, stdout_fd, plumbing)
        return self._spawn(argv, stdin_fd, stdout_fd, stderr_fd)

    def run_pipeline(self, commands: Iterable[Command]) -> int:
        """Run the pipeline at the head of ``commands``; return the status of
        its last stage, or 130 when a here-document was interrupted."""
        commands = list(commands)
        if not commands:
            return SUCCESS
        stages = commands[:_pipeline_length(commands)]
        self._interrupted = False
        plumbing = _Plumbing()
        launched: list[subprocess.Popen[bytes] | int] = []
        previous: int | None = None
        try:
            stderr_fd = self._error_fd(plumbing)
            for index, command in enumerate(stages):
                try:
                    source, target = self.open_redirections(command)
                    failure = SUCCESS
                except RedirectionError as exc:
                    if exc.status == INTERRUPTED:
                        self._interrupted = True
                        break
                    source, target, failure = None, None, exc.status
                stdin_fd = stdout_fd = next_read = write_end = None
                try:
                    if index != len(stages) - 1:
                        next_read, write_end = plumbing.pipe()
                    if source is not None:
                        stdin_fd = self._input_fd(source, plumbing)
                    elif previous is not None:
                        stdin_fd = previous
                    else:
                        stdin_fd = self._input_fd(None, plumbing)
                    if target is not None:
                        stdout_fd = target.fileno()
                    elif write_end is not None:
                        stdout_fd = write_end
                    else:
                        stdout_fd = self._output_fd(None, plumbing)
                    if failure:
                        launched.append(failure)
                    else:
                        launched.append(
                            self._start_stage(
                                command, stdin_fd, stdout_fd, stderr_fd, plumbing
                            )
                        )
                finally:
                    if not isinstance(source, (bytes, bytearray)):
                        _close(source)
                    _close(target)
                    plumbing.release(stdin_fd, stdout_fd, write_end, previous)
                    previous = next_read
            plumbing.release(previous)
            statuses = [self._wait(item) for item in launched]
        finally:
            plumbing.close()
        if self._interrupted:
            return INTERRUPTED
        return statuses[-1] if statuses else SUCCESS

    def _run_simple(self, command: Command) -> int:
        try:
            source, target = self.open_redirections(command)
        except RedirectionError as exc:
            return exc.status
        try:
            if not command.argv:
                return SUCCESS
            return self.run_command(command, source, target)
        finally:
            if not isinstance(source, (bytes, bytearray)):
                _close(source)
            _close(target)

    def run(self, commands: Iterable[Command]) -> int:
        """Run a parsed line and return the status of what ran last."""
        remaining = list(commands)
        status = SUCCESS
        self._interrupted = False
        while remaining:
            if remaining[0].flag is Flag.PIPE:
                size = _pipeline_length(remaining)
                status = self.run_pipeline(remaining)
                if self._interrupted:
                    break
                remaining = remaining[size:]
            else:
                status = self._run_simple(remaining[0])
                remaining = remaining[1:]
        self.last_status = status
        return status