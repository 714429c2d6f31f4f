"""The interactive loop: prompt, syntax check, parsing, history and execution."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from types import ModuleType
from typing import IO, Any

from minishell.builtins import ShellExit
from minishell.environment import Environment
from minishell.executor import Executor
from minishell.lexer import check_grammar, get_tokens
from minishell.parser import parse_line

PROMPT = "prompt> "
HISTORY_FILE = ".minishell_history"
SUCCESS = 0
SYNTAX_STATUS = 2
INTERRUPTED = 130


def syntax_error_message(token: str) -> str:
    """Return the message printed for a syntax error at ``token``."""
    return f"minishell: erreur de syntaxe près du symbole inattendu « {token} »"


def _load_readline() -> ModuleType | None:
    try:
        import readline
    except ImportError:
        return None
    return readline


class History:
    """The command history, kept in a file and fed to line editing."""

    def __init__(self, path: str | os.PathLike[str] | None = None, *, use_readline: bool = True) -> None:
        self.path = Path(path) if path is not None else Path.cwd() / HISTORY_FILE
        self.lines: list[str] = []
        self._readline = _load_readline() if use_readline else None

    def _remember(self, line: str) -> None:
        self.lines.append(line)
        if self._readline is not None:
            self._readline.add_history(line)

    def load(self) -> list[str]:
        """Create the history file if needed and load the lines it holds."""
        try:
            with open(self.path, "a+", encoding="utf-8") as handle:
                handle.seek(0)
                text = handle.read()
        except OSError:
            return list(self.lines)
        for line in text.splitlines():
            self._remember(line)
        return list(self.lines)

    def add(self, line: str) -> bool:
        """Record a non-empty line; return whether it was recorded."""
        if not line:
            return False
        try:
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError:
            return False
        self._remember(line)
        return True


class Shell:
    """Reads lines, checks and parses them, and runs the commands."""

    def __init__(
        self,
        env: Environment | Mapping[str, str] | None = None,
        *,
        envp: dict[str, str] | None = None,
        stdin: IO[Any] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
        readline: Callable[[str], str] | None = None,
        history: History | None = None,
    ) -> None:
        if env is None:
            env = Environment()
        elif not isinstance(env, Environment):
            env = Environment.from_mapping(env)
        self.stdout = stdout if stdout is not None else sys.stdout
        self.readline = readline if readline is not None else input
        self.history = history
        self.executor = Executor(
            env,
            envp=envp,
            stdin=stdin,
            stdout=self.stdout,
            stderr=stderr,
            readline=self.readline,
        )

    @property
    def env(self) -> Environment:
        return self.executor.env

    @property
    def last_status(self) -> int:
        return self.executor.last_status

    @last_status.setter
    def last_status(self, value: int) -> None:
        self.executor.last_status = value

    def _write(self, text: str) -> None:
        self.stdout.write(text)
        try:
            self.stdout.flush()
        except (AttributeError, OSError, ValueError):
            pass

    def check_syntax(self, line: str) -> bool:
        """Return True when ``line`` is well formed; otherwise report the
        error and set the status to 2."""
        offending = check_grammar(get_tokens(line))
        if offending is None:
            return True
        self._write(syntax_error_message(offending) + "\n")
        self.last_status = SYNTAX_STATUS
        return False

    def execute_line(self, line: str) -> int:
        """Check, parse, record and run one line; return the last status.

        ``exit`` propagates as ShellExit.
        """
        if not self.check_syntax(line):
            return self.last_status
        try:
            commands = parse_line(line, self.env, self.last_status)
        except ValueError:
            self.last_status = SYNTAX_STATUS
            return self.last_status
        if self.history is not None:
            self.history.add(line)
        if commands:
            self.executor.run(commands)
        return self.last_status

    def run(self) -> int:
        """Prompt and run lines until end of input or ``exit``."""
        while True:
            try:
                line = self.readline(PROMPT)
            except EOFError:
                self._write("exit\n")
                return SUCCESS
            except KeyboardInterrupt:
                self._write("\n")
                self.last_status = INTERRUPTED
                continue
            try:
                self.execute_line(line)
            except ShellExit as exc:
                return exc.status
            except KeyboardInterrupt:
                self._write("\n")
                self.last_status = INTERRUPTED


def main(argv: list[str] | None = None) -> int:
    """Start an interactive shell on the process environment."""
    del argv
    if hasattr(signal, "SIGQUIT"):
        signal.signal(signal.SIGQUIT, signal.SIG_IGN)
    history = History()
    history.load()
    shell = Shell(os.environ, envp=dict(os.environ), history=history)
    return shell.run()


if __name__ == "__main__":
    sys.exit(main())