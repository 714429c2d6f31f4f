"""The commands the shell runs itself."""

from __future__ import annotations

import os
import string
import sys
from collections.abc import Sequence
from typing import TextIO

from minishell.environment import Environment, has_assignment, is_valid_name

BUILTINS = "cd echo env exit export pwd unset"

SUCCESS = 0
ERROR = 1


class ShellExit(Exception):
    """Raised by ``exit`` to end the shell with ``status``."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(status)
        self.status = status


def _message(stream: TextIO, first: str | None, second: str | None, third: str | None) -> None:
    parts = [first or "", second or "", ": "]
    if third is not None:
        parts.append(third + "\n")
    stream.write("".join(parts))


def _invalid_identifier(stream: TextIO, arg: str) -> None:
    stream.write(f"minishell: export: `{arg}': not a valid identifier\n")


def is_builtin(name: str) -> bool:
    """Return True when ``name`` is one of the shell's own commands."""
    return name in BUILTINS.split()


def echo(argv: Sequence[str], out: TextIO | None = None) -> int:
    """Print the arguments; leading ``-n`` options drop the newline."""
    out = out if out is not None else sys.stdout
    if len(argv) < 2:
        out.write("\n")
        return ERROR
    words = list(argv[1:])
    newline = True
    while words and words[0] == "-n":
        words.pop(0)
        newline = False
    if words:
        out.write(" ".join(words))
        if newline:
            out.write("\n")
    return SUCCESS


def cd(argv: Sequence[str], env: Environment, err: TextIO | None = None) -> int:
    """Change directory to the argument, or to ``HOME`` without one."""
    err = err if err is not None else sys.stderr
    if len(argv) < 2:
        entry = env.find("HOME")
        if entry is None:
            _message(err, "minishell: ", "cd", "HOME not set")
            return ERROR
        try:
            os.chdir(entry.partition("=")[2])
        except OSError as exc:
            err.write(f"minishell: cd: : {os.strerror(exc.errno or 0)}\n")
        return SUCCESS
    target = argv[1]
    try:
        os.chdir(target)
    except OSError as exc:
        _message(err, "minishell: cd: ", target, os.strerror(exc.errno or 0))
        return ERROR
    return SUCCESS


def pwd(out: TextIO | None = None) -> int:
    """Print the working directory."""
    out = out if out is not None else sys.stdout
    try:
        path = os.getcwd()
    except OSError:
        return ERROR
    out.write(path + "\n")
    return SUCCESS


def print_env(argv: Sequence[str], env: Environment, out: TextIO | None = None) -> int:
    """Print every entry that carries a value; arguments are refused."""
    out = out if out is not None else sys.stdout
    if len(argv) > 1:
        return ERROR
    for entry in env:
        if has_assignment(entry):
            out.write(entry + "\n")
    return SUCCESS


def _all_digits(text: str) -> bool:
    return all(char in string.digits for char in text)


def exit_builtin(argv: Sequence[str], err: TextIO | None = None) -> int:
    """End the shell by raising ShellExit, unless given too many arguments."""
    err = err if err is not None else sys.stderr
    if len(argv) > 2 and _all_digits(argv[1]):
        _message(err, "exit\n", "prompt: exit: too many arguments\n", None)
        return ERROR
    if len(argv) > 1 and not _all_digits(argv[1]) and ("-" in argv[1] or "+" in argv[1]):
        _message(err, "exit\nprompt: exit: ", argv[1], ": numeric argument required\n")
        raise ShellExit(0)
    err.write("exit\n")
    raise ShellExit(0)


def format_export(entry: str) -> str:
    """Render one entry as ``export`` lists it."""
    text = "declare -x " + entry.replace("=", '="')
    if has_assignment(entry):
        text += '"'
    return text


def export(
    argv: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Set variables, or list them all (sorted) when given no arguments."""
    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr
    status = SUCCESS
    args = list(argv[1:])
    for arg in args:
        if not is_valid_name(arg):
            _invalid_identifier(err, arg)
            status = ERROR
    for arg in args:
        env.export(arg)
    env.sort()
    if not args:
        for entry in env:
            out.write(format_export(entry) + "\n")
    return status


def unset(argv: Sequence[str], env: Environment, err: TextIO | None = None) -> int:
    """Remove the named variables."""
    err = err if err is not None else sys.stderr
    status = SUCCESS
    for arg in argv[1:]:
        if "=" in arg or not is_valid_name(arg):
            _invalid_identifier(err, arg)
            status = ERROR
        else:
            env.unset(arg)
    return status