"""Cutting an input line into commands with their redirections."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum

from minishell.words import find_operator, is_operator, split_words

_TRIM_CHARS = " \t\v\f\r"


class Flag(IntEnum):
    """The operator that follows a command segment."""

    NONE = 0
    HEREDOC = 1
    APPEND = 2
    INPUT = ord("<")
    OUTPUT = ord(">")
    PIPE = ord("|")

    @property
    def is_redirection(self) -> bool:
        return self in (Flag.INPUT, Flag.HEREDOC, Flag.OUTPUT, Flag.APPEND)

    @property
    def is_input(self) -> bool:
        return self in (Flag.INPUT, Flag.HEREDOC)


@dataclass(frozen=True)
class Stream:
    """One redirection: its kind and its file (or here-document delimiter)."""

    flag: Flag
    file: str


@dataclass
class Command:
    """A command's words, redirections and the operator that follows it."""

    argv: list[str]
    flag: Flag = Flag.NONE
    in_streams: list[Stream] = field(default_factory=list)
    out_streams: list[Stream] = field(default_factory=list)


def get_flag(line: str, index: int) -> Flag:
    """Return the operator starting at ``line[index]``."""
    if index >= len(line) or not is_operator(line[index]):
        return Flag.NONE
    char = line[index]
    following = line[index + 1] if index + 1 < len(line) else ""
    if char == "<" and following == "<":
        return Flag.HEREDOC
    if char == ">" and following == ">":
        return Flag.APPEND
    return Flag(ord(char))


def get_cmds(line: str, entries: Iterable[str], last_status: int = 0) -> list[Command]:
    """Split ``line`` at unquoted operators into raw command segments."""
    entries = list(entries)
    commands: list[Command] = []
    index = 0
    while index < len(line):
        start = index
        index = find_operator(line, index)
        flag = get_flag(line, index)
        commands.append(Command(split_words(line[start:index], entries, last_status), flag))
        if flag in (Flag.HEREDOC, Flag.APPEND):
            index += 1
        if index < len(line):
            index += 1
    return commands


def get_stream(commands: Iterable[Command]) -> list[Command]:
    """Fold redirection targets into the commands they belong to.

    The first word after a redirection operator is its target; any further
    words join the command's arguments. Raises ValueError when a
    redirection has no target.
    """
    queue = deque(commands)
    result: list[Command] = []
    while queue:
        raw = queue.popleft()
        command = Command(list(raw.argv), raw.flag, list(raw.in_streams), list(raw.out_streams))
        while command.flag.is_redirection:
            if not queue or not queue[0].argv:
                raise ValueError("redirection without a target")
            target = queue.popleft()
            stream = Stream(command.flag, target.argv[0])
            if stream.flag.is_input:
                command.in_streams.append(stream)
            else:
                command.out_streams.append(stream)
            command.argv.extend(target.argv[1:])
            command.flag = target.flag
        if (
            not command.argv
            and not command.in_streams
            and not command.out_streams
            and command.flag is not Flag.NONE
        ):
            continue
        result.append(command)
    return result


def trim_commands(commands: list[Command]) -> list[Command]:
    """Strip blanks from both ends of every argument, in place."""
    for command in commands:
        command.argv = [arg.strip(_TRIM_CHARS) for arg in command.argv]
    return commands


def parse_line(line: str, entries: Iterable[str], last_status: int = 0) -> list[Command]:
    """Parse ``line`` into commands with their redirections."""
    return get_stream(get_cmds(line, entries, last_status))


def format_commands(commands: Iterable[Command]) -> str:
    """Render commands as a readable dump, one field per line."""
    lines: list[str] = []
    for command in commands:
        lines.append(f"flag = {int(command.flag)}")
        lines.extend(f"cmd[{index}] = {arg}" for index, arg in enumerate(command.argv))
        lines.extend(f"infile = {stream.file}" for stream in command.in_streams)
        lines.extend(f"outfile = {stream.file}" for stream in command.out_streams)
    return "".join(f"{line}\n" for line in lines)