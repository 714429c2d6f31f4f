"""Tokenising an input line and checking its pipe and redirection syntax."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

_BLANKS = " \t\v\f\r"
_OPERATORS = ("|", "<", ">")


class TokenKind(IntEnum):
    """What a token stands for."""

    CMD = 0
    PIPE = 1
    REDIR = 2


@dataclass(frozen=True)
class Token:
    """A piece of the line: command text, a pipe or a redirection operator."""

    value: str
    kind: TokenKind


def get_tokens(line: str) -> list[Token]:
    """Cut ``line`` into command text, pipes and redirection operators.

    Quotes are not looked at; command text is trimmed of blanks and dropped
    when nothing is left.
    """
    tokens: list[Token] = []
    size = len(line)
    position = 0
    while position < size:
        start = position
        while position < size and line[position] not in _OPERATORS:
            position += 1
        text = line[start:position].strip(_BLANKS)
        if text:
            tokens.append(Token(text, TokenKind.CMD))
        if position >= size:
            break
        char = line[position]
        if char == "|":
            tokens.append(Token("|", TokenKind.PIPE))
            position += 1
        else:
            following = line[position + 1] if position + 1 < size else ""
            if following == char:
                tokens.append(Token(char * 2, TokenKind.REDIR))
                position += 2
            else:
                tokens.append(Token(char, TokenKind.REDIR))
                position += 1
    return tokens


def _redirect_ok(tokens: Sequence[Token], index: int) -> bool:
    """A redirection must be followed by command text."""
    return index + 1 < len(tokens) and tokens[index + 1].kind is TokenKind.CMD


def _pipe_error(tokens: Sequence[Token], index: int) -> str | None:
    """Return the offending value for a pipe at ``index``, if any."""
    if index + 1 >= len(tokens):
        return tokens[index].value
    following = tokens[index + 1]
    if following.kind is TokenKind.PIPE:
        return following.value
    return None


def _check_command(tokens: Sequence[Token], index: int) -> tuple[int, str | None]:
    """Check what follows a command; return the next index and any error."""
    size = len(tokens)
    while index < size and tokens[index].kind is TokenKind.REDIR:
        if not _redirect_ok(tokens, index):
            return index, tokens[index].value
        index += 2
    if index < size and tokens[index].kind is TokenKind.PIPE:
        error = _pipe_error(tokens, index)
        if error is not None:
            return index, error
        index += 1
    elif index < size:
        index += 1
    return index, None


def check_grammar(tokens: Sequence[Token]) -> str | None:
    """Return the value of the token where the syntax breaks, or None."""
    size = len(tokens)
    index = 0
    while index < size:
        token = tokens[index]
        if token.kind is TokenKind.PIPE:
            return token.value
        if token.kind is TokenKind.REDIR:
            if not _redirect_ok(tokens, index):
                return token.value
            index += 1
        elif index + 1 < size:
            index, error = _check_command(tokens, index + 1)
            if error is not None:
                return error
        else:
            index += 1
    return None