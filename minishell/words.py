"""Splitting of a command segment into words, with quote and ``$`` handling."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

OPERATORS = ("|", "<", ">")
SINGLE_QUOTE = "'"
DOUBLE_QUOTE = '"'
_WORD_BREAKS = (SINGLE_QUOTE, DOUBLE_QUOTE, " ")
_NAME_BREAKS = (" ", "$")


def is_operator(char: str) -> bool:
    """Return True for a pipe or redirection character."""
    return char in OPERATORS


def find_operator(line: str, start: int = 0) -> int:
    """Return the index of the first operator outside quotes at or after
    ``start``, or ``len(line)`` when there is none."""
    quote: str | None = None
    for index in range(start, len(line)):
        char = line[index]
        if char in (SINGLE_QUOTE, DOUBLE_QUOTE):
            if quote is None:
                quote = char
            elif quote == char:
                quote = None
            continue
        if quote is None and is_operator(char):
            return index
    return len(line)


def lookup_variable(name: str, entries: Iterable[str]) -> str | None:
    """Return the value of ``name`` among ``NAME=value`` entries.

    An entry without ``=`` yields an empty value; an unknown name yields None.
    """
    size = len(name)
    for entry in entries:
        if entry.startswith(name) and (len(entry) == size or entry[size] == "="):
            return entry.partition("=")[2]
    return None


def _run_end(text: str, position: int) -> int:
    """Return the index where a run of name characters starting at
    ``position`` stops (at a space, a ``$`` or the end)."""
    end = position
    while end < len(text) and text[end] not in _NAME_BREAKS:
        end += 1
    return end


def expand_dollars(text: str, entries: Iterable[str], last_status: int = 0) -> str:
    """Replace ``$NAME``, ``$?`` and ``$<digit>`` references in ``text``."""
    entries = list(entries)
    parts: list[str] = []
    size = len(text)
    position = 0
    while position < size:
        char = text[position]
        following = text[position + 1] if position + 1 < size else ""
        if char != "$" or following in ("", " ", "$"):
            parts.append(char)
            position += 1
            continue
        position += 1
        marker = text[position]
        if marker in "0123456789":
            # A positional parameter expands to nothing; the rest of the run
            # is kept, and the character that ends the run is consumed.
            position += 1
            end = _run_end(text, position)
            parts.append(text[position:end])
            if end > position and end < size and text[end] == "$":
                position = end
            else:
                position = end + 1
        elif marker == "?":
            parts.append(str(last_status))
            position += 1
            if not (position < size and text[position] == "$"):
                position += 1
        else:
            end = _run_end(text, position)
            value = lookup_variable(text[position:end], entries)
            parts.append(value if value is not None else "")
            position = end
    return "".join(parts)


def _merges(text: str, index: int) -> bool:
    """Whether a piece followed by ``text[index]`` joins the next piece."""
    return index < len(text) and text[index] != " "


def _quoted(
    text: str, position: int, quote: str, entries: list[str], last_status: int
) -> tuple[str, bool, int | None]:
    """Read a quoted piece whose content starts at ``position``.

    Returns the piece, whether it merges with the next one, and the index of
    the closing quote (None when the quote is never closed).
    """
    close = text.find(quote, position)
    content = text[position:] if close == -1 else text[position:close]
    if quote == DOUBLE_QUOTE and "$" in content:
        content = expand_dollars(content, entries, last_status)
    if close == -1:
        return content, False, None
    return content, _merges(text, close + 1), close


def _pieces(
    text: str, entries: list[str], last_status: int
) -> Iterator[tuple[str, bool]]:
    """Yield each piece of ``text`` with a flag telling whether it is glued
    to the piece that follows."""
    size = len(text)
    position = 0
    while position < size and text[position] == " ":
        position += 1
    while position < size:
        char = text[position]
        if char not in _WORD_BREAKS:
            end = position
            while end < size and text[end] not in _WORD_BREAKS:
                end += 1
            piece = text[position:end]
            if "$" in piece:
                piece = expand_dollars(piece, entries, last_status)
            yield piece, _merges(text, end)
            if end >= size:
                return
            position = end
            char = text[position]
        if char in (SINGLE_QUOTE, DOUBLE_QUOTE):
            piece, merge, close = _quoted(
                text, position + 1, char, entries, last_status
            )
            yield piece, merge
            if close is None:
                return
            position = close
        position += 1


def split_words(
    text: str, entries: Iterable[str], last_status: int = 0
) -> list[str]:
    """Split ``text`` on spaces into words, removing quotes and expanding
    variables outside single quotes."""
    words: list[str] = []
    current: list[str] = []
    for piece, merge in _pieces(text, list(entries), last_status):
        current.append(piece)
        if not merge:
            words.append("".join(current))
            current = []
    if current:
        words.append("".join(current))
    return words