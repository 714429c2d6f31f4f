"""The shell's variable list: ordered ``NAME=value`` (or bare ``NAME``) entries."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


def is_valid_name(text: str) -> bool:
    """Return True when the part of ``text`` before any ``=`` is a valid
    variable name: a letter or underscore, then letters, digits or
    underscores."""
    name = text.partition("=")[0]
    if not name:
        return False
    first = name[0]
    if not (first.isascii() and (first.isalpha() or first == "_")):
        return False
    return all(char.isascii() and (char.isalnum() or char == "_") for char in name[1:])


def has_assignment(text: str) -> bool:
    """Return True when ``text`` carries a value, that is, holds an ``=``."""
    return "=" in text


class Environment:
    """An ordered list of environment entries, as the shell keeps them."""

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._entries: list[str] = list(entries)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> Environment:
        """Build an environment from a name-to-value mapping."""
        return cls(f"{name}={value}" for name, value in mapping.items())

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[str]:
        """Return a copy of the entries, in order."""
        return list(self._entries)

    def _locate(self, name: str) -> int | None:
        size = len(name)
        for index, entry in enumerate(self._entries):
            if entry.startswith(name) and (len(entry) == size or entry[size] == "="):
                return index
        return None

    def get(self, name: str) -> str | None:
        """Return what follows ``name=`` in the first entry that begins with
        ``name``, or None when no entry does."""
        for entry in self._entries:
            if entry.startswith(name):
                return entry[len(name) + 1:]
        return None

    def find(self, name: str) -> str | None:
        """Return the entry for exactly ``name`` (with or without a value)."""
        index = self._locate(name)
        return None if index is None else self._entries[index]

    def find_assignment(self, arg: str) -> str | None:
        """Return the entry whose name matches the name part of ``arg``."""
        index = self._locate(arg.partition("=")[0])
        return None if index is None else self._entries[index]

    def export(self, arg: str) -> bool:
        """Add or update an entry from ``NAME`` or ``NAME=value``.

        A new name is appended; an existing one is replaced only when ``arg``
        holds a value. Returns False, changing nothing, for an invalid name.
        """
        if not is_valid_name(arg):
            return False
        index = self._locate(arg.partition("=")[0])
        if index is None:
            self._entries.append(arg)
        elif has_assignment(arg):
            self._entries[index] = arg
        return True

    def unset(self, name: str) -> bool:
        """Remove the entry for ``name``; return whether one was removed."""
        index = self._locate(name)
        if index is None:
            return False
        del self._entries[index]
        return True

    def sort(self) -> None:
        """Sort the entries in place by plain string order."""
        self._entries.sort()

    def to_dict(self) -> dict[str, str]:
        """Return the entries that carry a value as a name-to-value dict."""
        result: dict[str, str] = {}
        for entry in self._entries:
            name, sep, value = entry.partition("=")
            if sep:
                result[name] = value
        return result