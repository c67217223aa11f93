"""
Case-insensitive HTTP header mapping.

HTTP header names are case-insensitive (RFC 7230), so "Content-Type" and
"content-type" address the same entry. The mapping remembers the spelling
used when a header was last set, which is what goes on the wire.
"""

from typing import Dict, Iterator, MutableMapping, Optional, Tuple


class Headers(MutableMapping):
    """
    Mutable, case-insensitive header mapping.

    Iteration yields header names with their original spelling:

        headers = Headers({"Content-Type": "text/plain"})
        headers["content-type"]          # "text/plain"
        "CONTENT-TYPE" in headers        # True
        list(headers)                    # ["Content-Type"]
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None, **kwargs: str):
        self._store: Dict[str, Tuple[str, str]] = {}
        if initial:
            self.update(initial)
        if kwargs:
            self.update(kwargs)

    def __setitem__(self, name: str, value: str) -> None:
        self._store[name.lower()] = (name, str(value))

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1]

    def __delitem__(self, name: str) -> None:
        del self._store[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._store

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            other_items = {k: v for k, (_, v) in other._store.items()}
        elif isinstance(other, dict):
            other_items = {k.lower(): v for k, v in other.items()}
        else:
            return NotImplemented
        return {k: v for k, (_, v) in self._store.items()} == other_items

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    def add(self, name: str, value: str) -> None:
        """Append to an existing header with ", " or set it if missing."""
        if name in self:
            self[name] = f"{self[name]}, {value}"
        else:
            self[name] = value

    def copy(self) -> "Headers":
        return Headers(dict(self.items()))
