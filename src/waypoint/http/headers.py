"""Immutable, case-insensitive HTTP headers.

Implements ``Mapping[str, str]`` plus ``get_list`` for repeated headers.
Names are folded to lower case once, at construction.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive request headers.

    ``__getitem__`` returns the first value for a name.
    ``get_list`` returns every value (e.g. repeated ``Accept`` lines).
    """

    __slots__ = ("_items",)

    _items: tuple[tuple[str, str], ...]

    def __init__(
        self,
        items: Mapping[str, str] | Iterable[tuple[str, str]] = (),
    ) -> None:
        pairs = items.items() if isinstance(items, Mapping) else items
        object.__setattr__(
            self, "_items", tuple((name.lower(), value) for name, value in pairs)
        )

    @classmethod
    def from_raw(cls, raw: Iterable[tuple[bytes, bytes]]) -> Headers:
        """Decode ASGI ``(name, value)`` byte pairs (latin-1)."""
        return cls((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)

    def __getitem__(self, key: str) -> str:
        key_lower = key.lower()
        for name, value in self._items:
            if name == key_lower:
                return value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key_lower = key.lower()
        return any(name == key_lower for name, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(dict.fromkeys(name for name, _ in self._items))

    def __len__(self) -> int:
        return len(dict.fromkeys(name for name, _ in self._items))

    def __repr__(self) -> str:
        return f"Headers({list(self._items)!r})"

    def __setattr__(self, name: str, value: object) -> None:
        msg = "Headers are immutable"
        raise AttributeError(msg)

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        try:
            return self[key]
        except KeyError:
            return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        key_lower = key.lower()
        return [value for name, value in self._items if name == key_lower]
