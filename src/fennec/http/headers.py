"""Immutable, case-insensitive request headers.

Implements ``Mapping[str, str]`` and the ``MultiValueMapping`` protocol.
Keeps the raw ASGI byte pairs for passthrough and builds a lower-cased
index once, on first access.
"""

from collections.abc import Iterator, Mapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive HTTP headers.

    ``__getitem__`` returns the first matching value, ``get_list`` all of
    them, and ``get_joined`` all of them joined with ``", "`` (the
    RFC 9110 combination rule, used by ``Ctx.get``).
    """

    __slots__ = ("_index", "_raw")

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        self._raw = raw
        self._index: dict[str, list[str]] | None = None

    def _values(self) -> dict[str, list[str]]:
        index = self._index
        if index is None:
            index = {}
            for name, value in self._raw:
                index.setdefault(name.decode("latin-1").lower(), []).append(
                    value.decode("latin-1")
                )
            self._index = index
        return index

    def __getitem__(self, key: str) -> str:
        return self._values()[key.lower()][0]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return key.lower() in self._values()

    def __iter__(self) -> Iterator[str]:
        return iter(self._values())

    def __len__(self) -> int:
        return len(self._values())

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self.get_joined(k)!r}" for k in self)
        return f"Headers({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._values().get(key.lower())
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*, in wire order."""
        return list(self._values().get(key.lower(), ()))

    def get_joined(self, key: str, default: str = "") -> str:
        """Return every value for *key* joined with ``", "``."""
        values = self._values().get(key.lower())
        if not values:
            return default
        return ", ".join(values)

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Access raw header byte pairs for ASGI compatibility."""
        return self._raw
