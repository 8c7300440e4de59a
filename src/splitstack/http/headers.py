"""
=============================================================================
HEADER MAPPING
=============================================================================

A case-insensitive, order-preserving mapping for HTTP header fields.

Header names are case-insensitive (RFC 7230 §3.2), so "Content-Type" and
"content-type" address the same field. Browsers, proxies and client
libraries disagree on casing, and the pipeline stages add headers from
several places, so every lookup goes through a normalized key.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        HEADERS LAYOUT                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _store = {                                                        │
    │       "content-type": ("Content-Type", "application/json"),        │
    │       "x-request-id": ("X-Request-ID", "3fa2c1d0"),                │
    │   }                                                                 │
    │     ───────┬──────     ──────┬─────   ─────────┬────────           │
    │        lookup key       wire casing          value                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The first casing used for a name is the one written to the wire.
=============================================================================
"""

from collections.abc import MutableMapping
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union


HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


class Headers(MutableMapping):
    """Case-insensitive header mapping. Keys are unique per lowercased name."""

    def __init__(self, source: HeaderSource = None, **kwargs: str):
        self._store: Dict[str, Tuple[str, str]] = {}
        if source is not None:
            self.update(source)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1]

    def __setitem__(self, name: str, value: str) -> None:
        key = name.lower()
        existing = self._store.get(key)
        # Keep the casing the header was first written with
        wire_name = existing[0] if existing else name
        self._store[key] = (wire_name, str(value))

    def __delitem__(self, name: str) -> None:
        del self._store[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (wire_name for wire_name, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._store

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            other = Headers(other)
        if not isinstance(other, Headers):
            return NotImplemented
        return self.lower_items() == other.lower_items()

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    def add(self, name: str, value: str) -> None:
        """
        Append a value to a header, comma-joining with any existing value.

        Used for list-valued fields such as Vary, and for repeated request
        headers (RFC 7230 §3.2.2).
        """
        if name in self:
            current = self[name]
            values = [v.strip() for v in current.split(",")]
            if value in values:
                return
            self[name] = f"{current}, {value}"
        else:
            self[name] = value

    def setdefault(self, name: str, default: str = "") -> str:  # type: ignore[override]
        if name not in self:
            self[name] = default
        return self[name]

    def lower_items(self) -> Dict[str, str]:
        return {key: value for key, (_, value) in self._store.items()}

    def copy(self) -> "Headers":
        return Headers(self.items())

    def get_first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first comma-separated element of a header."""
        value = self.get(name)
        if value is None:
            return default
        return value.split(",")[0].strip()
