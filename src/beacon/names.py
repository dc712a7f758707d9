"""Hierarchical DNS names with case-insensitive equality and suffix ordering.

Brief:
  A Name is a tuple of labels plus an ``absolute`` flag (trailing dot). Names
  compare equal regardless of letter case or absoluteness. The ordering
  operators describe the DNS hierarchy rather than a total order:

    >>> Name.create("www.example.com") < Name.create("example.com")
    True
    >>> Name.create("example.com") <= Name.create("example.com")
    True
    >>> Name.create("com") < Name.create("example.com")
    False
    >>> (Name.create("bar.com") < Name.create("example.com")) is None
    True
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple, Union

from cachetools import LRUCache, cached  # type: ignore[import]

# Parsed label tuples for frequently seen owner names (service types, host
# names). Parsing is pure, so a bounded process-wide cache is safe.
_PARSE_CACHE: LRUCache = LRUCache(maxsize=4096)

WILDCARD = "*"


@cached(cache=_PARSE_CACHE)
def _parse(text: str) -> Tuple[Tuple[str, ...], bool]:
    """Brief: Split dotted text into labels, honouring ``\\.`` escapes.

    Inputs:
      - text: Name in presentation format (e.g. ``My\\.Box._http._tcp.local.``).

    Outputs:
      - (labels, absolute): labels without escapes, and whether the text ended
        with an unescaped dot.
    """

    if text in ("", "."):
        return (), True

    labels = []
    current = []
    absolute = False
    escaped = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ".":
            labels.append("".join(current))
            current = []
        else:
            current.append(ch)
    if escaped:
        current.append("\\")
    if current:
        labels.append("".join(current))
    else:
        absolute = True
    return tuple(labels), absolute


def _escape(label: str) -> str:
    return label.replace("\\", "\\\\").replace(".", "\\.")


class Name:
    """A DNS domain name.

    Inputs:
      - labels: iterable of label strings, most specific first.
      - absolute: True when the name is fully qualified.
    """

    __slots__ = ("_labels", "_key", "absolute")

    def __init__(self, labels: Iterable[str], absolute: bool = False) -> None:
        self._labels: Tuple[str, ...] = tuple(str(label) for label in labels)
        self._key: Tuple[str, ...] = tuple(label.lower() for label in self._labels)
        self.absolute = bool(absolute)

    @classmethod
    def create(cls, value: Union[str, "Name"]) -> "Name":
        """Brief: Build a Name from text, or return an existing Name unchanged.

        Inputs:
          - value: str in presentation format, or a Name.

        Outputs:
          - Name instance.

        Example:
          >>> str(Name.create("foo.local"))
          'foo.local'
        """

        if isinstance(value, Name):
            return value
        if not isinstance(value, str):
            raise TypeError("cannot create a Name from %r" % (value,))
        labels, absolute = _parse(value)
        return cls(labels, absolute)

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    @property
    def is_wildcard(self) -> bool:
        """True for the single-label name ``*`` used by subscribe-to-all queries."""
        return self._labels == (WILDCARD,)

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self):
        return iter(self._labels)

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            other = Name.create(other)
        if not isinstance(other, Name):
            return NotImplemented
        return self._key == other._key

    def related(self, other: Union[str, "Name"]) -> bool:
        """True when one name is a suffix of (or equal to) the other."""
        n = Name.create(other)
        size = min(len(self), len(n))
        if size == 0:
            return True
        return self._key[-size:] == n._key[-size:]

    def _proper_subdomain_of(self, n: "Name") -> bool:
        if len(self) <= len(n):
            return False
        return len(n) == 0 or self._key[-len(n):] == n._key

    def compare(self, other: Union[str, "Name"]) -> Optional[int]:
        """Brief: Three-way hierarchy comparison.

        Inputs:
          - other: Name or str.

        Outputs:
          - -1 if self is a subdomain of other, 0 if equal, +1 if other is a
            subdomain of self, None if the names are unrelated.
        """

        n = Name.create(other)
        if not self.related(n):
            return None
        if self._proper_subdomain_of(n):
            return -1
        if n._proper_subdomain_of(self):
            return 1
        return 0

    def __lt__(self, other: Union[str, "Name"]) -> Optional[bool]:  # type: ignore[override]
        n = Name.create(other)
        if not self.related(n):
            return None
        return self._proper_subdomain_of(n)

    def __gt__(self, other: Union[str, "Name"]) -> Optional[bool]:  # type: ignore[override]
        return Name.create(other).__lt__(self)

    def __le__(self, other: Union[str, "Name"]) -> Optional[bool]:  # type: ignore[override]
        n = Name.create(other)
        if self == n:
            return True
        return self.__lt__(n)

    def __ge__(self, other: Union[str, "Name"]) -> Optional[bool]:  # type: ignore[override]
        n = Name.create(other)
        if self == n:
            return True
        return self.__gt__(n)

    def subdomain_of(self, other: Union[str, "Name"]) -> bool:
        """True when self equals other or sits underneath it."""
        return bool(self <= other)

    def __add__(self, other: Union[str, "Name"]) -> "Name":
        n = Name.create(other)
        return Name(self._labels + n._labels, n.absolute)

    def with_absolute(self, absolute: bool = True) -> "Name":
        return Name(self._labels, absolute)

    def __str__(self) -> str:
        text = ".".join(_escape(label) for label in self._labels)
        if self.absolute:
            return text + "."
        return text

    def __repr__(self) -> str:
        return "Name(%r)" % str(self)
