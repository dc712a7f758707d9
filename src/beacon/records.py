"""Resource record data kinds understood by the responder.

Brief:
  Record data is a small closed set of frozen value objects. Equality is by
  value so two answers carrying byte-identical data compare equal, which is
  what the cache relies on for duplicate and cache-flush handling. Record
  type numbers are the ones dnslib exposes through ``QTYPE``.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Tuple, Union

from dnslib import QTYPE

from .names import Name

TYPE_A = int(QTYPE.A)
TYPE_PTR = int(QTYPE.PTR)
TYPE_TXT = int(QTYPE.TXT)
TYPE_AAAA = int(QTYPE.AAAA)
TYPE_SRV = int(QTYPE.SRV)
TYPE_ANY = int(QTYPE.ANY)


def type_name(rtype: int) -> str:
    """Brief: Printable mnemonic for a record type (``A``, ``SRV``, ``TYPE65``)."""
    name = str(QTYPE.get(int(rtype), "") or "")
    if not name or name == str(int(rtype)):
        return "TYPE%d" % int(rtype)
    return name


@dataclass(frozen=True)
class A:
    """IPv4 host address."""

    address: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", str(ipaddress.IPv4Address(self.address)))

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class AAAA:
    """IPv6 host address, stored in compressed form."""

    address: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", str(ipaddress.IPv6Address(self.address)))

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class PTR:
    """Pointer to another name (service instance, service type, or host)."""

    target: Name

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", Name.create(self.target))

    def __str__(self) -> str:
        return str(self.target)


@dataclass(frozen=True)
class SRV:
    """Service location: host and port plus RFC 2782 priority/weight."""

    priority: int
    weight: int
    port: int
    target: Name

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", Name.create(self.target))

    def __str__(self) -> str:
        return "%s:%d" % (self.target, self.port)


@dataclass(frozen=True)
class TXT:
    """Text strings, kept as raw bytes so equality is byte-exact."""

    strings: Tuple[bytes, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "strings",
            tuple(s if isinstance(s, bytes) else str(s).encode("utf-8") for s in self.strings),
        )

    def __str__(self) -> str:
        if not self.strings:
            return '""'
        first = self.strings[0].decode("utf-8", "replace")
        suffix = ", ..." if len(self.strings) > 1 else ""
        return "%r%s" % (first, suffix)


@dataclass(frozen=True)
class RawData:
    """Any other record type, carried as opaque rdata bytes."""

    rtype: int
    data: bytes

    def __str__(self) -> str:
        return "%s %s" % (type_name(self.rtype), self.data.hex())


RecordData = Union[A, AAAA, PTR, SRV, TXT, RawData]


def rtype_of(data: RecordData) -> int:
    """Brief: Map a record data value onto its DNS record type number.

    Inputs:
      - data: one of the RecordData kinds.

    Outputs:
      - int record type.
    """

    if isinstance(data, A):
        return TYPE_A
    elif isinstance(data, AAAA):
        return TYPE_AAAA
    elif isinstance(data, PTR):
        return TYPE_PTR
    elif isinstance(data, SRV):
        return TYPE_SRV
    elif isinstance(data, TXT):
        return TYPE_TXT
    elif isinstance(data, RawData):
        return int(data.rtype)
    raise TypeError("unsupported record data %r" % (data,))
