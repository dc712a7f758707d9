"""Typed configuration models for the beacon responder.

Brief:
  Pydantic models describing how the responder binds its multicast socket,
  which host name/address it advertises for its own services, and how
  logging is set up. Every field has a default so an empty mapping is a
  valid configuration.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator

from ..transport import MAX_PACKET, MDNS_ADDR, MDNS_PORT


def _check_ipv4(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    if not s:
        return None
    return str(ipaddress.IPv4Address(s))


class TransportConfig(BaseModel):
    """Brief: Multicast socket settings.

    Inputs:
      - address: multicast group (default 224.0.0.251).
      - port: UDP port (default 5353).
      - interface: IPv4 address of the interface to join on; None picks the
        interface of the default route.
      - ttl: IP TTL for outbound packets (default 255).
      - loopback: deliver our own multicast back to us (default True).
      - max_packet: receive buffer size in bytes.

    Outputs:
      - TransportConfig instance.
    """

    address: str = Field(default=MDNS_ADDR)
    port: int = Field(default=MDNS_PORT, ge=1, le=65535)
    interface: Optional[str] = Field(default=None)
    ttl: int = Field(default=255, ge=1, le=255)
    loopback: bool = True
    max_packet: int = Field(default=MAX_PACKET, ge=512, le=65535)

    @validator("address", pre=True)
    def normalize_address(cls, v):  # type: ignore[no-untyped-def]
        """Brief: Require an IPv4 multicast group address."""

        addr = ipaddress.IPv4Address(str(v or MDNS_ADDR).strip())
        if not addr.is_multicast:
            raise ValueError("transport.address must be a multicast address, got %s" % addr)
        return str(addr)

    @validator("interface", pre=True)
    def normalize_interface(cls, v):  # type: ignore[no-untyped-def]
        """Brief: Accept an IPv4 address, or empty/"default" for auto-detection."""

        if isinstance(v, str) and v.strip().lower() in {"", "default", "auto"}:
            return None
        return _check_ipv4(v)

    class Config:
        extra = "forbid"


class HostConfig(BaseModel):
    """Brief: Identity of this host in advertised SRV targets and A records.

    Inputs:
      - hostname: host label or name; qualified under `.local` when it has a
        single label. None uses socket.gethostname().
      - address: IPv4 address for the host A record; None uses the
        transport's interface address.
      - ttl: TTL of the host A record (default 240).

    Outputs:
      - HostConfig instance.
    """

    hostname: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    ttl: int = Field(default=240, ge=0)

    @validator("hostname", pre=True)
    def normalize_hostname(cls, v):  # type: ignore[no-untyped-def]
        """Brief: Strip whitespace and a trailing dot; empty means auto."""

        if v is None:
            return None
        s = str(v).strip().rstrip(".")
        return s or None

    @validator("address", pre=True)
    def normalize_address(cls, v):  # type: ignore[no-untyped-def]
        return _check_ipv4(v)

    class Config:
        extra = "forbid"


class ResponderConfig(BaseModel):
    """Brief: Top-level responder configuration.

    Inputs:
      - transport: TransportConfig mapping.
      - host: HostConfig mapping.
      - logging: mapping passed to init_logging() (level, stderr, file, syslog).

    Outputs:
      - ResponderConfig instance.

    Example:
      >>> ResponderConfig().transport.port
      5353
    """

    transport: TransportConfig = Field(default_factory=TransportConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    logging: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "forbid"
