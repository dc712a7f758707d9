"""UDP multicast transport bound to the mDNS group and port."""

from __future__ import annotations

import fcntl
import logging
import socket
import struct
from typing import Optional, Tuple

from .names import Name

logger = logging.getLogger(__name__)

MDNS_ADDR = "224.0.0.251"
MDNS_PORT = 5353
MAX_PACKET = 9000

Address = Tuple[str, int]


def default_interface_address(group: str = MDNS_ADDR, port: int = MDNS_PORT) -> str:
    """
    Brief: Find the IPv4 address of the interface the kernel routes mDNS through.

    Inputs:
    - group: multicast group used as the routing lookup destination
    - port: route lookup destination port

    Outputs:
    - str: dotted-quad interface address, falling back to the address the
      hostname resolves to, or 0.0.0.0

    Example:
        >>> addr = default_interface_address()
    """
    route_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # connect() on UDP sends nothing; it only selects a route.
        route_sock.connect((group, port))
        addr = route_sock.getsockname()[0]
        if addr and addr != "0.0.0.0":
            return addr
    except OSError as e:
        logger.debug("route lookup toward %s failed: %s", group, e)
    finally:
        route_sock.close()
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "0.0.0.0"


def local_hostname(domain: str = "local") -> Name:
    """
    Brief: The host name to advertise, qualified under the mDNS domain.

    Inputs:
    - domain: link-local domain (default: local)

    Outputs:
    - Name: absolute name such as ``myhost.local.``
    """
    host = socket.gethostname() or "localhost"
    first = host.split(".")[0] or "localhost"
    return Name.create(first) + Name.create(domain).with_absolute(True)


def _set_reuse(sock: socket.socket) -> None:
    # Several processes on one host share 5353. SO_REUSEPORT is required on
    # BSD-derived stacks; elsewhere SO_REUSEADDR is enough.
    so_reuseport = getattr(socket, "SO_REUSEPORT", None)
    if so_reuseport is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, so_reuseport, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            return
        except OSError as e:
            logger.warning("set SO_REUSEPORT raised %s, trying SO_REUSEADDR", e)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)


class MulticastTransport:
    """
    Brief: A UDP socket joined to the mDNS multicast group.

    Inputs:
    - group: multicast group address
    - port: UDP port to bind and send to
    - interface: IPv4 address of the interface to join on (None: default route)
    - ttl: IP TTL for outbound packets
    - loopback: receive our own multicast packets
    - max_packet: receive buffer size

    Outputs:
    - MulticastTransport instance with an open, bound socket

    Notes:
    - Loopback is on by default: the responder counts its own questions as
      sightings, which is what advances question retries.
    """

    def __init__(
        self,
        group: str = MDNS_ADDR,
        port: int = MDNS_PORT,
        interface: Optional[str] = None,
        ttl: int = 255,
        loopback: bool = True,
        max_packet: int = MAX_PACKET,
    ) -> None:
        self.group = group
        self.port = int(port)
        self.interface = interface or default_interface_address(group, port)
        self.max_packet = int(max_packet)
        self._closed = False

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            fcntl.fcntl(sock.fileno(), fcntl.F_SETFD, fcntl.FD_CLOEXEC)
            _set_reuse(sock)
            sock.bind(("", self.port))

            iface = socket.inet_aton(self.interface)
            mreq = socket.inet_aton(group) + iface
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, iface)

            sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, int(ttl))
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, struct.pack("B", int(ttl)))
            sock.setsockopt(
                socket.IPPROTO_IP,
                socket.IP_MULTICAST_LOOP,
                struct.pack("B", 1 if loopback else 0),
            )
        except OSError:
            sock.close()
            raise
        self._sock = sock
        logger.debug(
            "joined %s:%d on interface %s (ttl=%d loopback=%s)",
            group,
            self.port,
            self.interface,
            ttl,
            loopback,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def receive(self) -> Tuple[bytes, Address]:
        """
        Brief: Block until the next datagram arrives.

        Outputs:
        - (payload, (addr, port))

        Raises:
        - OSError: socket error, including the socket being closed
        """
        data, addr = self._sock.recvfrom(self.max_packet)
        # shutdown() from close() wakes recvfrom() with no peer address.
        if self._closed or addr is None:
            raise OSError("transport is closed")
        return data, (addr[0], int(addr[1]))

    def send(self, data: bytes, addr: Optional[Address] = None) -> int:
        """
        Brief: Send one datagram, to the multicast group unless addr is given.

        Inputs:
        - data: wire format payload
        - addr: optional (host, port) for unicast replies

        Outputs:
        - int: bytes sent

        Raises:
        - OSError: send failed or was short
        """
        dest = addr or (self.group, self.port)
        sent = self._sock.sendto(data, 0, dest)
        if sent != len(data):
            raise OSError("sent %d out of %d bytes to %s:%d" % (sent, len(data), dest[0], dest[1]))
        return sent

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            # Unblocks a receiver thread sitting in recvfrom().
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
