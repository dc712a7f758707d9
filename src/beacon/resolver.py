"""Timeout-bounded lookups of link-local names and addresses over mDNS."""

from __future__ import annotations

import ipaddress
import logging
import time
from contextlib import closing
from typing import TYPE_CHECKING, Iterator, List, Union

from .errors import QueryStopped, QueryTimeout, ResolveError
from .names import Name
from .records import A, PTR, TYPE_A, TYPE_PTR, RecordData

if TYPE_CHECKING:  # pragma: no cover
    from .responder import Responder

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0

LOCAL = Name.create("local.")
LINK_LOCAL_REVERSE = Name.create("254.169.in-addr.arpa.")


def candidate(name: Union[str, Name]) -> Name:
    """
    Brief: Qualify a name for an mDNS lookup.

    Inputs:
      - name: host name, e.g. ``box``, ``box.local`` or a reverse name

    Outputs:
      - absolute Name under ``local`` or ``254.169.in-addr.arpa``

    Raises:
      - ResolveError: the name is not link-local

    Example:
      >>> str(candidate("box"))
      'box.local.'
    """
    n = Name.create(name)
    if not n.absolute and len(n) == 1:
        n = n + LOCAL
    if n.subdomain_of(LOCAL) or n.subdomain_of(LINK_LOCAL_REVERSE):
        return n.with_absolute(True)
    raise ResolveError("%s is not a link-local name" % name)


def reverse_name(address: Union[str, Name]) -> Name:
    """``169.254.1.2`` -> ``2.1.254.169.in-addr.arpa.``; Names pass through."""
    if isinstance(address, Name):
        return address
    try:
        ip = ipaddress.ip_address(str(address).strip())
    except ValueError:
        raise ResolveError("cannot interpret as address: %s" % address) from None
    return Name.create(ip.reverse_pointer + ".")


class Resolver:
    """
    Brief: Resolve ``.local`` host names and link-local addresses.

    Inputs:
      - responder: a started Responder
      - timeout: seconds to collect answers for each lookup (default 2)

    Outputs:
      - Resolver instance

    Notes:
      - Single-result lookups return as soon as the first answer arrives;
        list lookups collect for the whole timeout. The underlying query is
        always stopped.
    """

    def __init__(self, responder: "Responder", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.responder = responder
        self.timeout = float(timeout)

    def each_resource(self, name: Union[str, Name], rtype: int) -> Iterator[RecordData]:
        """Yield record data for (name, rtype) until the timeout elapses."""
        qname = candidate(name)
        deadline = time.monotonic() + self.timeout
        query = self.responder.query(qname, rtype)
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
                try:
                    answers = query.pop(timeout=remaining)
                except (QueryTimeout, QueryStopped):
                    return
                for an in answers:
                    if an.ttl > 0:
                        yield an.data
        finally:
            query.stop()

    def getresources(self, name: Union[str, Name], rtype: int) -> List[RecordData]:
        return list(self.each_resource(name, rtype))

    def getresource(self, name: Union[str, Name], rtype: int) -> RecordData:
        with closing(self.each_resource(name, rtype)) as found:
            for data in found:
                return data
        raise ResolveError("mDNS result has no information for %s" % name)

    def getaddresses(self, name: Union[str, Name]) -> List[str]:
        return [data.address for data in self.each_resource(name, TYPE_A) if isinstance(data, A)]

    def getaddress(self, name: Union[str, Name]) -> str:
        with closing(self.each_resource(name, TYPE_A)) as found:
            for data in found:
                if isinstance(data, A):
                    return data.address
        raise ResolveError("mDNS result has no information for %s" % name)

    def getnames(self, address: Union[str, Name]) -> List[Name]:
        ptr = reverse_name(address)
        return [data.target for data in self.each_resource(ptr, TYPE_PTR) if isinstance(data, PTR)]

    def getname(self, address: Union[str, Name]) -> Name:
        ptr = reverse_name(address)
        with closing(self.each_resource(ptr, TYPE_PTR)) as found:
            for data in found:
                if isinstance(data, PTR):
                    return data.target
        raise ResolveError("mDNS result has no information for %s" % address)
