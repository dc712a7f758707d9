"""DNS-SD convenience layer: browse, resolve and register services.

Brief:
  Thin helpers over Responder queries and services that speak in DNS-SD
  terms (instance name, service type, domain) instead of raw records.
  browse() and resolve() return a running BackgroundQuery; callers stop it
  when they have seen enough.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .entries import Answer
from .names import Name
from .query import BackgroundQuery
from .records import PTR, SRV, TXT, TYPE_ANY, TYPE_PTR, TYPE_SRV, TYPE_TXT
from .service import Service, TxtValue

if TYPE_CHECKING:  # pragma: no cover
    from .responder import Responder

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "local"

# Printable ASCII except '='; DNS-SD matches keys case-insensitively.
_TXT_ENTRY = re.compile(rb"^([\x20-\x3c\x3e-\x7e]+)(?:=(.*))?$", re.DOTALL)


def _domain_name(domain: Optional[str]) -> Name:
    return Name.create(domain or DEFAULT_DOMAIN).with_absolute(True)


def service_type_name(type_: str, domain: Optional[str] = DEFAULT_DOMAIN) -> Name:
    """``_http._tcp`` + ``local`` -> ``_http._tcp.local.``"""
    return Name.create(type_).with_absolute(False) + _domain_name(domain)


def instance_name(name: str, type_: str, domain: Optional[str] = DEFAULT_DOMAIN) -> Name:
    """The instance label is kept whole, dots and spaces included."""
    return Name([name]) + service_type_name(type_, domain)


def split_instance_name(name: Union[str, Name]) -> Tuple[Optional[str], str, str]:
    """
    Brief: Split a DNS-SD name into (instance, type, domain).

    Inputs:
      - name: ``[<instance>.]<_service>.<_proto>.<domain>``

    Outputs:
      - (instance or None, type, domain)

    Example:
      >>> split_instance_name("Ensemble Musique._daap._tcp.local.")
      ('Ensemble Musique', '_daap._tcp', 'local')
      >>> split_instance_name("_http._tcp.local")
      (None, '_http._tcp', 'local')
    """
    labels = Name.create(name).labels
    if len(labels) < 3:
        raise ValueError("not a DNS-SD service name: %s" % name)
    domain = labels[-1]
    type_ = "%s.%s" % (labels[-3], labels[-2])
    instance = ".".join(labels[:-3]) or None
    return instance, type_, domain


def parse_txt(strings: Iterable[Union[bytes, str]]) -> Dict[str, Optional[str]]:
    """
    Brief: Decode DNS-SD TXT strings into a dict.

    Inputs:
      - strings: ``key``, ``key=`` or ``key=value`` entries

    Outputs:
      - dict mapping lowercased key to value; None when the entry has no
        ``=``, ``""`` when it has an empty value

    Notes:
      - Only the first occurrence of a key counts.
      - Entries with an empty key or a key outside printable ASCII are
        skipped.
    """
    result: Dict[str, Optional[str]] = {}
    for raw in strings:
        kv = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
        m = _TXT_ENTRY.match(kv)
        if not m:
            continue
        key = m.group(1).decode("ascii").lower()
        if key in result:
            continue
        value = m.group(2)
        result[key] = None if value is None else value.decode("utf-8", "replace")
    return result


@dataclass
class BrowseReply:
    """One service instance seen (ttl > 0) or withdrawn (ttl == 0) while browsing."""

    fullname: str
    name: Optional[str]
    type: str
    domain: str
    ttl: int

    @property
    def removed(self) -> bool:
        return self.ttl == 0

    @classmethod
    def from_answer(cls, an: Answer) -> "BrowseReply":
        if not isinstance(an.data, PTR):
            raise ValueError("browse reply needs a PTR answer, got %s" % an)
        name, type_, domain = split_instance_name(an.data.target)
        return cls(str(an.name), name, type_, domain, an.ttl)


@dataclass
class ResolveReply:
    """Location and metadata of a service instance."""

    fullname: str
    name: Optional[str]
    type: str
    domain: str
    target: str
    port: int
    priority: int
    weight: int
    text_record: Dict[str, Optional[str]] = field(default_factory=dict)
    ttl: int = 0

    @classmethod
    def from_answers(cls, ansrv: Answer, antxt: Answer) -> "ResolveReply":
        srv = ansrv.data
        txt = antxt.data
        if not (isinstance(srv, SRV) and isinstance(txt, TXT)):
            raise ValueError("resolve reply needs SRV and TXT answers, got %s and %s" % (ansrv, antxt))
        name, type_, domain = split_instance_name(ansrv.name)
        return cls(
            fullname=str(ansrv.name),
            name=name,
            type=type_,
            domain=domain,
            target=str(srv.target),
            port=srv.port,
            priority=srv.priority,
            weight=srv.weight,
            text_record=parse_txt(txt.strings),
            ttl=ansrv.ttl,
        )


def browse(
    responder: "Responder",
    type_: str,
    domain: Optional[str] = DEFAULT_DOMAIN,
    handler: Optional[Callable[[BrowseReply], Any]] = None,
) -> BackgroundQuery:
    """
    Brief: Watch for instances of a service type.

    Inputs:
      - responder: started Responder
      - type_: service type such as ``_http._tcp``
      - domain: browse domain (default ``local``)
      - handler: called with a BrowseReply per PTR answer, on the query's
        worker thread

    Outputs:
      - BackgroundQuery; stop() it to end browsing
    """
    if not callable(handler):
        raise ValueError("browse requires a callable handler")

    def _on_answers(query: BackgroundQuery, answers: List[Answer]) -> None:
        for an in answers:
            if not isinstance(an.data, PTR):
                continue
            try:
                reply = BrowseReply.from_answer(an)
            except ValueError as e:
                # Stray PTRs on the type name must not end the browse.
                logger.debug("browse %s skipped %s: %s", query, an, e)
                continue
            handler(reply)

    return responder.background_query(service_type_name(type_, domain), TYPE_PTR, _on_answers)


def resolve(
    responder: "Responder",
    name: str,
    type_: str,
    domain: Optional[str] = DEFAULT_DOMAIN,
    handler: Optional[Callable[[ResolveReply], Any]] = None,
) -> BackgroundQuery:
    """
    Brief: Find the host, port and TXT data of one service instance.

    Inputs:
      - responder: started Responder
      - name, type_, domain: the instance to resolve
      - handler: called with a ResolveReply once both SRV and TXT are known,
        and again whenever either changes

    Outputs:
      - BackgroundQuery; stop() it once resolved
    """
    if not callable(handler):
        raise ValueError("resolve requires a callable handler")
    fullname = instance_name(name, type_, domain)
    rrs: Dict[int, Answer] = {}

    def _on_answers(query: BackgroundQuery, answers: List[Answer]) -> None:
        fresh = {an.type: an for an in answers if an.name == fullname and an.type in (TYPE_SRV, TYPE_TXT)}
        if not fresh:
            return
        rrs.update(fresh)
        ansrv, antxt = rrs.get(TYPE_SRV), rrs.get(TYPE_TXT)
        if ansrv is not None and antxt is not None:
            handler(ResolveReply.from_answers(ansrv, antxt))

    return responder.background_query(fullname, TYPE_ANY, _on_answers)


def register(
    responder: "Responder",
    name: str,
    type_: str,
    domain: Optional[str],
    port: int,
    txt: Optional[Dict[str, TxtValue]] = None,
    **kwargs: Any,
) -> Service:
    """
    Brief: Advertise a service instance on this host.

    Inputs:
      - responder: started Responder
      - name, type_, domain, port, txt: as for Service
      - kwargs: forwarded to Service (target, ttl, priority, weight)

    Outputs:
      - the started Service; pass it to Responder.service_stop() to withdraw

    Notes:
      - The instance name is not probed for uniqueness on the network.
    """
    service = Service(name, type_, domain or DEFAULT_DOMAIN, port, txt, **kwargs)
    responder.service_start(service)
    logger.debug("registered %s", service.instance)
    return service
