"""A locally advertised DNS-SD service instance."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from .codec import Message, RecordEntry
from .errors import ServiceStateError
from .names import Name
from .records import PTR, SRV, TXT, TYPE_ANY, TYPE_PTR, TYPE_SRV, TYPE_TXT

logger = logging.getLogger(__name__)

DEFAULT_SRV_TTL = 240
DEFAULT_PTR_TTL = 7200
ENUM_PREFIX = "_services._dns-sd._udp"

TxtValue = Union[str, bytes, None]


def _txt_strings(txt: Optional[Dict[str, TxtValue]]) -> List[bytes]:
    strings: List[bytes] = []
    for key, value in (txt or {}).items():
        k = str(key).encode("utf-8")
        if value is None:
            strings.append(k)
        elif isinstance(value, bytes):
            strings.append(k + b"=" + value)
        else:
            strings.append(k + b"=" + str(value).encode("utf-8"))
    # DNS-SD requires at least one (possibly empty) string.
    return strings or [b""]


class Service:
    """
    Brief: Responder-side state for one advertised service instance.

    Inputs:
      - name: instance label, e.g. ``printer`` (may contain dots and spaces)
      - type_: service type, e.g. ``_http._tcp``
      - domain: domain the service lives in, normally ``local``
      - port: TCP/UDP port of the service
      - txt: optional TXT key/value pairs
      - target: optional host name serving the service; when omitted the
        responder's own host name is used and its A record is attached
      - ttl: overrides both the SRV/TXT (240 s) and PTR (7200 s) defaults
      - priority, weight: SRV priority and weight (default 0)

    Outputs:
      - Service instance. Pass it to Responder.service_start() to advertise.

    Example use:
        >>> svc = Service("printer", "_http._tcp", "local", 9100, {"path": "/"})
        >>> str(svc.instance)
        'printer._http._tcp.local.'
    """

    def __init__(
        self,
        name: str,
        type_: str,
        domain: str,
        port: int,
        txt: Optional[Dict[str, TxtValue]] = None,
        target: Optional[Union[str, Name]] = None,
        *,
        ttl: Optional[int] = None,
        priority: int = 0,
        weight: int = 0,
    ) -> None:
        port = int(port)
        if not 0 <= port <= 0xFFFF:
            raise ValueError("service port out of range: %r" % port)
        self.name = str(name)
        self._type_text = str(type_)
        self.port = port
        self.txt: Dict[str, TxtValue] = dict(txt or {})
        self.target: Optional[Name] = Name.create(target).with_absolute(True) if target else None
        self._ttl = None if ttl is None else int(ttl)
        self._priority = int(priority)
        self._weight = int(weight)
        self._domain = str(domain or "local")
        self._started = False
        self._host_rr: Optional[RecordEntry] = None
        self._srv_target: Optional[Name] = self.target
        self._derive_names()

    def _derive_names(self) -> None:
        domain = Name.create(self._domain).with_absolute(True)
        self.type = Name.create(self._type_text).with_absolute(False) + domain
        self.instance = Name([self.name]) + self.type
        self.enum = Name.create(ENUM_PREFIX) + domain

    def _check_not_started(self, what: str) -> None:
        if self._started:
            raise ServiceStateError("cannot change %s of %s after start" % (what, self))

    @property
    def started(self) -> bool:
        return self._started

    @property
    def ttl(self) -> Optional[int]:
        return self._ttl

    @ttl.setter
    def ttl(self, secs: int) -> None:
        self._check_not_started("ttl")
        self._ttl = int(secs)

    @property
    def priority(self) -> int:
        return self._priority

    @priority.setter
    def priority(self, value: int) -> None:
        self._check_not_started("priority")
        self._priority = int(value)

    @property
    def weight(self) -> int:
        return self._weight

    @weight.setter
    def weight(self, value: int) -> None:
        self._check_not_started("weight")
        self._weight = int(value)

    @property
    def domain(self) -> str:
        return self._domain

    @domain.setter
    def domain(self, value: str) -> None:
        self._check_not_started("domain")
        self._domain = str(value)
        self._derive_names()

    def __setitem__(self, key: str, value: TxtValue) -> None:
        """Set a TXT key/value pair (before start)."""
        self._check_not_started("txt")
        self.txt[str(key)] = value

    @property
    def srv_ttl(self) -> int:
        return self._ttl if self._ttl is not None else DEFAULT_SRV_TTL

    @property
    def ptr_ttl(self) -> int:
        return self._ttl if self._ttl is not None else DEFAULT_PTR_TTL

    # Lifecycle, driven by the Responder under its lock.

    def bind(self, hostname: Name, host_rr: Optional[RecordEntry]) -> None:
        """Brief: Fix the SRV target and build records; called at start."""
        if self.target is None:
            self._srv_target = hostname
            self._host_rr = host_rr
        else:
            self._srv_target = self.target
            self._host_rr = None
        self._rrptr = PTR(self.instance)
        self._rrenum = PTR(self.type)
        self._rrsrv = SRV(self._priority, self._weight, self.port, self._srv_target)
        self._rrtxt = TXT(tuple(_txt_strings(self.txt)))
        self._started = True

    def unbind(self) -> None:
        self._started = False

    def announce_records(self, ttl: Optional[int] = None) -> List[RecordEntry]:
        """
        Brief: Records multicast unsolicited when the service starts.

        Inputs:
          - ttl: force every record's TTL (0 builds goodbye records)

        Outputs:
          - list of RecordEntry: PTR, SRV, TXT and, for own-host services,
            the host A record
        """
        ptr_ttl = self.ptr_ttl if ttl is None else ttl
        srv_ttl = self.srv_ttl if ttl is None else ttl
        records = [
            RecordEntry(self.type, ptr_ttl, self._rrptr, False),
            RecordEntry(self.instance, srv_ttl, self._rrsrv, True),
            RecordEntry(self.instance, srv_ttl, self._rrtxt, True),
        ]
        if self._host_rr is not None:
            host = self._host_rr
            records.append(RecordEntry(host.name, host.ttl if ttl is None else ttl, host.data, True))
        return records

    def _add_host(self, amsg: Message) -> None:
        if self._host_rr is not None:
            host = self._host_rr
            amsg.add_additional(host.name, host.ttl, host.data, host.cacheflush)

    def answer_question(self, name: Name, rtype: int, amsg: Message) -> None:
        """
        Brief: Add answers for a question this service can answer.

        Inputs:
          - name: question name
          - rtype: question type
          - amsg: response Message being composed

        Outputs:
          - None; answers, additional records and the question itself are
            appended to amsg. Questions this service does not own leave
            amsg unchanged.

        Notes:
          - instance + ANY/SRV/TXT -> SRV and/or TXT (host A as additional)
          - type.domain + ANY/PTR -> PTR to the instance (SRV/TXT/A additional)
          - _services._dns-sd._udp.domain + ANY/PTR -> PTR to type.domain
        """
        if not self._started:
            return
        rtype = int(rtype)
        if name == self.instance:
            if rtype == TYPE_ANY:
                amsg.add_question(name, rtype)
                amsg.add_answer(self.instance, self.srv_ttl, self._rrsrv, True)
                amsg.add_answer(self.instance, self.srv_ttl, self._rrtxt, True)
                self._add_host(amsg)
            elif rtype == TYPE_SRV:
                amsg.add_question(name, rtype)
                amsg.add_answer(self.instance, self.srv_ttl, self._rrsrv, True)
                self._add_host(amsg)
            elif rtype == TYPE_TXT:
                amsg.add_question(name, rtype)
                amsg.add_answer(self.instance, self.srv_ttl, self._rrtxt, True)
        elif name == self.type:
            if rtype in (TYPE_ANY, TYPE_PTR):
                amsg.add_question(name, rtype)
                amsg.add_answer(self.type, self.ptr_ttl, self._rrptr)
                amsg.add_additional(self.instance, self.srv_ttl, self._rrsrv, True)
                amsg.add_additional(self.instance, self.srv_ttl, self._rrtxt, True)
                self._add_host(amsg)
        elif name == self.enum:
            if rtype in (TYPE_ANY, TYPE_PTR):
                amsg.add_question(name, rtype)
                amsg.add_answer(self.enum, self.ptr_ttl, self._rrenum)

    def __str__(self) -> str:
        target = self._srv_target if self._srv_target is not None else "<local host>"
        return "%s is %s:%d" % (self.instance, target, self.port)

    def __repr__(self) -> str:
        return "<Service: %s>" % self
