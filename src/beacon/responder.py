"""The mDNS responder: receiver loop, send path and session bookkeeping.

Brief:
  A Responder owns one Cache and one transport. A receiver thread decodes
  every inbound packet and, under the responder lock, records questions,
  answers them from registered Services, caches answers and pushes new ones
  to subscribed Queries. A Scheduler thread sweeps the cache and repeats
  questions that are still wanted.

Inputs:
  - ResponderConfig (or defaults), optional injected transport and log sink

Outputs:
  - Responder instances used as context managers or via start()/close()
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from typing import Any, List, Optional, Tuple, Union

from .cache import Cache
from .codec import Message, RecordEntry, decode
from .config.config_schema import ResponderConfig
from .config.logging_config import init_logging
from .entries import Answer, Question
from .errors import DecodeError, MdnsError, SendError, ServiceStateError
from .names import Name
from .query import BackgroundQuery, Handler, Query
from .records import TYPE_ANY, A, type_name
from .scheduler import Scheduler
from .service import Service
from .transport import MulticastTransport, default_interface_address, local_hostname

logger = logging.getLogger(__name__)

Address = Tuple[str, int]

_DEFAULT_LOG = object()


def _qualify_host(hostname: Optional[str]) -> Name:
    if not hostname:
        return local_hostname()
    name = Name.create(hostname)
    if len(name) == 1:
        name = name + Name.create("local.")
    return name.with_absolute(True)


def _is_known(answer: RecordEntry, known: List[RecordEntry]) -> bool:
    # A querier that lists an answer with more than half our TTL left
    # does not need it again.
    for k in known:
        if k.name == answer.name and k.data == answer.data and k.ttl > answer.ttl / 2:
            return True
    return False


class Responder:
    """
    Brief: mDNS engine coordinating cache, transport, queries and services.

    Inputs:
      - config: ResponderConfig; defaults apply when omitted. A non-empty
        ``logging`` section is applied with init_logging() on construction.
      - transport: object with send(bytes, addr=None), receive() and close();
        when omitted start() opens a MulticastTransport from config
      - log: sink with debug(), warning() (or warn()) and error() methods,
        or None to silence; defaults to the ``beacon.responder`` logger

    Outputs:
      - Responder instance. No threads run until start().

    Example use:
        >>> with Responder() as r:
        ...     with r.query("myhost.local", TYPE_A) as q:
        ...         answers = q.pop(timeout=2.0)
    """

    def __init__(
        self,
        config: Optional[ResponderConfig] = None,
        *,
        transport: Any = None,
        log: Any = _DEFAULT_LOG,
    ) -> None:
        self.config = config if config is not None else ResponderConfig()
        if self.config.logging:
            init_logging(self.config.logging)
        self.log = logger if log is _DEFAULT_LOG else log

        self.lock = threading.RLock()
        self.cache = Cache()
        self.scheduler = Scheduler(self)
        self._queries: List[Query] = []
        self._services: List[Service] = []
        self._transport = transport
        self._receiver: Optional[threading.Thread] = None
        self._closed = False

        host = self.config.host
        tcfg = self.config.transport
        self.hostname = _qualify_host(host.hostname)
        self.hostaddr = (
            host.address
            or getattr(transport, "interface", None)
            or tcfg.interface
            or default_interface_address(tcfg.address, tcfg.port)
        )
        self.hostrr = RecordEntry(self.hostname, host.ttl, A(self.hostaddr), True)
        self.debug("responder for %s at %s", self.hostname, self.hostaddr)

    # Logging sink

    @property
    def log(self) -> Any:
        return self._log

    @log.setter
    def log(self, sink: Any) -> None:
        if sink is not None:
            has_warning = callable(getattr(sink, "warning", None)) or callable(getattr(sink, "warn", None))
            if not (callable(getattr(sink, "debug", None)) and has_warning and callable(getattr(sink, "error", None))):
                raise TypeError("log sink must provide debug(), warning() and error(), got %r" % (sink,))
        self._log = sink

    def _emit(self, level: str, msg: str, args: tuple) -> None:
        sink = self._log
        if sink is None:
            return
        if isinstance(sink, (logging.Logger, logging.LoggerAdapter)):
            getattr(sink, level)(msg, *args)
            return
        fn = getattr(sink, level, None)
        if fn is None and level == "warning":
            fn = getattr(sink, "warn")
        fn(msg % args if args else msg)

    def debug(self, msg: str, *args: Any) -> None:
        self._emit("debug", msg, args)

    def warning(self, msg: str, *args: Any) -> None:
        self._emit("warning", msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._emit("error", msg, args)

    # Lifecycle

    @property
    def transport(self) -> Any:
        return self._transport

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "Responder":
        """
        Brief: Open the transport if needed and start the receiver and sweep threads.

        Outputs:
          - self

        Raises:
          - MdnsError: the responder was already closed
          - OSError: the multicast socket could not be set up
        """
        with self.lock:
            if self._closed:
                raise MdnsError("responder is closed")
            if self._receiver is not None:
                return self
            if self._transport is None:
                t = self.config.transport
                self._transport = MulticastTransport(
                    t.address,
                    t.port,
                    t.interface or self.hostaddr,
                    ttl=t.ttl,
                    loopback=t.loopback,
                    max_packet=t.max_packet,
                )
            self._receiver = threading.Thread(target=self._receive_loop, name="BeaconResponder", daemon=True)
            self._receiver.start()
            self.scheduler.start()
            self.debug("start")
        return self

    def close(self) -> None:
        """Stop every query, withdraw services silently, stop threads and close the transport."""
        with self.lock:
            if self._closed:
                return
            self._closed = True
            queries = list(self._queries)
            services = list(self._services)
            self._services.clear()
        for q in queries:
            q.stop()
        for svc in services:
            svc.unbind()
        self.scheduler.stop()
        if self._transport is not None:
            self._transport.close()
        receiver = self._receiver
        if receiver is not None and receiver is not threading.current_thread():
            receiver.join(2.0)
        self._receiver = None
        self.debug("closed")

    def __enter__(self) -> "Responder":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Receive path

    def _receive_loop(self) -> None:
        transport = self._transport
        while not self._closed:
            try:
                data, addr = transport.receive()
            except OSError as e:
                if not self._closed:
                    self.error("receive failed, responder loop exiting: %s", e)
                return
            try:
                self.handle_packet(data, addr)
            except Exception:
                self.error("packet from %s not handled:\n%s", addr, traceback.format_exc())

    def handle_packet(self, data: bytes, addr: Address, now: Optional[float] = None) -> None:
        """
        Brief: Process one inbound datagram.

        Inputs:
          - data: raw UDP payload
          - addr: (host, port) the packet came from
          - now: receive time (defaults to time.time())

        Outputs:
          - None. Malformed packets are logged and dropped. A reply that
            cannot be sent is logged and dropped.
        """
        try:
            msg = decode(data)
        except DecodeError as e:
            self.warning("decode error from %s:%d: %s", addr[0], addr[1], e)
            return
        if now is None:
            now = time.time()
        with self.lock:
            self.debug(
                "from %s:%d -> id %d qr=%s qcnt=%d acnt=%d",
                addr[0],
                addr[1],
                msg.id,
                "R" if msg.is_response() else "Q",
                len(msg.questions),
                len(msg.answers),
            )
            try:
                if msg.is_query():
                    self._handle_query(msg, addr, now)
                else:
                    self._handle_response(msg, now)
            except SendError as e:
                self.warning("reply to %s:%d dropped: %s", addr[0], addr[1], e)

    def _handle_query(self, msg: Message, addr: Address, now: float) -> None:
        # Unicast-response questions get no multicast answer and are not
        # counted as sightings.
        asked = [q for q in msg.questions if not q.unicast]
        for q in asked:
            self.debug("++ q %s/%s", q.name, type_name(q.rtype))
            self.cache.cache_question(q.name, q.rtype, now)

        amsg = Message.response()
        for q in asked:
            self.debug("ask? %s/%s", q.name, type_name(q.rtype))
            for svc in self._services:
                svc.answer_question(q.name, q.rtype, amsg)

        amsg.answers = [an for an in amsg.answers if not _is_known(an, msg.answers)]
        if amsg.answers:
            self.send(amsg, msg.id, addr)

    def _handle_response(self, msg: Message, now: float) -> None:
        cached: List[Answer] = []
        for rec in msg.answers:
            an = Answer(rec.name, rec.ttl, rec.data, rec.cacheflush, toa=now)
            self.debug("++ a %s", an)
            if self.cache.cache_answer(an, now) is None:
                continue
            self.debug(" cached")
            cached.append(an)
            self.scheduler.wake_for(an)

        if not cached:
            return
        for q in list(self._queries):
            answers = [an for an in cached if q.subscribes_to(an.name, an.type)]
            if answers:
                self.debug("push %d to %s", len(answers), q)
                q.push(answers)

    # Send path

    def send(self, msg: Message, qid: Optional[int] = None, addr: Optional[Address] = None) -> None:
        """
        Brief: Multicast a message, plus a unicast copy for legacy queriers.

        Inputs:
          - msg: Message to send (its id and, for responses, questions are
            rewritten for the multicast copy)
          - qid: id of the query being answered
          - addr: (host, port) of the querier; a port other than the mDNS
            port gets a unicast copy carrying qid

        Raises:
          - SendError: encoding or the transport failed
        """
        transport = self._transport
        if transport is None:
            self.error("send msg failed: responder has no transport")
            raise SendError("responder has no transport; call start() first")
        try:
            for an in msg.answers:
                self.debug("-> an %s (%d) %s %s", an.name, an.ttl, an.data, an.cacheflush)
            for an in msg.additional:
                self.debug("-> ad %s (%d) %s %s", an.name, an.ttl, an.data, an.cacheflush)
            if addr is not None and addr[1] != self.config.transport.port:
                self.debug("unicast for qid %s to %s:%d", qid, addr[0], addr[1])
                msg.id = int(qid or 0)
                transport.send(msg.encode(), addr)
            # Multicast copies always carry id 0 and never repeat questions
            # in a response.
            msg.id = 0
            if msg.is_response():
                msg.questions.clear()
            transport.send(msg.encode())
        except Exception as e:
            self.error("send msg failed: %s", e)
            raise SendError(str(e)) from e

    # Queries

    def subscribed(self, name: Name, rtype: int) -> bool:
        """True when some active query wants answers for (name, rtype)."""
        return any(q.subscribes_to(name, rtype) for q in self._queries)

    @property
    def queries(self) -> List[Query]:
        with self.lock:
            return list(self._queries)

    @property
    def services(self) -> List[Service]:
        with self.lock:
            return list(self._services)

    def query_start(self, query: Query, qu: Optional[Question], now: Optional[float] = None) -> None:
        """
        Brief: Register a query, hand it cached answers, and ask its question once.

        Inputs:
          - query: Query being started
          - qu: its Question, or None for the wildcard
          - now: start time (defaults to time.time())

        Raises:
          - SendError: the question could not be sent; the query is removed
        """
        if now is None:
            now = time.time()
        with self.lock:
            added: Optional[Question] = None
            try:
                self.debug("start query %s with qu %s", query, qu)
                self._queries.append(query)
                answers = [an for an in self.cache.answers_for(query.name, query.type) if not an.expired(now)]
                query.push(answers)
                # Live cached answers of a specific type are kept fresh by
                # their own refresh schedule, so there is nothing to ask.
                if qu is not None and answers and qu.type != TYPE_ANY:
                    qu = None
                added = self.cache.add_question(qu)
                self.scheduler.wake_for(added)
                # Another query already asks this question; don't repeat it.
                if added is not None:
                    qmsg = Message.query()
                    qmsg.add_question(added.name, added.type)
                    self.send(qmsg)
            except Exception as e:
                self.warning("fail query %s - %s", query, e)
                if query in self._queries:
                    self._queries.remove(query)
                if added is not None:
                    self.cache.remove_question(added)
                raise

    def query_stop(self, query: Query) -> None:
        with self.lock:
            if query in self._queries:
                self.debug("query %s - stop", query)
                self._queries.remove(query)

    def query(self, name: Union[str, Name], rtype: int = TYPE_ANY) -> Query:
        return Query(self, name, rtype)

    def background_query(self, name: Union[str, Name], rtype: int = TYPE_ANY, handler: Optional[Handler] = None) -> BackgroundQuery:
        return BackgroundQuery(self, name, rtype, handler)

    # Services

    def service_start(self, service: Service) -> Service:
        """
        Brief: Register a service and announce its records once.

        Inputs:
          - service: a Service that is not started

        Outputs:
          - the same Service, now started

        Raises:
          - ServiceStateError: service is already started
          - SendError: the announcement could not be sent; the service is
            removed again
        """
        with self.lock:
            if service.started:
                raise ServiceStateError("service %s is already started" % service)
            try:
                service.bind(self.hostname, self.hostrr)
                self._services.append(service)
                self.debug("start service %s", service)
                smsg = Message.response()
                for rec in service.announce_records():
                    smsg.add_answer(rec.name, rec.ttl, rec.data, rec.cacheflush)
                self.send(smsg)
            except Exception as e:
                self.warning("fail service %s - %s", service, e)
                if service in self._services:
                    self._services.remove(service)
                service.unbind()
                raise
        return service

    def service_stop(self, service: Service, goodbye: bool = False) -> None:
        """
        Brief: Stop answering for a service.

        Inputs:
          - service: a started Service
          - goodbye: multicast its records with TTL 0 so peers drop them

        Raises:
          - SendError: the goodbye could not be sent (the service is still
            stopped)
        """
        with self.lock:
            if service not in self._services:
                return
            self.debug("service %s - stop", service)
            self._services.remove(service)
            try:
                if goodbye:
                    msg = Message.response()
                    for rec in service.announce_records(ttl=0):
                        msg.add_answer(rec.name, rec.ttl, rec.data, rec.cacheflush)
                    self.send(msg)
            finally:
                service.unbind()

    def __repr__(self) -> str:
        return "<Responder %s at %s>" % (self.hostname, self.hostaddr)
