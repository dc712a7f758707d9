"""Subscriptions to answers seen by a Responder."""

from __future__ import annotations

import queue
import threading
import traceback
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Union

from .entries import Answer, Question
from .errors import QueryStopped, QueryTimeout
from .names import Name
from .records import TYPE_ANY, type_name

if TYPE_CHECKING:  # pragma: no cover
    from .responder import Responder


_STOP = object()

Handler = Callable[["Query", List[Answer]], Any]


class Query:
    """
    Brief: A subscription to answers for (name, type).

    Inputs:
      - responder: Responder the query registers with
      - name: name to watch, or ``*`` for every answer the responder sees
      - rtype: record type, ANY (default) for every type of the name

    Outputs:
      - Query instance, already registered. Answers already in the cache are
        queued immediately; the question is multicast only when nobody on
        this responder is asking it yet. The wildcard never sends.

    Example use:
        >>> with responder.query("printer._ipp._tcp.local", TYPE_SRV) as q:
        ...     answers = q.pop(timeout=2.0)
    """

    def __init__(self, responder: "Responder", name: Union[str, Name], rtype: int = TYPE_ANY) -> None:
        self.responder = responder
        self.name = Name.create(name)
        self.type = int(rtype)
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._stopped = threading.Event()
        qu = None if self.name.is_wildcard else Question(self.name, self.type)
        responder.query_start(self, qu)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def subscribes_to(self, name: Name, rtype: int) -> bool:
        """True when answers for (name, rtype) belong to this query."""
        if self.name.is_wildcard or self.name == name:
            return self.type == TYPE_ANY or self.type == int(rtype)
        return False

    def push(self, answers: List[Answer]) -> "Query":
        """Queue a batch of answers; empty batches are not queued."""
        if answers and not self._stopped.is_set():
            self._queue.put(list(answers))
        return self

    def pop(self, timeout: Optional[float] = None) -> List[Answer]:
        """
        Brief: Wait for the next batch of answers.

        Inputs:
          - timeout: seconds to wait; None waits until a batch arrives or
            the query is stopped

        Outputs:
          - list of Answer (never empty)

        Raises:
          - QueryTimeout: nothing arrived within timeout
          - QueryStopped: the query is, or became, stopped
        """
        if self._stopped.is_set():
            raise QueryStopped("%s is stopped" % self)
        try:
            batch = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise QueryTimeout("%s got no answers in %ss" % (self, timeout)) from None
        if batch is _STOP:
            # Leave the sentinel for any other waiter.
            self._queue.put(_STOP)
            raise QueryStopped("%s is stopped" % self)
        return batch

    def __iter__(self) -> Iterator[List[Answer]]:
        while True:
            try:
                yield self.pop()
            except QueryStopped:
                return

    def __len__(self) -> int:
        if self._stopped.is_set():
            return 0
        return self._queue.qsize()

    def stop(self) -> "Query":
        """Deregister, discard undelivered batches and release a waiting pop()."""
        if self._stopped.is_set():
            return self
        self._stopped.set()
        self.responder.query_stop(self)
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        self._queue.put(_STOP)
        return self

    def __enter__(self) -> "Query":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def __str__(self) -> str:
        return "q?%s/%s" % (self.name, type_name(self.type))

    def __repr__(self) -> str:
        return "<%s %s>" % (type(self).__name__, self)


class BackgroundQuery(Query):
    """
    Brief: A Query whose batches are handed to a callback on a worker thread.

    Inputs:
      - responder, name, rtype: as for Query
      - handler: called as ``handler(query, answers)`` for every batch

    Outputs:
      - BackgroundQuery instance with its daemon worker running

    Notes:
      - An exception from the handler goes to the responder log sink with
        its traceback and ends the worker. Whichever way the worker ends,
        the query is deregistered.
      - stop() lets an in-flight handler call finish; join() waits for it.
    """

    def __init__(
        self,
        responder: "Responder",
        name: Union[str, Name],
        rtype: int = TYPE_ANY,
        handler: Optional[Handler] = None,
    ) -> None:
        if not callable(handler):
            raise ValueError("BackgroundQuery requires a callable handler")
        self.handler = handler
        super().__init__(responder, name, rtype)
        self._thread = threading.Thread(target=self._run, name="BeaconQuery %s" % self, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            while not self._stopped.is_set():
                try:
                    answers = self.pop()
                except QueryStopped:
                    break
                self.handler(self, answers)
        except Exception:
            self.responder.error("query %s handler raised:\n%s", self, traceback.format_exc())
        finally:
            self._stopped.set()
            self.responder.query_stop(self)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker to exit; returns True if it has."""
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        return not self._thread.is_alive()
