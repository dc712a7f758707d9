"""Periodic cache sweep: expire answers, re-query what subscribers still want."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Optional, Union

from .codec import Message
from .entries import Answer, Question
from .errors import SendError
from .records import type_name

if TYPE_CHECKING:  # pragma: no cover
    from .responder import Responder

logger = logging.getLogger(__name__)

# Never sweep more often than this, even when a refresh is already overdue.
MIN_DELAY = 1.0


class Scheduler:
    """
    Brief: Background sweeper of a Responder's cache.

    Inputs:
      - responder: the owning Responder (provides lock, cache, send and
        subscription lookups)

    Outputs:
      - Scheduler instance; call start() to run the sweep thread, or call
        sweep() directly with an explicit ``now``.

    Notes:
      - The thread sleeps until ``waketime`` (the earliest pending refresh)
        or indefinitely when nothing is pending. wake_for() cuts the sleep
        short when a newly cached item needs attention sooner.
    """

    def __init__(self, responder: "Responder") -> None:
        self.responder = responder
        self.waketime: Optional[float] = None
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="BeaconScheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        self._stop_event.set()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def wake_for(self, item: Optional[Union[Answer, Question]]) -> bool:
        """
        Brief: Wake the sweep thread if ``item`` refreshes before the current wake time.

        Inputs:
          - item: Answer or Question just added to the cache (None is ignored)

        Outputs:
          - bool: True when a wake-up was signalled
        """
        if item is None:
            return False
        refresh = item.refresh()
        if refresh is None:
            return False
        if self.waketime is None or refresh < self.waketime:
            self._wake.set()
            return True
        return False

    def run(self) -> None:
        """Brief: Thread body; sweeps on every wake until stop() is called."""
        delay: Optional[float] = None
        while not self._stop_event.is_set():
            self._wake.wait(delay)
            self._wake.clear()
            if self._stop_event.is_set():
                break
            try:
                delay = self.sweep()
            except Exception:  # pragma: no cover - keep the sweeper alive
                logger.exception("cache sweep failed")
                delay = MIN_DELAY

    def sweep(self, now: Optional[float] = None) -> Optional[float]:
        """
        Brief: One pass over the cache.

        Inputs:
          - now: sweep time in epoch seconds (defaults to time.time())

        Outputs:
          - float seconds until the next sweep is needed (at least 1), or
            None when nothing is pending

        Notes:
          - Expired answers are dropped.
          - A live answer some query still subscribes to is re-queried once
            its refresh time has passed; retries advance so each answer is
            re-queried at most four times.
          - Questions nobody subscribes to, or with no retries left, are
            dropped; due ones are asked again.
        """
        if now is None:
            now = time.time()
        r = self.responder
        with r.lock:
            r.debug("sweep begin")
            self.waketime = None
            msg = Message.query()
            wakefor: Optional[Union[Answer, Question]] = None
            wake_at: Optional[float] = None

            r.cache.remove_expired(now, lambda an: r.debug("-- a %s", an))

            for name, rtype, answers in r.cache.answer_groups():
                wanted = r.subscribed(name, rtype)
                for an in answers:
                    if an.refresh() is None:
                        continue
                    if not wanted:
                        r.debug("no refresh of: a %s", an)
                        continue
                    if now >= an.refresh():
                        an.retries += 1
                        msg.add_question(name, rtype)
                    refresh = an.refresh()
                    if refresh is not None and (wake_at is None or refresh < wake_at):
                        wakefor, wake_at = an, refresh

            for qu in r.cache.questions():
                if qu.refresh() is None or not r.subscribed(qu.name, qu.type):
                    r.debug("no refresh of: q %s", qu)
                    r.cache.remove_question(qu)
                    continue
                refresh = qu.refresh()
                if now >= refresh:
                    msg.add_question(qu.name, qu.type)
                if wake_at is None or refresh < wake_at:
                    wakefor, wake_at = qu, refresh

            for q in msg.questions:
                r.debug("-> q %s %s", q.name, type_name(q.rtype))

            if msg.questions:
                try:
                    r.send(msg)
                except SendError as e:
                    r.warning("sweep dropped %d question(s): %s", len(msg.questions), e)

            self.waketime = wake_at
            delay: Optional[float] = None
            if wake_at is not None:
                delay = max(MIN_DELAY, wake_at - now)
                r.debug("refresh in %.1f sec for %s", delay, wakefor)
            r.debug("sweep end")
            return delay
