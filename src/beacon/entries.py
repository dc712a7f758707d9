"""Cached answers and asked questions, with their refresh schedules.

Brief:
  Refresh times follow RFC 6762: a cached answer is re-queried at 80%, 85%,
  90% and 95% of its TTL, and a question is repeated after 1, 2 and 4
  seconds. The pure schedule functions are separate from the entities so the
  arithmetic can be checked without any clock.
"""

from __future__ import annotations

import time
from typing import Optional, Tuple

from .names import Name
from .records import RecordData, rtype_of, type_name

# Seconds after last-asked for retries 0..3. The 4th interval repeats the
# 4 second gap; a question that has been seen 4 times is never repeated.
QUESTION_RETRY_DELAYS: Tuple[int, ...] = (1, 2, 4, 4)

# Percent of TTL after which a cached answer is re-queried, per retry.
ANSWER_REFRESH_PERCENTS: Tuple[int, ...] = (80, 85, 90, 95)


def question_refresh(last_asked: float, retries: int) -> Optional[float]:
    """
    Brief: When a question needs asking again.

    Inputs:
    - last_asked: epoch seconds the question was last asked or observed
    - retries: number of times it has been observed since creation

    Outputs:
    - float epoch seconds, or None once retries are exhausted
    """

    if retries < 0 or retries >= len(QUESTION_RETRY_DELAYS):
        return None
    return last_asked + QUESTION_RETRY_DELAYS[retries]


def answer_refresh(toa: float, ttl: int, retries: int) -> Optional[float]:
    """
    Brief: When a cached answer should be re-queried.

    Inputs:
    - toa: time of arrival, epoch seconds
    - ttl: record TTL in seconds
    - retries: number of refresh queries already issued for it

    Outputs:
    - float epoch seconds, or None once retries are exhausted

    Example:
        >>> answer_refresh(1000.0, 120, 0)
        1096.0
    """

    if retries < 0 or retries >= len(ANSWER_REFRESH_PERCENTS):
        return None
    return toa + ttl * ANSWER_REFRESH_PERCENTS[retries] / 100


def answer_expiry(toa: float, ttl: int) -> float:
    """Goodbye records (ttl 0) linger for one second so subscribers see them."""
    return toa + (1 if ttl == 0 else ttl)


class Answer:
    """
    Brief: A resource record received from the network.

    Inputs:
      - name: owner name
      - ttl: seconds the record stays valid
      - data: record data (A, PTR, SRV, TXT, ...)
      - cacheflush: True when the sender set the cache-flush bit
      - toa: time of arrival; defaults to now

    Outputs:
      - Answer instance with retries = 0
    """

    __slots__ = ("name", "ttl", "data", "cacheflush", "toa", "retries")

    def __init__(
        self,
        name: Name,
        ttl: int,
        data: RecordData,
        cacheflush: bool = False,
        toa: Optional[float] = None,
    ) -> None:
        self.name = Name.create(name)
        self.ttl = int(ttl)
        self.data = data
        self.cacheflush = bool(cacheflush)
        self.toa = time.time() if toa is None else float(toa)
        self.retries = 0

    @property
    def type(self) -> int:
        return rtype_of(self.data)

    @property
    def absolute(self) -> bool:
        """True when this answer supersedes other cached data for its key."""
        return self.cacheflush

    def refresh(self) -> Optional[float]:
        return answer_refresh(self.toa, self.ttl, self.retries)

    def expiry(self) -> float:
        return answer_expiry(self.toa, self.ttl)

    def expired(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.time()
        return now > self.expiry()

    def __repr__(self) -> str:
        return "<Answer %s>" % self

    def __str__(self) -> str:
        flags = ""
        if self.cacheflush:
            flags += "!"
        if self.ttl == 0:
            flags += "-"
        return "%s (%d)%s %s %s" % (self.name, self.ttl, flags, type_name(self.type), self.data)


class Question:
    """
    Brief: A (name, type) pair that this host or a peer has asked about.

    Inputs:
      - name: question name
      - type: record type number
      - now: creation time (counts as the first ask); defaults to now

    Outputs:
      - Question instance with retries = 0
    """

    __slots__ = ("name", "type", "retries", "last_asked")

    def __init__(self, name: Name, type: int, now: Optional[float] = None) -> None:
        self.name = Name.create(name)
        self.type = int(type)
        self.retries = 0
        self.last_asked = time.time() if now is None else float(now)

    def update(self, now: Optional[float] = None) -> None:
        """Record another sighting of this question, ours or a peer's."""
        self.retries += 1
        self.last_asked = time.time() if now is None else float(now)

    def refresh(self) -> Optional[float]:
        return question_refresh(self.last_asked, self.retries)

    def __repr__(self) -> str:
        return "<Question %s>" % self

    def __str__(self) -> str:
        return "%s/%s (%d)" % (self.name, type_name(self.type), self.retries)
