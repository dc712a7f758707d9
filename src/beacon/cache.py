"""mDNS cache of asked questions and received answers."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .entries import Answer, Question
from .names import Name
from .records import TYPE_ANY

# Cache-flush only replaces answers older than this many seconds, so a
# burst of records for one key sent in a single announcement survives.
CACHE_FLUSH_GRACE = 1


class Cache:
    """
    Two-level store of asked Questions and cached Answers.

    Inputs:
        None (constructor)
    Outputs:
        Cache instance

    Notes:
        The cache is not synchronized; the owning Responder serializes all
        access under its lock. Lookups never create entries: a missing name
        or type is absent, not an empty container, and the sweep helpers
        prune containers they empty.

    Example use:
        >>> from beacon.records import A, TYPE_A
        >>> cache = Cache()
        >>> an = cache.cache_answer(Answer(Name.create("foo.local."), 120, A("10.0.0.1")))
        >>> [str(a.data) for a in cache.answers_for(Name.create("foo.local"), TYPE_A)]
        ['10.0.0.1']
    """

    def __init__(self) -> None:
        self._asked: Dict[Name, Dict[int, Question]] = {}
        self._cached: Dict[Name, Dict[int, List[Answer]]] = {}

    # Questions

    def add_question(self, qu: Optional[Question]) -> Optional[Question]:
        """
        Store a question unless one is already being asked for its key.

        Inputs:
            qu: Question to add (None is accepted and ignored).
        Outputs:
            The stored question, or None when the key was already asked and
            the caller should not send it again.
        """
        if qu is None:
            return None
        rtypes = self._asked.setdefault(qu.name, {})
        if qu.type in rtypes:
            return None
        rtypes[qu.type] = qu
        return qu

    def cache_question(self, name: Name, rtype: int, now: Optional[float] = None) -> Optional[Question]:
        """
        Note a sighting of a question on the network.

        Inputs:
            name: question name
            rtype: question type
            now: sighting time (defaults to time.time())
        Outputs:
            The asked Question with its retry count incremented, or None if
            nobody here is asking it.
        """
        rtypes = self._asked.get(name)
        if rtypes is None:
            return None
        qu = rtypes.get(int(rtype))
        if qu is not None:
            qu.update(now)
        return qu

    def asked(self, name: Name, rtype: int) -> bool:
        if name.is_wildcard:
            return True
        rtypes = self._asked.get(name)
        if not rtypes:
            return False
        return int(rtype) in rtypes or TYPE_ANY in rtypes

    def question(self, name: Name, rtype: int) -> Optional[Question]:
        rtypes = self._asked.get(name)
        if rtypes is None:
            return None
        return rtypes.get(int(rtype))

    def questions(self) -> List[Question]:
        return [qu for rtypes in self._asked.values() for qu in rtypes.values()]

    def remove_question(self, qu: Question) -> None:
        rtypes = self._asked.get(qu.name)
        if rtypes is None:
            return
        if rtypes.get(qu.type) is qu:
            del rtypes[qu.type]
        if not rtypes:
            del self._asked[qu.name]

    # Answers

    def cache_answer(self, an: Answer, now: Optional[float] = None) -> Optional[Answer]:
        """
        Apply the mDNS caching rules to a received answer.

        Inputs:
            an: Answer just received.
            now: receive time used for the cache-flush age check.
        Outputs:
            The answer when it is news for subscribers (new data, or a goodbye
            for a live record), otherwise None.

        Notes:
            - A cache-flush answer drops same-key answers with different data
              older than CACHE_FLUSH_GRACE seconds. Identical data is never
              dropped so it does not look new again.
            - A repeat of known data only extends its lifetime (if it expires
              later) and is not reported.
        """
        if now is None:
            now = time.time()
        answers = self._answers_list(an.name, an.type)

        if an.absolute:
            cutoff = now - CACHE_FLUSH_GRACE
            answers[:] = [a for a in answers if not (a.toa < cutoff and a.data != an.data)]

        old_an = None
        for a in answers:
            if a.name == an.name and a.data == an.data:
                old_an = a
                break

        if old_an is None:
            answers.append(an)
            return an
        if an.ttl == 0:
            answers.remove(old_an)
            answers.append(an)
            if old_an.ttl == 0:
                return None
            return an
        if an.expiry() > old_an.expiry():
            answers.remove(old_an)
            answers.append(an)
        return None

    def _answers_list(self, name: Name, rtype: int) -> List[Answer]:
        rtypes = self._cached.setdefault(name, {})
        return rtypes.setdefault(int(rtype), [])

    def answers_for(self, name: Name, rtype: int) -> List[Answer]:
        """
        Cached answers matching a subscription.

        Inputs:
            name: owner name, or the wildcard ``*`` for every name
            rtype: record type, or ANY for every type of the name
        Outputs:
            New list of matching answers in arrival order per key.
        """
        if name.is_wildcard:
            found: List[Answer] = []
            for n in list(self._cached):
                found.extend(self.answers_for(n, rtype))
            return found
        rtypes = self._cached.get(name)
        if rtypes is None:
            return []
        if int(rtype) == TYPE_ANY:
            return [a for answers in rtypes.values() for a in answers]
        return list(rtypes.get(int(rtype), []))

    def answer_groups(self) -> Iterator[Tuple[Name, int, List[Answer]]]:
        """Yield (name, type, answers) for every non-empty cached key."""
        for name, rtypes in list(self._cached.items()):
            for rtype, answers in list(rtypes.items()):
                if answers:
                    yield name, rtype, answers

    def remove_expired(
        self,
        now: Optional[float] = None,
        on_remove: Optional[Callable[[Answer], None]] = None,
    ) -> List[Answer]:
        """
        Drop expired answers and prune emptied containers.

        Inputs:
            now: current time (defaults to time.time())
            on_remove: optional callback invoked with each answer before it
                is dropped (used for logging)
        Outputs:
            List of removed answers.
        """
        if now is None:
            now = time.time()
        removed: List[Answer] = []
        for name in list(self._cached):
            rtypes = self._cached[name]
            for rtype in list(rtypes):
                keep = []
                for an in rtypes[rtype]:
                    if an.expired(now):
                        if on_remove is not None:
                            on_remove(an)
                        removed.append(an)
                    else:
                        keep.append(an)
                if keep:
                    rtypes[rtype] = keep
                else:
                    del rtypes[rtype]
            if not rtypes:
                del self._cached[name]
        return removed

    def __len__(self) -> int:
        return sum(len(answers) for rtypes in self._cached.values() for answers in rtypes.values())

    def clear(self) -> None:
        self._asked.clear()
        self._cached.clear()

    def dump(self) -> Dict[str, List[str]]:
        """Brief: Printable snapshot of the cache for diagnostics."""
        return {
            "asked": [str(qu) for qu in self.questions()],
            "cached": [str(an) for _, _, answers in self.answer_groups() for an in answers],
        }
