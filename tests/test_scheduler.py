"""
Brief: Tests for beacon.scheduler.Scheduler sweeps driven with explicit times.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import time

import pytest

from beacon.codec import Message, encode
from beacon.names import Name
from beacon.records import TYPE_A, A
from conftest import PEER

FOO = Name.create("foo.local.")


def _cache_foo(responder, now, ttl=100):
    msg = Message.response()
    msg.add_answer(FOO, ttl, A("10.0.0.1"), True)
    responder.handle_packet(encode(msg), PEER, now=now)


def test_due_question_is_repeated(responder, transport):
    """
    Brief: A subscribed question is re-sent once its refresh time passes.

    Inputs:
      - query for box.local/A with last_asked pinned to t0

    Outputs:
      - None: Asserts no send before the refresh time, one send at it, and delays
    """
    responder.query("box.local", TYPE_A)
    transport.sent.clear()
    qu = responder.cache.question(Name.create("box.local"), TYPE_A)
    t0 = 1000.0
    qu.last_asked = t0

    assert responder.scheduler.sweep(now=t0 + 0.5) == 1.0
    assert transport.sent == []

    assert responder.scheduler.sweep(now=t0 + 1) == 1.0
    (msg,) = transport.messages()
    assert [(q.name, q.rtype) for q in msg.questions] == [(Name.create("box.local"), TYPE_A)]
    assert responder.scheduler.waketime == t0 + 1


def test_unsubscribed_question_is_dropped(responder):
    q = responder.query("box.local", TYPE_A)
    q.stop()
    assert responder.scheduler.sweep(now=time.time()) is None
    assert responder.cache.questions() == []
    assert responder.scheduler.waketime is None


def test_exhausted_question_is_dropped(responder, transport):
    responder.query("box.local", TYPE_A)
    qu = responder.cache.question(Name.create("box.local"), TYPE_A)
    qu.retries = 4
    transport.sent.clear()
    assert responder.scheduler.sweep(now=time.time()) is None
    assert responder.cache.questions() == []
    assert transport.sent == []


def test_subscribed_answer_is_refreshed_at_eighty_percent(responder, transport):
    """
    Brief: Cached answers a query wants are re-queried at 80%, 85%, 90%, 95% of TTL.

    Inputs:
      - A record with ttl 100 cached at t0 and a query subscribing to it

    Outputs:
      - None: Asserts question sends, retry counts and returned delays
    """
    t0 = time.time()
    _cache_foo(responder, t0)
    responder.query(FOO, TYPE_A)
    assert transport.sent == []
    (an,) = responder.cache.answers_for(FOO, TYPE_A)

    assert responder.scheduler.sweep(now=t0 + 50) == pytest.approx(30)
    assert transport.sent == []

    assert responder.scheduler.sweep(now=t0 + 80) == pytest.approx(5)
    assert an.retries == 1
    (msg,) = transport.messages()
    assert msg.questions[0].name == FOO and msg.questions[0].rtype == TYPE_A

    for now in (t0 + 85, t0 + 90, t0 + 95):
        responder.scheduler.sweep(now=now)
    assert an.retries == 4
    assert len(transport.sent) == 4
    # Retries are exhausted: nothing left to wake for.
    assert responder.scheduler.sweep(now=t0 + 96) is None


def test_unsubscribed_answer_is_not_refreshed(responder, transport):
    t0 = time.time()
    _cache_foo(responder, t0)
    assert responder.scheduler.sweep(now=t0 + 90) is None
    assert transport.sent == []
    (an,) = responder.cache.answers_for(FOO, TYPE_A)
    assert an.retries == 0


def test_expired_answer_is_removed_and_logged(responder, caplog):
    caplog.set_level(logging.DEBUG, logger="beacon.responder")
    t0 = time.time()
    _cache_foo(responder, t0, ttl=10)
    responder.scheduler.sweep(now=t0 + 11)
    assert len(responder.cache) == 0
    assert any(r.getMessage().startswith("-- a foo.local.") for r in caplog.records)


def test_send_failure_during_sweep_is_dropped(responder, transport, caplog):
    responder.query("box.local", TYPE_A)
    qu = responder.cache.question(Name.create("box.local"), TYPE_A)
    transport.fail = True
    caplog.set_level(logging.WARNING, logger="beacon.responder")

    assert responder.scheduler.sweep(now=qu.last_asked + 1) == 1.0
    assert any("sweep dropped" in r.getMessage() for r in caplog.records)


def test_wake_for_only_when_sooner(responder):
    """
    Brief: wake_for signals only for items refreshing before the current wake time.

    Inputs:
      - answers with early and late refresh times

    Outputs:
      - None: Asserts return values of wake_for
    """
    from beacon.entries import Answer

    sched = responder.scheduler
    t0 = time.time()
    early = Answer(FOO, 10, A("10.0.0.1"), toa=t0)
    late = Answer(FOO, 1000, A("10.0.0.2"), toa=t0)

    assert sched.wake_for(None) is False
    sched.waketime = None
    assert sched.wake_for(late) is True
    sched.waketime = t0 + 100
    assert sched.wake_for(early) is True
    assert sched.wake_for(late) is False
    late.retries = 4
    assert sched.wake_for(late) is False


def test_scheduler_thread_starts_and_stops(responder):
    sched = responder.scheduler
    sched.start()
    assert sched.running
    sched.stop()
    assert not sched.running
