"""
Brief: Tests for beacon.resolver name qualification and timeout-bounded lookups.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from beacon.codec import Message, encode
from beacon.errors import ResolveError
from beacon.names import Name
from beacon.records import PTR, TYPE_A, A
from beacon.resolver import Resolver, candidate, reverse_name
from conftest import PEER


def _cache(responder, *records):
    msg = Message.response()
    for name, ttl, data in records:
        msg.add_answer(Name.create(name), ttl, data, False)
    responder.handle_packet(encode(msg), PEER)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("box", "box.local."),
        ("box.local", "box.local."),
        ("BOX.local.", "BOX.local."),
        ("4.3.254.169.in-addr.arpa", "4.3.254.169.in-addr.arpa."),
    ],
)
def test_candidate_qualifies_link_local_names(name, expected):
    assert str(candidate(name)) == expected


@pytest.mark.parametrize("name", ["example.com", "box.", "4.3.2.1.in-addr.arpa"])
def test_candidate_rejects_other_names(name):
    with pytest.raises(ResolveError):
        candidate(name)


def test_reverse_name():
    assert str(reverse_name("169.254.3.4")) == "4.3.254.169.in-addr.arpa."
    with pytest.raises(ResolveError):
        reverse_name("not an address")


def test_getaddress_returns_first_cached_answer(responder):
    """
    Brief: getaddress returns as soon as an A answer arrives and stops its query.

    Inputs:
      - cached A record for box.local

    Outputs:
      - None: Asserts the address and that no query remains registered
    """
    _cache(responder, ("box.local.", 120, A("10.0.0.5")))
    res = Resolver(responder, timeout=1.0)
    assert res.getaddress("box") == "10.0.0.5"
    assert responder.queries == []


def test_getaddresses_collects_until_timeout(responder):
    _cache(responder, ("box.local.", 120, A("10.0.0.5")), ("box.local.", 120, A("10.0.0.6")))
    res = Resolver(responder, timeout=0.2)
    assert sorted(res.getaddresses("box.local")) == ["10.0.0.5", "10.0.0.6"]
    assert responder.queries == []


def test_getname_from_link_local_address(responder):
    _cache(responder, ("4.3.254.169.in-addr.arpa.", 120, PTR("box.local.")))
    res = Resolver(responder, timeout=0.5)
    assert res.getname("169.254.3.4") == "box.local"
    assert res.getnames("169.254.3.4") == [Name.create("box.local.")]


def test_missing_answer_raises_after_timeout(responder, transport):
    res = Resolver(responder, timeout=0.1)
    with pytest.raises(ResolveError):
        res.getaddress("ghost")
    assert len(transport.sent) == 1
    assert responder.queries == []
    assert res.getaddresses("ghost") == []


def test_getresources_and_non_local_names(responder):
    _cache(responder, ("box.local.", 120, A("10.0.0.5")))
    res = Resolver(responder, timeout=0.1)
    assert res.getresources("box", TYPE_A) == [A("10.0.0.5")]
    assert res.getresource("box", TYPE_A) == A("10.0.0.5")
    with pytest.raises(ResolveError):
        res.getaddress("www.example.com")
    with pytest.raises(ResolveError):
        res.getname("10.0.0.1")
