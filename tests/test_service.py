"""
Brief: Tests for beacon.service.Service naming, settings and answer composition.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from beacon.codec import Message, RecordEntry
from beacon.errors import ServiceStateError
from beacon.names import Name
from beacon.records import PTR, SRV, TXT, TYPE_A, TYPE_ANY, TYPE_PTR, TYPE_SRV, TYPE_TXT, A
from beacon.service import Service

HOST = Name.create("testhost.local.")
HOST_RR = RecordEntry(HOST, 240, A("192.168.1.10"), True)


def _started(**kwargs):
    svc = Service("printer", "_http._tcp", "local", 9100, {"path": "/"}, **kwargs)
    svc.bind(HOST, HOST_RR)
    return svc


def test_names_are_derived_from_parts():
    svc = Service("My Printer", "_ipp._tcp", "local", 631)
    assert str(svc.type) == "_ipp._tcp.local."
    assert svc.instance.labels == ("My Printer", "_ipp", "_tcp", "local")
    assert str(svc.enum) == "_services._dns-sd._udp.local."
    assert svc.srv_ttl == 240
    assert svc.ptr_ttl == 7200


def test_port_out_of_range_rejected():
    with pytest.raises(ValueError):
        Service("x", "_http._tcp", "local", 70000)


def test_settings_frozen_after_start():
    """
    Brief: ttl, priority, weight, domain and TXT items are settable only before start.

    Inputs:
      - a Service changed before and after bind()

    Outputs:
      - None: Asserts values applied before start and ServiceStateError after
    """
    svc = Service("x", "_http._tcp", "local", 80)
    svc.ttl = 60
    svc.priority = 5
    svc.weight = 7
    svc.domain = "example.local"
    svc["k"] = "v"
    assert svc.srv_ttl == 60 and svc.ptr_ttl == 60
    assert str(svc.type) == "_http._tcp.example.local."

    svc.bind(HOST, HOST_RR)
    with pytest.raises(ServiceStateError):
        svc.ttl = 10
    with pytest.raises(ServiceStateError):
        svc.domain = "other"
    with pytest.raises(ServiceStateError):
        svc["k"] = "w"
    svc.unbind()
    svc.weight = 1


def test_instance_any_gives_srv_txt_and_host_additional():
    svc = _started()
    amsg = Message.response()
    svc.answer_question(Name.create("PRINTER._http._tcp.local"), TYPE_ANY, amsg)

    assert [a.rtype for a in amsg.answers] == [TYPE_SRV, TYPE_TXT]
    assert all(a.cacheflush for a in amsg.answers)
    assert amsg.answers[0].data == SRV(0, 0, 9100, HOST)
    assert amsg.answers[1].data == TXT((b"path=/",))
    assert amsg.additional == [HOST_RR]
    assert len(amsg.questions) == 1


def test_instance_srv_and_txt_questions():
    svc = _started()
    srv = Message.response()
    svc.answer_question(svc.instance, TYPE_SRV, srv)
    assert [a.rtype for a in srv.answers] == [TYPE_SRV]
    assert srv.additional == [HOST_RR]

    txt = Message.response()
    svc.answer_question(svc.instance, TYPE_TXT, txt)
    assert [a.rtype for a in txt.answers] == [TYPE_TXT]
    assert txt.additional == []

    none = Message.response()
    svc.answer_question(svc.instance, TYPE_A, none)
    assert none.answers == [] and none.questions == []


def test_type_ptr_question_points_at_instance():
    svc = _started()
    amsg = Message.response()
    svc.answer_question(Name.create("_http._tcp.local"), TYPE_PTR, amsg)

    (ptr,) = amsg.answers
    assert ptr.name == "_http._tcp.local"
    assert ptr.data == PTR(svc.instance)
    assert not ptr.cacheflush
    assert ptr.ttl == 7200
    assert [a.rtype for a in amsg.additional] == [TYPE_SRV, TYPE_TXT, TYPE_A]


def test_enumeration_question_points_at_type():
    svc = _started()
    amsg = Message.response()
    svc.answer_question(Name.create("_services._dns-sd._udp.local."), TYPE_ANY, amsg)

    (ptr,) = amsg.answers
    assert ptr.name == svc.enum
    assert ptr.data == PTR(svc.type)


def test_explicit_target_has_no_host_record():
    svc = _started(target="nas.local")
    amsg = Message.response()
    svc.answer_question(svc.instance, TYPE_SRV, amsg)
    assert amsg.answers[0].data.target == "nas.local"
    assert amsg.additional == []
    assert len(svc.announce_records()) == 3


def test_unstarted_service_answers_nothing():
    svc = Service("printer", "_http._tcp", "local", 9100)
    amsg = Message.response()
    svc.answer_question(svc.instance, TYPE_ANY, amsg)
    assert amsg.answers == []


def test_announce_and_goodbye_records():
    svc = _started()
    recs = svc.announce_records()
    assert [(r.rtype, r.cacheflush) for r in recs] == [
        (TYPE_PTR, False),
        (TYPE_SRV, True),
        (TYPE_TXT, True),
        (TYPE_A, True),
    ]
    assert all(r.ttl == 0 for r in svc.announce_records(ttl=0))


def test_empty_txt_is_single_empty_string():
    svc = Service("x", "_http._tcp", "local", 80)
    svc.bind(HOST, HOST_RR)
    amsg = Message.response()
    svc.answer_question(svc.instance, TYPE_TXT, amsg)
    assert amsg.answers[0].data == TXT((b"",))
