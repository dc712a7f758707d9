"""
Brief: Tests for beacon.transport socket helpers and MulticastTransport.send.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import socket
import threading

import pytest

from beacon import transport as tmod
from beacon.config.config_parser import load_config
from beacon.responder import Responder
from beacon.transport import MulticastTransport


class _Sock:
    """Minimal socket stand-in recording options and sends."""

    def __init__(self, reuseport_fails=False, short_by=0, sockname="0.0.0.0"):
        self.opts = []
        self.sent = []
        self.closed = False
        self.reuseport_fails = reuseport_fails
        self.short_by = short_by
        self.sockname = sockname

    def setsockopt(self, level, opt, value):
        if self.reuseport_fails and opt == getattr(socket, "SO_REUSEPORT", None):
            raise OSError("not supported")
        self.opts.append(opt)

    def sendto(self, data, flags, addr):
        self.sent.append((data, addr))
        return len(data) - self.short_by

    def connect(self, addr):
        pass

    def getsockname(self):
        return (self.sockname, 0)

    def recvfrom(self, size):
        return b"", None

    def close(self):
        self.closed = True


@pytest.mark.skipif(not hasattr(socket, "SO_REUSEPORT"), reason="SO_REUSEPORT unavailable")
def test_set_reuse_falls_back_to_reuseaddr(caplog):
    caplog.set_level(logging.WARNING, logger="beacon.transport")
    sock = _Sock(reuseport_fails=True)
    tmod._set_reuse(sock)
    assert sock.opts == [socket.SO_REUSEADDR]
    assert "SO_REUSEPORT" in caplog.text


@pytest.mark.skipif(not hasattr(socket, "SO_REUSEPORT"), reason="SO_REUSEPORT unavailable")
def test_set_reuse_sets_both():
    sock = _Sock()
    tmod._set_reuse(sock)
    assert sock.opts == [socket.SO_REUSEPORT, socket.SO_REUSEADDR]


def test_local_hostname_uses_first_label(monkeypatch):
    monkeypatch.setattr(tmod.socket, "gethostname", lambda: "box.example.com")
    assert str(tmod.local_hostname()) == "box.local."


def test_local_hostname_empty(monkeypatch):
    monkeypatch.setattr(tmod.socket, "gethostname", lambda: "")
    assert str(tmod.local_hostname()) == "localhost.local."


def test_default_interface_address_from_route(monkeypatch):
    route_sock = _Sock(sockname="192.168.1.7")
    monkeypatch.setattr(tmod.socket, "socket", lambda *a, **k: route_sock)
    assert tmod.default_interface_address() == "192.168.1.7"
    assert route_sock.closed


def test_default_interface_address_falls_back(monkeypatch):
    """
    Brief: With no usable route and an unresolvable hostname, 0.0.0.0 is used.

    Inputs:
      - route socket reporting 0.0.0.0 and a failing gethostbyname

    Outputs:
      - None: Asserts the fallback address
    """

    def _fail(name):
        raise OSError("no such host")

    monkeypatch.setattr(tmod.socket, "socket", lambda *a, **k: _Sock())
    monkeypatch.setattr(tmod.socket, "gethostbyname", _fail)
    assert tmod.default_interface_address() == "0.0.0.0"


def _transport(sock):
    t = object.__new__(MulticastTransport)
    t.group = tmod.MDNS_ADDR
    t.port = tmod.MDNS_PORT
    t.interface = "192.168.1.10"
    t.max_packet = tmod.MAX_PACKET
    t._closed = False
    t._sock = sock
    return t


def test_send_defaults_to_group():
    sock = _Sock()
    t = _transport(sock)
    assert t.send(b"abc") == 3
    assert t.send(b"xy", ("10.0.0.2", 5353)) == 2
    assert sock.sent == [(b"abc", ("224.0.0.251", 5353)), (b"xy", ("10.0.0.2", 5353))]


def test_short_send_raises():
    t = _transport(_Sock(short_by=1))
    with pytest.raises(OSError):
        t.send(b"abcd")


def test_receive_after_shutdown_raises_oserror():
    t = _transport(_Sock())
    t._closed = True
    with pytest.raises(OSError):
        t.receive()


def test_receive_without_peer_address_raises_oserror():
    with pytest.raises(OSError):
        _transport(_Sock()).receive()


def test_close_real_transport_ends_receiver_cleanly(monkeypatch):
    """
    Brief: Closing a live responder wakes its receiver without a thread crash.

    Inputs:
      - MulticastTransport on loopback and a non-mDNS port

    Outputs:
      - None: Asserts the receiver exits and no thread exception escapes
    """
    try:
        t = MulticastTransport(port=53530, interface="127.0.0.1")
    except OSError as e:
        pytest.skip("multicast unavailable on loopback: %s" % e)

    escaped = []
    monkeypatch.setattr(threading, "excepthook", lambda args: escaped.append(args.exc_value))
    cfg = load_config(
        {"transport": {"port": 53530, "interface": "127.0.0.1"}, "host": {"hostname": "testhost", "address": "127.0.0.1"}},
        environ={},
    )
    r = Responder(cfg, transport=t, log=None).start()
    receiver = r._receiver
    r.close()

    receiver.join(2)
    assert not receiver.is_alive()
    assert t.closed
    assert escaped == []
