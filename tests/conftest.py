"""
Brief: Global pytest configuration: per-test 10s timeout and fake transports.

Inputs:
  - None

Outputs:
  - None
"""

import os
import queue
import signal
import sys

import pytest

# Ensure 'src' is on sys.path so 'beacon' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from beacon.codec import decode  # noqa: E402
from beacon.config.config_parser import load_config  # noqa: E402
from beacon.responder import Responder  # noqa: E402

HOST_ADDR = "192.168.1.10"
PEER = ("192.168.1.20", 5353)


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


class FakeTransport:
    """
    Brief: In-memory stand-in for MulticastTransport.

    Inputs:
      - None

    Outputs:
      - FakeTransport recording every send as (bytes, addr); receive() blocks
        on packets queued with deliver() and raises OSError once closed.
    """

    interface = HOST_ADDR

    def __init__(self):
        self.sent = []
        self.fail = False
        self.closed = False
        self._inbox = queue.Queue()

    def send(self, data, addr=None):
        if self.fail:
            raise OSError("network is down")
        self.sent.append((data, addr))
        return len(data)

    def receive(self):
        item = self._inbox.get()
        if item is None:
            raise OSError("transport closed")
        return item

    def deliver(self, data, addr=PEER):
        self._inbox.put((data, addr))

    def close(self):
        self.closed = True
        self._inbox.put(None)

    def messages(self):
        """Decoded Messages sent so far, in order."""
        return [decode(data) for data, _ in self.sent]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def responder(transport):
    """
    Brief: Responder wired to a FakeTransport with no threads running.

    Inputs:
      - transport: FakeTransport fixture

    Outputs:
      - Responder for host ``testhost.local.`` at HOST_ADDR
    """
    cfg = load_config({"host": {"hostname": "testhost", "address": HOST_ADDR}}, environ={})
    r = Responder(cfg, transport=transport)
    yield r
    r.close()


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield
