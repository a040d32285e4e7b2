import json
import os
import sys
import threading

import pytest

# Ensure project root is on sys.path so src.* imports work
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from src.session.config import ActionConfig, RuntimeConfig, RuntimeConfigStore  # noqa: E402
from src.session.controller import LifecycleController  # noqa: E402
from src.session.facade import ControlFacade  # noqa: E402
from src.session.factory import SessionFactory  # noqa: E402
from src.utils.reconnect import ReconnectPolicy  # noqa: E402
from src.utils.threads import ThreadManager  # noqa: E402


# ── Protocol test doubles ────────────────────────────────────

class FakeClient:
    """Stand-in for a mineflayer bot: records calls, emits events on demand.

    ``once`` listeners are removed after firing, like EventEmitter.once.
    """

    def __init__(self, host, port, username):
        self.host = host
        self.port = port
        self.username = username
        self.listeners = {}
        self.calls = []
        self.control_states = {}
        self.quit_called = False
        self.end_called = False

    def once(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def emit(self, event, *args):
        callbacks = self.listeners.pop(event, [])
        for cb in callbacks:
            cb(*args)
        return len(callbacks)

    def setControlState(self, control, state):
        self.calls.append(("setControlState", control, state))
        self.control_states[control] = state

    def clearControlStates(self):
        self.calls.append(("clearControlStates",))
        self.control_states.clear()

    def look(self, yaw, pitch, force):
        self.calls.append(("look", yaw, pitch, force))

    def removeAllListeners(self):
        self.calls.append(("removeAllListeners",))
        self.listeners.clear()

    def quit(self):
        self.calls.append(("quit",))
        self.quit_called = True

    def end(self):
        self.calls.append(("end",))
        self.end_called = True


class FakeBackend:
    """Backend that hands out FakeClients; can be told to fail on connect."""

    def __init__(self):
        self.clients = []
        self.fail_with = None

    def connect(self, host, port, username):
        if self.fail_with is not None:
            raise self.fail_with
        client = FakeClient(host, port, username)
        self.clients.append(client)
        return client

    def once(self, client, event, callback):
        client.once(event, callback)

    @property
    def last(self):
        return self.clients[-1]


class GatedWait:
    """Injectable reconnect wait: records delays, blocks until released."""

    def __init__(self, block=True):
        self.delays = []
        self.entered = threading.Event()
        self._release = threading.Event()
        if not block:
            self._release.set()

    def __call__(self, delay):
        self.delays.append(delay)
        self.entered.set()
        self._release.wait(5)
        return False

    def release(self):
        self._release.set()


def wait_until(predicate, timeout=2.0):
    """Poll *predicate* until true or timeout; returns its last value."""
    deadline = threading.Event()
    timer = threading.Timer(timeout, deadline.set)
    timer.start()
    try:
        while not deadline.is_set():
            if predicate():
                return True
            deadline.wait(0.01)
        return predicate()
    finally:
        timer.cancel()


# ── Fixtures ─────────────────────────────────────────────────

@pytest.fixture
def runtime_config():
    return RuntimeConfig(host="mc.example.com", port=25565, username="Bot1")


@pytest.fixture
def store(runtime_config):
    return RuntimeConfigStore(runtime_config)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def threads():
    mgr = ThreadManager()
    yield mgr
    mgr.shutdown(timeout=2)


@pytest.fixture
def gate():
    g = GatedWait()
    yield g
    g.release()


@pytest.fixture
def controller(backend, store, threads, gate):
    ctl = LifecycleController(
        SessionFactory(backend),
        store,
        policy=ReconnectPolicy(initial_delay=60.0, retry_delay=5.0),
        action=ActionConfig(commands=["forward", "jump"], hold_duration=50),
        threads=threads,
        wait=gate,
    )
    yield ctl
    gate.release()
    ctl.shutdown()


@pytest.fixture
def facade(controller, store):
    return ControlFacade(controller, store)


@pytest.fixture
def tmp_config(tmp_path):
    """Create a temporary config.json and return its path."""
    config = {
        "client": {"host": "play.example.org", "port": 25570, "username": "FileBot"},
        "action": {"commands": ["forward", "left"], "holdDuration": 2000, "retryDelay": 7000},
        "dashboard": {"host": "127.0.0.1", "port": 8080},
    }
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(config))
    return str(config_file)


@pytest.fixture
def bad_config(tmp_path):
    """Create an invalid JSON config file and return its path."""
    config_file = tmp_path / "config.json"
    config_file.write_text("{invalid json content")
    return str(config_file)
