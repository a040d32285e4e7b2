"""Tests for src/session/controller.py — LifecycleController transitions."""
import time

import pytest

from conftest import wait_until
from src.session.handle import SessionState


def _reconnect_workers(threads):
    return [n for n in threads.running_threads if n.startswith("reconnect-")]


class TestStart:
    def test_start_creates_one_session(self, controller, backend):
        handle = controller.start()
        assert handle is not None
        assert len(backend.clients) == 1
        assert controller.handle is handle

    def test_start_twice_keeps_existing_session(self, controller, backend):
        first = controller.start()
        second = controller.start()
        assert first is second
        assert len(backend.clients) == 1

    def test_connects_with_store_config(self, controller, backend):
        controller.start()
        client = backend.last
        assert (client.host, client.port, client.username) == ("mc.example.com", 25565, "Bot1")

    def test_factory_failure_schedules_initial_reconnect(self, controller, backend, gate):
        backend.fail_with = OSError("connection refused")
        assert controller.start() is None
        assert gate.entered.wait(2)
        assert gate.delays == [60.0]
        assert controller.reconnect_pending is True
        assert controller.handle is None


class TestStatus:
    def test_status_before_handshake(self, controller):
        controller.start()
        status = controller.status()
        assert status.connected is False
        assert status.username is None
        assert status.state is SessionState.CONNECTING
        assert status.config.host == "mc.example.com"

    def test_status_after_login(self, controller, backend):
        controller.start()
        backend.last.emit("login")
        status = controller.status().to_dict()
        assert status["connected"] is True
        assert status["username"] == "Bot1"
        assert status["config"] == {"host": "mc.example.com", "port": 25565, "username": "Bot1"}
        assert status["state"] == "logged_in"
        assert status["reconnectPending"] is False

    def test_status_without_session(self, controller):
        status = controller.status()
        assert status.connected is False
        assert status.username is None
        assert status.state is SessionState.DISCONNECTED


class TestFailureClassification:
    def test_error_before_login_uses_initial_delay(self, controller, backend, gate):
        controller.start()
        backend.last.emit("error", Exception("ECONNREFUSED"))
        assert gate.entered.wait(2)
        assert gate.delays == [60.0]
        assert controller.handle is None

    def test_end_after_spawn_uses_retry_delay(self, controller, backend, gate):
        controller.start()
        client = backend.last
        client.emit("spawn")
        client.emit("end", "socketClosed")
        assert gate.entered.wait(2)
        assert gate.delays == [5.0]

    def test_end_before_login_uses_initial_delay(self, controller, backend, gate):
        controller.start()
        backend.last.emit("end", "socketClosed")
        assert gate.entered.wait(2)
        assert gate.delays == [60.0]

    def test_error_after_spawn_only_logs(self, controller, backend):
        controller.start()
        client = backend.last
        client.emit("spawn")
        client.emit("error", Exception("read ECONNRESET"))
        assert controller.reconnect_pending is False
        assert controller.handle is not None

    def test_kicked_only_logs(self, controller, backend):
        controller.start()
        client = backend.last
        client.emit("login")
        client.emit("kicked", "You have been idle for too long")
        assert controller.reconnect_pending is False
        assert controller.handle is not None

    def test_kick_then_end_reconnects_once(self, controller, backend, gate):
        controller.start()
        client = backend.last
        client.emit("login")
        client.emit("kicked", "Server closed")
        client.emit("end", "Server closed")
        assert gate.entered.wait(2)
        assert gate.delays == [5.0]


class TestDebounce:
    def test_rapid_errors_schedule_one_reconnect(self, controller, backend, gate, threads):
        controller.start()
        handle = controller.handle
        for _ in range(5):
            handle.fire("error", Exception("boom"))
        assert gate.entered.wait(2)
        assert len(_reconnect_workers(threads)) == 1
        assert controller.policy.reconnects == 1

    def test_overlapping_schedule_calls(self, controller):
        controller.start()
        assert controller.schedule_reconnect(5.0, "first") is True
        time.sleep(0.01)
        assert controller.schedule_reconnect(5.0, "second") is False
        assert controller.policy.reconnects == 1

    def test_schedule_disconnects_immediately(self, controller, backend):
        controller.start()
        client = backend.last
        controller.schedule_reconnect(5.0, "test")
        assert controller.handle is None
        assert client.quit_called and client.end_called

    def test_reconnect_completes_with_one_new_session(self, controller, backend, gate, threads):
        controller.start()
        old = backend.last
        controller.schedule_reconnect(5.0, "test")
        gate.release()
        assert wait_until(lambda: len(backend.clients) == 2 and not controller.reconnect_pending)
        assert controller.handle.client is backend.last
        assert old.quit_called
        assert wait_until(lambda: not _reconnect_workers(threads))

    def test_new_reconnect_allowed_after_completion(self, controller, backend, gate):
        controller.start()
        controller.schedule_reconnect(5.0, "first")
        gate.release()
        assert wait_until(lambda: not controller.reconnect_pending and controller.handle is not None)
        assert controller.schedule_reconnect(5.0, "second") is True


class TestDisconnect:
    def test_disconnect_twice_is_noop(self, controller, backend):
        controller.start()
        client = backend.last
        controller.disconnect()
        controller.disconnect()
        assert client.calls.count(("removeAllListeners",)) == 1
        assert controller.handle is None

    def test_disconnect_without_session(self, controller):
        controller.disconnect()
        assert controller.handle is None

    def test_listeners_removed_before_quit(self, controller, backend):
        controller.start()
        client = backend.last
        controller.disconnect()
        names = [c[0] for c in client.calls]
        assert names.index("removeAllListeners") < names.index("quit") < names.index("end")


class TestRestart:
    def test_restart_replaces_session(self, controller, backend):
        controller.start()
        first = backend.last
        controller.restart()
        assert len(backend.clients) == 2
        assert first.quit_called
        assert controller.handle.client is backend.last

    def test_restart_uses_updated_config(self, controller, backend, store):
        controller.start()
        store.update({"host": "other.example.com", "port": "25600"})
        controller.restart()
        assert (backend.last.host, backend.last.port) == ("other.example.com", 25600)

    def test_restart_overrides_pending_reconnect(self, controller, backend, gate, threads):
        controller.start()
        controller.schedule_reconnect(60.0, "test")
        assert gate.entered.wait(2)
        controller.restart()
        assert controller.reconnect_pending is False
        assert controller.generation == 1
        assert len(backend.clients) == 2

        # The superseded worker wakes up and must not stack a second session.
        gate.release()
        assert wait_until(lambda: not _reconnect_workers(threads))
        assert len(backend.clients) == 2
        assert controller.handle.client is backend.last

    def test_stale_handle_events_ignored(self, controller, backend, gate):
        controller.start()
        old_handle = controller.handle
        controller.restart()
        assert old_handle.fire("end") is False
        controller._on_end(old_handle, "late")
        assert controller.reconnect_pending is False
        assert gate.delays == []


class TestActivity:
    def test_no_activity_before_spawn(self, controller, backend):
        controller.start()
        backend.last.emit("login")
        assert controller.activity is None

    def test_activity_starts_on_spawn(self, controller, backend):
        controller.start()
        client = backend.last
        client.emit("spawn")
        assert controller.activity is not None
        assert wait_until(lambda: any(c[0] == "look" for c in client.calls))

    def test_activity_stopped_on_disconnect(self, controller, backend, threads):
        controller.start()
        backend.last.emit("spawn")
        loop = controller.activity
        controller.disconnect()
        assert controller.activity is None
        assert loop.running is False
        assert not any(n.startswith("activity-") for n in threads.running_threads)

    def test_no_activity_calls_after_close(self, controller, backend):
        controller.start()
        client = backend.last
        client.emit("spawn")
        controller.disconnect()
        count = len(client.calls)
        time.sleep(0.15)
        assert len(client.calls) == count


class TestShutdown:
    def test_shutdown_closes_session(self, controller, backend):
        controller.start()
        controller.shutdown()
        assert backend.last.quit_called
        assert controller.handle is None

    def test_no_reconnect_after_shutdown(self, controller):
        controller.start()
        controller.shutdown()
        assert controller.schedule_reconnect(5.0, "late") is False
        assert controller.start() is None
        assert controller.restart() is None

    def test_pending_reconnect_dropped_on_shutdown(self, controller, backend, gate, threads):
        controller.start()
        controller.schedule_reconnect(5.0, "test")
        assert gate.entered.wait(2)
        controller.shutdown()
        gate.release()
        assert wait_until(lambda: not _reconnect_workers(threads))
        assert len(backend.clients) == 1


@pytest.mark.parametrize("event", ["error", "end"])
def test_reconnect_count_reported(controller, backend, gate, event):
    controller.start()
    backend.last.emit(event, "x")
    assert gate.entered.wait(2)
    assert controller.status().to_dict()["reconnectCount"] == 1
