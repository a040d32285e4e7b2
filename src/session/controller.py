"""
Lifecycle controller: the single owner of the live bot session.

State held here and nowhere else:

* the live SessionHandle (at most one);
* the ActivityLoop attached to it (at most one, only after spawn);
* ``reconnect_pending``, the debounce flag for automatic reconnects;
* ``generation``, bumped by every manual restart so that a delayed
  automatic reconnect scheduled before the restart is dropped instead of
  stacking a second session on top of the manual one.

Failure classification:

    error before spawn/login  → reconnect after policy.initial_delay
    end after spawn/login     → reconnect after policy.retry_delay
    error after spawn/login   → logged only; the following ``end`` drives it
    kicked                    → logged only; the following ``end`` drives it

Protocol callbacks, reconnect workers and control-server requests arrive
on different threads, so every mutation happens under one re-entrant lock.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from src.session.activity import ActivityLoop
from src.session.config import ActionConfig, RuntimeConfig, RuntimeConfigStore
from src.session.handle import SessionHandle, SessionHooks, SessionState
from src.utils.reconnect import FailureKind, ReconnectPolicy
from src.utils.threads import ThreadManager, get_thread_manager

log = logging.getLogger("controller")


@dataclass
class SessionStatus:
    connected: bool
    username: Optional[str]
    config: RuntimeConfig
    state: SessionState = SessionState.DISCONNECTED
    reconnect_pending: bool = False
    reconnect_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "username": self.username,
            "config": self.config.to_dict(),
            "state": self.state.value,
            "reconnectPending": self.reconnect_pending,
            "reconnectCount": self.reconnect_count,
        }


class LifecycleController:
    """Connect / disconnect / reconnect transitions for one bot session.

    Args:
        factory: SessionFactory used for every new session.
        store: RuntimeConfigStore read at each connection attempt.
        policy: Fixed-delay ReconnectPolicy.
        action: Activity parameters for the spawn-time ActivityLoop.
        threads: ThreadManager for reconnect workers and the activity loop.
        wait: ``wait(seconds) -> bool`` used for reconnect delays; returning
            True aborts the reconnect.  Defaults to the shutdown event's wait.
    """

    def __init__(self, factory, store: RuntimeConfigStore,
                 policy: Optional[ReconnectPolicy] = None,
                 action: Optional[ActionConfig] = None,
                 threads: Optional[ThreadManager] = None,
                 wait: Optional[Callable[[float], bool]] = None):
        self.factory = factory
        self.store = store
        self.policy = policy or ReconnectPolicy()
        self.action = action or ActionConfig()
        self._threads = threads or get_thread_manager()
        self._shutdown = threading.Event()
        self._wait = wait or self._shutdown.wait
        self._lock = threading.RLock()
        self._handle: Optional[SessionHandle] = None
        self._activity: Optional[ActivityLoop] = None
        self._activity_thread: Optional[str] = None
        self._reconnect_pending = False
        self._generation = 0
        self._worker_ids = itertools.count(1)
        self._sessions = itertools.count(1)
        self._session_id = 0

    # ── Read-only views ──────────────────────────────────────
    @property
    def handle(self) -> Optional[SessionHandle]:
        return self._handle

    @property
    def activity(self) -> Optional[ActivityLoop]:
        return self._activity

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    @property
    def generation(self) -> int:
        return self._generation

    def status(self) -> SessionStatus:
        with self._lock:
            handle = self._handle
            return SessionStatus(
                connected=handle is not None and handle.connected,
                username=handle.username if handle is not None else None,
                config=self.store.get(),
                state=handle.state if handle is not None else SessionState.DISCONNECTED,
                reconnect_pending=self._reconnect_pending,
                reconnect_count=self.policy.reconnects,
            )

    # ── Transitions ──────────────────────────────────────────
    def start(self) -> Optional[SessionHandle]:
        """Create a session unless one is already live."""
        with self._lock:
            if self._shutdown.is_set() or self._handle is not None:
                return self._handle
            return self._connect()

    def disconnect(self) -> None:
        """Stop the activity loop and close the live session, if any."""
        with self._lock:
            self._stop_activity()
            handle, self._handle = self._handle, None
            if handle is not None:
                handle.close()

    def schedule_reconnect(self, delay: float, reason: str) -> bool:
        """Disconnect now and reconnect after *delay* seconds.

        Returns False (and does nothing) if a reconnect is already pending.
        """
        with self._lock:
            if self._shutdown.is_set():
                return False
            if self._reconnect_pending:
                log.info("[BOT] Reconnect already scheduled, skipping...")
                return False

            self._reconnect_pending = True
            self.policy.record_reconnect()
            log.warning("[BOT] %s. Reconnecting in %gs...", reason, delay)
            self.disconnect()

            generation = self._generation
            name = f"reconnect-{next(self._worker_ids)}"
            self._threads.start_thread(name, self._delayed_reconnect,
                                       args=(delay, generation), daemon=True)
            return True

    def restart(self) -> Optional[SessionHandle]:
        """Manual restart: overrides any pending automatic reconnect."""
        with self._lock:
            if self._shutdown.is_set():
                return None
            log.info("[BOT] Restarting with current config...")
            self._generation += 1
            self._reconnect_pending = False
            self.disconnect()
            return self._connect()

    def shutdown(self) -> None:
        """Abort pending reconnects and close the session for good."""
        self._shutdown.set()
        with self._lock:
            self._reconnect_pending = False
            self.disconnect()
        log.info("[BOT] Controller shut down")

    # ── Internals (lock held) ────────────────────────────────
    def _connect(self) -> Optional[SessionHandle]:
        config = self.store.get()
        hooks = SessionHooks(
            on_error=self._on_error,
            on_kicked=self._on_kicked,
            on_end=self._on_end,
            on_spawn=self._on_spawn,
            on_login=self._on_login,
        )
        try:
            handle = self.factory.create(config, hooks)
        except Exception as e:
            # Backend failures are connection failures; never fatal.
            log.error("[ERROR] Could not create session: %s", e)
            self.schedule_reconnect(self.policy.delay_for(FailureKind.INITIAL),
                                    "Initial connection failed")
            return None
        self._handle = handle
        self._session_id = next(self._sessions)
        return handle

    def _delayed_reconnect(self, delay: float, generation: int) -> None:
        if self._wait(delay):
            log.debug("Reconnect wait aborted")
            return
        with self._lock:
            if self._shutdown.is_set():
                return
            if generation != self._generation:
                log.info("[BOT] Dropping reconnect superseded by manual restart")
                return
            self._reconnect_pending = False
            if self._handle is not None:
                self.disconnect()
            self._connect()

    def _start_activity(self, handle: SessionHandle) -> None:
        self._stop_activity()
        loop = ActivityLoop(handle, self.action.commands, interval=self.action.hold_seconds)
        name = f"activity-{self._session_id}"
        self._activity = loop
        self._activity_thread = name
        self._threads.start_thread(name, loop.run, stop_event=loop.stop_event, daemon=True)

    def _stop_activity(self) -> None:
        loop, name = self._activity, self._activity_thread
        self._activity = None
        self._activity_thread = None
        if loop is not None:
            loop.stop()
            self._threads.stop_thread(name, timeout=2.0)

    # ── Session hooks (called from the protocol thread) ──────
    def _on_error(self, handle: SessionHandle, error: Any = None, *_: Any) -> None:
        log.error("[ERROR] %s", error)
        with self._lock:
            if handle is not self._handle or handle.has_connected_once:
                return
            self.schedule_reconnect(self.policy.delay_for(FailureKind.INITIAL),
                                    "Initial connection failed")

    def _on_kicked(self, handle: SessionHandle, reason: Any = None, *_: Any) -> None:
        log.warning("[KICKED] %s", reason)

    def _on_end(self, handle: SessionHandle, reason: Any = None, *_: Any) -> None:
        log.info("[DISCONNECTED] %s", reason or "Connection ended")
        with self._lock:
            if handle is not self._handle:
                return
            if handle.has_connected_once:
                self.schedule_reconnect(self.policy.delay_for(FailureKind.POST_CONNECT),
                                        "Disconnected from server")
            else:
                self.schedule_reconnect(self.policy.delay_for(FailureKind.INITIAL),
                                        "Connection closed before login")

    def _on_spawn(self, handle: SessionHandle, *_: Any) -> None:
        with self._lock:
            if handle is not self._handle:
                return
            log.info("[SPAWN] %s spawned in world", handle.username)
            self._start_activity(handle)

    def _on_login(self, handle: SessionHandle, *_: Any) -> None:
        log.info("[LOGIN] %s connected successfully", handle.username)
