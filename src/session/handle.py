"""
Ownership wrapper around one protocol client instance.

A SessionHandle is created by the SessionFactory for every connection
attempt and thrown away on disconnect; it is never reused.  It gives the
controller three guarantees the raw client does not:

* each lifecycle hook (error, kicked, end, spawn, login) fires at most
  once per handle, even if the client library emits an event twice;
* once ``close()`` starts, no hook fires any more;
* ``close()`` detaches listeners *before* closing the transport and never
  raises, so teardown always completes.
"""
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

log = logging.getLogger("session")

LIFECYCLE_EVENTS = ("error", "kicked", "end", "spawn", "login")


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SPAWNED = "spawned"
    LOGGED_IN = "logged_in"


Hook = Callable[..., None]


@dataclass
class SessionHooks:
    """Single-use lifecycle callbacks.  Each receives the handle first."""

    on_error: Optional[Hook] = None
    on_kicked: Optional[Hook] = None
    on_end: Optional[Hook] = None
    on_spawn: Optional[Hook] = None
    on_login: Optional[Hook] = None

    def for_event(self, event: str) -> Optional[Hook]:
        return getattr(self, f"on_{event}", None)


class SessionHandle:
    """One live (or connecting) protocol session."""

    def __init__(self, client: Any, config, hooks: Optional[SessionHooks] = None):
        self.client = client
        self.config = config
        self.hooks = hooks or SessionHooks()
        self.state = SessionState.CONNECTING
        self.has_connected_once = False
        self._fired = set()
        self._closed = False
        self._lock = threading.Lock()

    # ── Lifecycle events ─────────────────────────────────────
    def fire(self, event: str, *args: Any) -> bool:
        """Deliver *event* to its hook unless already fired or closed.

        Returns True if the hook was invoked.
        """
        with self._lock:
            if self._closed or event in self._fired:
                return False
            self._fired.add(event)
            if event in ("spawn", "login"):
                self.has_connected_once = True
                if event == "spawn" or self.state is SessionState.CONNECTING:
                    self.state = SessionState.SPAWNED if event == "spawn" else SessionState.LOGGED_IN
            elif event == "end":
                self.state = SessionState.DISCONNECTED

        hook = self.hooks.for_event(event)
        if hook is not None:
            hook(self, *args)
        return True

    def listener(self, event: str) -> Callable[..., None]:
        """Return a callback suitable for ``client.once(event, ...)``."""
        def _on_event(*args):
            self.fire(event, *args)
        _on_event.__name__ = f"on_{event}"
        return _on_event

    # ── Status ───────────────────────────────────────────────
    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connected(self) -> bool:
        return not self._closed and self.state in (SessionState.SPAWNED, SessionState.LOGGED_IN)

    @property
    def username(self) -> Optional[str]:
        """Identity confirmed by the server, or None before the handshake."""
        if not self.connected:
            return None
        name = getattr(self.client, "username", None)
        if isinstance(name, str) and name:
            return name
        return self.config.username

    # ── Actions (used by the activity loop) ──────────────────
    def set_control_state(self, control: str, state: bool) -> None:
        if not self._closed:
            self.client.setControlState(control, state)

    def clear_control_states(self) -> None:
        if not self._closed:
            self.client.clearControlStates()

    def look(self, yaw: float, pitch: float, force: bool = False) -> None:
        if not self._closed:
            self.client.look(yaw, pitch, force)

    # ── Teardown ─────────────────────────────────────────────
    def close(self) -> bool:
        """Detach all listeners, then quit and end the transport.

        Idempotent.  Returns False if the handle was already closed.
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self.state = SessionState.DISCONNECTED

        for step in ("removeAllListeners", "quit", "end"):
            fn = getattr(self.client, step, None)
            if fn is None:
                continue
            try:
                fn()
            except Exception as e:
                # Teardown must complete; the transport may already be gone.
                log.debug("Ignoring %s() failure during close: %s", step, e)
        log.debug("Session %s:%s closed", self.config.host, self.config.port)
        return True

    def __repr__(self):
        return (
            f"<SessionHandle {self.config.username}@{self.config.host}:{self.config.port} "
            f"state={self.state.value} closed={self._closed}>"
        )
