"""
Fixed-delay reconnect policy for the bot session.

Replaces the old exponential backoff strategy.  The bot retries forever
with one of two constant delays, picked by how the session failed:

    INITIAL       → transport error before any handshake (long delay)
    POST_CONNECT  → session ended after spawn/login (short delay)

No exponential growth, no jitter, no attempt cut-off.  A server that is
down for hours is simply polled every ``initial_delay`` seconds.
"""
import enum
import threading
from dataclasses import dataclass, field

DEFAULT_INITIAL_DELAY = 60.0
DEFAULT_RETRY_DELAY = 5.0


class FailureKind(enum.Enum):
    INITIAL = "initial"
    POST_CONNECT = "post_connect"


@dataclass
class ReconnectPolicy:
    """Maps a failure classification to a fixed reconnect delay.

    Usage:
        policy = ReconnectPolicy.from_millis(initial_ms=60000, retry_ms=5000)
        delay = policy.delay_for(FailureKind.POST_CONNECT)
    """
    initial_delay: float = DEFAULT_INITIAL_DELAY
    retry_delay: float = DEFAULT_RETRY_DELAY

    # Mutable state (not part of __init__ comparison)
    _reconnects: int = field(default=0, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def delay_for(self, kind: FailureKind) -> float:
        """Return the delay in seconds for the given failure kind."""
        if kind is FailureKind.INITIAL:
            return self.initial_delay
        return self.retry_delay

    def record_reconnect(self) -> None:
        """Count one scheduled reconnect (reported by the status endpoint)."""
        with self._lock:
            self._reconnects += 1

    @property
    def reconnects(self) -> int:
        """Total reconnects scheduled since process start."""
        with self._lock:
            return self._reconnects

    @classmethod
    def from_millis(cls, initial_ms: float, retry_ms: float) -> 'ReconnectPolicy':
        """Factory: build from millisecond values as found in config/env."""
        return cls(initial_delay=initial_ms / 1000.0, retry_delay=retry_ms / 1000.0)
