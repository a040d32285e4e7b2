"""
Periodic anti-idle activity for a spawned session.

Every ``interval`` seconds the loop does two independent things:

1. looks in a random direction (yaw/pitch in [-pi/2, pi/2));
2. presses a random movement control (sprinting half the time) and
   schedules its release ``hold`` seconds later.

Neither action waits for the other.  The release is a one-shot timer, so
the tick itself never sleeps.  Any movement still held from the previous
tick is cleared synchronously at the start of the next one, which keeps
ticks from overlapping when ``hold`` equals ``interval``.
"""
import logging
import math
import random
import threading
from typing import Optional, Sequence

log = logging.getLogger("activity")


class ActivityLoop:
    """The one recurring activity timer, bound to a single SessionHandle."""

    def __init__(self, handle, commands: Sequence[str], interval: float,
                 hold: Optional[float] = None, rng: Optional[random.Random] = None):
        if not commands:
            raise ValueError("ActivityLoop needs at least one movement command")
        self.handle = handle
        self.commands = list(commands)
        self.interval = interval
        self.hold = interval if hold is None else hold
        self.stop_event = threading.Event()
        self.ticks = 0
        self._rng = rng or random.Random()
        self._release: Optional[threading.Timer] = None
        self._release_token: Optional[object] = None
        self._moving = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return not self.stop_event.is_set()

    def run(self) -> None:
        """Thread body: tick every ``interval`` until stopped."""
        log.debug("Activity loop started (every %.2fs)", self.interval)
        while not self.stop_event.wait(self.interval):
            self.tick()
        log.debug("Activity loop stopped after %d tick(s)", self.ticks)

    def tick(self) -> None:
        if self.stop_event.is_set():
            return
        self.ticks += 1
        self._end_movement()
        self._change_view()
        self._change_position()

    def stop(self) -> None:
        """Stop ticking and drop any pending movement release."""
        self.stop_event.set()
        with self._lock:
            if self._release is not None:
                self._release.cancel()
                self._release = None
            self._release_token = None
            self._moving = False

    # ── Actions ──────────────────────────────────────────────
    def _change_view(self) -> None:
        yaw = self._rng.random() * math.pi - 0.5 * math.pi
        pitch = self._rng.random() * math.pi - 0.5 * math.pi
        try:
            self.handle.look(yaw, pitch, False)
        except Exception as e:
            log.debug("look() failed: %s", e)

    def _change_position(self) -> None:
        action = self._rng.choice(self.commands)
        sprint = self._rng.random() < 0.5
        log.debug("[ACTION] %s%s", action, " with sprinting" if sprint else "")
        try:
            self.handle.set_control_state("sprint", sprint)
            self.handle.set_control_state(action, True)
        except Exception as e:
            log.debug("setControlState() failed: %s", e)
            return

        token = object()
        release = threading.Timer(self.hold, self._end_movement, args=(token,))
        release.daemon = True
        with self._lock:
            if self.stop_event.is_set():
                return
            self._moving = True
            self._release = release
            self._release_token = token
        release.start()

    def _end_movement(self, token: Optional[object] = None) -> None:
        """Release held movement.

        Called with no token at the start of a tick, and with the token of
        the timer that armed it when a release fires.  A release whose
        movement was already replaced by a later tick does nothing.
        """
        with self._lock:
            if token is not None and token is not self._release_token:
                return
            if token is None and self._release is not None:
                self._release.cancel()
            self._release = None
            self._release_token = None
            was_moving, self._moving = self._moving, False
        if not was_moving or self.stop_event.is_set():
            return
        try:
            self.handle.clear_control_states()
        except Exception as e:
            log.debug("clearControlStates() failed: %s", e)
