"""
Managed worker threads for the bot session.

The lifecycle controller runs two kinds of background work: the
periodic activity loop (one per spawned session) and delayed reconnect
workers (at most one pending at a time).  Both are started here so that
shutdown can signal and join them instead of leaving stray timers behind.

Usage:
    from src.utils.threads import get_thread_manager, shutdown_all_threads

    mgr = get_thread_manager()
    stop = threading.Event()
    mgr.start_thread("activity", loop.run, stop_event=stop)

    # On shutdown
    shutdown_all_threads(timeout=5)
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

log = logging.getLogger("threads")


class ThreadManager:
    """Tracks named worker threads and their stop events."""

    def __init__(self):
        self._threads: List[threading.Thread] = []
        self._stop_events: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def _prune(self) -> None:
        """Forget threads that already finished.  Caller holds the lock."""
        for thread in [t for t in self._threads if not t.is_alive() and t.ident is not None]:
            self._threads.remove(thread)
            self._stop_events.pop(thread.name, None)

    def start_thread(
        self,
        name: str,
        target: Callable,
        args: tuple = (),
        kwargs: Optional[dict] = None,
        stop_event: Optional[threading.Event] = None,
        daemon: bool = False,
    ) -> threading.Thread:
        """Start a managed thread.

        Args:
            name:       Thread name for identification.
            target:     Function to run in thread.
            args:       Positional arguments for *target*.
            kwargs:     Keyword arguments for *target*.
            stop_event: Optional event to signal thread to stop.
            daemon:     Run as daemon (never blocks interpreter exit).

        Returns:
            The started thread.
        """
        if kwargs is None:
            kwargs = {}

        thread = threading.Thread(
            target=target, args=args, kwargs=kwargs, name=name, daemon=daemon,
        )

        with self._lock:
            self._prune()
            self._threads.append(thread)
            if stop_event is not None:
                self._stop_events[name] = stop_event

        thread.start()
        log.debug("Started managed thread: %s", name)
        return thread

    def stop_thread(self, name: str, timeout: float = 5.0) -> bool:
        """Signal and join a thread by name.

        A thread asking to stop itself is only signalled, never joined.

        Returns:
            True if thread stopped (or was signalled from itself),
            False if it is still running or unknown.
        """
        with self._lock:
            event = self._stop_events.get(name)
            matches = [t for t in self._threads if t.name == name]

        if event is not None:
            event.set()
            log.debug("Signalled stop for thread: %s", name)

        if not matches:
            log.warning("Thread %s not found", name)
            return False

        for thread in matches:
            if thread is threading.current_thread():
                return True
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("Thread %s did not stop within %.1fs", name, timeout)
                return False

        with self._lock:
            for thread in matches:
                if thread in self._threads:
                    self._threads.remove(thread)
            self._stop_events.pop(name, None)
        log.debug("Thread %s stopped", name)
        return True

    def shutdown(self, timeout: float = 5.0) -> int:
        """Stop all managed threads.

        Returns:
            Number of threads that didn't stop in time.
        """
        with self._lock:
            threads = list(self._threads)
            events = list(self._stop_events.values())
            self._stop_events.clear()

        log.info("Shutting down %d managed thread(s)...", len(threads))
        for event in events:
            event.set()

        still_running = 0
        current = threading.current_thread()
        for thread in threads:
            if thread is current:
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("Thread %s still running after shutdown", thread.name)
                still_running += 1

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]

        if still_running:
            log.warning("%d thread(s) still running after shutdown", still_running)
        else:
            log.info("All managed threads stopped")
        return still_running

    def is_running(self, name: str) -> bool:
        with self._lock:
            return any(t.name == name and t.is_alive() for t in self._threads)

    @property
    def running_threads(self) -> List[str]:
        """Get names of currently running threads."""
        with self._lock:
            return [t.name for t in self._threads if t.is_alive()]


# ── Module-level singleton ───────────────────────────────────
_global_manager: Optional[ThreadManager] = None


def get_thread_manager() -> ThreadManager:
    """Get the global thread manager instance."""
    global _global_manager
    if _global_manager is None:
        _global_manager = ThreadManager()
    return _global_manager


def shutdown_all_threads(timeout: float = 5.0) -> int:
    """Convenience function to shutdown all globally managed threads."""
    global _global_manager
    if _global_manager is not None:
        return _global_manager.shutdown(timeout)
    return 0
