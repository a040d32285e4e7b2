"""
Builds protocol client sessions and wires their lifecycle hooks.

The protocol itself is provided by a *backend*: anything with

    connect(host, port, username) -> client
    once(client, event, callback)  -> None

The default backend drives ``mineflayer`` through JSPyBridge (the
``javascript`` package), which is the usual way to run Mineflayer bots
from Python.  Tests plug in a fake backend instead.
"""
import logging
from typing import Any, Callable, Optional

from src.session.handle import LIFECYCLE_EVENTS, SessionHandle, SessionHooks

log = logging.getLogger("session")


class BackendUnavailable(RuntimeError):
    """The protocol backend's library is not installed or failed to load."""


class MineflayerBackend:
    """mineflayer via JSPyBridge.  Node.js and the npm package are fetched
    by ``javascript`` on first ``require``."""

    def __init__(self, package: str = "mineflayer"):
        self.package = package
        self._module = None
        self._once = None

    def _load(self):
        if self._module is None:
            try:
                from javascript import Once, require
            except ImportError as e:
                log.critical("'javascript' (JSPyBridge) python library not found!")
                log.critical("Install it with: pip install javascript")
                raise BackendUnavailable(str(e)) from e
            self._once = Once
            self._module = require(self.package)
        return self._module

    def connect(self, host: str, port: int, username: str) -> Any:
        mineflayer = self._load()
        return mineflayer.createBot({
            "host": host,
            "port": int(port),
            "username": username,
            "hideErrors": True,
        })

    def once(self, client: Any, event: str, callback: Callable[..., None]) -> None:
        # JSPyBridge passes the emitter as the first handler argument.
        def handler(this, *args):
            callback(*args)
        self._once(client, event)(handler)


class SessionFactory:
    """Creates one SessionHandle per connection attempt."""

    def __init__(self, backend: Optional[Any] = None):
        self.backend = backend or MineflayerBackend()

    def create(self, config, hooks: SessionHooks) -> SessionHandle:
        """Connect to ``config.host:config.port`` as ``config.username``.

        Registers a one-shot listener for every lifecycle event before
        returning.  Exceptions from the backend propagate to the caller.
        """
        log.info("[BOT] Connecting to %s:%s as %s...", config.host, config.port, config.username)
        client = self.backend.connect(config.host, config.port, config.username)
        handle = SessionHandle(client, config, hooks)
        for event in LIFECYCLE_EVENTS:
            self.backend.once(client, event, handle.listener(event))
        return handle
