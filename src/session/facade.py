"""
Control facade: the only entry point for the control server.

The HTTP layer authenticates and parses;
this layer maps requests onto the config store and the controller.
"""
import logging
from typing import Any, Dict, Mapping

from src.session.config import ConfigApplyError, RuntimeConfigStore
from src.session.controller import LifecycleController

log = logging.getLogger("control")


class ControlFacade:
    """status / update / restart over one LifecycleController."""

    def __init__(self, controller: LifecycleController, store: RuntimeConfigStore):
        self.controller = controller
        self.store = store

    def get_status(self) -> Dict[str, Any]:
        return self.controller.status().to_dict()

    def update_config(self, partial: Mapping[str, Any], restart: bool = False) -> Dict[str, Any]:
        """Apply a partial config update.

        Updating alone never reconnects; pass ``restart=True`` to reconnect
        with the new values.

        Raises:
            ConfigApplyError: malformed payload; neither the config nor the
                live session is touched.
        """
        config = self.store.update(partial)
        if restart:
            self.restart_bot()
        return config.to_dict()

    def apply(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        """Update the config and restart (the dashboard's Apply button)."""
        return self.update_config(partial, restart=True)

    def restart_bot(self) -> None:
        """Force a fresh session, even while an automatic reconnect is pending."""
        log.info("[BOT] Restart requested")
        self.controller.restart()


__all__ = ["ControlFacade", "ConfigApplyError"]
