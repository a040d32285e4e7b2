"""
Bot session core: config store, session factory, lifecycle controller,
activity loop and the control facade used by the web layer.
"""

from .config import (
    ActionConfig,
    BotSettings,
    ConfigApplyError,
    RuntimeConfig,
    RuntimeConfigStore,
    load_settings,
)
from .handle import SessionHandle, SessionHooks, SessionState
from .activity import ActivityLoop
from .factory import BackendUnavailable, MineflayerBackend, SessionFactory
from .controller import LifecycleController, SessionStatus
from .facade import ControlFacade

__all__ = [
    "ActionConfig",
    "ActivityLoop",
    "BackendUnavailable",
    "BotSettings",
    "ConfigApplyError",
    "ControlFacade",
    "LifecycleController",
    "MineflayerBackend",
    "RuntimeConfig",
    "RuntimeConfigStore",
    "SessionFactory",
    "SessionHandle",
    "SessionHooks",
    "SessionState",
    "SessionStatus",
    "load_settings",
]
