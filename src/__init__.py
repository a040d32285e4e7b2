"""
AlterBot - self-reconnecting Minecraft keep-alive bot.

Packages:
- session: runtime config store, session factory, lifecycle controller,
  activity loop and control facade
- web: Flask control server and dashboard
- utils: logging, config file loading, reconnect policy, managed threads
"""

__version__ = "1.0.0-Beta"

from .session import ControlFacade, LifecycleController, RuntimeConfigStore, SessionFactory

__all__ = [
    "ControlFacade",
    "LifecycleController",
    "RuntimeConfigStore",
    "SessionFactory",
]
