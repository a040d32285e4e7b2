"""
Utility modules for AlterBot: logging setup, config file loading and
validation, the reconnect policy and managed worker threads.
"""

from .log import setup_logging, install_crash_handler
from .common import load_config, validate_hostname, validate_port
from .reconnect import FailureKind, ReconnectPolicy
from .threads import ThreadManager, get_thread_manager, shutdown_all_threads

__all__ = [
    "setup_logging",
    "install_crash_handler",
    "load_config",
    "validate_hostname",
    "validate_port",
    "FailureKind",
    "ReconnectPolicy",
    "ThreadManager",
    "get_thread_manager",
    "shutdown_all_threads",
]
