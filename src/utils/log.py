"""
Centralized logging configuration for AlterBot.

Call setup_logging() once at startup (launcher.py).  Modules obtain their
own loggers via logging.getLogger("<component>"), e.g. "controller",
"session", "activity", "control_server".

Session events are logged from three different threads (protocol bridge
callbacks, reconnect workers, the activity loop), so both formats include
the thread name.
"""
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback

_configured = False


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter for machine parsing.

    Each log record becomes a single JSON line::

        {"ts":"2025-01-15T12:00:00Z","level":"INFO","logger":"controller","thread":"MainThread","msg":"..."}
    """

    def format(self, record):
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def parse_level(level):
    """Accept an int or a level name ("debug", "INFO", ...); default INFO."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        value = logging.getLevelName(level.strip().upper())
        if isinstance(value, int):
            return value
    return logging.INFO


def setup_logging(level=logging.INFO, log_file=None, console_level=None,
                  structured=False):
    """Configure project-wide logging.  Safe to call multiple times.

    Args:
        level: Root logger level or level name (default INFO).
        log_file: Optional path to a rotating log file.
        console_level: Override console handler level independently.
                       Defaults to *level*.
        structured: Use JSON structured logging format (default False).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = parse_level(level)
    if structured:
        formatter = JsonFormatter()
    else:
        fmt = "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
        formatter = logging.Formatter(fmt, datefmt=datefmt)

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(parse_level(console_level) if console_level is not None else level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def default_log_dir():
    """Return ``~/.config/alterbot/logs/`` (respecting ``SUDO_USER``)."""
    from src.utils.common import get_real_user_home
    log_dir = os.path.join(get_real_user_home(), ".config", "alterbot", "logs")
    os.makedirs(log_dir, exist_ok=True)
    return log_dir


def default_log_path():
    """Return the default rotating log file path."""
    return os.path.join(default_log_dir(), "alterbot.log")


def install_crash_handler():
    """Install a last-resort sys.excepthook that writes to a crash log."""
    crash_log = os.path.join(default_log_dir(), "crash.log")

    def handler(exc_type, exc_value, exc_tb):
        try:
            with open(crash_log, "a") as f:
                f.write(f"\n--- {time.strftime('%Y-%m-%d %H:%M:%S')} ---\n")
                traceback.print_exception(exc_type, exc_value, exc_tb, file=f)
        except OSError:
            pass
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = handler
