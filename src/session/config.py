"""
Runtime and static configuration for the bot session.

Two layers:

* ``BotSettings``: read once at startup from ``config.json`` with
  environment overrides (MC_HOST, MC_PORT, BOT_USERNAME, RETRY_DELAY,
  INITIAL_RETRY_DELAY, PORT, API_KEY, LOG_LEVEL, LOG_FILE).
* ``RuntimeConfigStore``: the one mutable connection target
  (host/port/username) that the control server may change while the
  process runs.  Readers always receive a copy.
"""

import dataclasses
import logging
import os
import threading
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional

from src.utils.common import load_config, validate_hostname, validate_port
from src.utils.reconnect import DEFAULT_INITIAL_DELAY, ReconnectPolicy

log = logging.getLogger("config")

DEFAULT_COMMANDS = ["forward", "back", "left", "right", "jump"]
DEFAULT_API_KEY = "changeme"


class ConfigApplyError(ValueError):
    """A runtime config update could not be applied (nothing was changed)."""


@dataclass
class RuntimeConfig:
    """Connection target for the next session."""

    host: str = "localhost"
    port: int = 25565
    username: str = "AlterBot"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ActionConfig:
    """Periodic activity parameters (``action`` section of config.json)."""

    commands: List[str] = field(default_factory=lambda: list(DEFAULT_COMMANDS))
    hold_duration: int = 1000  # milliseconds
    retry_delay: int = 5000  # milliseconds

    @property
    def hold_seconds(self) -> float:
        return self.hold_duration / 1000.0


@dataclass
class DashboardConfig:
    host: str = "0.0.0.0"
    port: int = 10000
    api_key: str = DEFAULT_API_KEY


@dataclass
class BotSettings:
    """Everything the launcher needs, resolved from file + environment."""

    client: RuntimeConfig = field(default_factory=RuntimeConfig)
    action: ActionConfig = field(default_factory=ActionConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    initial_retry_delay: int = int(DEFAULT_INITIAL_DELAY * 1000)  # milliseconds
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy.from_millis(self.initial_retry_delay, self.action.retry_delay)


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        log.warning("Ignoring %s=%r (not a number)", name, raw)
        return default


def load_settings(environ: Optional[Mapping[str, str]] = None,
                  config_path: Optional[str] = None) -> BotSettings:
    """Build BotSettings from config.json, then apply environment overrides."""
    if environ is None:
        environ = os.environ
    cfg = load_config(path=config_path)

    client_cfg = cfg.get("client", {}) if isinstance(cfg.get("client"), dict) else {}
    action_cfg = cfg.get("action", {}) if isinstance(cfg.get("action"), dict) else {}
    dash_cfg = cfg.get("dashboard", {}) if isinstance(cfg.get("dashboard"), dict) else {}

    defaults = RuntimeConfig()
    client = RuntimeConfig(
        host=environ.get("MC_HOST") or client_cfg.get("host", defaults.host),
        port=_env_int(environ, "MC_PORT", int(client_cfg.get("port", defaults.port))),
        username=environ.get("BOT_USERNAME") or client_cfg.get("username", defaults.username),
    )

    action_defaults = ActionConfig()
    action = ActionConfig(
        commands=list(action_cfg.get("commands") or action_defaults.commands),
        hold_duration=int(action_cfg.get("holdDuration", action_defaults.hold_duration)),
        retry_delay=_env_int(environ, "RETRY_DELAY",
                             int(action_cfg.get("retryDelay", action_defaults.retry_delay))),
    )

    dash_defaults = DashboardConfig()
    dashboard = DashboardConfig(
        host=dash_cfg.get("host", dash_defaults.host),
        port=_env_int(environ, "PORT", int(dash_cfg.get("port", dash_defaults.port))),
        api_key=environ.get("API_KEY") or dash_defaults.api_key,
    )

    return BotSettings(
        client=client,
        action=action,
        dashboard=dashboard,
        initial_retry_delay=_env_int(environ, "INITIAL_RETRY_DELAY",
                                     int(DEFAULT_INITIAL_DELAY * 1000)),
        log_level=environ.get("LOG_LEVEL", "INFO"),
        log_file=environ.get("LOG_FILE") or None,
    )


_UPDATABLE = ("host", "port", "username")


def _coerce(key: str, value: Any) -> Any:
    if key == "port":
        if isinstance(value, bool):
            raise ConfigApplyError("port must be a number")
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            raise ConfigApplyError(f"port must be a number, got {value!r}") from None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigApplyError(f"{key} must be a string, got {type(value).__name__}")
    return str(value).strip()


class RuntimeConfigStore:
    """Process-wide holder of the live RuntimeConfig.

    Only ``update()`` mutates it.  ``get()`` hands out copies so callers can
    never alias the live object.
    """

    def __init__(self, initial: Optional[RuntimeConfig] = None):
        self._config = dataclasses.replace(initial) if initial else RuntimeConfig()
        self._lock = threading.Lock()

    def get(self) -> RuntimeConfig:
        with self._lock:
            return dataclasses.replace(self._config)

    def update(self, partial: Mapping[str, Any]) -> RuntimeConfig:
        """Apply the present fields of *partial*; leave the rest untouched.

        Empty, blank or missing values are skipped.  Values are coerced but not
        validated: a bad host or out-of-range port is logged here and then
        fails as a transport error on the next connection attempt.

        Raises:
            ConfigApplyError: *partial* is not a mapping or a value cannot
                be coerced.  The stored config is unchanged.
        """
        if not isinstance(partial, Mapping):
            raise ConfigApplyError("config update must be a JSON object")

        changes = {}
        for key in _UPDATABLE:
            value = partial.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            changes[key] = _coerce(key, value)

        if "host" in changes:
            ok, err = validate_hostname(changes["host"])
            if not ok:
                log.warning("Suspicious host in config update: %s", err)
        if "port" in changes:
            ok, err = validate_port(changes["port"])
            if not ok:
                log.warning("Suspicious port in config update: %s", err)

        with self._lock:
            self._config = dataclasses.replace(self._config, **changes)
            snapshot = dataclasses.replace(self._config)
        log.info("[CONFIG] Updated: %s", snapshot.to_dict())
        return snapshot
