"""
Centralized paths, config loading, and project constants.
Single source of truth -- all modules import from here.
"""
import json
import logging
import os
import re
import stat

log = logging.getLogger("config")


def get_real_user_home():
    """Return the real user's home directory, even under sudo.

    When running with ``sudo``, ``os.path.expanduser("~")`` returns
    ``/root`` instead of the invoking user's home.  This function checks
    the ``SUDO_USER`` environment variable and resolves the correct path.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        try:
            import pwd
            return pwd.getpwnam(sudo_user).pw_dir
        except (KeyError, ImportError):
            pass
    return os.path.expanduser("~")


# ── Canonical Paths ──────────────────────────────────────────
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

CONFIG_PATH = os.path.join(BASE_DIR, 'config.json')


_UNSET = object()

_HOSTNAME_RE = re.compile(r'^[a-zA-Z0-9._:\-]+$')


def validate_hostname(host):
    """Validate a hostname/IP string.

    Rejects flag-injection attempts (leading '-'), overly long values,
    and characters outside the safe set.

    Returns:
        (ok: bool, error_message: str)
    """
    if not host or not isinstance(host, str):
        return False, "hostname must be a non-empty string"
    if host.startswith('-'):
        return False, "hostname must not start with '-' (flag injection)"
    if len(host) > 253:
        return False, "hostname exceeds 253 characters"
    if not _HOSTNAME_RE.match(host):
        return False, f"hostname contains invalid characters: {host!r}"
    return True, ""


def validate_port(port):
    """Validate a network port number.

    Returns:
        (ok: bool, error_message: str)
    """
    if not isinstance(port, int) or isinstance(port, bool):
        return False, f"port must be an integer, got {type(port).__name__}"
    if port < 1 or port > 65535:
        return False, f"port must be 1-65535, got {port}"
    return True, ""


def check_config_permissions(path):
    """Warn if config file has overly permissive modes (Linux/POSIX only).

    Returns a list of warning strings (empty when permissions are fine).
    """
    warnings = []
    if os.name != 'posix':
        return warnings
    try:
        mode = os.stat(path).st_mode
        if mode & stat.S_IWOTH:
            warnings.append(
                f"{path} is world-writable (mode {oct(mode)}). "
                "Consider: chmod 644 " + path
            )
    except OSError:
        pass
    return warnings


def _port_warning(section, key, val):
    if isinstance(val, int) and not isinstance(val, bool):
        ok, err = validate_port(val)
    else:
        ok, err = False, f"must be an integer, got {type(val).__name__}"
    return None if ok else f"{section}.{key}: {err}"


def validate_config(cfg):
    """Validate bot config structure and return a list of warnings.

    Returns an empty list when the config is valid.
    """
    warnings = []
    if not isinstance(cfg, dict):
        return ["Config is not a JSON object"]

    client = cfg.get("client", {})
    if not isinstance(client, dict):
        warnings.append("client section must be a JSON object")
    else:
        host = client.get("host")
        if host is not None:
            ok, err = validate_hostname(host)
            if not ok:
                warnings.append(f"client.host: {err}")
        port = client.get("port")
        if port is not None:
            msg = _port_warning("client", "port", port)
            if msg:
                warnings.append(msg)
        username = client.get("username")
        if username is not None and (not isinstance(username, str) or not username):
            warnings.append(f"client.username must be a non-empty string, got {username!r}")

    action = cfg.get("action", {})
    if not isinstance(action, dict):
        warnings.append("action section must be a JSON object")
    else:
        commands = action.get("commands")
        if commands is not None and (not isinstance(commands, list) or not commands):
            warnings.append("action.commands must be a non-empty list")
        for key in ("holdDuration", "retryDelay"):
            val = action.get(key)
            if val is not None and (not isinstance(val, (int, float)) or isinstance(val, bool) or val <= 0):
                warnings.append(f"action.{key} must be a positive number of milliseconds, got {val!r}")

    dash = cfg.get("dashboard", {})
    if isinstance(dash, dict):
        port = dash.get("port")
        if port is not None:
            msg = _port_warning("dashboard", "port", port)
            if msg:
                warnings.append(msg)
        dash_host = dash.get("host")
        if dash_host is not None:
            ok, err = validate_hostname(dash_host)
            if not ok:
                warnings.append(f"dashboard.host: {err}")

    return warnings


def load_config(fallback=_UNSET, path=None):
    """Load config.json, returning *fallback* on failure.

    Args:
        fallback: Value to return if config cannot be loaded.
                  Defaults to empty dict {} when not specified.
        path: Override the config file location (defaults to CONFIG_PATH).
    """
    if fallback is _UNSET:
        fallback = {}
    path = path or CONFIG_PATH
    try:
        with open(path, 'r') as f:
            cfg = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, PermissionError):
        return fallback

    for warning in check_config_permissions(path):
        log.warning(warning)
    for warning in validate_config(cfg):
        log.warning(warning)
    return cfg
