"""
Version information for AlterBot.
"""

MAJOR = 1
MINOR = 0
PATCH = 0
STATUS = "Beta"


def get_version() -> str:
    """Get the full version string."""
    return f"{MAJOR}.{MINOR}.{PATCH}-{STATUS}"


def get_version_tuple() -> tuple:
    """Get version as tuple (major, minor, patch)."""
    return (MAJOR, MINOR, PATCH)


__version__ = get_version()
