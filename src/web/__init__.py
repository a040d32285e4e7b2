"""
HTTP control surface: dashboard page plus authenticated JSON endpoints.
"""

from .control_server import create_app, run_server

__all__ = ["create_app", "run_server"]
