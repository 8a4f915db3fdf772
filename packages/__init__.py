"""Top-level namespace for the Botsy Python packages.

Importing ``packages`` loads ``.env`` files once so that every entry point
(API server, tests, scripts) sees the same environment.
"""

from __future__ import annotations

from .env import load_env

load_env()

__all__ = ["load_env"]
