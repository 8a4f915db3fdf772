"""Botsy admin backend: multi-tenant company, channel and knowledge APIs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .api import create_app

__all__ = ["create_app"]


def __getattr__(name: str):
    if name == "create_app":
        from .api import create_app

        return create_app
    raise AttributeError(name)
