"""CLI command modules for tasklog."""

from __future__ import annotations

from . import tasks, work

__all__ = ["tasks", "work"]
