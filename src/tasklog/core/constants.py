"""Shared path constants for the tasklog on-disk layout."""

from __future__ import annotations

CONFIG_FILENAME = ".tasklog.yaml"
DEFAULT_TASKS_DIR = ".tasklog"
TASKS_FILENAME = "tasks.jsonl"
COMPLETE_FILENAME = "complete.jsonl"
EXECUTION_STATE_FILENAME = ".tasklog-current.json"

DEFAULT_BRANCH_TITLE_WORDS = 4
MAX_BRANCH_NAME_LENGTH = 200

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TASKS_DIR",
    "TASKS_FILENAME",
    "COMPLETE_FILENAME",
    "EXECUTION_STATE_FILENAME",
    "DEFAULT_BRANCH_TITLE_WORDS",
    "MAX_BRANCH_NAME_LENGTH",
]
