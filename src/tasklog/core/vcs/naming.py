"""Branch and worktree name derivation.

Names are derived from a task (or its parent story) title:

    >>> sanitize_branch_name("Fix bug #123 in the Parser", 10, 4)
    '10-fix-bug-123-in'
    >>> sanitize_branch_name("!!!", 45)
    'task-45'

Derivation is idempotent: feeding a derived name back in as the title
yields the same name, so re-running ``work-on`` always lands on the same
branch and worktree.
"""

from __future__ import annotations

import re
from pathlib import Path

from tasklog.core.constants import DEFAULT_BRANCH_TITLE_WORDS, MAX_BRANCH_NAME_LENGTH

from .types import WorktreePrefix

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_CHARS_RE = re.compile(r"[^a-z0-9-]")
_DASHES_RE = re.compile(r"-+")


def _slugify(title: str) -> str:
    slug = _WHITESPACE_RE.sub("-", title.lower())
    slug = _INVALID_CHARS_RE.sub("", slug)
    return _DASHES_RE.sub("-", slug).strip("-")


def sanitize_branch_name(
    title: str,
    task_id: int,
    word_limit: int = DEFAULT_BRANCH_TITLE_WORDS,
) -> str:
    """Turn a title into ``<id>-<first words>``, or ``task-<id>`` if nothing is left."""
    fallback = f"task-{task_id}"
    slug = _slugify(title)
    if not slug or slug == fallback:
        return fallback

    prefix = f"{task_id}-"
    if slug.startswith(prefix):
        slug = slug[len(prefix) :]
    words = [word for word in slug.split("-") if word][: max(word_limit, 1)]
    if not words:
        return fallback

    name = prefix + "-".join(words)
    return name[:MAX_BRANCH_NAME_LENGTH].rstrip("-")


def derive_project_name(project_dir: Path) -> str:
    """Last path component of the project directory."""
    name = Path(project_dir).resolve().name
    if not name:
        raise ValueError(f"Could not extract project name from path: {project_dir}")
    return name


def derive_worktree_path(
    project_dir: Path,
    title: str,
    task_id: int,
    word_limit: int = DEFAULT_BRANCH_TITLE_WORDS,
    prefix: WorktreePrefix = WorktreePrefix.PROJECT_NAME,
) -> Path:
    """Sibling directory of ``project_dir`` for the task's worktree.

    ``<parent>/<project-name>-<branch-name>``, or ``<parent>/<branch-name>``
    when ``prefix`` is ``none``.
    """
    project_dir = Path(project_dir).resolve()
    branch_name = sanitize_branch_name(title, task_id, word_limit)
    if prefix == WorktreePrefix.NONE:
        return project_dir.parent / branch_name
    return project_dir.parent / f"{derive_project_name(project_dir)}-{branch_name}"


__all__ = ["sanitize_branch_name", "derive_project_name", "derive_worktree_path"]
