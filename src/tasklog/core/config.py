"""Project configuration loaded from ``.tasklog.yaml``.

The file is discovered by walking up from the starting directory; the
directory that contains it becomes the base directory for the task logs
and the execution state. Without a config file every option takes its
default and the starting directory is the base directory.

Example ``.tasklog.yaml``::

    use_git: true
    worktree_management: true
    worktree_prefix: none
    base_branch: main
    tasks_dir: ../shared-tasks
    branch_title_words: 3
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from tasklog.errors import ConfigError

from .constants import CONFIG_FILENAME, DEFAULT_BRANCH_TITLE_WORDS, DEFAULT_TASKS_DIR
from .paths import TaskPaths, get_main_repo_root
from .vcs.types import WorktreePrefix

logger = logging.getLogger(__name__)

_BOOL_KEYS = ("use_git", "branch_management", "worktree_management")
KNOWN_KEYS = frozenset(
    {*_BOOL_KEYS, "worktree_prefix", "base_branch", "tasks_dir", "branch_title_words"}
)


@dataclass
class TasklogConfig:
    """Resolved configuration.

    Attributes:
        use_git: Commit task log changes to the git repository in the tasks dir.
        branch_management: Create or switch to a branch per task or story.
        worktree_management: Use a separate worktree per task or story.
        worktree_prefix: Whether worktree directories carry the project name.
        base_branch: Branch new task branches start from (default branch if unset).
        tasks_dir: ``tasks_dir`` exactly as configured, if it was.
        branch_title_words: Title words kept in branch and worktree names.
        base_dir: Directory containing the config file (or the start dir).
        resolved_tasks_dir: Absolute tasks directory.
        main_repo_dir: Main repository root of ``base_dir``.
        config_file: The file the values came from, if any.
    """

    base_dir: Path
    resolved_tasks_dir: Path
    main_repo_dir: Path
    use_git: bool = False
    branch_management: bool = False
    worktree_management: bool = False
    worktree_prefix: WorktreePrefix = WorktreePrefix.PROJECT_NAME
    base_branch: str | None = None
    tasks_dir: str | None = None
    branch_title_words: int = DEFAULT_BRANCH_TITLE_WORDS
    config_file: Path | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def paths(self) -> TaskPaths:
        return TaskPaths(self.resolved_tasks_dir)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view of the configured (not derived) values."""
        data: dict[str, Any] = {
            "use_git": self.use_git,
            "branch_management": self.branch_management,
            "worktree_management": self.worktree_management,
            "worktree_prefix": self.worktree_prefix.value,
            "branch_title_words": self.branch_title_words,
        }
        if self.base_branch is not None:
            data["base_branch"] = self.base_branch
        if self.tasks_dir is not None:
            data["tasks_dir"] = self.tasks_dir
        return data


def find_config_file(start_dir: Path) -> Path | None:
    """Return the nearest ``.tasklog.yaml`` at or above ``start_dir``."""
    directory = Path(start_dir).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def validate_config(data: Any) -> dict[str, Any]:
    """Type-check raw config values. Returns the mapping as a plain dict.

    Raises:
        ConfigError: On a non-mapping document or a value of the wrong type.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping, got {type(data).__name__}")

    config = dict(data)
    for key in _BOOL_KEYS:
        if key in config and not isinstance(config[key], bool):
            raise ConfigError(
                f"Expected boolean for {key}, got {type(config[key]).__name__}", key=key
            )

    if "worktree_prefix" in config:
        value = config["worktree_prefix"]
        try:
            config["worktree_prefix"] = WorktreePrefix(value)
        except ValueError:
            valid = ", ".join(p.value for p in WorktreePrefix)
            raise ConfigError(
                f"Invalid worktree_prefix {value!r}: expected one of {valid}",
                key="worktree_prefix",
            ) from None

    if "base_branch" in config:
        value = config["base_branch"]
        if not isinstance(value, str):
            raise ConfigError(
                f"Expected string for base_branch, got {type(value).__name__}", key="base_branch"
            )
        if not value.strip():
            raise ConfigError("base_branch must not be empty", key="base_branch")

    if "tasks_dir" in config:
        value = config["tasks_dir"]
        if not isinstance(value, str):
            raise ConfigError(
                f"Expected string for tasks_dir, got {type(value).__name__}", key="tasks_dir"
            )
        if not value.strip():
            raise ConfigError("tasks_dir must not be empty", key="tasks_dir")

    if "branch_title_words" in config:
        value = config["branch_title_words"]
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(
                f"branch_title_words must be a positive integer, got {value!r}",
                key="branch_title_words",
            )

    unknown = sorted(set(config) - KNOWN_KEYS)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
    return config


def _read_yaml(config_file: Path) -> Any:
    yaml = YAML(typ="safe")
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return yaml.load(f)
    except YAMLError as exc:
        raise ConfigError(f"Failed to parse {config_file}: {exc}") from exc


def _resolve_tasks_dir(config_dir: Path, raw: dict[str, Any]) -> Path:
    tasks_dir = raw.get("tasks_dir", DEFAULT_TASKS_DIR)
    resolved = Path(tasks_dir)
    if not resolved.is_absolute():
        resolved = config_dir / resolved

    if "tasks_dir" in raw and not resolved.exists():
        raise ConfigError(
            f"Configured tasks_dir does not exist: {tasks_dir}\n"
            f"Resolved path: {resolved}\n"
            f"Relative paths are resolved from the config file directory ({config_dir}), "
            "not the current directory.",
            key="tasks_dir",
        )
    return resolved.resolve() if resolved.exists() else resolved


def load_config(start_dir: Path | None = None) -> TasklogConfig:
    """Find, parse, validate and resolve the configuration.

    Raises:
        ConfigError: If the file is malformed or a value is invalid.
    """
    start = Path(start_dir or Path.cwd()).resolve()
    config_file = find_config_file(start)

    if config_file is None:
        raw: dict[str, Any] = {}
        config_dir = start
    else:
        raw = validate_config(_read_yaml(config_file))
        config_dir = config_file.parent

    resolved_tasks_dir = _resolve_tasks_dir(config_dir, raw)
    worktree_management = raw.get("worktree_management", False)
    if "use_git" in raw:
        use_git = raw["use_git"]
    else:
        use_git = (resolved_tasks_dir / ".git").exists()

    return TasklogConfig(
        base_dir=config_dir,
        resolved_tasks_dir=resolved_tasks_dir,
        main_repo_dir=get_main_repo_root(config_dir),
        use_git=use_git,
        # Worktrees are always tied to a branch.
        branch_management=raw.get("branch_management", False) or worktree_management,
        worktree_management=worktree_management,
        worktree_prefix=raw.get("worktree_prefix", WorktreePrefix.PROJECT_NAME),
        base_branch=raw.get("base_branch"),
        tasks_dir=raw.get("tasks_dir"),
        branch_title_words=raw.get("branch_title_words", DEFAULT_BRANCH_TITLE_WORDS),
        config_file=config_file,
        extra={k: v for k, v in raw.items() if k not in KNOWN_KEYS},
    )


def validate_git_repo(config: TasklogConfig) -> None:
    """Raise ConfigError if git mode is on but the tasks dir is not a repository."""
    if config.use_git and not (config.resolved_tasks_dir / ".git").exists():
        raise ConfigError(
            f"Git mode enabled but {config.resolved_tasks_dir / '.git'} not found",
            key="use_git",
        )


def save_config(config_dir: Path, values: dict[str, Any]) -> Path:
    """Merge ``values`` into ``<config_dir>/.tasklog.yaml``.

    Unrelated keys and comments in an existing file are preserved.
    """
    validate_config(values)
    config_file = config_dir / CONFIG_FILENAME

    yaml = YAML()
    yaml.preserve_quotes = True

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    else:
        data = {}
        config_dir.mkdir(parents=True, exist_ok=True)

    for key, value in values.items():
        data[key] = value.value if isinstance(value, WorktreePrefix) else value

    with open(config_file, "w", encoding="utf-8") as f:
        yaml.dump(data, f)

    logger.info("Saved config to %s", config_file)
    return config_file


__all__ = [
    "TasklogConfig",
    "KNOWN_KEYS",
    "find_config_file",
    "validate_config",
    "load_config",
    "validate_git_repo",
    "save_config",
]
