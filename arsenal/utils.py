import os
import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from dotenv import dotenv_values
from pydantic import ValidationError

from .serializers import ArsenalSettings

logger = logging.getLogger(__name__)

# Environment variables that override settings.json, mapped to setting names
ENV_OVERRIDES = {
    "ARSENAL_CONTEXT_DIR": "context_dir",
    "ARSENAL_CLAUDE_DIR": "claude_dir",
    "ARSENAL_SKILL_FILE": "skill_file",
}


# ---------------------------------------------------------------------------
# Workspace & settings
# ---------------------------------------------------------------------------


def get_default_workspace_root() -> Path:
    """Return the current working directory as the default workspace root."""
    return Path(os.getcwd()).resolve()


def get_settings_path(workspace_root: Union[str, Path]) -> Path:
    """Return the path to the workspace-local settings.json file."""
    return Path(workspace_root) / ".arsenal" / "settings.json"


def load_settings(workspace_root: Union[str, Path]) -> ArsenalSettings:
    """Load workspace settings.

    Layers, lowest precedence first: built-in defaults, the workspace
    `.arsenal/settings.json`, then ARSENAL_* environment variables (a
    workspace `.env` file sits below the real environment and is never
    written into `os.environ`).
    """
    workspace_root = Path(workspace_root)
    data = {}

    path = get_settings_path(workspace_root)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                data.update(loaded)
            else:
                logger.error(f"Ignoring settings in {path}: top level must be an object")
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.error(f"Failed to load settings from {path}: {e}")

    env = {}
    dotenv_path = workspace_root / ".env"
    if dotenv_path.exists():
        env.update(dotenv_values(dotenv_path))
    env.update(os.environ)

    for env_name, field in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            data[field] = value

    try:
        return ArsenalSettings.model_validate(data)
    except ValidationError as e:
        logger.error(f"Invalid settings for {workspace_root}, using defaults: {e}")
        return ArsenalSettings()


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def relative_link_target(from_dir: Union[str, Path], to: Union[str, Path]) -> str:
    """Relative path that reaches `to` when resolved from `from_dir`.

    Both paths are compared segment by segment; for every segment of
    `from_dir` past the common prefix one `..` is emitted, followed by the
    rest of `to`. Pure string arithmetic, no filesystem access.

    The inputs must share a common ancestor for the result to be meaningful.
    Identical inputs give an empty string.
    """
    from_parts = Path(from_dir).parts
    to_parts = Path(to).parts

    common = 0
    for a, b in zip(from_parts, to_parts):
        if a != b:
            break
        common += 1

    segments: List[str] = [".."] * (len(from_parts) - common)
    segments.extend(to_parts[common:])
    return os.sep.join(segments)


def is_plain_name(name: Optional[str]) -> bool:
    """True if `name` is usable as a single directory entry name."""
    if not name or name in (".", ".."):
        return False
    return os.sep not in name and (os.altsep is None or os.altsep not in name)
