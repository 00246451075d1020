# Rule Store: load, merge and persist .claude/config/skill-rules.json

import os
import json
import logging
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .exceptions import RuleFileError
from .serializers import DiscoveredSkill, RuleEntry, _as_list

logger = logging.getLogger(__name__)

META_KEY = "_meta"
LINKED_KEY = "_linked"
SOURCE_KEY = "_source"

DEFAULT_META = {
    "version": "1.0",
    "description": "Skill activation rules for Claude Code",
}

RuleTable = Dict[str, Any]


class MergeResult(str, Enum):
    MERGED = "merged"
    SKIPPED_PROJECT_RULE = "skipped_project_rule"


def default_table() -> RuleTable:
    return {META_KEY: dict(DEFAULT_META)}


def is_linked_entry(entry: Any) -> bool:
    """Only entries explicitly marked `_linked: true` belong to the linker."""
    return isinstance(entry, dict) and entry.get(LINKED_KEY) is True


def _pick(config: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if config.get(key) is not None:
            return config[key]
    return None


def _normalize_triggers(triggers: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if triggers is None:
        return None
    if not isinstance(triggers, Mapping):
        raise ValueError(f"trigger group must be a mapping, got {type(triggers).__name__}")

    normalized = {
        "keywords": _pick(triggers, "keywords") or [],
        "intentPatterns": _pick(triggers, "intentPatterns", "intent_patterns") or [],
        "pathPatterns": _pick(triggers, "pathPatterns", "path_patterns") or [],
        "contentPatterns": _pick(triggers, "contentPatterns", "content_patterns") or [],
    }
    return {k: _as_list(v) for k, v in normalized.items() if v}


def normalize_rule_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize a hand-authored rule into the skill-rules.json shape.

    Accepts camelCase or snake_case keys. `type` is always written (empty
    when not given), `enforcement` defaults to "suggest" and `priority` to
    "medium". Trigger groups that are not given are omitted, and empty
    trigger lists are dropped.

    Raises:
        ValueError: if a trigger group or trigger list has the wrong shape.
    """
    rule_type = _pick(config, "type")
    entry = {
        "type": str(rule_type) if rule_type is not None else "",
        "enforcement": str(_pick(config, "enforcement") or "suggest"),
        "priority": str(_pick(config, "priority") or "medium"),
        "promptTriggers": _normalize_triggers(
            _pick(config, "promptTriggers", "prompt_triggers")
        ),
        "fileTriggers": _normalize_triggers(_pick(config, "fileTriggers", "file_triggers")),
    }
    return {k: v for k, v in entry.items() if v is not None}


class RuleStore:
    """Owns the activation-rule table on disk.

    The table is a plain JSON object keyed by skill name. Unknown keys and
    the reserved `_meta` entry are carried through untouched.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> RuleTable:
        """Read the rule table, or a fresh one if the file does not exist.

        Raises:
            RuleFileError: if the file is not valid JSON or not a JSON object.
        """
        if not self.path.exists():
            logger.debug(f"No rule file at {self.path}, starting from defaults")
            return default_table()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                table = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RuleFileError(self.path, str(e)) from e

        if not isinstance(table, dict):
            raise RuleFileError(self.path, "top level must be a JSON object")
        return table

    def save(self, table: RuleTable) -> None:
        """Replace the rule file with `table`, written atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(table, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Saved {len(table)} rule table entries to {self.path}")

    # -- linker-owned entries --------------------------------------------

    def merge(self, table: RuleTable, skill: DiscoveredSkill) -> MergeResult:
        """Install the rule for a linked skill unless the project owns one."""
        if skill.name in table and not is_linked_entry(table[skill.name]):
            logger.debug(f"{skill.name}: rule exists, skipping")
            return MergeResult.SKIPPED_PROJECT_RULE

        table[skill.name] = RuleEntry.from_skill(skill).to_json()
        return MergeResult.MERGED

    def unmerge(self, table: RuleTable, names: Iterable[str]) -> None:
        """Delete `names` from the table. Performs no ownership check."""
        for name in names:
            table.pop(name, None)

    @staticmethod
    def linked_names(table: RuleTable) -> List[str]:
        return [name for name, entry in table.items() if is_linked_entry(entry)]

    # -- project-owned entries -------------------------------------------

    @staticmethod
    def add_rule(table: RuleTable, name: str, config: Mapping[str, Any]) -> Dict[str, Any]:
        entry = normalize_rule_config(config)
        table[name] = entry
        return entry

    @staticmethod
    def remove_rule(table: RuleTable, name: str) -> Optional[Any]:
        return table.pop(name, None)

    @staticmethod
    def get_rule(table: RuleTable, name: str) -> Optional[Any]:
        return table.get(name)
