import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from .rules import META_KEY, is_linked_entry
from .serializers import ENFORCEMENT_LEVELS, PRIORITIES, ArsenalSettings, ValidationResult
from .utils import get_default_workspace_root, load_settings

logger = logging.getLogger(__name__)

HOOK_EXTENSIONS = (".ts", ".js")
COMMAND_EXTENSION = ".md"


class Validator:
    """Checks that a workspace's skills, rules, hooks, agents and commands are well-formed."""

    def __init__(
        self,
        workspace_root: Optional[Union[str, Path]] = None,
        settings: Optional[ArsenalSettings] = None,
    ):
        self.root = Path(workspace_root) if workspace_root else get_default_workspace_root()
        self.settings = settings if settings is not None else load_settings(self.root)
        self.claude_dir = self.root / self.settings.claude_dir
        self._warnings: List[str] = []

    def validate_all(self) -> ValidationResult:
        self._warnings = []
        errors: List[str] = []

        errors.extend(self.validate_skill_rules())
        errors.extend(self.validate_skills())
        errors.extend(self.validate_hooks())
        errors.extend(self.validate_agents())
        errors.extend(self.validate_commands())

        logger.debug(
            f"Validated {self.root}: {len(errors)} error(s), {len(self._warnings)} warning(s)"
        )
        return ValidationResult(errors=errors, warnings=list(self._warnings))

    def validate_skill_rules(self) -> List[str]:
        errors: List[str] = []
        rules_path = self.settings.rules_path(self.root)

        if not rules_path.exists():
            return errors

        try:
            with open(rules_path, "r", encoding="utf-8") as f:
                rules = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return [f"Invalid JSON in {rules_path.name}: {e}"]

        if not isinstance(rules, dict):
            return [f"{rules_path.name} must contain a JSON object"]

        for skill_name, config in rules.items():
            if skill_name == META_KEY:
                continue
            if not isinstance(config, dict):
                errors.append(f"Skill '{skill_name}': rule must be an object")
                continue

            if not config.get("type"):
                errors.append(f"Skill '{skill_name}': missing 'type'")
            if config.get("enforcement") not in ENFORCEMENT_LEVELS:
                errors.append(f"Skill '{skill_name}': invalid enforcement level")
            if config.get("priority") not in PRIORITIES:
                errors.append(f"Skill '{skill_name}': invalid priority")

            if is_linked_entry(config):
                link_path = self.settings.links_root(self.root) / skill_name
                if not link_path.is_symlink():
                    self._warnings.append(
                        f"Skill '{skill_name}': linked rule has no symlink at "
                        f"{link_path.relative_to(self.root)}"
                    )

        return errors

    def validate_skills(self) -> List[str]:
        errors: List[str] = []
        skills_dir = self.settings.skill_root(self.root)

        if not skills_dir.is_dir():
            return errors

        for skill_dir in self._skill_dirs(skills_dir):
            label = str(skill_dir.relative_to(skills_dir))

            if skill_dir.is_symlink() and not skill_dir.exists():
                errors.append(f"Broken skill link: {label}")
                continue

            skill_file = skill_dir / self.settings.skill_file
            if not skill_file.is_file():
                errors.append(f"Missing {self.settings.skill_file} in {label}")
                continue

            with open(skill_file, "r", encoding="utf-8", errors="replace") as f:
                line_count = sum(1 for _ in f)
            if line_count > self.settings.max_skill_lines:
                errors.append(
                    f"{label}/{self.settings.skill_file} exceeds "
                    f"{self.settings.max_skill_lines} lines ({line_count} lines)"
                )

        return errors

    def _skill_dirs(self, skills_dir: Path) -> List[Path]:
        # gems/ and local/ are groupings; their children are the skills
        groups = {self.settings.links_dir, self.settings.local_skills_dir}
        found: List[Path] = []
        for entry in sorted(skills_dir.iterdir()):
            if entry.name in groups and entry.is_dir() and not entry.is_symlink():
                found.extend(
                    sorted(p for p in entry.iterdir() if p.is_dir() or p.is_symlink())
                )
            elif entry.is_dir() or entry.is_symlink():
                found.append(entry)
        return found

    def validate_hooks(self) -> List[str]:
        hooks_dir = self.claude_dir / "hooks"
        if not hooks_dir.is_dir():
            return []

        return [
            f"Hook file has invalid extension: {path.name}"
            for path in sorted(hooks_dir.iterdir())
            if path.is_file() and not path.name.endswith(HOOK_EXTENSIONS)
        ]

    def validate_agents(self) -> List[str]:
        agents_dir = self.claude_dir / "agents"
        if not agents_dir.is_dir():
            return []

        return [
            f"Agent file should be in a category directory: {path.name}"
            for path in sorted(agents_dir.iterdir())
            if path.is_file()
        ]

    def validate_commands(self) -> List[str]:
        commands_dir = self.claude_dir / "commands"
        if not commands_dir.is_dir():
            return []

        return [
            f"Command file should be markdown: {path.name}"
            for path in sorted(commands_dir.iterdir())
            if path.is_file() and not path.name.endswith(COMMAND_EXTENSION)
        ]
