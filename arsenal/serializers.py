from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ENFORCEMENT_LEVELS = ("suggest", "require", "block")
PRIORITIES = ("low", "medium", "high", "critical")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class ArsenalSettings(BaseModel):
    """Workspace layout. All directories are relative to the workspace root."""

    context_dir: str = Field(
        default=".context",
        description="External content root populated by installed packages",
    )
    claude_dir: str = Field(default=".claude", description="Assistant root")
    skills_dir: str = Field(default="skills", description="Skill root, under claude_dir")
    links_dir: str = Field(default="gems", description="Linked skills, under skills_dir")
    local_skills_dir: str = Field(
        default="local", description="Project-owned skills, under skills_dir"
    )
    config_dir: str = Field(default="config", description="Config root, under claude_dir")
    rules_file: str = Field(default="skill-rules.json")
    skill_file: str = Field(default="SKILL.md", description="Skill definition file name")
    max_skill_lines: int = Field(default=500, gt=0)

    model_config = ConfigDict(extra="ignore")

    def content_root(self, workspace: Path) -> Path:
        return workspace / self.context_dir

    def skill_root(self, workspace: Path) -> Path:
        return workspace / self.claude_dir / self.skills_dir

    def links_root(self, workspace: Path) -> Path:
        return self.skill_root(workspace) / self.links_dir

    def rules_path(self, workspace: Path) -> Path:
        return workspace / self.claude_dir / self.config_dir / self.rules_file


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    raise ValueError(f"expected a string or a list of strings, got {type(value).__name__}")


class SkillMetadata(BaseModel):
    """Activation metadata declared in a skill's front-matter.

    Keys may be given either camelCase (as written in SKILL.md headers and
    skill-rules.json) or snake_case; both shapes normalize to this record.
    """

    type: Optional[str] = None
    enforcement: Optional[str] = None
    priority: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    intent_patterns: List[str] = Field(default_factory=list, alias="intentPatterns")
    path_patterns: List[str] = Field(default_factory=list, alias="pathPatterns")
    content_patterns: List[str] = Field(default_factory=list, alias="contentPatterns")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("type", "enforcement", "priority", mode="before")
    @classmethod
    def _coerce_scalar(cls, v):
        if v is None:
            return None
        if isinstance(v, (dict, list)):
            raise ValueError("must be a scalar value")
        return str(v)

    @field_validator(
        "keywords", "intent_patterns", "path_patterns", "content_patterns", mode="before"
    )
    @classmethod
    def _coerce_list(cls, v):
        return _as_list(v)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SkillMetadata":
        """Build metadata from a parsed header, accepting non-string keys."""
        return cls.model_validate({str(k): v for k, v in data.items()})


class DiscoveredSkill(BaseModel):
    """A skill published by an external package."""

    name: str
    source_package: str
    definition_path: Path = Field(description="Directory holding the definition file")
    metadata: SkillMetadata


class SkillProblem(BaseModel):
    """A skill definition that discovery had to drop."""

    name: str
    package: str
    path: Path
    reason: str
    superseded: bool = Field(
        default=False, description="Dropped because another package published the same name"
    )


class DiscoveryResult(BaseModel):
    skills: List[DiscoveredSkill] = Field(default_factory=list)
    problems: List[SkillProblem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


class PromptTriggers(BaseModel):
    keywords: List[str] = Field(default_factory=list)
    intent_patterns: List[str] = Field(default_factory=list, alias="intentPatterns")

    model_config = ConfigDict(populate_by_name=True)


class FileTriggers(BaseModel):
    path_patterns: List[str] = Field(default_factory=list, alias="pathPatterns")
    content_patterns: List[str] = Field(default_factory=list, alias="contentPatterns")

    model_config = ConfigDict(populate_by_name=True)


class RuleEntry(BaseModel):
    """One persisted activation rule created by the linker."""

    type: Optional[str] = None
    enforcement: Optional[str] = None
    priority: Optional[str] = None
    prompt_triggers: PromptTriggers = Field(
        default_factory=PromptTriggers, alias="promptTriggers"
    )
    file_triggers: FileTriggers = Field(default_factory=FileTriggers, alias="fileTriggers")
    linked: bool = Field(default=True, alias="_linked")
    source: Optional[str] = Field(default=None, alias="_source")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_skill(cls, skill: DiscoveredSkill) -> "RuleEntry":
        meta = skill.metadata
        return cls(
            type=meta.type,
            enforcement=meta.enforcement,
            priority=meta.priority,
            prompt_triggers=PromptTriggers(
                keywords=meta.keywords, intent_patterns=meta.intent_patterns
            ),
            file_triggers=FileTriggers(
                path_patterns=meta.path_patterns, content_patterns=meta.content_patterns
            ),
            linked=True,
            source=skill.source_package,
        )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Link reports
# ---------------------------------------------------------------------------


class LinkStatus(str, Enum):
    LINKED = "linked"
    RELINKED = "relinked"
    ALREADY_LINKED = "already_linked"
    SKIPPED_EXISTS = "skipped_exists"
    SKIPPED_METADATA = "skipped_metadata"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_RULE_EXISTS = "skipped_rule_exists"
    FAILED = "failed"
    UNLINKED = "unlinked"


class SkillOutcome(BaseModel):
    name: str
    source: Optional[str] = None
    status: LinkStatus
    detail: str = ""


class LinkReport(BaseModel):
    """What a single link() or unlink() call did, skill by skill."""

    outcomes: List[SkillOutcome] = Field(default_factory=list)
    linked: int = 0
    removed: int = 0

    def add(self, name: str, status: LinkStatus, source: Optional[str] = None, detail: str = ""):
        self.outcomes.append(
            SkillOutcome(name=name, source=source, status=status, detail=detail)
        )

    def with_status(self, status: LinkStatus) -> List[SkillOutcome]:
        return [o for o in self.outcomes if o.status == status]


class ValidationResult(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors
