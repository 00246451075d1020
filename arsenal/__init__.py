from .discovery import SkillDiscovery, parse_skill_metadata
from .exceptions import ArsenalError, ContentRootNotFoundError, RuleFileError
from .linker import SkillLinker
from .rules import RuleStore
from .serializers import (
    ArsenalSettings,
    DiscoveredSkill,
    LinkReport,
    LinkStatus,
    RuleEntry,
    SkillMetadata,
    ValidationResult,
)
from .utils import load_settings, relative_link_target
from .validator import Validator

__version__ = "0.1.0"

__all__ = [
    "ArsenalError",
    "ArsenalSettings",
    "ContentRootNotFoundError",
    "DiscoveredSkill",
    "LinkReport",
    "LinkStatus",
    "RuleEntry",
    "RuleFileError",
    "RuleStore",
    "SkillDiscovery",
    "SkillLinker",
    "SkillMetadata",
    "ValidationResult",
    "Validator",
    "load_settings",
    "parse_skill_metadata",
    "relative_link_target",
]
