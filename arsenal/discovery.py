import re
import logging
from pathlib import Path
from typing import Dict, List, Union

import yaml
from pydantic import ValidationError

from .exceptions import ContentRootNotFoundError
from .serializers import DiscoveredSkill, DiscoveryResult, SkillMetadata, SkillProblem

logger = logging.getLogger(__name__)

# Header block: a leading `---` line, the YAML body, a closing `---` line
FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?\r?\n)---[ \t]*(?:\r?\n|\Z)", re.DOTALL)

PACKAGE_SKILLS_DIR = "skills"


class MetadataError(ValueError):
    """A skill definition's header block is missing or unusable."""


def parse_skill_metadata(content: str) -> SkillMetadata:
    """Parse the YAML front-matter of a skill definition.

    Raises:
        MetadataError: if there is no header block, it is not valid YAML,
            it is not a mapping, or its fields have the wrong shape.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        raise MetadataError("no YAML frontmatter found")

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise MetadataError(f"invalid YAML frontmatter: {e}")

    if not isinstance(data, dict):
        raise MetadataError("YAML frontmatter must be a mapping")

    try:
        return SkillMetadata.from_mapping(data)
    except ValidationError as e:
        raise MetadataError(f"invalid metadata fields: {e}")


class SkillDiscovery:
    """Finds skills published under `<root>/<package>/skills/<name>/<file>`.

    The walk is bounded to exactly those two directory levels and visits
    packages and skills in name order, so results are reproducible. When two
    packages publish the same skill name, the package sorting last wins and
    the superseded definition is reported as a problem.
    """

    def __init__(self, content_root: Union[str, Path], definition_file: str = "SKILL.md"):
        self.content_root = Path(content_root)
        self.definition_file = definition_file

    def discover(self) -> DiscoveryResult:
        if not self.content_root.is_dir():
            raise ContentRootNotFoundError(self.content_root)

        found: Dict[str, DiscoveredSkill] = {}
        problems: List[SkillProblem] = []

        for package_dir in self._subdirs(self.content_root):
            skills_dir = package_dir / PACKAGE_SKILLS_DIR
            if not skills_dir.is_dir():
                continue

            try:
                skill_dirs = self._subdirs(skills_dir)
            except OSError as e:
                logger.error(f"Cannot read {skills_dir}: {e}")
                problems.append(
                    SkillProblem(
                        name=PACKAGE_SKILLS_DIR,
                        package=package_dir.name,
                        path=skills_dir,
                        reason=f"unreadable skills directory: {e}",
                    )
                )
                continue

            for skill_dir in skill_dirs:
                definition = skill_dir / self.definition_file
                if not definition.is_file():
                    continue

                skill, problem = self._load(package_dir.name, skill_dir, definition)
                if problem is not None:
                    logger.warning(
                        f"Skipping skill {problem.name} from {problem.package}: {problem.reason}"
                    )
                    problems.append(problem)
                    continue

                previous = found.pop(skill.name, None)
                if previous is not None:
                    reason = f"duplicate skill name, superseded by {skill.source_package}"
                    logger.warning(
                        f"Skill {skill.name} from {previous.source_package}: {reason}"
                    )
                    problems.append(
                        SkillProblem(
                            name=previous.name,
                            package=previous.source_package,
                            path=previous.definition_path,
                            reason=reason,
                            superseded=True,
                        )
                    )
                found[skill.name] = skill

        skills = sorted(found.values(), key=lambda s: s.name)
        logger.debug(
            f"Discovered {len(skills)} skill(s) in {self.content_root} "
            f"({len(problems)} skipped)"
        )
        return DiscoveryResult(skills=skills, problems=problems)

    def _load(self, package: str, skill_dir: Path, definition: Path):
        def problem(reason: str) -> SkillProblem:
            return SkillProblem(name=skill_dir.name, package=package, path=definition, reason=reason)

        try:
            content = definition.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return None, problem(f"unreadable definition: {e}")

        try:
            metadata = parse_skill_metadata(content)
        except MetadataError as e:
            return None, problem(str(e))

        skill = DiscoveredSkill(
            name=skill_dir.name,
            source_package=package,
            definition_path=skill_dir.absolute(),
            metadata=metadata,
        )
        return skill, None

    @staticmethod
    def _subdirs(directory: Path) -> List[Path]:
        return sorted(
            (p for p in directory.iterdir() if p.is_dir() and not p.name.startswith(".")),
            key=lambda p: p.name,
        )
