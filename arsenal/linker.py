import os
import logging
from pathlib import Path
from typing import List, Optional, Union

from .discovery import SkillDiscovery
from .exceptions import ContentRootNotFoundError
from .rules import SOURCE_KEY, MergeResult, RuleStore
from .serializers import ArsenalSettings, DiscoveredSkill, LinkReport, LinkStatus
from .utils import (
    get_default_workspace_root,
    is_plain_name,
    load_settings,
    relative_link_target,
)

logger = logging.getLogger(__name__)


class SkillLinker:
    """Links package-published skills into a workspace and merges their rules.

    Skills found under `<workspace>/.context/<package>/skills/<name>/` are
    exposed as relative symlinks in `<workspace>/.claude/skills/gems/<name>`,
    and their front-matter becomes an entry in
    `<workspace>/.claude/config/skill-rules.json` marked `_linked: true`.

    Entries without `_linked: true` belong to the project and are never
    overwritten or removed, and a real file or directory sitting where a link
    would go is left alone. Running link() again with unchanged content is a
    no-op.
    """

    def __init__(
        self,
        workspace_root: Optional[Union[str, Path]] = None,
        settings: Optional[ArsenalSettings] = None,
    ):
        """
        Args:
            workspace_root: Project directory to provision. Defaults to the
                current working directory.
            settings: Workspace layout. Loaded from the workspace when omitted.
        """
        self.root = (
            Path(workspace_root).resolve() if workspace_root else get_default_workspace_root()
        )
        self.settings = settings if settings is not None else load_settings(self.root)

        self.content_root = self.settings.content_root(self.root)
        self.links_dir = self.settings.links_root(self.root)
        self.rules = RuleStore(self.settings.rules_path(self.root))
        self.discovery = SkillDiscovery(self.content_root, self.settings.skill_file)

        # Outcome of the most recent link()/unlink() call
        self.report = LinkReport()

    def link_path(self, name: str) -> Path:
        return self.links_dir / name

    def link(self) -> bool:
        """Link every discovered skill and merge its activation rule.

        Returns False only when the content root does not exist.

        Raises:
            RuleFileError: if the existing rule file is not valid JSON.
        """
        self.report = LinkReport()

        try:
            result = self.discovery.discover()
        except ContentRootNotFoundError:
            logger.warning(
                f"No {self.settings.context_dir} directory found in {self.root}. "
                "Install package content first."
            )
            return False

        for problem in result.problems:
            status = LinkStatus.SKIPPED_DUPLICATE if problem.superseded else LinkStatus.SKIPPED_METADATA
            self.report.add(problem.name, status, source=problem.package, detail=problem.reason)

        if not result.skills:
            logger.info(f"No skills found in {self.content_root}")
            return True

        # A corrupt rule file must abort before any link is touched
        table = self.rules.load()

        self.links_dir.mkdir(parents=True, exist_ok=True)
        mergeable: List[DiscoveredSkill] = [s for s in result.skills if self._link_one(s)]

        for skill in mergeable:
            if self.rules.merge(table, skill) is MergeResult.SKIPPED_PROJECT_RULE:
                logger.info(f"  -> {skill.name} (rule exists, skipping)")
                self.report.add(
                    skill.name,
                    LinkStatus.SKIPPED_RULE_EXISTS,
                    source=skill.source_package,
                    detail="project rule exists",
                )

        if mergeable:
            self.rules.save(table)

        logger.info(f"Linked {self.report.linked} skill(s) from {self.settings.context_dir}/")
        return True

    def _link_one(self, skill: DiscoveredSkill) -> bool:
        """Create or refresh one symlink. Returns True if its rule should be merged."""
        name, source = skill.name, skill.source_package

        if not is_plain_name(name):
            self.report.add(name, LinkStatus.FAILED, source=source, detail="invalid skill name")
            logger.error(f"Refusing to link skill with invalid name: {name!r}")
            return False

        link_path = self.link_path(name)
        target = relative_link_target(self.links_dir, skill.definition_path)
        if not target:
            self.report.add(name, LinkStatus.FAILED, source=source, detail="link would point at itself")
            logger.error(f"Refusing to link {name}: source is the link directory")
            return False

        status = LinkStatus.LINKED
        if link_path.is_symlink():
            current = os.readlink(link_path)
            if current == target:
                self.report.add(name, LinkStatus.ALREADY_LINKED, source=source)
                logger.info(f"  -> {name} (already linked)")
                return True
            logger.debug(f"Replacing stale link {link_path} -> {current}")
            status = LinkStatus.RELINKED
            try:
                link_path.unlink()
            except OSError as e:
                self.report.add(name, LinkStatus.FAILED, source=source, detail=str(e))
                logger.error(f"Failed to remove stale link {link_path}: {e}")
                return False
        elif link_path.exists():
            self.report.add(name, LinkStatus.SKIPPED_EXISTS, source=source, detail="path exists")
            logger.warning(f"Skipping {name} ({link_path} exists and is not a symlink)")
            return False

        try:
            os.symlink(target, link_path, target_is_directory=True)
        except OSError as e:
            self.report.add(name, LinkStatus.FAILED, source=source, detail=str(e))
            logger.error(f"Failed to link {name}: {e}")
            return False

        self.report.linked += 1
        self.report.add(name, status, source=source, detail=target)
        logger.info(f"  Linked {name} (from {source})")
        return True

    def unlink(self) -> bool:
        """Remove every linked skill's symlink and rule entry.

        Project-owned entries and non-symlink paths are left untouched. A
        symlink that cannot be removed is reported as failed and its rule
        entry is kept. Always returns True.

        Raises:
            RuleFileError: if the existing rule file is not valid JSON.
        """
        self.report = LinkReport()

        table = self.rules.load()
        linked = self.rules.linked_names(table)
        if not linked:
            logger.info("No linked skills to remove")
            return True

        # A link that could not be removed keeps its rule so a later unlink() retries it
        stuck: List[str] = []
        for name in linked:
            if not is_plain_name(name):
                logger.warning(f"Not removing a link for invalid skill name {name!r}")
                continue

            source = table[name].get(SOURCE_KEY)
            link_path = self.link_path(name)
            if not link_path.is_symlink():
                logger.debug(f"No symlink at {link_path}, leaving filesystem alone")
                continue

            try:
                link_path.unlink()
            except OSError as e:
                stuck.append(name)
                self.report.add(name, LinkStatus.FAILED, source=source, detail=str(e))
                logger.error(f"Failed to unlink {name}: {e}")
                continue

            self.report.removed += 1
            self.report.add(name, LinkStatus.UNLINKED, source=source)
            logger.info(f"  Unlinked {name}")

        self.rules.unmerge(table, [name for name in linked if name not in stuck])
        self.rules.save(table)

        logger.info(f"Unlinked {self.report.removed} skill(s)")
        return True
