import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .exceptions import ArsenalError
from .linker import SkillLinker
from .rules import LINKED_KEY, META_KEY, SOURCE_KEY, RuleStore
from .serializers import LinkReport, LinkStatus
from .utils import get_default_workspace_root, load_settings
from .validator import Validator

console = Console()

# ──────────────────────────────────────────────────────────────────────────────
# Output helpers
# ──────────────────────────────────────────────────────────────────────────────

STATUS_STYLES = {
    LinkStatus.LINKED: ("green", "linked"),
    LinkStatus.RELINKED: ("green", "relinked"),
    LinkStatus.ALREADY_LINKED: ("dim", "already linked"),
    LinkStatus.SKIPPED_EXISTS: ("yellow", "skipped, path exists"),
    LinkStatus.SKIPPED_METADATA: ("yellow", "skipped, missing metadata"),
    LinkStatus.SKIPPED_DUPLICATE: ("yellow", "skipped, duplicate name"),
    LinkStatus.SKIPPED_RULE_EXISTS: ("yellow", "rule exists, skipped"),
    LinkStatus.FAILED: ("red", "failed"),
    LinkStatus.UNLINKED: ("cyan", "unlinked"),
}


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def print_report(report: LinkReport):
    for outcome in report.outcomes:
        style, label = STATUS_STYLES[outcome.status]
        source = f" [dim](from {escape(outcome.source)})[/]" if outcome.source else ""
        detail = ""
        if outcome.detail and outcome.status not in (LinkStatus.LINKED, LinkStatus.RELINKED):
            detail = f" [dim]- {escape(outcome.detail)}[/]"
        console.print(f"  [{style}]{label:<26}[/] {escape(outcome.name)}{source}{detail}")


# ──────────────────────────────────────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────────────────────────────────────


def cmd_link(root: Path) -> int:
    linker = SkillLinker(root)
    ok = linker.link()
    print_report(linker.report)

    if not ok:
        console.print(
            f"[bold red]No {linker.settings.context_dir} directory found.[/] "
            "Install package content first."
        )
        return 1

    console.print(
        f"\n[bold]==>[/] Linked {linker.report.linked} skill(s) "
        f"from {linker.settings.context_dir}/"
    )
    console.print(
        f"[dim]To customize, edit {escape(str(linker.rules.path))}[/]"
    )
    return 0


def cmd_unlink(root: Path) -> int:
    linker = SkillLinker(root)
    linker.unlink()
    print_report(linker.report)
    console.print(f"\n[bold]==>[/] Unlinked {linker.report.removed} skill(s)")
    return 0


def cmd_validate(root: Path) -> int:
    result = Validator(root).validate_all()

    if result.valid:
        console.print("[green]All configurations are valid![/]")
    else:
        console.print("[bold red]Validation errors found:[/]")
        for error in result.errors:
            console.print(f"  - {escape(error)}")

    if result.warnings:
        console.print("\n[yellow]Warnings:[/]")
        for warning in result.warnings:
            console.print(f"  - {escape(warning)}")

    return 0 if result.valid else 1


def cmd_rules(root: Path) -> int:
    settings = load_settings(root)
    table = RuleStore(settings.rules_path(root)).load()

    grid = Table(box=box.SIMPLE_HEAD)
    grid.add_column("Skill", style="bold")
    grid.add_column("Type")
    grid.add_column("Enforcement")
    grid.add_column("Priority")
    grid.add_column("Owner")

    for name, entry in table.items():
        if name == META_KEY or not isinstance(entry, dict):
            continue
        owner = (
            f"linked ({entry.get(SOURCE_KEY)})" if entry.get(LINKED_KEY) is True else "project"
        )
        grid.add_row(
            escape(name),
            str(entry.get("type") or "-"),
            str(entry.get("enforcement") or "-"),
            str(entry.get("priority") or "-"),
            owner,
        )

    console.print(grid)
    return 0


COMMANDS = {
    "link": (cmd_link, "Link skills from installed packages"),
    "unlink": (cmd_unlink, "Remove linked skills and their rules"),
    "validate": (cmd_validate, "Validate the workspace configuration"),
    "rules": (cmd_rules, "Show the activation rule table"),
}


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the arsenal CLI."""
    parser = argparse.ArgumentParser(
        prog="arsenal",
        description="Link package-provided skills and manage activation rules",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Workspace root (defaults to the current directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, help_text) in COMMANDS.items():
        subparsers.add_parser(name, help=help_text)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    root = args.root.resolve() if args.root else get_default_workspace_root()
    handler, _ = COMMANDS[args.command]
    try:
        return handler(root)
    except ArsenalError as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
