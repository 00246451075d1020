import json
import logging
import pytest
from pathlib import Path

from arsenal.__main__ import main

ALPHA = "---\ntype: domain\nenforcement: suggest\npriority: high\n---\n# Alpha\n"


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() installs a RichHandler on the root logger; put things back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("ARSENAL_CONTEXT_DIR", "ARSENAL_CLAUDE_DIR", "ARSENAL_SKILL_FILE"):
        monkeypatch.delenv(name, raising=False)
    skill_dir = tmp_path / ".context" / "pkg1" / "skills" / "alpha"
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(ALPHA)
    return tmp_path


def rules_path(root: Path) -> Path:
    return root / ".claude" / "config" / "skill-rules.json"


def test_link_command(workspace, capsys):
    assert main(["--root", str(workspace), "link"]) == 0

    out = capsys.readouterr().out
    assert "alpha" in out
    assert "Linked 1 skill(s)" in out
    assert (workspace / ".claude" / "skills" / "gems" / "alpha").is_symlink()


def test_link_without_content_root_exits_nonzero(tmp_path, capsys):
    assert main(["--root", str(tmp_path), "link"]) == 1
    assert "No .context directory found" in capsys.readouterr().out


def test_link_with_corrupt_rules_exits_nonzero(workspace, capsys):
    path = rules_path(workspace)
    path.parent.mkdir(parents=True)
    path.write_text("{ invalid json }")

    assert main(["--root", str(workspace), "link"]) == 1
    assert "Invalid JSON" in capsys.readouterr().out


def test_rules_with_undecodable_file_exits_nonzero(workspace, capsys):
    path = rules_path(workspace)
    path.parent.mkdir(parents=True)
    path.write_bytes(b'{"a": "\xff"}')

    assert main(["--root", str(workspace), "rules"]) == 1
    assert "Invalid JSON" in capsys.readouterr().out


def test_unlink_command(workspace, capsys):
    main(["--root", str(workspace), "link"])

    assert main(["--root", str(workspace), "unlink"]) == 0

    assert "Unlinked 1 skill(s)" in capsys.readouterr().out
    assert "alpha" not in json.loads(rules_path(workspace).read_text())


def test_unlink_with_nothing_linked(tmp_path):
    assert main(["--root", str(tmp_path), "unlink"]) == 0


def test_validate_command(workspace, capsys):
    main(["--root", str(workspace), "link"])
    capsys.readouterr()

    assert main(["--root", str(workspace), "validate"]) == 0
    assert "All configurations are valid!" in capsys.readouterr().out


def test_validate_command_reports_errors(workspace, capsys):
    commands = workspace / ".claude" / "commands"
    commands.mkdir(parents=True)
    (commands / "deploy.txt").write_text("content")

    assert main(["--root", str(workspace), "validate"]) == 1
    assert "deploy.txt" in capsys.readouterr().out


def test_rules_command_lists_owners(workspace, capsys):
    path = rules_path(workspace)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"custom": {"type": "guardrail", "priority": "low"}}))
    main(["--root", str(workspace), "link"])
    capsys.readouterr()

    assert main(["--root", str(workspace), "rules"]) == 0

    out = capsys.readouterr().out
    assert "custom" in out
    assert "project" in out
    assert "alpha" in out
    assert "pkg1" in out


def test_command_is_required(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
