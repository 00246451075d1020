import os
import json
import pytest
from pathlib import Path

from arsenal.serializers import ArsenalSettings
from arsenal.utils import (
    ENV_OVERRIDES,
    get_settings_path,
    is_plain_name,
    load_settings,
    relative_link_target,
)


@pytest.fixture
def clean_env():
    """Make sure ARSENAL_* variables do not leak between tests."""
    for name in ENV_OVERRIDES:
        os.environ.pop(name, None)
    yield
    for name in ENV_OVERRIDES:
        os.environ.pop(name, None)


def test_relative_target_between_sibling_trees():
    target = relative_link_target("/a/b/gems", "/a/c/skills/x")

    assert target == os.path.join("..", "..", "c", "skills", "x")
    # Composing the link directory with the result lands on the target
    assert os.path.normpath(os.path.join("/a/b/gems", target)) == os.path.normpath("/a/c/skills/x")


def test_relative_target_for_workspace_layout():
    root = "/work/project"
    target = relative_link_target(
        f"{root}/.claude/skills/gems", f"{root}/.context/pkg1/skills/alpha"
    )
    assert target == os.path.join("..", "..", "..", ".context", "pkg1", "skills", "alpha")


def test_relative_target_descending_only():
    assert relative_link_target("/a/b", "/a/b/c/d") == os.path.join("c", "d")


def test_relative_target_ascending_only():
    assert relative_link_target("/a/b/c", "/a") == os.path.join("..", "..")


def test_relative_target_identical_paths_is_empty():
    assert relative_link_target("/a/b", "/a/b") == ""


def test_relative_target_accepts_path_objects(tmp_path):
    target = relative_link_target(tmp_path / "x" / "y", tmp_path / "z")
    assert target == os.path.join("..", "..", "z")


@pytest.mark.parametrize("name", ["alpha", "backend-dev", "skill_1", ".hidden"])
def test_plain_names(name):
    assert is_plain_name(name)


@pytest.mark.parametrize("name", ["", None, ".", "..", "a/b", "../escape"])
def test_names_that_are_not_plain(name):
    assert not is_plain_name(name)


def test_load_settings_defaults(tmp_path, clean_env):
    settings = load_settings(tmp_path)

    assert settings == ArsenalSettings()
    assert settings.rules_path(tmp_path) == tmp_path / ".claude" / "config" / "skill-rules.json"
    assert settings.links_root(tmp_path) == tmp_path / ".claude" / "skills" / "gems"
    assert settings.content_root(tmp_path) == tmp_path / ".context"


def test_load_settings_from_settings_file(tmp_path, clean_env):
    path = get_settings_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"context_dir": "vendor/context", "max_skill_lines": 200}))

    settings = load_settings(tmp_path)

    assert settings.context_dir == "vendor/context"
    assert settings.max_skill_lines == 200
    assert settings.claude_dir == ".claude"


def test_environment_overrides_settings_file(tmp_path, clean_env, monkeypatch):
    path = get_settings_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"context_dir": "from-file"}))
    monkeypatch.setenv("ARSENAL_CONTEXT_DIR", "from-env")

    assert load_settings(tmp_path).context_dir == "from-env"


def test_dotenv_file_is_loaded(tmp_path, clean_env):
    (tmp_path / ".env").write_text("ARSENAL_SKILL_FILE=skill.md\n")

    assert load_settings(tmp_path).skill_file == "skill.md"


def test_broken_settings_file_falls_back_to_defaults(tmp_path, clean_env):
    path = get_settings_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{ not json")

    assert load_settings(tmp_path) == ArsenalSettings()


def test_invalid_setting_values_fall_back_to_defaults(tmp_path, clean_env):
    path = get_settings_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"max_skill_lines": -1}))

    assert load_settings(tmp_path) == ArsenalSettings()


def test_dotenv_file_does_not_leak_into_other_workspaces(tmp_path, clean_env):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    (first / ".env").write_text("ARSENAL_CONTEXT_DIR=vendor\n")

    assert load_settings(first).context_dir == "vendor"

    assert "ARSENAL_CONTEXT_DIR" not in os.environ
    assert load_settings(second).context_dir == ".context"


def test_real_environment_overrides_dotenv_file(tmp_path, clean_env, monkeypatch):
    (tmp_path / ".env").write_text("ARSENAL_CONTEXT_DIR=from-dotenv\n")
    monkeypatch.setenv("ARSENAL_CONTEXT_DIR", "from-env")

    assert load_settings(tmp_path).context_dir == "from-env"
