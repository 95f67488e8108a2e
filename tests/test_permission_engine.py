"""Permission policy tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from core.config_resolver import ConfigResolver
from core.config_schema import PermissionRuleset
from governance.permission_engine import (
    DEFAULT_RULES,
    PermissionDecision,
    PermissionEngine,
    evaluate_rules,
    matches_any_pattern,
    matches_pattern,
)


@pytest.mark.parametrize(
    ("tool", "pattern", "expected"),
    [
        ("file", "file.*", True),
        ("file.read", "file.*", True),
        ("file.read.deep", "file.*", True),
        ("files", "file.*", False),
        ("myfile.read", "file.*", False),
        ("anything", "*", True),
        ("", "*", True),
        ("bash", "bash", True),
        ("Bash", "bash", False),
        ("bash.run", "bash", False),
    ],
)
def test_matches_pattern(tool: str, pattern: str, expected: bool) -> None:
    assert matches_pattern(tool, pattern) is expected


def test_matches_any_pattern_empty_list() -> None:
    assert matches_any_pattern("read", []) is False


def test_deny_beats_allow_and_ask() -> None:
    rules = {"allow": ["*"], "deny": ["bash"], "ask": ["bash"]}

    assert evaluate_rules("bash", None, rules) is PermissionDecision.DENY
    assert evaluate_rules("read", None, rules) is PermissionDecision.ALLOW


def test_allow_beats_ask() -> None:
    rules = PermissionRuleset(allow=["file.*"], ask=["file.write"])

    assert evaluate_rules("file.write", None, rules) is PermissionDecision.ALLOW


def test_wildcard_deny_blocks_everything() -> None:
    rules = PermissionRuleset(allow=["read"], deny=["*"])

    assert evaluate_rules("read", "/tmp/x", rules) is PermissionDecision.DENY


@pytest.mark.parametrize("tool", ["unknown", "goal", ""])
def test_empty_ruleset_asks(tool: str) -> None:
    assert evaluate_rules(tool, None, PermissionRuleset()) is PermissionDecision.ASK


def test_unmatched_tool_asks() -> None:
    rules = PermissionRuleset(allow=["read"], deny=["rm"], ask=["bash"])

    assert evaluate_rules("network", None, rules) is PermissionDecision.ASK


def test_default_rules() -> None:
    engine = PermissionEngine()

    assert engine.check("read") is PermissionDecision.ALLOW
    assert engine.check("goal") is PermissionDecision.ALLOW
    assert engine.check("write") is PermissionDecision.ASK
    assert engine.check("bash") is PermissionDecision.ASK
    assert engine.check("network") is PermissionDecision.ASK


def test_supplied_ruleset_bypasses_configuration(tmp_path: Path) -> None:
    resolver = ConfigResolver(
        home_dir=tmp_path, project_root=tmp_path, environ={},
        overrides={"permissions": {"deny": ["*"]}},
    )
    engine = PermissionEngine(resolver=resolver)

    assert engine.check("read") is PermissionDecision.DENY
    assert engine.check("read", ruleset={"allow": ["read"]}) is PermissionDecision.ALLOW
    assert engine.check_sync("read", None, {"allow": ["read"]}) is PermissionDecision.ALLOW


def test_rules_come_from_layered_config(tmp_path: Path) -> None:
    (tmp_path / "dadgpt.config.yaml").write_text(
        yaml.safe_dump({"permissions": {"deny": ["bash"], "allow": ["file.*"]}}),
        encoding="utf-8",
    )
    engine = PermissionEngine(
        ConfigResolver(home_dir=tmp_path / "home", project_root=tmp_path, environ={})
    )

    assert engine.check("bash") is PermissionDecision.DENY
    assert engine.check("file.read") is PermissionDecision.ALLOW
    assert engine.check("read") is PermissionDecision.ASK


def test_configuration_failure_falls_back_to_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    home = tmp_path / "home"
    home.mkdir()
    (home / "config.yaml").write_text(yaml.safe_dump({"theme": "neon"}), encoding="utf-8")
    engine = PermissionEngine(ConfigResolver(home_dir=home, project_root=tmp_path, environ={}))
    caplog.set_level(logging.WARNING, logger="dadgpt.permission")

    assert engine.check("goal") is PermissionDecision.ALLOW
    assert engine.check("bash") is PermissionDecision.ASK
    assert any("default permission rules" in r.getMessage() for r in caplog.records)


def test_boolean_projections() -> None:
    engine = PermissionEngine()

    assert engine.is_allowed("read") is True
    assert engine.is_denied("read") is False
    assert engine.requires_permission("read") is False
    assert engine.requires_permission("bash") is True
    assert engine.is_allowed("bash") is False


def test_default_rules_match_default_config() -> None:
    assert DEFAULT_RULES.allow == ["read", "goal", "todo", "project", "family"]
    assert DEFAULT_RULES.deny == []
    assert DEFAULT_RULES.ask == ["write", "bash"]
