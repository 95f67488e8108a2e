"""Permission policy evaluation for tool invocations.

Each ruleset holds three pattern lists. A tool identifier is matched against
them with deny > allow > ask priority, and anything unmatched resolves to
``ask``, so an unknown tool never runs silently.

Pattern forms:
- ``*`` matches every tool
- ``file.*`` matches ``file`` and ``file.<anything>``
- anything else matches by exact, case-sensitive equality
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from core.config_resolver import ConfigResolver
from core.config_schema import DEFAULT_CONFIG, PermissionRuleset

logger = logging.getLogger("dadgpt.permission")


class PermissionDecision(str, Enum):
    """Outcome of a permission check."""

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


DEFAULT_RULES = PermissionRuleset(**DEFAULT_CONFIG["permissions"])

RulesetLike = PermissionRuleset | Mapping[str, Any]


def matches_pattern(tool: str, pattern: str) -> bool:
    """Return whether ``tool`` matches a single rule pattern."""
    if pattern == "*":
        return True
    if pattern.endswith(".*"):
        prefix = pattern[:-2]
        return tool == prefix or tool.startswith(prefix + ".")
    return tool == pattern


def matches_any_pattern(tool: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(tool, pattern) for pattern in patterns)


def _as_ruleset(ruleset: RulesetLike) -> PermissionRuleset:
    if isinstance(ruleset, PermissionRuleset):
        return ruleset
    return PermissionRuleset.model_validate(dict(ruleset))


def evaluate_rules(
    tool: str,
    resource: str | None,
    ruleset: RulesetLike,
) -> PermissionDecision:
    """Evaluate a ruleset for a tool.

    ``resource`` is accepted for call-site symmetry; rules currently match
    on the tool identifier only.
    """
    _ = resource
    rules = _as_ruleset(ruleset)
    if matches_any_pattern(tool, rules.deny):
        return PermissionDecision.DENY
    if matches_any_pattern(tool, rules.allow):
        return PermissionDecision.ALLOW
    if matches_any_pattern(tool, rules.ask):
        return PermissionDecision.ASK
    return PermissionDecision.ASK


class PermissionEngine:
    """Checks tool permissions against configured or supplied rulesets."""

    def __init__(self, resolver: ConfigResolver | None = None) -> None:
        self.resolver = resolver

    def _configured_rules(self) -> PermissionRuleset:
        if self.resolver is None:
            return DEFAULT_RULES
        try:
            return self.resolver.get().permissions
        except Exception as exc:
            logger.warning("Configuration unavailable, using default permission rules: %s", exc)
            return DEFAULT_RULES

    def check(
        self,
        tool: str,
        resource: str | None = None,
        ruleset: RulesetLike | None = None,
    ) -> PermissionDecision:
        """Return the decision for ``tool``, loading rules from config when
        no ruleset is given. Never raises on configuration failure."""
        rules = ruleset if ruleset is not None else self._configured_rules()
        decision = evaluate_rules(tool, resource, rules)
        logger.debug("Permission %s for tool=%s resource=%s", decision.value, tool, resource)
        return decision

    def check_sync(
        self,
        tool: str,
        resource: str | None,
        ruleset: RulesetLike,
    ) -> PermissionDecision:
        """Evaluate against a caller-supplied ruleset with no I/O."""
        return evaluate_rules(tool, resource, ruleset)

    def is_allowed(self, tool: str, resource: str | None = None) -> bool:
        return self.check(tool, resource) is PermissionDecision.ALLOW

    def is_denied(self, tool: str, resource: str | None = None) -> bool:
        return self.check(tool, resource) is PermissionDecision.DENY

    def requires_permission(self, tool: str, resource: str | None = None) -> bool:
        return self.check(tool, resource) is PermissionDecision.ASK
