"""Configuration models and built-in defaults."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Credentials for one model provider."""

    api_key: str | None = None
    base_url: str | None = None


class PermissionRuleset(BaseModel):
    """Ordered deny/allow/ask pattern lists."""

    allow: list[str] = Field(default_factory=list)
    deny: list[str] = Field(default_factory=list)
    ask: list[str] = Field(default_factory=list)


class FamilyMember(BaseModel):
    """Family member record kept alongside goals."""

    id: str
    name: str
    relationship: str = ""
    birthday: str | None = None  # YYYY-MM-DD or MM-DD
    notes: str = ""


DEFAULT_CONFIG: dict[str, Any] = {
    "providers": {},
    "default_provider": "anthropic",
    "default_model": "claude-sonnet-4-20250514",
    "theme": "dark",
    "permissions": {
        "allow": ["read", "goal", "todo", "project", "family"],
        "deny": [],
        "ask": ["write", "bash"],
    },
    "goal_categories": ["Health", "Family", "Work", "Personal", "Finance"],
    "family": [],
}


class Config(BaseModel):
    """Fully resolved settings."""

    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    default_provider: str = DEFAULT_CONFIG["default_provider"]
    default_model: str = DEFAULT_CONFIG["default_model"]
    theme: Literal["dark", "light"] = "dark"
    permissions: PermissionRuleset = Field(
        default_factory=lambda: PermissionRuleset(**DEFAULT_CONFIG["permissions"])
    )
    goal_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONFIG["goal_categories"])
    )
    family: list[FamilyMember] = Field(default_factory=list)
