"""Error taxonomy with stable error codes."""

from __future__ import annotations

from typing import Any


class DadGPTError(Exception):
    """Base error carrying a stable, machine-readable code."""

    def __init__(self, message: str, code: str = "DADGPT_ERROR") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigError(DadGPTError):
    """Configuration could not be produced or persisted."""

    def __init__(self, message: str, code: str = "CONFIG_ERROR") -> None:
        super().__init__(message, code)


class ConfigValidationError(ConfigError):
    """Merged configuration failed schema validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, "CONFIG_VALIDATION_ERROR")
        self.errors = errors or []


class ConfigSaveError(ConfigError):
    """Writing the global configuration document failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIG_SAVE_ERROR")


class StorageError(DadGPTError):
    """Entity storage read/write failure."""

    def __init__(self, message: str, code: str = "STORAGE_ERROR") -> None:
        super().__init__(message, code)
