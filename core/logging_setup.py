"""Logging configuration and error formatting."""

from __future__ import annotations

import logging
import traceback

from core.errors import DadGPTError

ROOT_LOGGER = "dadgpt"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def configure_logging(level: str = "INFO") -> None:
    """Attach a stderr handler to the package logger at the given level."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_LEVELS.get(level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)


def is_debug_mode() -> bool:
    return logging.getLogger(ROOT_LOGGER).getEffectiveLevel() <= logging.DEBUG


def format_error(exc: BaseException) -> str:
    """Render an exception for display; tracebacks only in debug mode."""
    if isinstance(exc, DadGPTError):
        text = f"[{exc.code}] {exc.message}"
    else:
        text = str(exc) or exc.__class__.__name__
    if is_debug_mode() and exc.__traceback__ is not None:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return f"{text}\n{trace.rstrip()}"
    return text
