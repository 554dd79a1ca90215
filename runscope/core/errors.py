"""
Shared error types and error-handling helpers for the radar engine.
"""

from __future__ import annotations

import logging


class RadarEngineError(RuntimeError):
    """Base class for errors raised by the radar engine."""


class LogicParseError(RadarEngineError, ValueError):
    """A stored or submitted logic tree could not be parsed."""


class LogicCompileError(RadarEngineError):
    """A logic tree was compiled although one of its leaves needs an evaluator."""


class FilterParamsError(RadarEngineError, ValueError):
    """Leaf params failed structural validation for their filter."""

    def __init__(self, filter_id: str, message: str) -> None:
        self.filter_id = filter_id
        super().__init__(f"Invalid params for filter {filter_id!r}: {message}")


class ScoringServiceError(RadarEngineError):
    """The external scoring service is unreachable, unconfigured or returned an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def _format_extra(extra: dict | None) -> str:
    parts = [f"{key}={value}" for key, value in (extra or {}).items() if value is not None]
    return " " + " ".join(parts) if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """Log a failure as ``"<msg> key=value ...: <exc>"`` with its traceback.

    Without ``exc`` this must be called from an ``except`` block.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")
