"""Structured builder errors.

Every failure raised by the builder is a :class:`BuilderError` carrying a
stable ``code`` string. The CLI maps codes to exit statuses; nothing below
the CLI needs to know about exit codes.
"""

from __future__ import annotations

from typing import Any


class ErrorCodes:
    BUILDER_NOT_STARTED = "BUILDER_NOT_STARTED"
    BUILDER_ALREADY_STARTED = "BUILDER_ALREADY_STARTED"
    INVALID_STATE = "INVALID_STATE"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_REQUIRED = "VALIDATION_REQUIRED"
    CYCLE_DETECTED = "CYCLE_DETECTED"

    SESSION_CORRUPT = "SESSION_CORRUPT"
    INVALID_INPUT = "INVALID_INPUT"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BuilderError(Exception):
    """A fail-fast builder error with an actionable hint."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.hint = hint

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        if self.hint:
            out["hint"] = self.hint
        return out
