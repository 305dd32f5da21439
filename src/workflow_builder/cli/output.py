"""Response envelope and exit codes for CLI commands.

Success: {"ok": true, "type": ..., "version": "1.0", "payload": {...}}
Failure: {"ok": false, "type": "error", "version": "1.0", "error": {...}}
"""

from __future__ import annotations

import json
import sys
from typing import IO, Any

from workflow_builder.builder.errors import BuilderError

ENVELOPE_VERSION = "1.0"


def exit_code_for(code: str) -> int:
    if code.startswith("AUTH_"):
        return 2
    if code.startswith("VALIDATION_") or code == "INVALID_INPUT":
        return 3
    if code.startswith("NETWORK_") or code == "TIMEOUT":
        return 4
    if code.endswith("_NOT_FOUND") or code == "NOT_FOUND":
        return 5
    return 1


def success_envelope(type_: str, payload: Any) -> dict[str, Any]:
    return {"ok": True, "type": type_, "version": ENVELOPE_VERSION, "payload": payload}


def error_envelope(error: BuilderError) -> dict[str, Any]:
    return {"ok": False, "type": "error", "version": ENVELOPE_VERSION, "error": error.to_json()}


def emit(envelope: dict[str, Any], *, stream: IO[str] | None = None) -> None:
    out = stream if stream is not None else sys.stdout
    out.write(json.dumps(envelope, indent=2, ensure_ascii=False, default=str) + "\n")
    out.flush()


def ok(type_: str, payload: Any, *, stream: IO[str] | None = None) -> int:
    emit(success_envelope(type_, payload), stream=stream)
    return 0


def fail(error: BuilderError, *, stream: IO[str] | None = None) -> int:
    emit(error_envelope(error), stream=stream)
    return exit_code_for(error.code)
