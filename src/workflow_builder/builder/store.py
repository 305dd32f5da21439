"""Crash-safe JSON persistence for builder sessions.

Layout under the store root:

    session-<id>.json   one BuilderSession record
    current             plain-text id of the session the CLI operates on

Every write goes to a temporary file in the same directory and is then
renamed over the target, so readers never observe a partial file. There is
no locking: concurrent writers are last-writer-wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.models import (
    TERMINAL_STATES,
    BuilderSession,
    SessionState,
    ValidationResult,
    WorkflowDraft,
)

logger = logging.getLogger(__name__)

_SESSION_PREFIX = "session-"
_CURRENT_FILE = "current"


class SessionStore:
    """File-backed store for builder sessions and the current-session pointer."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def session_path(self, session_id: str) -> Path:
        return self._root / f"{_SESSION_PREFIX}{session_id}.json"

    @property
    def current_path(self) -> Path:
        return self._root / _CURRENT_FILE

    def create_session(self, name: str, description: str | None = None) -> BuilderSession:
        """Build a fresh DRAFT session. Nothing is written until it is saved."""

        now = datetime.now(UTC)
        return BuilderSession(
            id=uuid.uuid4().hex,
            state=SessionState.DRAFT,
            created_at=now,
            updated_at=now,
            workflow_draft=WorkflowDraft(name=name, description=description, nodes=[]),
            validation=ValidationResult(ok=False, errors=[]),
        )

    def save_session(self, session: BuilderSession) -> BuilderSession:
        session.updated_at = datetime.now(UTC)

        # Re-validate the whole record so a programming error never reaches disk.
        payload = session.to_json()
        try:
            BuilderSession.model_validate(payload)
        except ValidationError as e:
            raise BuilderError(
                ErrorCodes.INTERNAL_ERROR,
                f"Refusing to save invalid session {session.id}",
                details={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
                hint="This is a bug; the session on disk was left untouched",
            ) from e

        path = self.session_path(session.id)
        self._atomic_write(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
        logger.debug("Session saved", extra={"session_id": session.id, "path": str(path)})
        return session

    def load_session(self, session_id: str) -> BuilderSession | None:
        path = self.session_path(session_id)
        if not path.exists():
            return None

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return BuilderSession.model_validate(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            raise BuilderError(
                ErrorCodes.SESSION_CORRUPT,
                f"Session file is corrupt: {path}",
                details={"sessionId": session_id, "path": str(path), "reason": str(e)},
                hint="Delete the file or run `workflow-builder start --force` for a new session",
            ) from e

    def delete_session(self, session_id: str) -> None:
        path = self.session_path(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(
                "Failed to delete session file",
                extra={"session_id": session_id, "path": str(path), "error": str(e)},
            )

    def set_current(self, session_id: str | None) -> None:
        if session_id is None:
            try:
                self.current_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to clear current session", extra={"error": str(e)})
            return
        self._atomic_write(self.current_path, session_id + "\n")

    def get_current_session_id(self) -> str | None:
        if not self.current_path.exists():
            return None
        try:
            value = self.current_path.read_text(encoding="utf-8").strip()
        except UnicodeDecodeError as e:
            raise BuilderError(
                ErrorCodes.SESSION_CORRUPT,
                f"Current session pointer is corrupt: {self.current_path}",
                details={"path": str(self.current_path), "reason": str(e)},
                hint="Run `workflow-builder start --force` for a new session",
            ) from e
        return value or None

    def load_current(self) -> BuilderSession | None:
        session_id = self.get_current_session_id()
        if session_id is None:
            return None
        return self.load_session(session_id)

    def list_sessions(self) -> list[BuilderSession]:
        if not self._root.exists():
            return []

        sessions: list[BuilderSession] = []
        for path in self._root.glob(f"{_SESSION_PREFIX}*.json"):
            session_id = path.stem[len(_SESSION_PREFIX) :]
            try:
                session = self.load_session(session_id)
            except BuilderError:
                logger.warning("Skipping corrupt session file", extra={"path": str(path)})
                continue
            if session is not None:
                sessions.append(session)

        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    def prune(
        self,
        *,
        states: Iterable[SessionState] = TERMINAL_STATES,
        older_than: datetime | None = None,
    ) -> list[str]:
        """Delete terminal sessions, optionally only those last updated before a cutoff.

        Editable sessions are never pruned. Returns the deleted ids.
        """

        wanted = {state for state in states if state in TERMINAL_STATES}
        try:
            current = self.get_current_session_id()
        except BuilderError:
            logger.warning(
                "Ignoring corrupt current session pointer",
                extra={"path": str(self.current_path)},
            )
            current = None
        pruned: list[str] = []
        for session in self.list_sessions():
            if session.state not in wanted:
                continue
            if older_than is not None and session.updated_at >= older_than:
                continue
            self.delete_session(session.id)
            pruned.append(session.id)

        if current is not None and current in pruned:
            self.set_current(None)
        if pruned:
            logger.info("Pruned sessions", extra={"count": len(pruned)})
        return pruned

    def _atomic_write(self, path: Path, text: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
