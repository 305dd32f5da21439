"""Command-level builder operations.

Each public method is one CLI command: load the current session, guard,
mutate, save. Results are small records with ``to_json`` for the CLI
envelope.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from workflow_builder.builder import ops
from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.graph import (
    GraphStats,
    ValidationReport,
    compute_stats,
    validate_draft,
)
from workflow_builder.builder.models import (
    TERMINAL_STATES,
    BuilderSession,
    Diff,
    SessionState,
)
from workflow_builder.builder.state_machine import (
    is_editable,
    require_committable,
    require_editable,
    require_started,
    transition_to,
)
from workflow_builder.builder.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MutationResult:
    diff: Diff
    stats: GraphStats
    affected_node_ids: list[str] | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "diff": self.diff.to_json(),
            "graphStats": self.stats.to_json(),
        }
        if self.affected_node_ids is not None:
            out["affectedNodes"] = list(self.affected_node_ids)
        return out


@dataclass(frozen=True, slots=True)
class SessionSummary:
    session_id: str
    name: str
    state: SessionState
    validation_ok: bool
    error_count: int
    stats: GraphStats
    updated_at: datetime
    current: bool = False

    @classmethod
    def from_session(cls, session: BuilderSession, *, current: bool = False) -> SessionSummary:
        return cls(
            session_id=session.id,
            name=session.workflow_draft.name,
            state=session.state,
            validation_ok=session.validation.ok,
            error_count=len(session.validation.errors),
            stats=compute_stats(session.workflow_draft.nodes),
            updated_at=session.updated_at,
            current=current,
        )

    def to_json(self) -> dict[str, object]:
        return {
            "sessionId": self.session_id,
            "name": self.name,
            "state": self.state.value,
            "validation": {"ok": self.validation_ok, "errorCount": self.error_count},
            "graphStats": self.stats.to_json(),
            "updatedAt": self.updated_at.isoformat(),
            "current": self.current,
        }


@dataclass(frozen=True, slots=True)
class CommitResult:
    session_id: str
    workflow: dict[str, Any]
    stats: GraphStats

    def to_json(self) -> dict[str, object]:
        return {
            "sessionId": self.session_id,
            "state": SessionState.COMMITTED.value,
            "workflow": self.workflow,
            "graphStats": self.stats.to_json(),
        }


class BuilderService:
    """Drive the current builder session through its lifecycle."""

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    @property
    def store(self) -> SessionStore:
        return self._store

    def current_session(self) -> BuilderSession | None:
        return self._store.load_current()

    def start(
        self, name: str, description: str | None = None, *, force: bool = False
    ) -> BuilderSession:
        if not name.strip():
            raise BuilderError(
                ErrorCodes.INVALID_INPUT,
                "Workflow name must not be empty",
                hint="Pass a name with `--name`",
            )

        try:
            existing = self._store.load_current()
        except BuilderError as e:
            if not force or e.code != ErrorCodes.SESSION_CORRUPT:
                raise
            logger.warning("Replacing corrupt current session", extra={"details": e.details})
            existing = None

        if existing is not None and is_editable(existing):
            if not force:
                raise BuilderError(
                    ErrorCodes.BUILDER_ALREADY_STARTED,
                    f"Session {existing.id} ('{existing.workflow_draft.name}') is still open",
                    details={"sessionId": existing.id, "state": existing.state.value},
                    hint="Commit or abort it first, or use `--force` to abort it and start over",
                )
            transition_to(existing, SessionState.ABORTED, store=self._store)
            logger.info("Open session aborted by forced start", extra={"session_id": existing.id})

        session = self._store.create_session(name, description)
        self._store.save_session(session)
        self._store.set_current(session.id)
        logger.info(
            "Builder session started",
            extra={"session_id": session.id, "workflow_name": name},
        )
        return session

    def status(self) -> SessionSummary:
        session = require_started(self._store.load_current())
        return SessionSummary.from_session(session, current=True)

    def show(self) -> BuilderSession:
        return require_started(self._store.load_current())

    def add_node(self, node_data: Mapping[str, Any]) -> MutationResult:
        session = self._load_editable()
        diff = ops.add_node(session, node_data)
        return self._finish(session, diff)

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> MutationResult:
        session = self._load_editable()
        diff = ops.update_node(session, node_id, patch)
        return self._finish(session, diff)

    def remove_node(self, node_id: str) -> MutationResult:
        session = self._load_editable()
        result = ops.remove_node(session, node_id)
        return self._finish(session, result.diff, affected=result.affected_node_ids)

    def connect(self, from_id: str, to_id: str) -> MutationResult:
        session = require_started(self._store.load_current())
        diff = ops.connect_nodes(session, from_id, to_id)
        return self._finish(session, diff)

    def disconnect(self, from_id: str, to_id: str) -> MutationResult:
        session = self._load_editable()
        diff = ops.disconnect_nodes(session, from_id, to_id)
        return self._finish(session, diff)

    def validate(self) -> ValidationReport:
        session = require_started(self._store.load_current())
        return validate_draft(session, store=self._store)

    def commit(self) -> CommitResult:
        """Finalize the current draft.

        Submitting the returned workflow to the remote service is the caller's job.
        """

        session = require_started(self._store.load_current())
        require_committable(session)
        transition_to(session, SessionState.COMMITTED, store=self._store)
        logger.info("Builder session committed", extra={"session_id": session.id})
        draft = session.workflow_draft
        return CommitResult(
            session_id=session.id,
            workflow=draft.model_dump(mode="json", by_alias=True),
            stats=compute_stats(draft.nodes),
        )

    def abort(self) -> BuilderSession:
        session = require_started(self._store.load_current())
        require_editable(session)
        transition_to(session, SessionState.ABORTED, store=self._store)
        logger.info("Builder session aborted", extra={"session_id": session.id})
        return session

    def list_sessions(self) -> list[SessionSummary]:
        try:
            current = self._store.get_current_session_id()
        except BuilderError:
            logger.warning("Ignoring corrupt current session pointer")
            current = None
        return [
            SessionSummary.from_session(s, current=s.id == current)
            for s in self._store.list_sessions()
        ]

    def prune(
        self,
        *,
        states: Iterable[SessionState] = TERMINAL_STATES,
        older_than: datetime | None = None,
    ) -> list[str]:
        return self._store.prune(states=states, older_than=older_than)

    def _load_editable(self) -> BuilderSession:
        session = require_started(self._store.load_current())
        require_editable(session)
        return session

    def _finish(
        self, session: BuilderSession, diff: Diff, *, affected: list[str] | None = None
    ) -> MutationResult:
        self._store.save_session(session)
        stats = compute_stats(session.workflow_draft.nodes)
        logger.info(
            "Draft updated",
            extra={
                "session_id": session.id,
                "action": diff.action,
                "node_count": stats.node_count,
                "edge_count": stats.edge_count,
            },
        )
        return MutationResult(diff=diff, stats=stats, affected_node_ids=affected)
