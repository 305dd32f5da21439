"""Builder session lifecycle.

DRAFT and VALIDATED are the editable states; COMMITTED and ABORTED are
terminal. "No session loaded" is represented by ``None`` and never persisted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.models import BuilderSession, SessionState, ValidationResult

if TYPE_CHECKING:
    from workflow_builder.builder.store import SessionStore

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.DRAFT: {SessionState.VALIDATED, SessionState.ABORTED},
    SessionState.VALIDATED: {
        SessionState.DRAFT,
        SessionState.COMMITTED,
        SessionState.ABORTED,
    },
    SessionState.COMMITTED: set(),
    SessionState.ABORTED: set(),
}


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    return to_state in ALLOWED_TRANSITIONS.get(from_state, set())


def transition_to(
    session: BuilderSession, to: SessionState, *, store: SessionStore
) -> BuilderSession:
    """Apply a legal transition and persist the session immediately."""

    if not can_transition(session.state, to):
        raise BuilderError(
            ErrorCodes.INVALID_STATE,
            f"Illegal transition: {session.state.value} -> {to.value}",
            details={"from": session.state.value, "to": to.value},
            hint=_hint_for_state(session.state),
        )
    logger.debug(
        "Session transition",
        extra={"session_id": session.id, "from": session.state.value, "to": to.value},
    )
    session.state = to
    store.save_session(session)
    return session


def is_editable(session: BuilderSession) -> bool:
    return session.state in (SessionState.DRAFT, SessionState.VALIDATED)


def can_validate(session: BuilderSession) -> bool:
    return session.state == SessionState.DRAFT


def can_commit(session: BuilderSession) -> bool:
    return session.state == SessionState.VALIDATED and session.validation.ok


def require_started(session: BuilderSession | None) -> BuilderSession:
    if session is None:
        raise BuilderError(
            ErrorCodes.BUILDER_NOT_STARTED,
            "No builder session is active",
            hint="Run `workflow-builder start --name <name>` to begin a draft",
        )
    return session


def require_editable(session: BuilderSession) -> None:
    if is_editable(session):
        return
    raise BuilderError(
        ErrorCodes.INVALID_STATE,
        f"Session {session.id} is {session.state.value} and can no longer be edited",
        details={"sessionId": session.id, "state": session.state.value},
        hint=_hint_for_state(session.state),
    )


def require_validatable(session: BuilderSession) -> None:
    # Re-validating a VALIDATED session is always allowed.
    if session.state == SessionState.VALIDATED:
        return
    if not can_validate(session):
        raise BuilderError(
            ErrorCodes.INVALID_STATE,
            f"Session {session.id} is {session.state.value} and cannot be validated",
            details={"sessionId": session.id, "state": session.state.value},
            hint=_hint_for_state(session.state),
        )


def require_committable(session: BuilderSession) -> None:
    if session.state != SessionState.VALIDATED:
        raise BuilderError(
            ErrorCodes.VALIDATION_REQUIRED,
            f"Session {session.id} must be validated before commit "
            f"(current state: {session.state.value})",
            details={"sessionId": session.id, "state": session.state.value},
            hint="Run `workflow-builder validate` first",
        )
    if not session.validation.ok:
        raise BuilderError(
            ErrorCodes.VALIDATION_ERROR,
            "The draft has validation errors",
            details={
                "sessionId": session.id,
                "errors": [issue.to_json() for issue in session.validation.errors],
            },
            hint="Fix the reported issues and run `workflow-builder validate` again",
        )


def invalidate(session: BuilderSession) -> None:
    """Discard the last validation result after a structural mutation.

    Does not save; the mutating caller persists the session.
    """

    if session.state == SessionState.VALIDATED:
        session.state = SessionState.DRAFT
    session.validation = ValidationResult(ok=False, errors=[])


def _hint_for_state(state: SessionState) -> str:
    if state == SessionState.COMMITTED:
        return "This draft is already committed; run `workflow-builder start` for a new session"
    if state == SessionState.ABORTED:
        return "This draft was aborted; run `workflow-builder start` to begin again"
    if state == SessionState.DRAFT:
        return "Run `workflow-builder validate` to validate the draft"
    return "Edit the draft to return it to DRAFT, or commit it"
