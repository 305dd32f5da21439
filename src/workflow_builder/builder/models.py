"""Persisted builder records and mutation diffs.

Session records are pydantic models so the same schema validates input,
loaded files and records about to be written. The persisted JSON uses
camelCase keys; Python code uses snake_case attributes and either spelling
is accepted on input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SCHEMA_VERSION = 1


class SessionState(str, Enum):
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


TERMINAL_STATES: frozenset[SessionState] = frozenset(
    {SessionState.COMMITTED, SessionState.ABORTED}
)


class ValidationIssue(BaseModel):
    """A structured problem found while validating a draft or a node."""

    path: str
    message: str
    value: Any = None
    code: str | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ValidationResult(BaseModel):
    ok: bool = False
    errors: list[ValidationIssue] = Field(default_factory=list)


class WorkflowNode(BaseModel):
    """One vertex of the draft graph.

    ``depends_on`` holds the ids of direct predecessors and is the only place
    edges are stored. It behaves as a set: duplicates are dropped on parse and
    insertion order is kept for stable output.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str = Field(min_length=1)
    type: str = Field(default="task", min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")

    @field_validator("id", "type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("depends_on")
    @classmethod
    def _unique_predecessors(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for item in value:
            if not item.strip():
                raise ValueError("dependency ids must not be blank")
            if item not in seen:
                seen.append(item)
        return seen

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WorkflowDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    description: str | None = None
    nodes: list[WorkflowNode] = Field(default_factory=list)

    def get_node(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def index_of(self, node_id: str) -> int:
        for idx, node in enumerate(self.nodes):
            if node.id == node_id:
                return idx
        return -1


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BuilderSession(BaseModel):
    """Root aggregate persisted as ``session-<id>.json``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    state: SessionState = SessionState.DRAFT
    created_at: datetime = Field(default_factory=_utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utc_now, alias="updatedAt")
    workflow_draft: WorkflowDraft = Field(alias="workflowDraft")
    validation: ValidationResult = Field(default_factory=ValidationResult)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def issues_from_validation_error(
    error: ValidationError, *, prefix: str = ""
) -> list[ValidationIssue]:
    """Flatten a pydantic error into ``ValidationIssue`` records."""

    issues: list[ValidationIssue] = []
    for item in error.errors(include_url=False):
        loc = ".".join(str(part) for part in item.get("loc", ()))
        path = ".".join(part for part in (prefix, loc) if part)
        value = item.get("input")
        issues.append(
            ValidationIssue(
                path=path or "$",
                message=item.get("msg", "invalid value"),
                value=value if isinstance(value, str | int | float | bool) else None,
                code="VALIDATION_ERROR",
            )
        )
    return issues


# Diffs are returned to the caller for display only; they are never persisted.

NodeAction = Literal["add", "update", "remove"]
EdgeAction = Literal["connect", "disconnect"]


@dataclass(frozen=True, slots=True)
class NodeDiff:
    action: NodeAction
    node_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"action": self.action, "nodeId": self.node_id}
        if self.before is not None:
            out["before"] = self.before
        if self.after is not None:
            out["after"] = self.after
        return out


@dataclass(frozen=True, slots=True)
class EdgeDiff:
    action: EdgeAction
    from_id: str
    to_id: str
    changed: bool = True

    def to_json(self) -> dict[str, object]:
        return {
            "action": self.action,
            "from": self.from_id,
            "to": self.to_id,
            "changed": self.changed,
        }


Diff = NodeDiff | EdgeDiff
