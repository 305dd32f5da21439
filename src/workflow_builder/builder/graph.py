"""Graph statistics and structural validation for workflow drafts.

Everything here except :func:`validate_draft` is pure and read-only. Edges are
read from ``depends_on``: ``A -> B`` exists when ``A in B.depends_on``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from workflow_builder.builder.errors import ErrorCodes
from workflow_builder.builder.models import (
    BuilderSession,
    SessionState,
    ValidationIssue,
    ValidationResult,
    WorkflowNode,
)
from workflow_builder.builder.state_machine import require_validatable, transition_to

if TYPE_CHECKING:
    from workflow_builder.builder.store import SessionStore

logger = logging.getLogger(__name__)

_NODES_PATH = "workflowDraft.nodes"


@dataclass(frozen=True, slots=True)
class GraphStats:
    node_count: int
    edge_count: int

    def to_json(self) -> dict[str, object]:
        return {"nodeCount": self.node_count, "edgeCount": self.edge_count}


@dataclass(frozen=True, slots=True)
class ValidationReport:
    ok: bool
    errors: list[ValidationIssue]
    stats: GraphStats
    state: SessionState

    def to_json(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "errors": [issue.to_json() for issue in self.errors],
            "graphStats": self.stats.to_json(),
            "state": self.state.value,
        }


def compute_stats(nodes: Sequence[WorkflowNode]) -> GraphStats:
    return GraphStats(
        node_count=len(nodes),
        edge_count=sum(len(node.depends_on) for node in nodes),
    )


def check_duplicate_ids(nodes: Sequence[WorkflowNode]) -> list[ValidationIssue]:
    seen: set[str] = set()
    issues: list[ValidationIssue] = []
    for idx, node in enumerate(nodes):
        if node.id in seen:
            issues.append(
                ValidationIssue(
                    path=f"{_NODES_PATH}[{idx}].id",
                    message=f"Duplicate node id '{node.id}'",
                    value=node.id,
                    code=ErrorCodes.DUPLICATE_NODE_ID,
                )
            )
        seen.add(node.id)
    return issues


def check_references(nodes: Sequence[WorkflowNode]) -> list[ValidationIssue]:
    """Report one issue per ``depends_on`` entry naming a node that does not exist."""

    known = {node.id for node in nodes}
    issues: list[ValidationIssue] = []
    for idx, node in enumerate(nodes):
        for dep in node.depends_on:
            if dep in known:
                continue
            issues.append(
                ValidationIssue(
                    path=f"{_NODES_PATH}[{idx}].dependsOn",
                    message=f"Node '{node.id}' depends on unknown node '{dep}'",
                    value=dep,
                    code=ErrorCodes.NODE_NOT_FOUND,
                )
            )
    return issues


def successors(nodes: Sequence[WorkflowNode]) -> dict[str, list[str]]:
    """Forward adjacency built from the reverse lists. Dangling ids are skipped."""

    out: dict[str, list[str]] = {}
    for node in nodes:
        out.setdefault(node.id, [])
    for node in nodes:
        for dep in node.depends_on:
            if dep in out and node.id not in out[dep]:
                out[dep].append(node.id)
    return out


def find_cycles(nodes: Sequence[WorkflowNode]) -> list[ValidationIssue]:
    """Three-colour depth-first walk; every back edge yields a CYCLE_DETECTED issue.

    The walk is iterative so long dependency chains cannot exhaust the stack.
    """

    white, grey, black = 0, 1, 2
    adjacency = successors(nodes)
    index: dict[str, int] = {}
    for idx, node in enumerate(nodes):
        index.setdefault(node.id, idx)

    colour = dict.fromkeys(adjacency, white)
    issues: list[ValidationIssue] = []

    for root in adjacency:
        if colour[root] != white:
            continue
        colour[root] = grey
        path = [root]
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(adjacency[root]))]
        while stack:
            current, children = stack[-1]
            child = next(children, None)
            if child is None:
                colour[current] = black
                stack.pop()
                path.pop()
                continue
            if colour[child] == white:
                colour[child] = grey
                path.append(child)
                stack.append((child, iter(adjacency[child])))
            elif colour[child] == grey:
                cycle = path[path.index(child) :] + [child]
                issues.append(
                    ValidationIssue(
                        path=f"{_NODES_PATH}[{index[child]}].dependsOn",
                        message="Cycle detected: " + " -> ".join(cycle),
                        value=cycle,
                        code=ErrorCodes.CYCLE_DETECTED,
                    )
                )
    return issues


def analyze(nodes: Sequence[WorkflowNode]) -> list[ValidationIssue]:
    return [*check_duplicate_ids(nodes), *check_references(nodes), *find_cycles(nodes)]


def validate_draft(session: BuilderSession, *, store: SessionStore) -> ValidationReport:
    """Check the draft and record the result on the session.

    A clean draft moves to VALIDATED. A failing draft stays in DRAFT with the
    issues stored; that is not an error of the state machine. The session is
    saved in both cases.
    """

    require_validatable(session)

    nodes = session.workflow_draft.nodes
    errors = analyze(nodes)
    stats = compute_stats(nodes)

    if errors:
        session.validation = ValidationResult(ok=False, errors=errors)
        store.save_session(session)
    else:
        session.validation = ValidationResult(ok=True, errors=[])
        if session.state == SessionState.VALIDATED:
            store.save_session(session)
        else:
            transition_to(session, SessionState.VALIDATED, store=store)

    logger.info(
        "Draft validated",
        extra={
            "session_id": session.id,
            "ok": not errors,
            "error_count": len(errors),
            "node_count": stats.node_count,
        },
    )
    return ValidationReport(ok=not errors, errors=errors, stats=stats, state=session.state)
