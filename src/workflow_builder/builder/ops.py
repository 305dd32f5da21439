"""In-memory draft mutations.

Each operation guards on the session state, edits the draft, invalidates the
last validation result and returns a diff. None of them save the session or
check references and cycles: drafts may be incomplete or cyclic while they
are being built, and :func:`workflow_builder.builder.graph.validate_draft`
catches that later.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.models import (
    BuilderSession,
    EdgeDiff,
    NodeDiff,
    WorkflowNode,
    issues_from_validation_error,
)
from workflow_builder.builder.state_machine import invalidate, require_editable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoveResult:
    removed: WorkflowNode
    diff: NodeDiff
    affected_node_ids: list[str]


def add_node(session: BuilderSession, node_data: Mapping[str, Any]) -> NodeDiff:
    require_editable(session)

    node = _parse_node(node_data)
    draft = session.workflow_draft
    if draft.get_node(node.id) is not None:
        raise BuilderError(
            ErrorCodes.DUPLICATE_NODE_ID,
            f"Node '{node.id}' already exists",
            details={"nodeId": node.id},
            hint="Choose a different id, or use `update-node` to change the existing node",
        )

    draft.nodes.append(node)
    invalidate(session)
    logger.debug("Node added", extra={"session_id": session.id, "node_id": node.id})
    return NodeDiff(action="add", node_id=node.id, after=node.to_json())


def update_node(session: BuilderSession, node_id: str, patch: Mapping[str, Any]) -> NodeDiff:
    """Shallow-merge ``patch`` over a node. The node id can never change."""

    require_editable(session)

    draft = session.workflow_draft
    idx = draft.index_of(node_id)
    if idx < 0:
        raise _node_not_found(node_id)

    existing = draft.nodes[idx]
    before = existing.to_json()
    merged = {**before, **_camel_keys(_require_object(patch)), "id": existing.id}
    node = _parse_node(merged)

    draft.nodes[idx] = node
    invalidate(session)
    logger.debug("Node updated", extra={"session_id": session.id, "node_id": node_id})
    return NodeDiff(action="update", node_id=node_id, before=before, after=node.to_json())


def remove_node(session: BuilderSession, node_id: str) -> RemoveResult:
    """Remove a node and drop it from every other node's ``depends_on``."""

    require_editable(session)

    draft = session.workflow_draft
    idx = draft.index_of(node_id)
    if idx < 0:
        raise _node_not_found(node_id)

    removed = draft.nodes.pop(idx)
    affected: list[str] = []
    for node in draft.nodes:
        if node_id in node.depends_on:
            node.depends_on = [dep for dep in node.depends_on if dep != node_id]
            affected.append(node.id)

    invalidate(session)
    logger.debug(
        "Node removed",
        extra={"session_id": session.id, "node_id": node_id, "affected": affected},
    )
    return RemoveResult(
        removed=removed,
        diff=NodeDiff(action="remove", node_id=node_id, before=removed.to_json()),
        affected_node_ids=affected,
    )


def connect_nodes(session: BuilderSession, from_id: str, to_id: str) -> EdgeDiff:
    """Make ``to_id`` depend on ``from_id``. Connecting twice is a no-op."""

    # Self-loops are rejected before anything else, whatever the session state.
    if from_id == to_id:
        raise BuilderError(
            ErrorCodes.VALIDATION_ERROR,
            f"Cannot connect node '{from_id}' to itself",
            details={"from": from_id, "to": to_id},
            hint="A node cannot depend on itself; pick two different nodes",
        )

    require_editable(session)

    draft = session.workflow_draft
    if draft.get_node(from_id) is None:
        raise _node_not_found(from_id)
    target = draft.get_node(to_id)
    if target is None:
        raise _node_not_found(to_id)

    changed = from_id not in target.depends_on
    if changed:
        target.depends_on = [*target.depends_on, from_id]

    invalidate(session)
    logger.debug(
        "Nodes connected",
        extra={"session_id": session.id, "from": from_id, "to": to_id, "changed": changed},
    )
    return EdgeDiff(action="connect", from_id=from_id, to_id=to_id, changed=changed)


def disconnect_nodes(session: BuilderSession, from_id: str, to_id: str) -> EdgeDiff:
    require_editable(session)

    target = session.workflow_draft.get_node(to_id)
    if target is None:
        raise _node_not_found(to_id)

    changed = from_id in target.depends_on
    if changed:
        target.depends_on = [dep for dep in target.depends_on if dep != from_id]

    invalidate(session)
    logger.debug(
        "Nodes disconnected",
        extra={"session_id": session.id, "from": from_id, "to": to_id, "changed": changed},
    )
    return EdgeDiff(action="disconnect", from_id=from_id, to_id=to_id, changed=changed)


def _require_object(value: object) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise BuilderError(
            ErrorCodes.VALIDATION_ERROR,
            "Node data must be a JSON object",
            details={"value": repr(value)},
            hint='Pass a node object such as {"id": "n1", "type": "task"}',
        )
    return value


def _parse_node(data: Mapping[str, Any]) -> WorkflowNode:
    try:
        return WorkflowNode.model_validate(dict(_require_object(data)))
    except ValidationError as e:
        issues = issues_from_validation_error(e)
        raise BuilderError(
            ErrorCodes.VALIDATION_ERROR,
            "Invalid node: " + "; ".join(f"{i.path}: {i.message}" for i in issues),
            details={"issues": [issue.to_json() for issue in issues]},
            hint="Check the node fields: id, type, data, dependsOn",
        ) from e


_FIELD_ALIASES = {"depends_on": "dependsOn"}


def _camel_keys(patch: Mapping[str, Any]) -> dict[str, Any]:
    # Merged over the camelCase dump, so snake_case keys must not survive beside it.
    return {_FIELD_ALIASES.get(key, key): value for key, value in patch.items()}


def _node_not_found(node_id: str) -> BuilderError:
    return BuilderError(
        ErrorCodes.NODE_NOT_FOUND,
        f"Node '{node_id}' not found",
        details={"nodeId": node_id},
        hint="Run `workflow-builder show` to list the nodes in the draft",
    )
