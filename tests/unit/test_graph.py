"""Unit tests for graph statistics and draft validation."""

from __future__ import annotations

from workflow_builder.builder.errors import ErrorCodes
from workflow_builder.builder.graph import (
    check_duplicate_ids,
    check_references,
    compute_stats,
    find_cycles,
    validate_draft,
)
from workflow_builder.builder.models import BuilderSession, SessionState, WorkflowNode
from workflow_builder.builder.store import SessionStore


def _node(node_id: str, *deps: str) -> WorkflowNode:
    return WorkflowNode(id=node_id, type="task", depends_on=list(deps))


def test_compute_stats_counts_dependency_entries() -> None:
    stats = compute_stats([_node("a"), _node("b", "a"), _node("c", "a", "b")])
    assert stats.node_count == 3
    assert stats.edge_count == 3
    assert stats.to_json() == {"nodeCount": 3, "edgeCount": 3}


def test_check_references_reports_each_dangling_id() -> None:
    issues = check_references([_node("a"), _node("b", "a", "ghost", "phantom")])

    assert [i.value for i in issues] == ["ghost", "phantom"]
    assert all(i.code == ErrorCodes.NODE_NOT_FOUND for i in issues)
    assert issues[0].path == "workflowDraft.nodes[1].dependsOn"


def test_check_duplicate_ids() -> None:
    issues = check_duplicate_ids([_node("a"), _node("b"), _node("a")])
    assert len(issues) == 1
    assert issues[0].code == ErrorCodes.DUPLICATE_NODE_ID
    assert issues[0].path == "workflowDraft.nodes[2].id"


def test_find_cycles_on_dag_is_empty() -> None:
    nodes = [_node("a"), _node("b", "a"), _node("c", "a"), _node("d", "b", "c")]
    assert find_cycles(nodes) == []


def test_find_cycles_reports_three_node_cycle() -> None:
    nodes = [_node("n1", "n3"), _node("n2", "n1"), _node("n3", "n2")]

    issues = find_cycles(nodes)

    assert len(issues) == 1
    assert issues[0].code == ErrorCodes.CYCLE_DETECTED
    assert set(issues[0].value) == {"n1", "n2", "n3"}
    assert issues[0].value[0] == issues[0].value[-1]
    assert "Cycle detected" in issues[0].message


def test_find_cycles_reports_self_dependency() -> None:
    issues = find_cycles([_node("a", "a")])
    assert len(issues) == 1
    assert issues[0].value == ["a", "a"]


def test_find_cycles_ignores_dangling_references() -> None:
    assert find_cycles([_node("a", "missing")]) == []


def test_find_cycles_handles_long_chains() -> None:
    nodes = [_node("n0")] + [_node(f"n{i}", f"n{i - 1}") for i in range(1, 5000)]
    assert find_cycles(nodes) == []


def test_validate_draft_success_transitions(
    session: BuilderSession, store: SessionStore
) -> None:
    session.workflow_draft.nodes.extend([_node("n1"), _node("n2", "n1")])

    report = validate_draft(session, store=store)

    assert report.ok is True
    assert report.errors == []
    assert report.state == SessionState.VALIDATED
    assert session.validation.ok is True
    loaded = store.load_session(session.id)
    assert loaded is not None
    assert loaded.state == SessionState.VALIDATED


def test_validate_draft_failure_stays_draft_and_saves(
    session: BuilderSession, store: SessionStore
) -> None:
    session.workflow_draft.nodes.extend(
        [_node("n1", "n3"), _node("n2", "n1"), _node("n3", "n2")]
    )

    report = validate_draft(session, store=store)

    assert report.ok is False
    assert any(i.code == ErrorCodes.CYCLE_DETECTED for i in report.errors)
    assert session.state == SessionState.DRAFT
    loaded = store.load_session(session.id)
    assert loaded is not None
    assert loaded.state == SessionState.DRAFT
    assert loaded.validation.ok is False
    assert loaded.validation.errors[0].code == ErrorCodes.CYCLE_DETECTED


def test_validate_draft_is_reentrant(session: BuilderSession, store: SessionStore) -> None:
    session.workflow_draft.nodes.append(_node("n1"))
    validate_draft(session, store=store)

    report = validate_draft(session, store=store)

    assert report.ok is True
    assert session.state == SessionState.VALIDATED
