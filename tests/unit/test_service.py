"""End-to-end builder scenarios through the service facade."""

from __future__ import annotations

import logging

import pytest

from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.models import SessionState
from workflow_builder.builder.service import BuilderService
from workflow_builder.builder.store import SessionStore


def test_validate_and_commit_happy_path(service: BuilderService, store: SessionStore) -> None:
    session = service.start("wf1")
    service.add_node({"id": "n1", "type": "start"})
    service.add_node({"id": "n2", "type": "task", "dependsOn": ["n1"]})

    report = service.validate()
    assert report.ok is True
    assert report.state == SessionState.VALIDATED
    assert report.stats.node_count == 2
    assert report.stats.edge_count == 1

    result = service.commit()
    assert result.session_id == session.id
    assert [n["id"] for n in result.workflow["nodes"]] == ["n1", "n2"]
    assert result.workflow["nodes"][1]["dependsOn"] == ["n1"]

    loaded = store.load_session(session.id)
    assert loaded is not None
    assert loaded.state == SessionState.COMMITTED


def test_duplicate_node_is_rejected(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})

    with pytest.raises(BuilderError) as exc:
        service.add_node({"id": "n1"})
    assert exc.value.code == ErrorCodes.DUPLICATE_NODE_ID


def test_self_connection_rejected_even_after_commit(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})
    with pytest.raises(BuilderError) as draft_exc:
        service.connect("n1", "n1")
    assert draft_exc.value.code == ErrorCodes.VALIDATION_ERROR

    service.validate()
    service.commit()
    with pytest.raises(BuilderError) as committed_exc:
        service.connect("n1", "n1")
    assert committed_exc.value.code == ErrorCodes.VALIDATION_ERROR


def test_update_after_validation_returns_to_draft(
    service: BuilderService, store: SessionStore
) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})
    service.validate()

    service.update_node("n1", {"data": {"prompt": "hello"}})

    session = store.load_current()
    assert session is not None
    assert session.state == SessionState.DRAFT
    assert session.validation.ok is False
    assert session.validation.errors == []


def test_commit_requires_validation(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})

    with pytest.raises(BuilderError) as exc:
        service.commit()
    assert exc.value.code == ErrorCodes.VALIDATION_REQUIRED


def test_cycle_keeps_session_in_draft(service: BuilderService, store: SessionStore) -> None:
    service.start("wf1")
    service.add_node({"id": "n1", "dependsOn": ["n3"]})
    service.add_node({"id": "n2", "dependsOn": ["n1"]})
    service.add_node({"id": "n3", "dependsOn": ["n2"]})

    report = service.validate()

    assert report.ok is False
    assert any(issue.code == ErrorCodes.CYCLE_DETECTED for issue in report.errors)
    session = store.load_current()
    assert session is not None
    assert session.state == SessionState.DRAFT
    with pytest.raises(BuilderError) as exc:
        service.commit()
    assert exc.value.code == ErrorCodes.VALIDATION_REQUIRED


def test_dangling_reference_caught_by_validate(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n2", "dependsOn": ["n1"]})

    report = service.validate()
    assert report.ok is False
    assert report.errors[0].code == ErrorCodes.NODE_NOT_FOUND

    service.add_node({"id": "n1"})
    assert service.validate().ok is True


def test_mutation_results_carry_stats(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "a"})
    service.add_node({"id": "b"})
    connected = service.connect("a", "b")
    assert connected.to_json()["graphStats"] == {"nodeCount": 2, "edgeCount": 1}

    removed = service.remove_node("a")
    payload = removed.to_json()
    assert payload["affectedNodes"] == ["b"]
    assert payload["graphStats"] == {"nodeCount": 1, "edgeCount": 0}


def test_operations_require_started_session(service: BuilderService) -> None:
    calls = [
        service.status,
        service.show,
        lambda: service.add_node({"id": "n1"}),
        lambda: service.update_node("n1", {}),
        lambda: service.remove_node("n1"),
        lambda: service.connect("a", "b"),
        lambda: service.disconnect("a", "b"),
        service.validate,
        service.commit,
        service.abort,
    ]
    for call in calls:
        with pytest.raises(BuilderError) as exc:
            call()
        assert exc.value.code == ErrorCodes.BUILDER_NOT_STARTED


def test_start_refuses_while_session_open(service: BuilderService, store: SessionStore) -> None:
    first = service.start("wf1")

    with pytest.raises(BuilderError) as exc:
        service.start("wf2")
    assert exc.value.code == ErrorCodes.BUILDER_ALREADY_STARTED
    assert "--force" in (exc.value.hint or "")

    second = service.start("wf2", force=True)
    assert store.get_current_session_id() == second.id
    previous = store.load_session(first.id)
    assert previous is not None
    assert previous.state == SessionState.ABORTED


def test_start_after_terminal_session_needs_no_force(service: BuilderService) -> None:
    service.start("wf1")
    service.abort()

    session = service.start("wf2")
    assert session.workflow_draft.name == "wf2"


def test_start_rejects_blank_name(service: BuilderService) -> None:
    with pytest.raises(BuilderError) as exc:
        service.start("  ")
    assert exc.value.code == ErrorCodes.INVALID_INPUT


def test_abort_is_terminal(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})

    session = service.abort()
    assert session.state == SessionState.ABORTED

    with pytest.raises(BuilderError) as edit_exc:
        service.add_node({"id": "n2"})
    assert edit_exc.value.code == ErrorCodes.INVALID_STATE
    with pytest.raises(BuilderError) as abort_exc:
        service.abort()
    assert abort_exc.value.code == ErrorCodes.INVALID_STATE


def test_edits_after_commit_point_to_new_session(service: BuilderService) -> None:
    service.start("wf1")
    service.add_node({"id": "n1"})
    service.validate()
    service.commit()

    with pytest.raises(BuilderError) as exc:
        service.add_node({"id": "n2"})
    assert exc.value.code == ErrorCodes.INVALID_STATE
    assert "start" in (exc.value.hint or "")


def test_status_and_list(service: BuilderService) -> None:
    first = service.start("wf1")
    service.abort()
    second = service.start("wf2")
    service.add_node({"id": "n1"})

    status = service.status()
    assert status.session_id == second.id
    assert status.stats.node_count == 1
    assert status.to_json()["state"] == "DRAFT"

    listed = service.list_sessions()
    assert [s.session_id for s in listed] == [second.id, first.id]
    assert [s.current for s in listed] == [True, False]

    assert service.prune() == [first.id]


def test_force_start_replaces_corrupt_current_session(
    service: BuilderService, store: SessionStore
) -> None:
    first = service.start("wf1")
    store.session_path(first.id).write_text("{broken", encoding="utf-8")

    with pytest.raises(BuilderError) as exc:
        service.start("wf2")
    assert exc.value.code == ErrorCodes.SESSION_CORRUPT

    session = service.start("wf2", force=True)
    assert store.get_current_session_id() == session.id


def test_start_logs_workflow_name_at_info(
    service: BuilderService, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)

    session = service.start("wf1", "described")

    assert session.state == SessionState.DRAFT
    started = [r for r in caplog.records if r.getMessage() == "Builder session started"]
    assert len(started) == 1
    assert started[0].session_id == session.id
    assert started[0].workflow_name == "wf1"


def test_force_start_replaces_undecodable_current_pointer(
    service: BuilderService, store: SessionStore
) -> None:
    service.start("wf1")
    store.current_path.write_bytes(b"\xff\xfe\x00")

    with pytest.raises(BuilderError) as exc:
        service.start("wf2")
    assert exc.value.code == ErrorCodes.SESSION_CORRUPT
    assert [s.current for s in service.list_sessions()] == [False]

    session = service.start("wf2", force=True)
    assert store.get_current_session_id() == session.id
