from __future__ import annotations

from datetime import timedelta

import pytest

from sefin_desk.domain.errors import ErrorKind, NotFoundError
from sefin_desk.domain.models import OperationFailure, TaskOperationSuccess
from sefin_desk.domain.state_machine import DocumentKind, SigningTaskState
from sefin_desk.services.workload_service import workload_percent

from conftest import NOW, DeskEnv


def test_workload_counts_pending_assigned_and_signed_today(env: DeskEnv) -> None:
    env.add_approver("ap-1", capacity=4)
    process = env.add_process("SF-2026-0300")
    for _ in range(3):
        env.add_task(process, DocumentKind.ORDER, assigned_to="ap-1", with_document=False, with_record=False)
    env.add_task(
        process,
        DocumentKind.PAYMENT_ORDER,
        assigned_to="ap-1",
        status=SigningTaskState.SIGNED,
        signed_at=NOW - timedelta(hours=2),
        signed_by="ap-1",
    )
    env.add_task(
        process,
        DocumentKind.COMMITMENT_NOTE,
        status=SigningTaskState.SIGNED,
        signed_at=NOW - timedelta(days=1),
        signed_by="ap-1",
    )

    [workload] = env.desk.get_workload()

    assert workload.approver_id == "ap-1"
    assert workload.pending_count == 3
    assert workload.assigned_count == 4
    assert workload.signed_today_count == 1
    assert workload.workload_percent == 75


def test_workload_percent_is_capped_and_rounded() -> None:
    assert workload_percent(5, 2) == 100
    assert workload_percent(1, 8) == 13
    assert workload_percent(0, 30) == 0
    assert workload_percent(0, 0) == 0
    assert workload_percent(2, 0) == 100


def test_inactive_approvers_are_left_out(env: DeskEnv) -> None:
    env.add_approver("ap-1")
    env.add_approver("ap-off", active=False)

    assert [item.approver_id for item in env.desk.get_workload()] == ["ap-1"]


def test_redistribute_to_current_assignee_fails(env: DeskEnv) -> None:
    env.add_approver("ap-1")
    process = env.add_process("SF-2026-0301")
    task = env.add_task(process, DocumentKind.ORDER, assigned_to="ap-1")

    result = env.desk.redistribute(task.id, "ap-1")

    assert isinstance(result, OperationFailure)
    assert result.error_kind == ErrorKind.INVALID_STATE
    assert env.store.tasks[task.id].assigned_to == "ap-1"
    assert "sefin.task.redistributed" not in env.event_types()


def test_redistribute_moves_pending_task(env: DeskEnv) -> None:
    env.add_approver("ap-1")
    env.add_approver("ap-2")
    process = env.add_process("SF-2026-0302")
    task = env.add_task(process, DocumentKind.ORDER, assigned_to="ap-1")

    result = env.desk.redistribute(task.id, "ap-2", "chief")

    assert isinstance(result, TaskOperationSuccess)
    assert result.task.assigned_to == "ap-2"
    history = env.desk.list_history(task.id)
    assert [item.action for item in history] == ["redistributed"]
    assert history[0].detail["previous_assignee"] == "ap-1"
    assert "sefin.task.redistributed" in env.event_types()


def test_redistribute_requires_assigned_pending_task(env: DeskEnv) -> None:
    env.add_approver("ap-1")
    env.add_approver("ap-2")
    process = env.add_process("SF-2026-0303")
    unassigned = env.add_task(process, DocumentKind.ORDER)
    signed = env.add_task(
        process,
        DocumentKind.PAYMENT_ORDER,
        assigned_to="ap-1",
        status=SigningTaskState.SIGNED,
        signed_at=NOW,
        signed_by="ap-1",
    )

    for task_id in (unassigned.id, signed.id):
        result = env.desk.redistribute(task_id, "ap-2")
        assert isinstance(result, OperationFailure)
        assert result.error_kind == ErrorKind.INVALID_STATE


def test_least_loaded_breaks_ties_by_pending_then_id(env: DeskEnv) -> None:
    env.add_approver("ap-a", capacity=4)
    env.add_approver("ap-b", capacity=2)
    env.add_approver("ap-c", capacity=10)
    process = env.add_process("SF-2026-0304")
    for approver_id, count in (("ap-a", 2), ("ap-b", 1), ("ap-c", 5)):
        for _ in range(count):
            env.add_task(process, DocumentKind.ORDER, assigned_to=approver_id, with_document=False)

    assert env.desk.pick_least_loaded_approver().approver_id == "ap-b"
    assert env.desk.pick_least_loaded_approver(excluding="ap-b").approver_id == "ap-a"


def test_least_loaded_uses_id_order_when_fully_tied(env: DeskEnv) -> None:
    env.add_approver("ap-c")
    env.add_approver("ap-b")
    env.add_approver("ap-d")

    assert env.desk.pick_least_loaded_approver(excluding="ap-b").approver_id == "ap-c"


def test_least_loaded_without_candidates_raises(env: DeskEnv) -> None:
    env.add_approver("ap-1")

    with pytest.raises(NotFoundError):
        env.desk.pick_least_loaded_approver(excluding="ap-1")
