from __future__ import annotations

import logging

from sefin_desk.adapters.base import Clock, TaskStore
from sefin_desk.domain.errors import InvalidStateError, NotFoundError
from sefin_desk.domain.models import (
    Approver,
    ApproverWorkloadRead,
    SigningTask,
    ensure_utc,
)
from sefin_desk.domain.state_machine import SigningTaskState
from sefin_desk.infra.clock import local_day_bounds
from sefin_desk.services.risk_service import round_half_up
from sefin_desk.services.signing_service import SigningService, TaskChange

logger = logging.getLogger(__name__)


def workload_percent(pending_count: int, daily_capacity: int) -> int:
    if daily_capacity <= 0:
        return 100 if pending_count > 0 else 0
    return min(100, round_half_up(pending_count / daily_capacity * 100))


class WorkloadService:
    def __init__(self, store: TaskStore, clock: Clock, signing: SigningService) -> None:
        self._store = store
        self._clock = clock
        self._signing = signing

    def _signed_today_by_approver(self) -> dict[str, int]:
        start, end = local_day_bounds(self._clock.now())
        counts: dict[str, int] = {}
        for task in self._store.list_tasks(status=SigningTaskState.SIGNED):
            if task.signed_by is None or task.signed_at is None:
                continue
            if start <= ensure_utc(task.signed_at) < end:
                counts[task.signed_by] = counts.get(task.signed_by, 0) + 1
        return counts

    def _workload_for(self, approver: Approver, signed_today: dict[str, int]) -> ApproverWorkloadRead:
        tasks: list[SigningTask] = self._store.list_tasks_by_approver(approver.id)
        pending = sum(1 for item in tasks if item.status == SigningTaskState.PENDING)
        return ApproverWorkloadRead(
            approver_id=approver.id,
            display_name=approver.display_name,
            role_label=approver.role_label,
            daily_capacity=approver.daily_capacity,
            assigned_count=len(tasks),
            pending_count=pending,
            signed_today_count=signed_today.get(approver.id, 0),
            workload_percent=workload_percent(pending, approver.daily_capacity),
        )

    def get_workload(self) -> list[ApproverWorkloadRead]:
        signed_today = self._signed_today_by_approver()
        return [self._workload_for(approver, signed_today) for approver in self._store.list_approvers()]

    def redistribute(self, task_id: str, target_approver_id: str, actor_id: str | None = None) -> TaskChange:
        task = self._store.get_task(task_id)
        if task.status != SigningTaskState.PENDING:
            raise InvalidStateError(f"task is {task.status}; only PENDING tasks can be redistributed")
        if task.assigned_to is None:
            raise InvalidStateError("task is not assigned; use assign instead")
        if task.assigned_to == target_approver_id:
            raise InvalidStateError("task is already assigned to this approver")
        change = self._signing.assign(task_id, target_approver_id, actor_id, action="redistributed")
        logger.info(
            "task redistributed from %s",
            task.assigned_to,
            extra={"task_id": task_id, "process_id": task.process_id, "approver_id": target_approver_id},
        )
        return change

    def pick_least_loaded_approver(self, excluding: str | None = None) -> ApproverWorkloadRead:
        candidates = [item for item in self.get_workload() if item.approver_id != excluding]
        if not candidates:
            raise NotFoundError("no eligible approver available")
        return min(candidates, key=lambda item: (item.workload_percent, item.pending_count, item.approver_id))
