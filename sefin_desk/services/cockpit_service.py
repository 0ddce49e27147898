from __future__ import annotations

from datetime import datetime, timedelta
from typing import ClassVar

from sefin_desk.adapters.base import Clock, TaskStore
from sefin_desk.domain.models import (
    CockpitKPIRead,
    RiskLevel,
    SigningTask,
    SigningTaskRead,
    TaskFilter,
    TaskPeriodFilter,
    TaskPriorityFilter,
    TaskSortKey,
    TaskStatusFilter,
    ensure_utc,
)
from sefin_desk.domain.state_machine import SigningTaskState
from sefin_desk.infra.clock import local_day_bounds
from sefin_desk.services.risk_service import RiskService, round_half_up

_STATUS_BY_FILTER: dict[TaskStatusFilter, SigningTaskState | None] = {
    TaskStatusFilter.PENDING: SigningTaskState.PENDING,
    TaskStatusFilter.SIGNED: SigningTaskState.SIGNED,
    TaskStatusFilter.RETURNED: SigningTaskState.REJECTED,
    TaskStatusFilter.ALL: None,
}


class CockpitService:
    """Read side of the signing cockpit: scored listings and queue KPIs."""

    URGENT_AFTER_HOURS: ClassVar[int] = 24
    HIGH_VALUE_AMOUNT: ClassVar[float] = 10_000.0
    PERIOD_DAYS: ClassVar[dict[TaskPeriodFilter, int]] = {
        TaskPeriodFilter.WEEK: 7,
        TaskPeriodFilter.MONTH: 30,
    }

    def __init__(self, store: TaskStore, clock: Clock, risk: RiskService | None = None) -> None:
        self._store = store
        self._clock = clock
        self._risk = risk or RiskService()

    def _is_urgent(self, task: SigningTask | SigningTaskRead, now: datetime) -> bool:
        hours = (ensure_utc(now) - ensure_utc(task.created_at)).total_seconds() / 3600
        return task.status == SigningTaskState.PENDING and hours > self.URGENT_AFTER_HOURS

    def _is_high_value(self, task: SigningTask) -> bool:
        return task.amount >= self.HIGH_VALUE_AMOUNT

    def _period_start(self, period: TaskPeriodFilter, now: datetime) -> datetime | None:
        if period == TaskPeriodFilter.TODAY:
            return local_day_bounds(now)[0]
        days = self.PERIOD_DAYS.get(period)
        if days is None:
            return None
        return ensure_utc(now) - timedelta(days=days)

    def _matches(self, task: SigningTask, filters: TaskFilter, now: datetime) -> bool:
        if filters.document_kind is not None and task.document_kind != filters.document_kind:
            return False
        if filters.assigned_to is not None and task.assigned_to != filters.assigned_to:
            return False

        if filters.priority != TaskPriorityFilter.ALL:
            urgent = self._is_urgent(task, now)
            high_value = self._is_high_value(task)
            if filters.priority == TaskPriorityFilter.URGENT and not urgent:
                return False
            if filters.priority == TaskPriorityFilter.HIGH_VALUE and not high_value:
                return False
            if filters.priority == TaskPriorityFilter.NORMAL and (urgent or high_value):
                return False

        start = self._period_start(filters.period, now)
        if start is not None and ensure_utc(task.created_at) < start:
            return False

        if filters.search:
            query = filters.search.strip().lower()
            haystack = (task.protocol_number, task.requester_name, task.requester_unit, task.document_kind)
            if query and not any(query in value.lower() for value in haystack):
                return False
        return True

    def _sort(self, rows: list[SigningTaskRead], sort_by: TaskSortKey, now: datetime) -> list[SigningTaskRead]:
        if sort_by == TaskSortKey.DATE:
            return sorted(rows, key=lambda item: (ensure_utc(item.created_at), item.id), reverse=True)
        if sort_by == TaskSortKey.VALUE:
            return sorted(rows, key=lambda item: (item.amount, item.id), reverse=True)
        if sort_by == TaskSortKey.RISK:
            return sorted(rows, key=lambda item: (-(item.risk_score or 0), ensure_utc(item.created_at), item.id))
        return sorted(
            rows,
            key=lambda item: (
                not self._is_urgent(item, now),
                -(item.risk_score or 0),
                ensure_utc(item.created_at),
                item.id,
            ),
        )

    def list_tasks(self, filters: TaskFilter | None = None) -> list[SigningTaskRead]:
        filters = filters or TaskFilter()
        now = self._clock.now()
        average = self._risk.population_average(self._store.list_tasks(status=SigningTaskState.PENDING))
        candidates = self._store.list_tasks(status=_STATUS_BY_FILTER[filters.status])

        rows: list[SigningTaskRead] = []
        for task in candidates:
            if not self._matches(task, filters, now):
                continue
            assessment = self._risk.score(task, average, now)
            read = SigningTaskRead.model_validate(task)
            read.risk_score = assessment.score
            read.risk_level = assessment.level
            read.risk_factors = assessment.factors
            rows.append(read)
        return self._sort(rows, filters.sort_by, now)

    def list_pending(self, filters: TaskFilter | None = None) -> list[SigningTaskRead]:
        scoped = (filters or TaskFilter()).model_copy(update={"status": TaskStatusFilter.PENDING})
        return self.list_tasks(scoped)

    def batch_candidates(self) -> list[SigningTaskRead]:
        return [
            item
            for item in self.list_pending(TaskFilter(sort_by=TaskSortKey.DATE))
            if item.risk_level == RiskLevel.LOW
        ]

    def get_kpis(self) -> CockpitKPIRead:
        now = self._clock.now()
        start, end = local_day_bounds(now)
        tasks = self._store.list_tasks()
        pending = [item for item in tasks if item.status == SigningTaskState.PENDING]
        signed = [item for item in tasks if item.status == SigningTaskState.SIGNED and item.signed_at is not None]

        signed_today = sum(1 for item in signed if start <= ensure_utc(item.signed_at) < end)  # type: ignore[arg-type]
        if signed:
            total_hours = sum(
                (ensure_utc(item.signed_at) - ensure_utc(item.created_at)).total_seconds() / 3600  # type: ignore[arg-type]
                for item in signed
            )
            avg_hours = round_half_up(total_hours / len(signed) * 10) / 10
        else:
            avg_hours = 0.0

        return CockpitKPIRead(
            pending_total=len(pending),
            signed_today=signed_today,
            avg_sign_time_hours=avg_hours,
            urgent_count=sum(1 for item in pending if self._is_urgent(item, now)),
            high_value_count=sum(1 for item in pending if self._is_high_value(item)),
        )
