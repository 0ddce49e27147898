from __future__ import annotations

import logging
from typing import Any

from sefin_desk.adapters.base import Clock, TaskStore
from sefin_desk.domain.errors import SigningDeskError
from sefin_desk.domain.models import (
    PartialPropagationWarning,
    PropagationStep,
    SigningTask,
    SigningTaskHistory,
    ensure_utc,
)
from sefin_desk.domain.state_machine import SigningTaskState
from sefin_desk.infra.events import EventBus

logger = logging.getLogger(__name__)


class TaskJournal:
    """History rows and domain events written after a task write committed.

    Both are secondary to the task write: failures come back as warnings
    instead of exceptions so the caller still reports the committed change.
    """

    def __init__(self, store: TaskStore, bus: EventBus, clock: Clock) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock

    def record(
        self,
        task: SigningTask,
        *,
        action: str,
        event_type: str,
        actor_id: str | None,
        from_state: SigningTaskState | None = None,
        to_state: SigningTaskState | None = None,
        note: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> list[PartialPropagationWarning]:
        warnings: list[PartialPropagationWarning] = []
        payload = {"task_id": task.id, "process_id": task.process_id, "document_kind": task.document_kind}
        payload.update(detail or {})

        try:
            self._store.add_history(
                SigningTaskHistory(
                    task_id=task.id,
                    action=action,
                    from_state=from_state,
                    to_state=to_state,
                    actor_id=actor_id,
                    note=note,
                    detail=payload,
                    created_at=ensure_utc(self._clock.now()),
                )
            )
        except SigningDeskError as exc:
            logger.warning(
                "history write failed for %s",
                action,
                extra={"task_id": task.id, "process_id": task.process_id, "step": PropagationStep.HISTORY},
            )
            warnings.append(
                PartialPropagationWarning(
                    step=PropagationStep.HISTORY,
                    task_id=task.id,
                    process_id=task.process_id,
                    message=str(exc),
                )
            )

        warnings.extend(self.publish(task, event_type, payload, actor_id=actor_id))
        return warnings

    def publish(
        self,
        task: SigningTask,
        event_type: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None,
    ) -> list[PartialPropagationWarning]:
        try:
            self._bus.publish_dict(event_type, payload, actor_id=actor_id, correlation_id=task.process_id)
        except Exception as exc:
            logger.exception(
                "event publish failed for %s",
                event_type,
                extra={"task_id": task.id, "process_id": task.process_id, "step": PropagationStep.EVENT},
            )
            return [
                PartialPropagationWarning(
                    step=PropagationStep.EVENT,
                    task_id=task.id,
                    process_id=task.process_id,
                    message=f"{event_type}: {exc}",
                )
            ]
        return []
