from __future__ import annotations

import logging

from sefin_desk.domain.errors import SigningDeskError
from sefin_desk.domain.models import (
    BatchSignItemRead,
    BatchSignRead,
    PropagationReport,
    SigningTask,
)
from sefin_desk.services.propagation_service import PropagationService
from sefin_desk.services.signing_service import SigningService

logger = logging.getLogger(__name__)


class BatchSigningService:
    """Best-effort sequential signing of a list of tasks.

    Items are signed one after another so each routing check sees the
    writes of the items before it. Process routing runs once per distinct
    process after the loop, keyed on the last task of that process signed
    in the batch.
    """

    def __init__(self, signing: SigningService, propagation: PropagationService) -> None:
        self._signing = signing
        self._propagation = propagation

    def sign_many(self, task_ids: list[str], approver_id: str, credential: str) -> BatchSignRead:
        items: list[BatchSignItemRead] = []
        last_signed: dict[str, SigningTask] = {}

        for task_id in task_ids:
            try:
                change = self._signing.sign(task_id, approver_id, credential, route=False)
            except SigningDeskError as exc:
                logger.info(
                    "batch item failed: %s",
                    exc,
                    extra={"task_id": task_id, "approver_id": approver_id, "error_kind": exc.kind},
                )
                items.append(BatchSignItemRead(task_id=task_id, ok=False, error_kind=exc.kind, message=str(exc)))
                continue
            last_signed.pop(change.task.process_id, None)
            last_signed[change.task.process_id] = change.task
            items.append(BatchSignItemRead(task_id=task_id, ok=True, warnings=change.warnings))

        routed: list[str] = []
        for process_id, task in last_signed.items():
            report = PropagationReport(task_id=task.id, process_id=process_id)
            self._propagation.route_process(task, report, actor_id=approver_id)
            if report.process_routed:
                routed.append(process_id)
            if report.warnings:
                item = next(entry for entry in reversed(items) if entry.ok and entry.task_id == task.id)
                item.warnings.extend(report.warnings)

        success_count = sum(1 for item in items if item.ok)
        result = BatchSignRead(
            success_count=success_count,
            failure_count=len(items) - success_count,
            items=items,
            routed_process_ids=routed,
        )
        logger.info(
            "batch signed %d of %d tasks",
            result.success_count,
            len(task_ids),
            extra={"approver_id": approver_id},
        )
        return result
