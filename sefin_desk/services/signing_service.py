from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sefin_desk.adapters.base import Clock, CredentialVerifier, TaskStore
from sefin_desk.domain.errors import (
    InvalidCredentialError,
    InvalidStateError,
    NotFoundError,
    SigningDeskError,
    ValidationError,
)
from sefin_desk.domain.models import (
    Approver,
    PartialPropagationWarning,
    PropagationReport,
    PropagationStep,
    SigningTask,
    SigningTaskCreate,
    SigningTaskHistory,
    ensure_utc,
)
from sefin_desk.domain.state_machine import (
    DocumentStatus,
    SigningTaskState,
    can_signing_task_transition,
)
from sefin_desk.infra.events import EventBus
from sefin_desk.services.journal import TaskJournal
from sefin_desk.services.propagation_service import PropagationService

logger = logging.getLogger(__name__)


@dataclass
class TaskChange:
    task: SigningTask
    warnings: list[PartialPropagationWarning] = field(default_factory=list)
    report: PropagationReport | None = None


class SigningService:
    def __init__(
        self,
        store: TaskStore,
        verifier: CredentialVerifier,
        clock: Clock,
        bus: EventBus,
        propagation: PropagationService,
    ) -> None:
        self._store = store
        self._verifier = verifier
        self._clock = clock
        self._journal = TaskJournal(store, bus, clock)
        self._propagation = propagation

    def _now(self) -> datetime:
        return ensure_utc(self._clock.now())

    def _ensure_transition(self, task: SigningTask, target: SigningTaskState) -> None:
        if not can_signing_task_transition(task.status, target):
            logger.info(
                "rejected transition %s -> %s",
                task.status,
                target,
                extra={"task_id": task.id, "process_id": task.process_id},
            )
            raise InvalidStateError(f"illegal transition: {task.status} -> {target}")

    def _ensure_pending(self, task: SigningTask) -> None:
        if task.status != SigningTaskState.PENDING:
            raise InvalidStateError(f"task is {task.status}; only PENDING tasks can change")

    def get_task(self, task_id: str) -> SigningTask:
        return self._store.get_task(task_id)

    def list_history(self, task_id: str) -> list[SigningTaskHistory]:
        self._store.get_task(task_id)
        return self._store.list_history(task_id)

    def create_task(self, payload: SigningTaskCreate, actor_id: str | None = None) -> TaskChange:
        process = self._store.get_process(payload.process_id)
        title = payload.title
        if payload.document_id is not None:
            document = self._store.get_document(payload.document_id)
            if document.process_id != process.id:
                raise ValidationError("document belongs to another process")
            if document.kind != payload.document_kind:
                raise ValidationError(f"document kind {document.kind} does not match {payload.document_kind}")
            title = title or document.title
        task = SigningTask(
            process_id=process.id,
            document_id=payload.document_id,
            document_kind=payload.document_kind,
            title=title or f"{payload.document_kind} {process.protocol_number}",
            status=SigningTaskState.PENDING,
            created_at=self._now(),
            protocol_number=process.protocol_number,
            requester_name=process.requester_name,
            requester_unit=process.requester_unit,
            amount=process.amount,
            process_created_at=process.created_at,
        )
        created = self._store.create_task(task)
        warnings = self._journal.record(
            created,
            action="created",
            event_type="sefin.task.created",
            actor_id=actor_id,
            to_state=SigningTaskState.PENDING,
        )
        return TaskChange(task=created, warnings=warnings)

    def assign(
        self,
        task_id: str,
        approver_id: str,
        actor_id: str | None = None,
        *,
        action: str = "assigned",
    ) -> TaskChange:
        task = self._store.get_task(task_id)
        self._ensure_pending(task)
        approver = self._store.get_approver(approver_id)
        if not approver.is_active:
            raise ValidationError("approver is inactive")
        previous = task.assigned_to
        updated = self._store.update_task(
            task_id,
            {"assigned_to": approver.id, "assigned_at": self._now()},
            expected_status=SigningTaskState.PENDING,
        )
        if updated is None:
            raise InvalidStateError("task is no longer PENDING")
        warnings = self._journal.record(
            updated,
            action=action,
            event_type=f"sefin.task.{action}",
            actor_id=actor_id,
            detail={"assigned_to": approver.id, "previous_assignee": previous},
        )
        return TaskChange(task=updated, warnings=warnings)

    def _authenticate(self, approver_id: str, credential: str) -> Approver:
        try:
            approver = self._store.get_approver(approver_id)
        except NotFoundError as exc:
            raise InvalidCredentialError("invalid signing credential") from exc
        if not approver.is_active or not self._verifier.verify(approver.id, credential):
            logger.info("signing credential rejected", extra={"approver_id": approver_id})
            raise InvalidCredentialError("invalid signing credential")
        return approver

    def sign(
        self,
        task_id: str,
        approver_id: str,
        credential: str,
        *,
        route: bool = True,
    ) -> TaskChange:
        task = self._store.get_task(task_id)
        self._ensure_transition(task, SigningTaskState.SIGNED)
        approver = self._authenticate(approver_id, credential)

        signed = self._store.update_task(
            task_id,
            {
                "status": SigningTaskState.SIGNED,
                "signed_at": self._now(),
                "signed_by": approver.id,
            },
            expected_status=SigningTaskState.PENDING,
        )
        if signed is None:
            raise InvalidStateError("task was resolved by another signer")

        warnings = self._journal.record(
            signed,
            action="signed",
            event_type="sefin.task.signed",
            actor_id=approver.id,
            from_state=SigningTaskState.PENDING,
            to_state=SigningTaskState.SIGNED,
            detail={"document_id": signed.document_id},
        )
        report = self._propagation.propagate(signed, approver, route=route)
        report.warnings[:0] = warnings
        return TaskChange(task=signed, warnings=list(report.warnings), report=report)

    def reject(self, task_id: str, approver_id: str, reason: str) -> TaskChange:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("rejection reason is required")
        task = self._store.get_task(task_id)
        self._ensure_transition(task, SigningTaskState.REJECTED)
        approver = self._store.get_approver(approver_id)

        rejected = self._store.update_task(
            task_id,
            {
                "status": SigningTaskState.REJECTED,
                "rejection_reason": cleaned,
                "rejected_at": self._now(),
                "rejected_by": approver.id,
            },
            expected_status=SigningTaskState.PENDING,
        )
        if rejected is None:
            raise InvalidStateError("task was resolved by another approver")

        warnings: list[PartialPropagationWarning] = []
        if rejected.document_id is not None:
            try:
                self._store.update_document(rejected.document_id, {"status": DocumentStatus.RETURNED})
            except SigningDeskError as exc:
                logger.warning(
                    "document return failed: %s",
                    exc,
                    extra={"task_id": rejected.id, "process_id": rejected.process_id},
                )
                warnings.append(
                    PartialPropagationWarning(
                        step=PropagationStep.DOCUMENT,
                        task_id=rejected.id,
                        process_id=rejected.process_id,
                        message=str(exc),
                    )
                )

        warnings.extend(
            self._journal.record(
                rejected,
                action="rejected",
                event_type="sefin.task.rejected",
                actor_id=approver.id,
                from_state=SigningTaskState.PENDING,
                to_state=SigningTaskState.REJECTED,
                note=cleaned,
            )
        )
        warnings.extend(
            self._journal.publish(
                rejected,
                "sefin.process.return_requested",
                {
                    "process_id": rejected.process_id,
                    "task_id": rejected.id,
                    "return_to": rejected.requester_unit,
                    "reason": cleaned,
                },
                actor_id=approver.id,
            )
        )
        return TaskChange(task=rejected, warnings=warnings)
