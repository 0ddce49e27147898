from __future__ import annotations

import logging

from sefin_desk.adapters.base import Clock, TaskStore
from sefin_desk.domain.errors import InvalidStateError, SigningDeskError
from sefin_desk.domain.models import (
    Approver,
    ExpenseProcess,
    PartialPropagationWarning,
    PropagationReport,
    PropagationStep,
    SigningTask,
    ensure_utc,
)
from sefin_desk.domain.state_machine import (
    DocumentStatus,
    ProcessWorkflowState,
    RouteBranch,
    SigningTaskState,
    route_for_document_kind,
)
from sefin_desk.infra import settings
from sefin_desk.infra.events import EventBus
from sefin_desk.services.journal import TaskJournal

logger = logging.getLogger(__name__)


class PropagationService:
    """Cascade that follows a committed signature.

    1. linked document -> SIGNED with the signer snapshot
    2. execution record keyed by (process, kind) -> SIGNED
    3. re-query the process tasks; when none is left unsigned and the
       process still awaits the finance signature, route it by the signed
       task's document kind
    4. otherwise leave the process untouched

    Every step can be repeated without effect once applied. A failing step
    is logged and returned as a warning; the signature itself stays.
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Clock,
        bus: EventBus,
        *,
        operational_unit: str | None = None,
        legal_unit: str | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._journal = TaskJournal(store, bus, clock)
        self._operational_unit = operational_unit or settings.OPERATIONAL_UNIT
        self._legal_unit = legal_unit or settings.LEGAL_UNIT

    def _warn(
        self,
        report: PropagationReport,
        step: PropagationStep,
        exc: Exception,
    ) -> None:
        logger.warning(
            "propagation step %s failed: %s",
            step,
            exc,
            extra={"task_id": report.task_id, "process_id": report.process_id, "step": step},
        )
        report.warnings.append(
            PartialPropagationWarning(
                step=step,
                task_id=report.task_id,
                process_id=report.process_id,
                message=str(exc),
            )
        )

    def sync_document(self, task: SigningTask, approver: Approver, report: PropagationReport) -> None:
        if task.document_id is None:
            return
        try:
            document = self._store.get_document(task.document_id)
            if document.status == DocumentStatus.SIGNED:
                return
            self._store.update_document(
                task.document_id,
                {
                    "status": DocumentStatus.SIGNED,
                    "signed_at": task.signed_at,
                    "signed_by": approver.id,
                    "signer_name": approver.display_name,
                    "signer_role": approver.role_label,
                },
            )
            report.document_synced = True
        except SigningDeskError as exc:
            self._warn(report, PropagationStep.DOCUMENT, exc)

    def sync_execution_record(self, task: SigningTask, report: PropagationReport) -> None:
        try:
            report.execution_records_synced = self._store.update_execution_record(
                task.process_id,
                task.document_kind,
                {"status": DocumentStatus.SIGNED, "signed_at": task.signed_at},
                exclude_status=DocumentStatus.SIGNED,
            )
        except SigningDeskError as exc:
            self._warn(report, PropagationStep.EXECUTION_RECORD, exc)

    def _owner_for(self, branch: RouteBranch, process: ExpenseProcess) -> str:
        if branch == RouteBranch.EXCEPTIONAL_AUTHORIZATION:
            return process.origin_unit or self._operational_unit
        if branch == RouteBranch.LEGAL_ADVISORY:
            return self._legal_unit
        return self._operational_unit

    def route_process(self, task: SigningTask, report: PropagationReport, *, actor_id: str | None) -> None:
        try:
            outstanding = [
                item
                for item in self._store.list_tasks_by_process(task.process_id)
                if item.status != SigningTaskState.SIGNED
            ]
            report.remaining_tasks = len(outstanding)
            if outstanding:
                return

            process = self._store.get_process(task.process_id)
            if process.workflow_state != ProcessWorkflowState.AWAITING_FINANCE_SIGNATURE:
                # already routed, or taken over by a later stage
                return
            route = route_for_document_kind(task.document_kind)
            owner = self._owner_for(route.branch, process)

            now = ensure_utc(self._clock.now())
            values: dict[str, object] = {
                "status": route.status,
                "workflow_state": route.workflow_state,
                "current_owner": owner,
                "routed_at": now,
                "updated_at": now,
            }
            if route.branch == RouteBranch.EXCEPTIONAL_AUTHORIZATION:
                values["handoff_note"] = (
                    f"Exceptional authorization signed by the orderer; "
                    f"process {process.protocol_number} returned to {owner} for execution."
                )
            updated = self._store.update_process(
                task.process_id,
                values,
                expected_workflow_state=ProcessWorkflowState.AWAITING_FINANCE_SIGNATURE,
            )
            if updated is None:
                logger.info(
                    "process routed concurrently, skipping",
                    extra={"task_id": task.id, "process_id": task.process_id},
                )
                return
        except SigningDeskError as exc:
            self._warn(report, PropagationStep.PROCESS_ROUTING, exc)
            return

        report.process_routed = True
        report.route_branch = route.branch
        logger.info(
            "process %s routed to %s (%s)",
            process.protocol_number,
            owner,
            route.branch,
            extra={"task_id": task.id, "process_id": task.process_id, "document_kind": task.document_kind},
        )
        report.warnings.extend(
            self._journal.record(
                task,
                action="process.routed",
                event_type="sefin.process.routed",
                actor_id=actor_id,
                note=f"{process.status} -> {route.status}",
                detail={
                    "branch": route.branch,
                    "status": route.status,
                    "workflow_state": route.workflow_state,
                    "current_owner": owner,
                    "previous_owner": process.current_owner,
                },
            )
        )

    def propagate(
        self,
        task: SigningTask,
        approver: Approver,
        *,
        route: bool = True,
    ) -> PropagationReport:
        report = PropagationReport(task_id=task.id, process_id=task.process_id)
        self.sync_document(task, approver, report)
        self.sync_execution_record(task, report)
        if route:
            self.route_process(task, report, actor_id=approver.id)
        return report

    def resync(self, task_id: str) -> PropagationReport:
        task = self._store.get_task(task_id)
        if task.status != SigningTaskState.SIGNED or task.signed_by is None:
            raise InvalidStateError(f"task is {task.status}; only signed tasks can be re-synced")
        approver = self._store.get_approver(task.signed_by)
        return self.propagate(task, approver)
