from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sefin_desk.adapters.base import Clock, CredentialVerifier, TaskStore
from sefin_desk.domain.errors import SigningDeskError
from sefin_desk.domain.models import (
    ApproverWorkloadRead,
    BatchOperationResult,
    BatchOperationSuccess,
    CockpitKPIRead,
    OperationFailure,
    PropagationOperationResult,
    PropagationOperationSuccess,
    SigningTaskCreate,
    SigningTaskHistory,
    SigningTaskRead,
    TaskFilter,
    TaskOperationResult,
    TaskOperationSuccess,
)
from sefin_desk.infra.clock import SystemClock
from sefin_desk.infra.credentials import PinCredentialVerifier
from sefin_desk.infra.events import EventBus, event_bus
from sefin_desk.services.batch_signing_service import BatchSigningService
from sefin_desk.services.cockpit_service import CockpitService
from sefin_desk.services.propagation_service import PropagationService
from sefin_desk.services.risk_service import RiskService
from sefin_desk.services.signing_service import SigningService, TaskChange
from sefin_desk.services.workload_service import WorkloadService

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


class SigningDesk:
    """Public boundary of the signing engine.

    Mutating calls never raise a domain error: they return a success model or
    an ``OperationFailure`` carrying the error kind, so callers (and batch
    aggregation) can branch on ``ok``. Queries raise like any service call.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        verifier: CredentialVerifier | None = None,
        clock: Clock | None = None,
        bus: EventBus | None = None,
        operational_unit: str | None = None,
        legal_unit: str | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.bus = bus or event_bus
        self.propagation = PropagationService(
            store,
            self.clock,
            self.bus,
            operational_unit=operational_unit,
            legal_unit=legal_unit,
        )
        self.signing = SigningService(
            store,
            verifier or PinCredentialVerifier(store),
            self.clock,
            self.bus,
            self.propagation,
        )
        self.batch = BatchSigningService(self.signing, self.propagation)
        self.workload = WorkloadService(store, self.clock, self.signing)
        self.cockpit = CockpitService(store, self.clock, RiskService())

    @staticmethod
    def _run(operation: str, call: Callable[[], ResultT]) -> ResultT | OperationFailure:
        try:
            return call()
        except SigningDeskError as exc:
            logger.info("%s failed: %s", operation, exc, extra={"error_kind": exc.kind})
            return OperationFailure(error_kind=exc.kind, message=str(exc))

    @staticmethod
    def _task_result(change: TaskChange) -> TaskOperationSuccess:
        return TaskOperationSuccess(task=SigningTaskRead.model_validate(change.task), warnings=change.warnings)

    def create_task(self, payload: SigningTaskCreate, actor_id: str | None = None) -> TaskOperationResult:
        return self._run("create_task", lambda: self._task_result(self.signing.create_task(payload, actor_id)))

    def assign(self, task_id: str, approver_id: str, actor_id: str | None = None) -> TaskOperationResult:
        return self._run("assign", lambda: self._task_result(self.signing.assign(task_id, approver_id, actor_id)))

    def sign(self, task_id: str, approver_id: str, credential: str) -> TaskOperationResult:
        return self._run("sign", lambda: self._task_result(self.signing.sign(task_id, approver_id, credential)))

    def reject(self, task_id: str, approver_id: str, reason: str) -> TaskOperationResult:
        return self._run("reject", lambda: self._task_result(self.signing.reject(task_id, approver_id, reason)))

    def sign_many(self, task_ids: list[str], approver_id: str, credential: str) -> BatchOperationResult:
        return self._run(
            "sign_many",
            lambda: BatchOperationSuccess(batch=self.batch.sign_many(task_ids, approver_id, credential)),
        )

    def redistribute(
        self,
        task_id: str,
        target_approver_id: str,
        actor_id: str | None = None,
    ) -> TaskOperationResult:
        return self._run(
            "redistribute",
            lambda: self._task_result(self.workload.redistribute(task_id, target_approver_id, actor_id)),
        )

    def resync(self, task_id: str) -> PropagationOperationResult:
        return self._run("resync", lambda: PropagationOperationSuccess(report=self.propagation.resync(task_id)))

    def get_task(self, task_id: str) -> SigningTaskRead:
        return SigningTaskRead.model_validate(self.signing.get_task(task_id))

    def list_history(self, task_id: str) -> list[SigningTaskHistory]:
        return self.signing.list_history(task_id)

    def list_pending(self, filters: TaskFilter | None = None) -> list[SigningTaskRead]:
        return self.cockpit.list_pending(filters)

    def list_tasks(self, filters: TaskFilter | None = None) -> list[SigningTaskRead]:
        return self.cockpit.list_tasks(filters)

    def batch_candidates(self) -> list[SigningTaskRead]:
        return self.cockpit.batch_candidates()

    def get_kpis(self) -> CockpitKPIRead:
        return self.cockpit.get_kpis()

    def get_workload(self) -> list[ApproverWorkloadRead]:
        return self.workload.get_workload()

    def pick_least_loaded_approver(self, excluding: str | None = None) -> ApproverWorkloadRead:
        return self.workload.pick_least_loaded_approver(excluding)
