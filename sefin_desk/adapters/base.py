from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from sefin_desk.domain.models import (
    Approver,
    ExecutionRecord,
    ExpenseProcess,
    SigningDocument,
    SigningTask,
    SigningTaskHistory,
)
from sefin_desk.domain.state_machine import (
    DocumentKind,
    DocumentStatus,
    ProcessWorkflowState,
    SigningTaskState,
)


class TaskStore(Protocol):
    """Read/write contract over the signing desk collections.

    Every call is an independent write or read; nothing here spans a
    transaction. Missing rows raise ``NotFoundError``; transport and
    constraint failures raise ``StoreError``. Implementations never retry.
    Conditional updates return ``None`` when their guard no longer holds.
    """

    def get_task(self, task_id: str) -> SigningTask: ...

    def list_tasks(self, *, status: SigningTaskState | None = None) -> list[SigningTask]: ...

    def list_tasks_by_process(self, process_id: str) -> list[SigningTask]: ...

    def list_tasks_by_approver(self, approver_id: str) -> list[SigningTask]: ...

    def create_task(self, task: SigningTask) -> SigningTask: ...

    def update_task(
        self,
        task_id: str,
        values: dict[str, Any],
        *,
        expected_status: SigningTaskState | None = None,
    ) -> SigningTask | None: ...

    def get_document(self, document_id: str) -> SigningDocument: ...

    def update_document(self, document_id: str, values: dict[str, Any]) -> SigningDocument: ...

    def list_execution_records(self, process_id: str, document_kind: DocumentKind) -> list[ExecutionRecord]: ...

    def update_execution_record(
        self,
        process_id: str,
        document_kind: DocumentKind,
        values: dict[str, Any],
        *,
        exclude_status: DocumentStatus | None = None,
    ) -> int: ...

    def get_process(self, process_id: str) -> ExpenseProcess: ...

    def update_process(
        self,
        process_id: str,
        values: dict[str, Any],
        *,
        expected_workflow_state: ProcessWorkflowState | None = None,
    ) -> ExpenseProcess | None: ...

    def get_approver(self, approver_id: str) -> Approver: ...

    def list_approvers(self, *, active_only: bool = True) -> list[Approver]: ...

    def add_history(self, entry: SigningTaskHistory) -> None: ...

    def list_history(self, task_id: str) -> list[SigningTaskHistory]: ...


class CredentialVerifier(Protocol):
    def verify(self, approver_id: str, credential: str) -> bool: ...


class Clock(Protocol):
    def now(self) -> datetime: ...
