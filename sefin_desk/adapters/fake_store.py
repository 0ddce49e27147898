from __future__ import annotations

from typing import Any, TypeVar

from sqlmodel import SQLModel

from sefin_desk.domain.errors import NotFoundError, StoreError
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

RowT = TypeVar("RowT", bound=SQLModel)


class InMemoryTaskStore:
    """Dict-backed store for tests and local simulation.

    ``fail_on`` maps a method name to the number of upcoming calls that should
    raise ``StoreError``, which lets tests break a single cascade step.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, SigningTask] = {}
        self.documents: dict[str, SigningDocument] = {}
        self.execution_records: dict[str, ExecutionRecord] = {}
        self.processes: dict[str, ExpenseProcess] = {}
        self.approvers: dict[str, Approver] = {}
        self.history: list[SigningTaskHistory] = []
        self.fail_on: dict[str, int] = {}
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        remaining = self.fail_on.get(operation, 0)
        if remaining > 0:
            self.fail_on[operation] = remaining - 1
            raise StoreError(f"{operation} failed: simulated outage")

    @staticmethod
    def _copy(row: RowT) -> RowT:
        return type(row).model_validate(row.model_dump())

    @staticmethod
    def _lookup(rows: dict[str, RowT], row_id: str, label: str) -> RowT:
        row = rows.get(row_id)
        if row is None:
            raise NotFoundError(f"{label} not found")
        return row

    def add(self, row: RowT) -> RowT:
        self._enter("add")
        target: dict[str, Any]
        if isinstance(row, SigningTask):
            target = self.tasks
        elif isinstance(row, SigningDocument):
            target = self.documents
        elif isinstance(row, ExecutionRecord):
            target = self.execution_records
        elif isinstance(row, ExpenseProcess):
            target = self.processes
        elif isinstance(row, Approver):
            target = self.approvers
        else:
            raise TypeError(f"unsupported row type: {type(row).__name__}")
        if row.id in target:  # type: ignore[attr-defined]
            raise StoreError("insert conflict")
        target[row.id] = self._copy(row)  # type: ignore[attr-defined]
        return self._copy(row)

    def get_task(self, task_id: str) -> SigningTask:
        self._enter("get_task")
        return self._copy(self._lookup(self.tasks, task_id, "task"))

    def list_tasks(self, *, status: SigningTaskState | None = None) -> list[SigningTask]:
        self._enter("list_tasks")
        rows = [item for item in self.tasks.values() if status is None or item.status == status]
        rows.sort(key=lambda item: item.created_at, reverse=True)
        return [self._copy(item) for item in rows]

    def list_tasks_by_process(self, process_id: str) -> list[SigningTask]:
        self._enter("list_tasks_by_process")
        rows = [item for item in self.tasks.values() if item.process_id == process_id]
        rows.sort(key=lambda item: item.created_at)
        return [self._copy(item) for item in rows]

    def list_tasks_by_approver(self, approver_id: str) -> list[SigningTask]:
        self._enter("list_tasks_by_approver")
        return [self._copy(item) for item in self.tasks.values() if item.assigned_to == approver_id]

    def create_task(self, task: SigningTask) -> SigningTask:
        self._enter("create_task")
        if task.document_id is not None and any(
            item.document_id == task.document_id for item in self.tasks.values()
        ):
            raise StoreError("task create conflict")
        self.tasks[task.id] = self._copy(task)
        return self._copy(task)

    def update_task(
        self,
        task_id: str,
        values: dict[str, Any],
        *,
        expected_status: SigningTaskState | None = None,
    ) -> SigningTask | None:
        self._enter("update_task")
        row = self._lookup(self.tasks, task_id, "task")
        if expected_status is not None and row.status != expected_status:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        return self._copy(row)

    def get_document(self, document_id: str) -> SigningDocument:
        self._enter("get_document")
        return self._copy(self._lookup(self.documents, document_id, "document"))

    def update_document(self, document_id: str, values: dict[str, Any]) -> SigningDocument:
        self._enter("update_document")
        row = self._lookup(self.documents, document_id, "document")
        for key, value in values.items():
            setattr(row, key, value)
        return self._copy(row)

    def list_execution_records(self, process_id: str, document_kind: DocumentKind) -> list[ExecutionRecord]:
        self._enter("list_execution_records")
        return [
            self._copy(item)
            for item in self.execution_records.values()
            if item.process_id == process_id and item.document_kind == document_kind
        ]

    def update_execution_record(
        self,
        process_id: str,
        document_kind: DocumentKind,
        values: dict[str, Any],
        *,
        exclude_status: DocumentStatus | None = None,
    ) -> int:
        self._enter("update_execution_record")
        changed = 0
        for row in self.execution_records.values():
            if row.process_id != process_id or row.document_kind != document_kind:
                continue
            if exclude_status is not None and row.status == exclude_status:
                continue
            for key, value in values.items():
                setattr(row, key, value)
            changed += 1
        return changed

    def get_process(self, process_id: str) -> ExpenseProcess:
        self._enter("get_process")
        return self._copy(self._lookup(self.processes, process_id, "process"))

    def update_process(
        self,
        process_id: str,
        values: dict[str, Any],
        *,
        expected_workflow_state: ProcessWorkflowState | None = None,
    ) -> ExpenseProcess | None:
        self._enter("update_process")
        row = self._lookup(self.processes, process_id, "process")
        if expected_workflow_state is not None and row.workflow_state != expected_workflow_state:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        return self._copy(row)

    def get_approver(self, approver_id: str) -> Approver:
        self._enter("get_approver")
        return self._copy(self._lookup(self.approvers, approver_id, "approver"))

    def list_approvers(self, *, active_only: bool = True) -> list[Approver]:
        self._enter("list_approvers")
        rows = [item for item in self.approvers.values() if item.is_active or not active_only]
        rows.sort(key=lambda item: item.id)
        return [self._copy(item) for item in rows]

    def add_history(self, entry: SigningTaskHistory) -> None:
        self._enter("add_history")
        self.history.append(self._copy(entry))

    def list_history(self, task_id: str) -> list[SigningTaskHistory]:
        self._enter("list_history")
        return [self._copy(item) for item in self.history if item.task_id == task_id]
