from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, col, select

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
from sefin_desk.infra.db import get_engine

RowT = TypeVar("RowT", bound=SQLModel)


class SqlTaskStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine or get_engine(), expire_on_commit=False)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            raise StoreError(f"{operation} conflict") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"{operation} failed: {exc.__class__.__name__}") from exc

    def _get_row(self, session: Session, model: type[RowT], row_id: str, label: str) -> RowT:
        row = session.get(model, row_id)
        if row is None:
            raise NotFoundError(f"{label} not found")
        return row

    def add(self, row: RowT) -> RowT:
        with self._guard("insert"), self._session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def get_task(self, task_id: str) -> SigningTask:
        with self._guard("task read"), self._session() as session:
            return self._get_row(session, SigningTask, task_id, "task")

    def list_tasks(self, *, status: SigningTaskState | None = None) -> list[SigningTask]:
        with self._guard("task list"), self._session() as session:
            statement = select(SigningTask)
            if status is not None:
                statement = statement.where(SigningTask.status == status)
            return list(session.exec(statement.order_by(col(SigningTask.created_at).desc())).all())

    def list_tasks_by_process(self, process_id: str) -> list[SigningTask]:
        with self._guard("task list"), self._session() as session:
            return list(
                session.exec(
                    select(SigningTask)
                    .where(SigningTask.process_id == process_id)
                    .order_by(col(SigningTask.created_at))
                ).all()
            )

    def list_tasks_by_approver(self, approver_id: str) -> list[SigningTask]:
        with self._guard("task list"), self._session() as session:
            return list(session.exec(select(SigningTask).where(SigningTask.assigned_to == approver_id)).all())

    def create_task(self, task: SigningTask) -> SigningTask:
        return self.add(task)

    def update_task(
        self,
        task_id: str,
        values: dict[str, Any],
        *,
        expected_status: SigningTaskState | None = None,
    ) -> SigningTask | None:
        with self._guard("task update"), self._session() as session:
            self._get_row(session, SigningTask, task_id, "task")
            statement = sa.update(SigningTask).where(col(SigningTask.id) == task_id)
            if expected_status is not None:
                statement = statement.where(col(SigningTask.status) == expected_status)
            result = session.execute(statement.values(**values))
            session.commit()
            if int(getattr(result, "rowcount", 0) or 0) == 0:
                return None
            session.expire_all()
            return self._get_row(session, SigningTask, task_id, "task")

    def get_document(self, document_id: str) -> SigningDocument:
        with self._guard("document read"), self._session() as session:
            return self._get_row(session, SigningDocument, document_id, "document")

    def update_document(self, document_id: str, values: dict[str, Any]) -> SigningDocument:
        with self._guard("document update"), self._session() as session:
            row = self._get_row(session, SigningDocument, document_id, "document")
            for key, value in values.items():
                setattr(row, key, value)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def list_execution_records(self, process_id: str, document_kind: DocumentKind) -> list[ExecutionRecord]:
        with self._guard("execution record list"), self._session() as session:
            return list(
                session.exec(
                    select(ExecutionRecord)
                    .where(ExecutionRecord.process_id == process_id)
                    .where(ExecutionRecord.document_kind == document_kind)
                ).all()
            )

    def update_execution_record(
        self,
        process_id: str,
        document_kind: DocumentKind,
        values: dict[str, Any],
        *,
        exclude_status: DocumentStatus | None = None,
    ) -> int:
        with self._guard("execution record update"), self._session() as session:
            statement = (
                sa.update(ExecutionRecord)
                .where(col(ExecutionRecord.process_id) == process_id)
                .where(col(ExecutionRecord.document_kind) == document_kind)
            )
            if exclude_status is not None:
                statement = statement.where(col(ExecutionRecord.status) != exclude_status)
            result = session.execute(statement.values(**values))
            session.commit()
            return int(getattr(result, "rowcount", 0) or 0)

    def get_process(self, process_id: str) -> ExpenseProcess:
        with self._guard("process read"), self._session() as session:
            return self._get_row(session, ExpenseProcess, process_id, "process")

    def update_process(
        self,
        process_id: str,
        values: dict[str, Any],
        *,
        expected_workflow_state: ProcessWorkflowState | None = None,
    ) -> ExpenseProcess | None:
        with self._guard("process update"), self._session() as session:
            self._get_row(session, ExpenseProcess, process_id, "process")
            statement = sa.update(ExpenseProcess).where(col(ExpenseProcess.id) == process_id)
            if expected_workflow_state is not None:
                statement = statement.where(col(ExpenseProcess.workflow_state) == expected_workflow_state)
            result = session.execute(statement.values(**values))
            session.commit()
            if int(getattr(result, "rowcount", 0) or 0) == 0:
                return None
            session.expire_all()
            return self._get_row(session, ExpenseProcess, process_id, "process")

    def get_approver(self, approver_id: str) -> Approver:
        with self._guard("approver read"), self._session() as session:
            return self._get_row(session, Approver, approver_id, "approver")

    def list_approvers(self, *, active_only: bool = True) -> list[Approver]:
        with self._guard("approver list"), self._session() as session:
            statement = select(Approver)
            if active_only:
                statement = statement.where(col(Approver.is_active).is_(True))
            return list(session.exec(statement.order_by(col(Approver.id))).all())

    def add_history(self, entry: SigningTaskHistory) -> None:
        self.add(entry)

    def list_history(self, task_id: str) -> list[SigningTaskHistory]:
        with self._guard("history list"), self._session() as session:
            return list(
                session.exec(
                    select(SigningTaskHistory)
                    .where(SigningTaskHistory.task_id == task_id)
                    .order_by(col(SigningTaskHistory.created_at))
                ).all()
            )
