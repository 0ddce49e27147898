from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from sefin_desk.domain.errors import ErrorKind
from sefin_desk.domain.state_machine import (
    DocumentKind,
    DocumentStatus,
    ProcessWorkflowState,
    RouteBranch,
    SigningTaskState,
)


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class ExpenseProcess(SQLModel, table=True):
    __tablename__ = "expense_processes"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    protocol_number: str = Field(index=True, unique=True)
    requester_name: str
    requester_unit: str = Field(index=True)
    amount: float = 0.0
    status: str = Field(default="AWAITING_FINANCE_SIGNATURE")
    workflow_state: ProcessWorkflowState = Field(
        default=ProcessWorkflowState.AWAITING_FINANCE_SIGNATURE,
        index=True,
    )
    current_owner: str = Field(index=True)
    origin_unit: str | None = None
    handoff_note: str | None = None
    routed_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class SigningDocument(SQLModel, table=True):
    __tablename__ = "signing_documents"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    process_id: str = Field(foreign_key="expense_processes.id", index=True)
    kind: DocumentKind = Field(index=True)
    title: str = ""
    status: DocumentStatus = Field(default=DocumentStatus.DRAFT, index=True)
    signed_at: datetime | None = None
    signed_by: str | None = None
    signer_name: str | None = None
    signer_role: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ExecutionRecord(SQLModel, table=True):
    __tablename__ = "execution_records"
    __table_args__ = (Index("ix_execution_records_process_kind", "process_id", "document_kind"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    process_id: str = Field(foreign_key="expense_processes.id", index=True)
    document_kind: DocumentKind
    status: DocumentStatus = Field(default=DocumentStatus.DRAFT, index=True)
    signed_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Approver(SQLModel, table=True):
    __tablename__ = "approvers"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    display_name: str
    role_label: str = "Ordenador de Despesas"
    email: str | None = Field(default=None, index=True)
    daily_capacity: int = 30
    signing_pin_hash: str = ""
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class SigningTask(SQLModel, table=True):
    __tablename__ = "signing_tasks"
    __table_args__ = (
        Index("ix_signing_tasks_process_status", "process_id", "status"),
        Index("ix_signing_tasks_assignee_status", "assigned_to", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    process_id: str = Field(foreign_key="expense_processes.id", index=True)
    document_id: str | None = Field(default=None, index=True, unique=True)
    document_kind: DocumentKind = Field(index=True)
    title: str = ""
    status: SigningTaskState = Field(default=SigningTaskState.PENDING, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    signed_at: datetime | None = None
    signed_by: str | None = Field(default=None, index=True)
    assigned_to: str | None = Field(default=None, index=True)
    assigned_at: datetime | None = None
    rejection_reason: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    protocol_number: str = ""
    requester_name: str = ""
    requester_unit: str = ""
    amount: float = 0.0
    process_created_at: datetime = Field(default_factory=now_utc)


class SigningTaskHistory(SQLModel, table=True):
    __tablename__ = "signing_task_history"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    task_id: str = Field(foreign_key="signing_tasks.id", index=True)
    action: str = Field(index=True)
    from_state: SigningTaskState | None = None
    to_state: SigningTaskState | None = None
    actor_id: str | None = Field(default=None, index=True)
    note: str | None = None
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskFactors(BaseModel):
    value_deviation: int = 0
    sla_urgency: int = 0
    time_pending: int = 0
    historical_risk: int = 0


class RiskAssessment(BaseModel):
    score: int
    level: RiskLevel
    factors: RiskFactors


class SigningTaskRead(ORMReadModel):
    id: str
    process_id: str
    document_id: str | None
    document_kind: DocumentKind
    title: str
    status: SigningTaskState
    created_at: datetime
    signed_at: datetime | None
    signed_by: str | None
    assigned_to: str | None
    assigned_at: datetime | None
    rejection_reason: str | None
    rejected_at: datetime | None
    rejected_by: str | None
    protocol_number: str
    requester_name: str
    requester_unit: str
    amount: float
    process_created_at: datetime
    risk_score: int | None = None
    risk_level: RiskLevel | None = None
    risk_factors: RiskFactors | None = None


class SigningTaskHistoryRead(ORMReadModel):
    id: str
    task_id: str
    action: str
    from_state: SigningTaskState | None
    to_state: SigningTaskState | None
    actor_id: str | None
    note: str | None
    detail: dict[str, Any]
    created_at: datetime


class ExpenseProcessRead(ORMReadModel):
    id: str
    protocol_number: str
    requester_name: str
    requester_unit: str
    amount: float
    status: str
    workflow_state: ProcessWorkflowState
    current_owner: str
    origin_unit: str | None
    handoff_note: str | None
    routed_at: datetime | None


class TaskStatusFilter(StrEnum):
    PENDING = "pending"
    SIGNED = "signed"
    RETURNED = "returned"
    ALL = "all"


class TaskPriorityFilter(StrEnum):
    ALL = "all"
    URGENT = "urgent"
    HIGH_VALUE = "high-value"
    NORMAL = "normal"


class TaskPeriodFilter(StrEnum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class TaskSortKey(StrEnum):
    PRIORITY = "priority"
    DATE = "date"
    VALUE = "value"
    RISK = "risk"


class TaskFilter(BaseModel):
    status: TaskStatusFilter = TaskStatusFilter.PENDING
    document_kind: DocumentKind | None = None
    priority: TaskPriorityFilter = TaskPriorityFilter.ALL
    period: TaskPeriodFilter = TaskPeriodFilter.ALL
    search: str | None = None
    assigned_to: str | None = None
    sort_by: TaskSortKey = TaskSortKey.PRIORITY


class SigningTaskCreate(BaseModel):
    process_id: str
    document_kind: DocumentKind
    document_id: str | None = None
    title: str | None = None


class TaskAssignRequest(BaseModel):
    approver_id: str


class TaskSignRequest(BaseModel):
    approver_id: str
    credential: str


class TaskRejectRequest(BaseModel):
    approver_id: str
    reason: str


class TaskRedistributeRequest(BaseModel):
    target_approver_id: str
    actor_id: str | None = None


class BatchSignRequest(BaseModel):
    task_ids: list[str]
    approver_id: str
    credential: str


class PropagationStep(StrEnum):
    DOCUMENT = "DOCUMENT"
    EXECUTION_RECORD = "EXECUTION_RECORD"
    PROCESS_ROUTING = "PROCESS_ROUTING"
    HISTORY = "HISTORY"
    EVENT = "EVENT"


class PartialPropagationWarning(BaseModel):
    step: PropagationStep
    task_id: str
    process_id: str | None = None
    message: str


class PropagationReport(BaseModel):
    task_id: str
    process_id: str
    document_synced: bool = False
    execution_records_synced: int = 0
    remaining_tasks: int | None = None
    process_routed: bool = False
    route_branch: RouteBranch | None = None
    warnings: list[PartialPropagationWarning] = PydanticField(default_factory=list)


class BatchSignItemRead(BaseModel):
    task_id: str
    ok: bool
    error_kind: ErrorKind | None = None
    message: str | None = None
    warnings: list[PartialPropagationWarning] = PydanticField(default_factory=list)


class BatchSignRead(BaseModel):
    success_count: int
    failure_count: int
    items: list[BatchSignItemRead]
    routed_process_ids: list[str] = PydanticField(default_factory=list)


class ApproverWorkloadRead(BaseModel):
    approver_id: str
    display_name: str
    role_label: str
    daily_capacity: int
    assigned_count: int
    pending_count: int
    signed_today_count: int
    workload_percent: int


class CockpitKPIRead(BaseModel):
    pending_total: int
    signed_today: int
    avg_sign_time_hours: float
    urgent_count: int
    high_value_count: int


class TaskOperationSuccess(BaseModel):
    ok: Literal[True] = True
    task: SigningTaskRead
    warnings: list[PartialPropagationWarning] = PydanticField(default_factory=list)


class BatchOperationSuccess(BaseModel):
    ok: Literal[True] = True
    batch: BatchSignRead


class PropagationOperationSuccess(BaseModel):
    ok: Literal[True] = True
    report: PropagationReport


class OperationFailure(BaseModel):
    ok: Literal[False] = False
    error_kind: ErrorKind
    message: str


TaskOperationResult = TaskOperationSuccess | OperationFailure
BatchOperationResult = BatchOperationSuccess | OperationFailure
PropagationOperationResult = PropagationOperationSuccess | OperationFailure
