from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sefin_desk.adapters.sql_store import SqlTaskStore
from sefin_desk.domain.errors import ErrorKind, SigningDeskError
from sefin_desk.domain.models import (
    ApproverWorkloadRead,
    BatchSignRequest,
    CockpitKPIRead,
    OperationFailure,
    SigningTaskCreate,
    SigningTaskHistoryRead,
    SigningTaskRead,
    TaskAssignRequest,
    TaskFilter,
    TaskPeriodFilter,
    TaskPriorityFilter,
    TaskRedistributeRequest,
    TaskRejectRequest,
    TaskSignRequest,
    TaskSortKey,
    TaskStatusFilter,
)
from sefin_desk.domain.state_machine import DocumentKind
from sefin_desk.infra.events import event_bus
from sefin_desk.services.signing_desk import SigningDesk

router = APIRouter()

_STATUS_BY_ERROR: dict[ErrorKind, int] = {
    ErrorKind.INVALID_CREDENTIAL: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.STORE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_signing_desk() -> SigningDesk:
    return SigningDesk(SqlTaskStore(), bus=event_bus)


Desk = Annotated[SigningDesk, Depends(get_signing_desk)]


def _respond(result: BaseModel, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    if isinstance(result, OperationFailure):
        return JSONResponse(status_code=_STATUS_BY_ERROR[result.error_kind], content=result.model_dump(mode="json"))
    return JSONResponse(status_code=success_status, content=result.model_dump(mode="json"))


def _handle_error(exc: SigningDeskError) -> None:
    raise HTTPException(status_code=_STATUS_BY_ERROR[exc.kind], detail=str(exc)) from exc


@router.get("/tasks", response_model=list[SigningTaskRead])
def list_tasks(
    desk: Desk,
    status_filter: Annotated[TaskStatusFilter, Query(alias="status")] = TaskStatusFilter.PENDING,
    document_kind: DocumentKind | None = None,
    priority: TaskPriorityFilter = TaskPriorityFilter.ALL,
    period: TaskPeriodFilter = TaskPeriodFilter.ALL,
    search: str | None = None,
    assigned_to: str | None = None,
    sort_by: TaskSortKey = TaskSortKey.PRIORITY,
) -> list[SigningTaskRead]:
    filters = TaskFilter(
        status=status_filter,
        document_kind=document_kind,
        priority=priority,
        period=period,
        search=search,
        assigned_to=assigned_to,
        sort_by=sort_by,
    )
    try:
        return desk.list_tasks(filters)
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
def create_task(payload: SigningTaskCreate, desk: Desk) -> JSONResponse:
    return _respond(desk.create_task(payload), status.HTTP_201_CREATED)


@router.get("/tasks/batch-candidates", response_model=list[SigningTaskRead])
def batch_candidates(desk: Desk) -> list[SigningTaskRead]:
    try:
        return desk.batch_candidates()
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.post("/tasks:sign-batch")
def sign_batch(payload: BatchSignRequest, desk: Desk) -> JSONResponse:
    return _respond(desk.sign_many(payload.task_ids, payload.approver_id, payload.credential))


@router.get("/tasks/{task_id}", response_model=SigningTaskRead)
def get_task(task_id: str, desk: Desk) -> SigningTaskRead:
    try:
        return desk.get_task(task_id)
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.get("/tasks/{task_id}/history", response_model=list[SigningTaskHistoryRead])
def list_history(task_id: str, desk: Desk) -> list[SigningTaskHistoryRead]:
    try:
        rows = desk.list_history(task_id)
        return [SigningTaskHistoryRead.model_validate(item) for item in rows]
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.post("/tasks/{task_id}/assign")
def assign_task(task_id: str, payload: TaskAssignRequest, desk: Desk) -> JSONResponse:
    return _respond(desk.assign(task_id, payload.approver_id))


@router.post("/tasks/{task_id}/sign")
def sign_task(task_id: str, payload: TaskSignRequest, desk: Desk) -> JSONResponse:
    return _respond(desk.sign(task_id, payload.approver_id, payload.credential))


@router.post("/tasks/{task_id}/reject")
def reject_task(task_id: str, payload: TaskRejectRequest, desk: Desk) -> JSONResponse:
    return _respond(desk.reject(task_id, payload.approver_id, payload.reason))


@router.post("/tasks/{task_id}/redistribute")
def redistribute_task(task_id: str, payload: TaskRedistributeRequest, desk: Desk) -> JSONResponse:
    return _respond(desk.redistribute(task_id, payload.target_approver_id, payload.actor_id))


@router.post("/tasks/{task_id}/resync")
def resync_task(task_id: str, desk: Desk) -> JSONResponse:
    return _respond(desk.resync(task_id))


@router.get("/workload", response_model=list[ApproverWorkloadRead])
def get_workload(desk: Desk) -> list[ApproverWorkloadRead]:
    try:
        return desk.get_workload()
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.get("/workload/least-loaded", response_model=ApproverWorkloadRead)
def least_loaded_approver(desk: Desk, excluding: str | None = None) -> ApproverWorkloadRead:
    try:
        return desk.pick_least_loaded_approver(excluding)
    except SigningDeskError as exc:
        _handle_error(exc)
        raise


@router.get("/kpis", response_model=CockpitKPIRead)
def get_kpis(desk: Desk) -> CockpitKPIRead:
    try:
        return desk.get_kpis()
    except SigningDeskError as exc:
        _handle_error(exc)
        raise
