from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine, select

from sefin_desk import main as app_main
from sefin_desk.adapters.sql_store import SqlTaskStore
from sefin_desk.domain.models import (
    Approver,
    EventRecord,
    ExecutionRecord,
    ExpenseProcess,
    SigningDocument,
    SigningTask,
)
from sefin_desk.domain.state_machine import DocumentKind
from sefin_desk.infra import db
from sefin_desk.infra.credentials import hash_signing_pin
from sefin_desk.infra.events import event_bus

PIN = "1357"


@dataclass
class ApiEnv:
    client: TestClient
    store: SqlTaskStore
    engine: Engine


@pytest.fixture()
def api_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[ApiEnv, None, None]:
    db_path = tmp_path / "sefin_api_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    db.create_schema(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(event_bus, "_engine", test_engine)
    client = TestClient(app_main.app)
    yield ApiEnv(client=client, store=SqlTaskStore(test_engine), engine=test_engine)
    client.close()


def _seed_approver(store: SqlTaskStore, approver_id: str, capacity: int = 30) -> None:
    store.add(
        Approver(
            id=approver_id,
            display_name=approver_id.upper(),
            daily_capacity=capacity,
            signing_pin_hash=hash_signing_pin(PIN),
        )
    )


def _seed_process(store: SqlTaskStore, protocol: str, *, amount: float = 3_000.0) -> ExpenseProcess:
    return store.add(
        ExpenseProcess(
            protocol_number=protocol,
            requester_name="Ana Souza",
            requester_unit="Comarca de Belem",
            amount=amount,
            current_owner="SEFIN",
        )
    )


def _seed_task(store: SqlTaskStore, process: ExpenseProcess, kind: DocumentKind, *, age_hours: float = 1) -> str:
    document = store.add(SigningDocument(process_id=process.id, kind=kind, title=str(kind)))
    store.add(ExecutionRecord(process_id=process.id, document_kind=kind))
    task = store.create_task(
        SigningTask(
            process_id=process.id,
            document_id=document.id,
            document_kind=kind,
            created_at=datetime.now(UTC) - timedelta(hours=age_hours),
            protocol_number=process.protocol_number,
            requester_name=process.requester_name,
            requester_unit=process.requester_unit,
            amount=process.amount,
            process_created_at=process.created_at,
        )
    )
    return task.id


def test_health_endpoints(api_env: ApiEnv) -> None:
    assert api_env.client.get("/healthz").json() == {"status": "ok"}
    ready = api_env.client.get("/readyz")
    assert ready.status_code == 200
    assert ready.json()["checks"] == {"db": "ok"}


def test_sign_flow_over_http(api_env: ApiEnv) -> None:
    client, store = api_env.client, api_env.store
    _seed_approver(store, "ap-1")
    process = _seed_process(store, "SF-2026-0500")
    first = _seed_task(store, process, DocumentKind.ORDER)
    second = _seed_task(store, process, DocumentKind.REGULARITY_CERTIFICATE)

    listed = client.get("/api/sefin/tasks")
    assert listed.status_code == 200
    assert {item["id"] for item in listed.json()} == {first, second}
    assert all(item["risk_level"] is not None for item in listed.json())

    wrong_pin = client.post(f"/api/sefin/tasks/{first}/sign", json={"approver_id": "ap-1", "credential": "0000"})
    assert wrong_pin.status_code == 401
    assert wrong_pin.json() == {
        "ok": False,
        "error_kind": "INVALID_CREDENTIAL",
        "message": "invalid signing credential",
    }

    signed = client.post(f"/api/sefin/tasks/{first}/sign", json={"approver_id": "ap-1", "credential": PIN})
    assert signed.status_code == 200
    body = signed.json()
    assert body["ok"] is True
    assert body["task"]["status"] == "SIGNED"
    assert body["warnings"] == []
    assert store.get_process(process.id).status == "AWAITING_FINANCE_SIGNATURE"

    again = client.post(f"/api/sefin/tasks/{first}/sign", json={"approver_id": "ap-1", "credential": PIN})
    assert again.status_code == 409
    assert again.json()["error_kind"] == "INVALID_STATE"

    last = client.post(f"/api/sefin/tasks/{second}/sign", json={"approver_id": "ap-1", "credential": PIN})
    assert last.status_code == 200
    assert store.get_process(process.id).status == "APPROVED"

    history = client.get(f"/api/sefin/tasks/{second}/history")
    assert history.status_code == 200
    assert {item["action"] for item in history.json()} == {"signed", "process.routed"}

    with Session(api_env.engine) as session:
        event_types = {item.event_type for item in session.exec(select(EventRecord)).all()}
    assert {"sefin.task.signed", "sefin.process.routed"} <= event_types


def test_reject_assign_and_redistribute_over_http(api_env: ApiEnv) -> None:
    client, store = api_env.client, api_env.store
    _seed_approver(store, "ap-1")
    _seed_approver(store, "ap-2")
    process = _seed_process(store, "SF-2026-0501")
    task_id = _seed_task(store, process, DocumentKind.COMMITMENT_NOTE)

    assigned = client.post(f"/api/sefin/tasks/{task_id}/assign", json={"approver_id": "ap-1"})
    assert assigned.status_code == 200
    assert assigned.json()["task"]["assigned_to"] == "ap-1"

    same = client.post(f"/api/sefin/tasks/{task_id}/redistribute", json={"target_approver_id": "ap-1"})
    assert same.status_code == 409

    moved = client.post(
        f"/api/sefin/tasks/{task_id}/redistribute",
        json={"target_approver_id": "ap-2", "actor_id": "chief"},
    )
    assert moved.status_code == 200
    assert moved.json()["task"]["assigned_to"] == "ap-2"

    blank = client.post(f"/api/sefin/tasks/{task_id}/reject", json={"approver_id": "ap-2", "reason": " "})
    assert blank.status_code == 422
    assert blank.json()["error_kind"] == "VALIDATION_ERROR"

    rejected = client.post(
        f"/api/sefin/tasks/{task_id}/reject",
        json={"approver_id": "ap-2", "reason": "missing receipts"},
    )
    assert rejected.status_code == 200
    assert rejected.json()["task"]["status"] == "REJECTED"

    returned = client.get("/api/sefin/tasks", params={"status": "returned"})
    assert [item["id"] for item in returned.json()] == [task_id]


def test_batch_workload_and_kpis_over_http(api_env: ApiEnv) -> None:
    client, store = api_env.client, api_env.store
    _seed_approver(store, "ap-1", capacity=10)
    _seed_approver(store, "ap-2", capacity=10)
    process = _seed_process(store, "SF-2026-0502")
    big = _seed_process(store, "SF-2026-0503", amount=15_000.0)
    tasks = [_seed_task(store, process, DocumentKind.ORDER), _seed_task(store, process, DocumentKind.PAYMENT_ORDER)]
    pending_big = _seed_task(store, big, DocumentKind.ORDER, age_hours=30)
    client.post(f"/api/sefin/tasks/{pending_big}/assign", json={"approver_id": "ap-1"})

    batch = client.post(
        "/api/sefin/tasks:sign-batch",
        json={"task_ids": [*tasks, "task-ghost"], "approver_id": "ap-2", "credential": PIN},
    )
    assert batch.status_code == 200
    payload = batch.json()["batch"]
    assert payload["success_count"] == 2
    assert payload["failure_count"] == 1
    assert payload["items"][2]["error_kind"] == "NOT_FOUND"
    assert payload["routed_process_ids"] == [process.id]

    workload = {item["approver_id"]: item for item in client.get("/api/sefin/workload").json()}
    assert workload["ap-1"]["pending_count"] == 1
    assert workload["ap-1"]["workload_percent"] == 10
    assert workload["ap-2"]["signed_today_count"] == 2

    least = client.get("/api/sefin/workload/least-loaded", params={"excluding": "ap-2"})
    assert least.json()["approver_id"] == "ap-1"

    kpis = client.get("/api/sefin/kpis").json()
    assert kpis["pending_total"] == 1
    assert kpis["signed_today"] == 2
    assert kpis["urgent_count"] == 1
    assert kpis["high_value_count"] == 1

    candidates = client.get("/api/sefin/tasks/batch-candidates")
    assert candidates.status_code == 200


def test_unknown_task_and_resync_over_http(api_env: ApiEnv) -> None:
    client, store = api_env.client, api_env.store
    _seed_approver(store, "ap-1")
    process = _seed_process(store, "SF-2026-0504")
    task_id = _seed_task(store, process, DocumentKind.ORDER)

    assert client.get("/api/sefin/tasks/task-ghost").status_code == 404
    ghost = client.post("/api/sefin/tasks/task-ghost/sign", json={"approver_id": "ap-1", "credential": PIN})
    assert ghost.status_code == 404

    pending = client.post(f"/api/sefin/tasks/{task_id}/resync")
    assert pending.status_code == 409

    client.post(f"/api/sefin/tasks/{task_id}/sign", json={"approver_id": "ap-1", "credential": PIN})
    resynced = client.post(f"/api/sefin/tasks/{task_id}/resync")
    assert resynced.status_code == 200
    assert resynced.json()["report"]["process_routed"] is False
    assert resynced.json()["report"]["remaining_tasks"] == 0
