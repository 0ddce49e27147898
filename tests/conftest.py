from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from sefin_desk.adapters.fake_store import InMemoryTaskStore
from sefin_desk.domain.models import (
    Approver,
    EventEnvelope,
    ExecutionRecord,
    ExpenseProcess,
    SigningDocument,
    SigningTask,
)
from sefin_desk.domain.state_machine import DocumentKind, SigningTaskState
from sefin_desk.infra.clock import FixedClock
from sefin_desk.infra.credentials import PinCredentialVerifier, hash_signing_pin
from sefin_desk.infra.events import EventBus
from sefin_desk.services.signing_desk import SigningDesk

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
PIN = "2468"
SALT = "test-salt"
OPERATIONAL_UNIT = "SOSFU"
LEGAL_UNIT = "AJSEFIN"


@dataclass
class DeskEnv:
    store: InMemoryTaskStore
    clock: FixedClock
    bus: EventBus
    desk: SigningDesk
    events: list[EventEnvelope] = field(default_factory=list)

    def event_types(self) -> list[str]:
        return [item.event_type for item in self.events]

    def add_approver(
        self,
        approver_id: str,
        *,
        name: str | None = None,
        pin: str = PIN,
        capacity: int = 30,
        active: bool = True,
    ) -> Approver:
        return self.store.add(
            Approver(
                id=approver_id,
                display_name=name or approver_id.upper(),
                role_label="Ordenador de Despesas",
                daily_capacity=capacity,
                signing_pin_hash=hash_signing_pin(pin, SALT),
                is_active=active,
            )
        )

    def add_process(
        self,
        protocol: str,
        *,
        amount: float = 5_000.0,
        age_days: float = 10,
        requester_name: str = "Ana Souza",
        requester_unit: str = "Comarca de Belem",
        origin_unit: str | None = None,
    ) -> ExpenseProcess:
        created_at = NOW - timedelta(days=age_days)
        return self.store.add(
            ExpenseProcess(
                protocol_number=protocol,
                requester_name=requester_name,
                requester_unit=requester_unit,
                amount=amount,
                current_owner="SEFIN",
                origin_unit=origin_unit,
                created_at=created_at,
                updated_at=created_at,
            )
        )

    def add_task(
        self,
        process: ExpenseProcess,
        kind: DocumentKind,
        *,
        age_hours: float = 1,
        with_document: bool = True,
        with_record: bool = True,
        assigned_to: str | None = None,
        status: SigningTaskState = SigningTaskState.PENDING,
        signed_at: datetime | None = None,
        signed_by: str | None = None,
    ) -> SigningTask:
        document_id = None
        if with_document:
            document = self.store.add(
                SigningDocument(process_id=process.id, kind=kind, title=f"{kind} {process.protocol_number}")
            )
            document_id = document.id
        if with_record:
            self.store.add(ExecutionRecord(process_id=process.id, document_kind=kind))
        return self.store.add(
            SigningTask(
                process_id=process.id,
                document_id=document_id,
                document_kind=kind,
                title=f"{kind} {process.protocol_number}",
                status=status,
                created_at=NOW - timedelta(hours=age_hours),
                signed_at=signed_at,
                signed_by=signed_by,
                assigned_to=assigned_to,
                protocol_number=process.protocol_number,
                requester_name=process.requester_name,
                requester_unit=process.requester_unit,
                amount=process.amount,
                process_created_at=process.created_at,
            )
        )


@pytest.fixture()
def env() -> DeskEnv:
    store = InMemoryTaskStore()
    clock = FixedClock(NOW)
    bus = EventBus()
    desk = SigningDesk(
        store,
        verifier=PinCredentialVerifier(store, salt=SALT),
        clock=clock,
        bus=bus,
        operational_unit=OPERATIONAL_UNIT,
        legal_unit=LEGAL_UNIT,
    )
    desk_env = DeskEnv(store=store, clock=clock, bus=bus, desk=desk)
    bus.subscribe("*", desk_env.events.append)
    return desk_env
