from __future__ import annotations

from sqlmodel import Session, SQLModel, create_engine, select

from sefin_desk.domain.models import EventEnvelope, EventRecord
from sefin_desk.infra.events import EventBus


def test_event_bus_publish_and_subscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_id)

    event = EventEnvelope(
        event_type="sefin.task.signed",
        correlation_id="proc-1",
        payload={"task_id": "task-1"},
    )
    bus.subscribe("sefin.task.signed", handler)

    with Session(engine) as session:
        bus.publish(event, session=session)
        session.commit()

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].correlation_id == "proc-1"
    assert seen == [event.event_id]


def test_bound_bus_persists_without_session_and_unbound_bus_only_dispatches() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    bound = EventBus(engine)
    unbound = EventBus()
    seen: list[str] = []
    unbound.subscribe("*", lambda event: seen.append(event.event_type))

    bound.publish_dict("sefin.process.routed", {"process_id": "proc-1"}, actor_id="ap-1")
    unbound.publish_dict("sefin.task.rejected", {"task_id": "task-1"})

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert [item.event_type for item in stored] == ["sefin.process.routed"]
    assert stored[0].actor_id == "ap-1"
    assert seen == ["sefin.task.rejected"]


def test_unsubscribe_stops_delivery() -> None:
    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_type)

    bus.subscribe("sefin.task.assigned", handler)
    bus.publish_dict("sefin.task.assigned", {})
    bus.unsubscribe("sefin.task.assigned", handler)
    bus.publish_dict("sefin.task.assigned", {})

    assert seen == ["sefin.task.assigned"]
