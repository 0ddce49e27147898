from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session

from sefin_desk.domain.models import EventEnvelope, EventRecord

EventHandler = Callable[[EventEnvelope], None]


class EventBus:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def bind_engine(self, engine: Engine | None) -> None:
        self._engine = engine

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)

    def _persist(self, event: EventEnvelope, session: Session | None) -> None:
        if session is None and self._engine is None:
            return
        should_commit = session is None
        if session is None:
            session = Session(self._engine)
        try:
            record = EventRecord(
                event_id=event.event_id,
                event_type=event.event_type,
                ts=event.ts,
                actor_id=event.actor_id,
                correlation_id=event.correlation_id,
                payload=event.payload,
            )
            session.add(record)
            if should_commit:
                session.commit()
        finally:
            if should_commit:
                session.close()

    def publish(self, event: EventEnvelope, session: Session | None = None) -> None:
        self._persist(event, session)
        handlers = [*self._subscribers.get(event.event_type, []), *self._subscribers.get("*", [])]
        for handler in handlers:
            handler(event)

    def publish_dict(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None = None,
        correlation_id: str | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(
            event_type=event_type,
            actor_id=actor_id,
            correlation_id=correlation_id,
            payload=payload,
        )
        self.publish(event)
        return event


event_bus = EventBus()
