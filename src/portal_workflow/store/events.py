"""Event record store: append-only audit of every emitted event."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from portal_workflow.engine.events import Event
from portal_workflow.store.database import as_utc
from portal_workflow.store.models import SystemEvent


class EventRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    entity_type: str | None
    entity_id: int | None
    payload: dict[str, object]
    triggered_by: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class EventRecordStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def append(self, event: Event) -> int:
        """Persist ``event`` and return the new row id."""

        with self._session_factory.begin() as session:
            row = SystemEvent(
                event_type=event.event_type,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                payload=event.payload_dict(),
                triggered_by=event.triggered_by,
                created_at=event.created_at,
            )
            session.add(row)
            session.flush()
            return row.id

    def list(self, *, event_type: str | None = None, limit: int = 100) -> list[EventRecord]:
        """Newest first."""

        stmt = select(SystemEvent).order_by(SystemEvent.id.desc())
        if event_type:
            stmt = stmt.where(SystemEvent.event_type == event_type)
        with self._session_factory() as session:
            rows = session.scalars(stmt.limit(max(1, limit))).all()
            return [EventRecord.model_validate(row) for row in rows]
