"""Trigger execution log: one append-only row per (event, trigger) pairing."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from portal_workflow.store.database import as_utc
from portal_workflow.store.models import WorkflowTrigger, WorkflowTriggerLog


class TriggerOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class TriggerLogRecord(BaseModel):
    id: int
    trigger_id: int
    trigger_name: str | None = None
    event_id: int | None
    event_type: str
    action_result: TriggerOutcome
    error_detail: str | None
    execution_time_ms: int
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TriggerLogStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def record(
        self,
        *,
        trigger_id: int,
        event_type: str,
        outcome: TriggerOutcome,
        event_id: int | None = None,
        error_detail: str | None = None,
        execution_time_ms: int = 0,
    ) -> int:
        with self._session_factory.begin() as session:
            row = WorkflowTriggerLog(
                trigger_id=trigger_id,
                event_id=event_id,
                event_type=event_type,
                action_result=outcome.value,
                error_detail=error_detail,
                execution_time_ms=max(0, execution_time_ms),
            )
            session.add(row)
            session.flush()
            return row.id

    def list(self, *, trigger_id: int | None = None, limit: int = 100) -> list[TriggerLogRecord]:
        """Newest first, with the trigger's current name (``None`` once it is deleted)."""

        stmt = (
            select(WorkflowTriggerLog, WorkflowTrigger.name)
            .outerjoin(WorkflowTrigger, WorkflowTrigger.id == WorkflowTriggerLog.trigger_id)
            .order_by(WorkflowTriggerLog.id.desc())
        )
        if trigger_id is not None:
            stmt = stmt.where(WorkflowTriggerLog.trigger_id == trigger_id)

        with self._session_factory() as session:
            rows = session.execute(stmt.limit(max(1, limit))).all()
            return [
                TriggerLogRecord(
                    id=log.id,
                    trigger_id=log.trigger_id,
                    trigger_name=name,
                    event_id=log.event_id,
                    event_type=log.event_type,
                    action_result=TriggerOutcome(log.action_result),
                    error_detail=log.error_detail,
                    execution_time_ms=log.execution_time_ms,
                    created_at=log.created_at,
                )
                for log, name in rows
            ]
