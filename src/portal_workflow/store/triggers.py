"""Trigger store: administrative CRUD over persisted workflow triggers.

Input is validated here, at the write boundary: the event type must be in the
closed vocabulary, the action configuration must fit its action type, and the
conditions must parse. Reads stay defensive; the dispatcher re-parses on use.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import delete, not_, select, update
from sqlalchemy.orm import Session, sessionmaker

from portal_workflow.engine.action_configs import (
    ActionConfig,
    ActionConfigError,
    parse_action_config,
)
from portal_workflow.engine.conditions import Condition, ConditionError, parse_conditions
from portal_workflow.engine.vocabulary import (
    ActionType,
    EventType,
    is_known_event_type,
    normalize_event_type,
)
from portal_workflow.store.database import as_utc, utc_now
from portal_workflow.store.models import WorkflowTrigger

logger = logging.getLogger(__name__)


class TriggerNotFound(LookupError):
    def __init__(self, trigger_id: int) -> None:
        super().__init__(f"Trigger not found: {trigger_id}")
        self.trigger_id = trigger_id


class InvalidTriggerError(ValueError):
    """Raised when trigger input fails validation."""


class TriggerRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    event_type: str
    conditions: dict[str, object] | list[dict[str, object]] | None = None
    action_type: str
    action_config: dict[str, object] = Field(default_factory=dict)
    is_active: bool
    priority: int
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def parsed_conditions(self) -> list[Condition]:
        return parse_conditions(self.conditions)

    def parsed_action(self) -> ActionConfig:
        return parse_action_config(self.action_type, self.action_config)


class TriggerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    event_type: str
    conditions: dict[str, object] | list[dict[str, object]] | None = None
    action_type: str
    action_config: dict[str, object] = Field(default_factory=dict)
    is_active: bool = True
    priority: int = 0


class TriggerUpdate(BaseModel):
    """Partial update; only fields explicitly set are written."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    event_type: str | None = None
    conditions: dict[str, object] | list[dict[str, object]] | None = None
    action_type: str | None = None
    action_config: dict[str, object] | None = None
    is_active: bool | None = None
    priority: int | None = None


def _validate_event_type(value: str | EventType) -> str:
    event_type = normalize_event_type(value)
    if not is_known_event_type(event_type):
        raise InvalidTriggerError(f"Unknown event type: {event_type!r}")
    return event_type


def _validate_action(action_type: str | ActionType, config: object) -> tuple[str, dict[str, object]]:
    try:
        parsed = parse_action_config(action_type, config)
    except ActionConfigError as e:
        raise InvalidTriggerError(str(e)) from e
    return parsed.type, parsed.to_storage()


def _normalize_conditions(raw: object) -> list[dict[str, object]] | None:
    try:
        conditions = parse_conditions(raw)
    except ConditionError as e:
        raise InvalidTriggerError(str(e)) from e
    if not conditions:
        return None
    return [c.to_json() for c in conditions]


class TriggerStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def list(self, *, event_type: str | EventType | None = None) -> list[TriggerRecord]:
        stmt = select(WorkflowTrigger).order_by(
            WorkflowTrigger.event_type, WorkflowTrigger.priority, WorkflowTrigger.id
        )
        if event_type:
            stmt = stmt.where(WorkflowTrigger.event_type == normalize_event_type(event_type))
        with self._session_factory() as session:
            return [TriggerRecord.model_validate(row) for row in session.scalars(stmt).all()]

    def list_active(self, event_type: str | EventType) -> list[TriggerRecord]:
        """Active triggers for ``event_type``: priority ascending, then id ascending."""

        stmt = (
            select(WorkflowTrigger)
            .where(
                WorkflowTrigger.event_type == normalize_event_type(event_type),
                WorkflowTrigger.is_active.is_(True),
            )
            .order_by(WorkflowTrigger.priority.asc(), WorkflowTrigger.id.asc())
        )
        with self._session_factory() as session:
            return [TriggerRecord.model_validate(row) for row in session.scalars(stmt).all()]

    def get(self, trigger_id: int) -> TriggerRecord:
        with self._session_factory() as session:
            row = session.get(WorkflowTrigger, trigger_id)
            if row is None:
                raise TriggerNotFound(trigger_id)
            return TriggerRecord.model_validate(row)

    def create(self, data: TriggerCreate) -> TriggerRecord:
        event_type = _validate_event_type(data.event_type)
        action_type, action_config = _validate_action(data.action_type, data.action_config)
        conditions = _normalize_conditions(data.conditions)

        now = utc_now()
        with self._session_factory.begin() as session:
            row = WorkflowTrigger(
                name=data.name.strip(),
                description=data.description,
                event_type=event_type,
                conditions=conditions,
                action_type=action_type,
                action_config=action_config,
                is_active=data.is_active,
                priority=data.priority,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            record = TriggerRecord.model_validate(row)

        logger.info(
            "Trigger created",
            extra={"trigger_id": record.id, "event_type": event_type, "action_type": action_type},
        )
        return record

    def update(self, trigger_id: int, data: TriggerUpdate) -> TriggerRecord:
        supplied = data.model_dump(exclude_unset=True)
        if not supplied:
            return self.get(trigger_id)

        with self._session_factory.begin() as session:
            row = session.get(WorkflowTrigger, trigger_id)
            if row is None:
                raise TriggerNotFound(trigger_id)

            values: dict[str, object] = {}
            if "name" in supplied:
                if data.name is None:
                    raise InvalidTriggerError("name cannot be null")
                values["name"] = data.name.strip()
            if "description" in supplied:
                values["description"] = data.description
            if "event_type" in supplied:
                if data.event_type is None:
                    raise InvalidTriggerError("event_type cannot be null")
                values["event_type"] = _validate_event_type(data.event_type)
            if "conditions" in supplied:
                values["conditions"] = _normalize_conditions(data.conditions)
            if data.action_type is not None or data.action_config is not None:
                action_type = data.action_type if data.action_type is not None else row.action_type
                config = data.action_config if data.action_config is not None else row.action_config
                values["action_type"], values["action_config"] = _validate_action(
                    action_type, config
                )
            if data.is_active is not None:
                values["is_active"] = data.is_active
            if data.priority is not None:
                values["priority"] = data.priority

            if not values:
                # Only nulls for non-nullable fields: nothing to write.
                return TriggerRecord.model_validate(row)

            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = utc_now()
            session.flush()
            record = TriggerRecord.model_validate(row)

        logger.info(
            "Trigger updated", extra={"trigger_id": trigger_id, "fields": sorted(supplied)}
        )
        return record

    def delete(self, trigger_id: int) -> None:
        """Hard delete; deleting an unknown id is a no-op."""

        with self._session_factory.begin() as session:
            result = session.execute(delete(WorkflowTrigger).where(WorkflowTrigger.id == trigger_id))
        if result.rowcount:
            logger.info("Trigger deleted", extra={"trigger_id": trigger_id})

    def toggle(self, trigger_id: int) -> TriggerRecord:
        """Flip ``is_active`` in one UPDATE, so concurrent toggles never lose a flip."""

        with self._session_factory.begin() as session:
            result = session.execute(
                update(WorkflowTrigger)
                .where(WorkflowTrigger.id == trigger_id)
                .values(is_active=not_(WorkflowTrigger.is_active), updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise TriggerNotFound(trigger_id)

        record = self.get(trigger_id)
        logger.info(
            "Trigger toggled", extra={"trigger_id": trigger_id, "is_active": record.is_active}
        )
        return record
