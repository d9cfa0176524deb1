from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from portal_workflow.engine.payload import coerce_int, freeze, thaw
from portal_workflow.engine.vocabulary import entity_type_of


@dataclass(frozen=True, slots=True)
class Event:
    """An immutable fact announced by the application.

    ``payload`` is a read-only deep copy, shared safely by every trigger and
    listener of one emission. ``event_id`` is the persisted row id, or ``None``
    when the audit write failed.
    """

    event_type: str
    payload: Mapping[str, object]
    entity_id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    event_id: int | None = None

    @classmethod
    def create(cls, event_type: str, payload: Mapping[str, object] | None = None) -> Event:
        frozen = MappingProxyType({key: freeze(value) for key, value in (payload or {}).items()})
        return cls(event_type=event_type, payload=frozen, entity_id=coerce_int(frozen.get("entityId")))

    @property
    def entity_type(self) -> str | None:
        return entity_type_of(self.event_type)

    @property
    def triggered_by(self) -> str:
        value = self.payload.get("triggeredBy")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return "system"

    def payload_dict(self) -> dict[str, object]:
        """Mutable plain-JSON copy of the payload, for storage and outbound bodies."""

        return {key: thaw(value) for key, value in self.payload.items()}

    def with_id(self, event_id: int | None) -> Event:
        return Event(
            event_type=self.event_type,
            payload=self.payload,
            entity_id=self.entity_id,
            created_at=self.created_at,
            event_id=event_id,
        )
