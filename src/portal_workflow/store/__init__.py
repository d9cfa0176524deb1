"""Relational persistence for events, triggers and trigger execution logs."""

from portal_workflow.store.database import create_db_engine, create_session_factory, init_schema
from portal_workflow.store.events import EventRecord, EventRecordStore
from portal_workflow.store.logs import TriggerLogRecord, TriggerLogStore, TriggerOutcome
from portal_workflow.store.triggers import (
    InvalidTriggerError,
    TriggerCreate,
    TriggerNotFound,
    TriggerRecord,
    TriggerStore,
    TriggerUpdate,
)

__all__ = [
    "EventRecord",
    "EventRecordStore",
    "InvalidTriggerError",
    "TriggerCreate",
    "TriggerLogRecord",
    "TriggerLogStore",
    "TriggerNotFound",
    "TriggerOutcome",
    "TriggerRecord",
    "TriggerStore",
    "TriggerUpdate",
    "create_db_engine",
    "create_session_factory",
    "init_schema",
]
