"""Administrative REST API over triggers and the audit tables.

All routes are mounted under `/api/triggers`. Authentication is handled in front
of this service.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from portal_workflow.engine.dispatcher import EventDispatcher
from portal_workflow.engine.vocabulary import (
    action_type_catalogue,
    event_type_values,
    is_known_event_type,
)
from portal_workflow.server.models import EmitTestRequest, TriggerOptions
from portal_workflow.store.triggers import (
    InvalidTriggerError,
    TriggerCreate,
    TriggerNotFound,
    TriggerUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _dispatcher(request: Request) -> EventDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if not isinstance(dispatcher, EventDispatcher):
        raise HTTPException(status_code=500, detail="Workflow dispatcher not configured")
    return dispatcher


@router.get("")
def list_triggers(
    request: Request, event_type: str | None = Query(default=None, alias="eventType")
) -> list[dict[str, object]]:
    triggers = _dispatcher(request).triggers.list(event_type=event_type)
    return [t.model_dump(mode="json") for t in triggers]


@router.get("/options")
def trigger_options() -> dict[str, object]:
    options = TriggerOptions(event_types=event_type_values(), action_types=action_type_catalogue())
    return options.model_dump(mode="json")


@router.get("/logs/executions")
def list_execution_logs(
    request: Request,
    trigger_id: int | None = Query(default=None, alias="triggerId"),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[dict[str, object]]:
    logs = _dispatcher(request).logs.list(trigger_id=trigger_id, limit=limit)
    return [entry.model_dump(mode="json") for entry in logs]


@router.get("/logs/events")
def list_events(
    request: Request,
    event_type: str | None = Query(default=None, alias="eventType"),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[dict[str, object]]:
    events = _dispatcher(request).events.list(event_type=event_type, limit=limit)
    return [event.model_dump(mode="json") for event in events]


@router.post("/test-emit")
def test_emit(request: Request, payload: EmitTestRequest) -> dict[str, object]:
    if not is_known_event_type(payload.event_type):
        raise HTTPException(status_code=400, detail=f"Unknown event type: {payload.event_type}")

    context = {**payload.context, "isTest": True, "triggeredBy": "admin"}
    _dispatcher(request).emit(payload.event_type, context)
    logger.info("Test event emitted", extra={"event_type": payload.event_type})
    return {"ok": True, "eventType": payload.event_type}


@router.get("/{trigger_id}")
def get_trigger(request: Request, trigger_id: int) -> dict[str, object]:
    try:
        trigger = _dispatcher(request).triggers.get(trigger_id)
    except TriggerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return trigger.model_dump(mode="json")


@router.post("", status_code=201)
def create_trigger(request: Request, payload: TriggerCreate) -> dict[str, object]:
    try:
        trigger = _dispatcher(request).triggers.create(payload)
    except InvalidTriggerError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return trigger.model_dump(mode="json")


@router.put("/{trigger_id}")
def update_trigger(request: Request, trigger_id: int, payload: TriggerUpdate) -> dict[str, object]:
    try:
        trigger = _dispatcher(request).triggers.update(trigger_id, payload)
    except TriggerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidTriggerError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return trigger.model_dump(mode="json")


@router.delete("/{trigger_id}")
def delete_trigger(request: Request, trigger_id: int) -> dict[str, object]:
    _dispatcher(request).triggers.delete(trigger_id)
    return {"ok": True}


@router.post("/{trigger_id}/toggle")
def toggle_trigger(request: Request, trigger_id: int) -> dict[str, object]:
    try:
        trigger = _dispatcher(request).triggers.toggle(trigger_id)
    except TriggerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return trigger.model_dump(mode="json")
