"""Event dispatcher: the core of the workflow engine.

One ``emit`` call is one sequential pass:

1. record the event (best effort)
2. load active triggers for the event type, fresh from the store
3. evaluate each trigger's conditions and run its action, logging the outcome
4. invoke in-process listeners in registration order

Nothing raised inside that pass reaches the caller of ``emit``.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
import time
from collections.abc import Awaitable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import requests

from portal_workflow.delivery.mail import MailSender, build_mail_sender
from portal_workflow.delivery.notify import LoggingNotifier, Notifier
from portal_workflow.engine.actions import ActionExecutor
from portal_workflow.engine.conditions import ConditionError, evaluate_conditions
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.errors import ActionError
from portal_workflow.engine.events import Event
from portal_workflow.engine.listeners import Listener, ListenerRegistry, describe
from portal_workflow.engine.logging import emission_context
from portal_workflow.engine.vocabulary import EventType, is_known_event_type, normalize_event_type
from portal_workflow.store.database import create_db_engine, create_session_factory, init_schema
from portal_workflow.store.events import EventRecordStore
from portal_workflow.store.logs import TriggerLogStore, TriggerOutcome
from portal_workflow.store.triggers import TriggerRecord, TriggerStore

if TYPE_CHECKING:
    from portal_workflow.automations.gateway import PortalGateway

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _run_awaitable(awaitable: Awaitable[object]) -> None:
    """Drive an async listener's result to completion from synchronous code.

    Without a running loop in this thread the awaitable gets a fresh loop. When
    ``emit`` is called from async code (or from an async listener) a loop is
    already running here, so the awaitable runs on a private loop in a worker
    thread while this thread waits for it.
    """

    async def _drive() -> object:
        return await awaitable

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(_drive())
        return

    context = contextvars.copy_context()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="workflow-listener") as pool:
        pool.submit(context.run, asyncio.run, _drive()).result()


class EventDispatcher:
    def __init__(
        self,
        *,
        events: EventRecordStore,
        triggers: TriggerStore,
        logs: TriggerLogStore,
        executor: ActionExecutor,
        registry: ListenerRegistry | None = None,
    ) -> None:
        self._events = events
        self._triggers = triggers
        self._logs = logs
        self._executor = executor
        self._registry = registry if registry is not None else ListenerRegistry()

    @property
    def events(self) -> EventRecordStore:
        return self._events

    @property
    def triggers(self) -> TriggerStore:
        return self._triggers

    @property
    def logs(self) -> TriggerLogStore:
        return self._logs

    @property
    def executor(self) -> ActionExecutor:
        return self._executor

    @property
    def registry(self) -> ListenerRegistry:
        return self._registry

    def on(self, event_type: str | EventType, listener: Listener) -> None:
        self._registry.on(event_type, listener)

    def off(self, event_type: str | EventType, listener: Listener) -> None:
        self._registry.off(event_type, listener)

    def emit(self, event_type: str | EventType, payload: Mapping[str, object] | None = None) -> None:
        """Announce an event. Never raises."""

        try:
            self._emit(normalize_event_type(event_type), payload)
        except Exception:
            logger.exception("Event emission failed", extra={"event_type": str(event_type)})

    def _emit(self, event_type: str, payload: Mapping[str, object] | None) -> None:
        started = time.monotonic()
        if not is_known_event_type(event_type):
            logger.warning("Emitting unknown event type", extra={"event_type": event_type})

        event = Event.create(event_type, payload)
        event = self._record_event(event)

        with emission_context(event_type, event.event_id):
            for trigger in self._load_triggers(event_type):
                self._run_trigger(trigger, event, started)

            for listener in self._registry.listeners(event_type):
                self._call_listener(listener, event)

        logger.debug(
            "Event processed",
            extra={"event_type": event_type, "event_id": event.event_id, "elapsed_ms": _elapsed_ms(started)},
        )

    def _record_event(self, event: Event) -> Event:
        try:
            return event.with_id(self._events.append(event))
        except Exception:
            logger.exception("Failed to record event", extra={"event_type": event.event_type})
            return event

    def _load_triggers(self, event_type: str) -> list[TriggerRecord]:
        try:
            return self._triggers.list_active(event_type)
        except Exception:
            logger.exception("Failed to load triggers", extra={"event_type": event_type})
            return []

    def _run_trigger(self, trigger: TriggerRecord, event: Event, started: float) -> None:
        try:
            conditions = trigger.parsed_conditions()
        except ConditionError as e:
            logger.warning(
                "Trigger has malformed conditions",
                extra={"trigger_id": trigger.id, "event_type": event.event_type, "error": str(e)},
            )
            self._write_log(trigger, event, TriggerOutcome.SKIPPED, started, f"Malformed conditions: {e}")
            return

        if not evaluate_conditions(conditions, event.payload):
            self._write_log(trigger, event, TriggerOutcome.SKIPPED, started)
            return

        try:
            self._executor.execute(trigger.action_type, trigger.action_config, event)
        except ActionError as e:
            logger.warning(
                "Trigger action failed",
                extra={"trigger_id": trigger.id, "event_type": event.event_type, "error": str(e)},
            )
            self._write_log(trigger, event, TriggerOutcome.FAILED, started, str(e))
            return
        except Exception as e:
            logger.exception(
                "Trigger action raised", extra={"trigger_id": trigger.id, "event_type": event.event_type}
            )
            self._write_log(trigger, event, TriggerOutcome.FAILED, started, str(e) or type(e).__name__)
            return

        logger.info(
            "Trigger executed",
            extra={"trigger_id": trigger.id, "event_type": event.event_type, "action_type": trigger.action_type},
        )
        self._write_log(trigger, event, TriggerOutcome.SUCCESS, started)

    def _write_log(
        self,
        trigger: TriggerRecord,
        event: Event,
        outcome: TriggerOutcome,
        started: float,
        error_detail: str | None = None,
    ) -> None:
        try:
            self._logs.record(
                trigger_id=trigger.id,
                event_type=event.event_type,
                outcome=outcome,
                event_id=event.event_id,
                error_detail=error_detail,
                execution_time_ms=_elapsed_ms(started),
            )
        except Exception:
            logger.exception(
                "Failed to write trigger log",
                extra={"trigger_id": trigger.id, "event_type": event.event_type, "outcome": outcome.value},
            )

    def _call_listener(self, listener: Listener, event: Event) -> None:
        try:
            result = listener(event)
            if inspect.isawaitable(result):
                _run_awaitable(result)
        except Exception:
            logger.exception(
                "Listener failed",
                extra={"event_type": event.event_type, "listener": describe(listener)},
            )


def build_dispatcher(
    settings: WorkflowSettings,
    *,
    mail_sender: MailSender | None = None,
    notifier: Notifier | None = None,
    http_session: requests.Session | None = None,
    gateway: PortalGateway | None = None,
    create_schema: bool = True,
) -> EventDispatcher:
    """Wire a complete dispatcher from settings.

    Collaborators not supplied are built from ``settings`` (mail) or defaulted
    (log-only notifier, a fresh ``requests.Session``, no gateway).
    """

    engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    if create_schema:
        init_schema(engine)
    session_factory = create_session_factory(engine)

    executor = ActionExecutor(
        settings=settings,
        mail_sender=mail_sender or build_mail_sender(settings),
        notifier=notifier or LoggingNotifier(),
        session=http_session,
        gateway=gateway,
    )
    return EventDispatcher(
        events=EventRecordStore(session_factory),
        triggers=TriggerStore(session_factory),
        logs=TriggerLogStore(session_factory),
        executor=executor,
    )
