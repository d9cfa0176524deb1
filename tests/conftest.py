"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import Mock

import pytest
import requests
from sqlalchemy.orm import Session, sessionmaker

from portal_workflow.delivery.mail import LoggingMailSender
from portal_workflow.delivery.notify import LoggingNotifier
from portal_workflow.engine.actions import ActionExecutor
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.dispatcher import EventDispatcher
from portal_workflow.engine.listeners import ListenerRegistry
from portal_workflow.store.database import create_db_engine, create_session_factory, init_schema
from portal_workflow.store.events import EventRecordStore
from portal_workflow.store.logs import TriggerLogStore
from portal_workflow.store.triggers import TriggerStore


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> WorkflowSettings:
    """Settings isolated from the developer's environment and `.env`."""
    monkeypatch.chdir(tmp_path)
    for name in ("WORKFLOW_DATABASE_URL", "ADMIN_EMAIL", "WEBSITE_URL", "WORKFLOW_MAIL_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    return WorkflowSettings(
        WORKFLOW_DATABASE_URL="sqlite://",
        ADMIN_EMAIL="admin@portal.test",
        WEBSITE_URL="https://portal.test/",
        WORKFLOW_WEBHOOK_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    """Provide a fresh in-memory SQLite database with the schema created."""
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def trigger_store(session_factory: sessionmaker[Session]) -> TriggerStore:
    return TriggerStore(session_factory)


@pytest.fixture
def event_store(session_factory: sessionmaker[Session]) -> EventRecordStore:
    return EventRecordStore(session_factory)


@pytest.fixture
def log_store(session_factory: sessionmaker[Session]) -> TriggerLogStore:
    return TriggerLogStore(session_factory)


@pytest.fixture
def mail_sender() -> LoggingMailSender:
    return LoggingMailSender()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def http_session() -> Mock:
    session = Mock(spec=requests.Session)
    session.request.return_value = Mock(status_code=200, reason="OK")
    return session


@pytest.fixture
def gateway() -> Mock:
    return Mock()


@pytest.fixture
def executor(
    settings: WorkflowSettings,
    mail_sender: LoggingMailSender,
    notifier: LoggingNotifier,
    http_session: Mock,
    gateway: Mock,
) -> ActionExecutor:
    return ActionExecutor(
        settings=settings,
        mail_sender=mail_sender,
        notifier=notifier,
        session=http_session,
        gateway=gateway,
    )


@pytest.fixture
def dispatcher(
    event_store: EventRecordStore,
    trigger_store: TriggerStore,
    log_store: TriggerLogStore,
    executor: ActionExecutor,
) -> EventDispatcher:
    return EventDispatcher(
        events=event_store,
        triggers=trigger_store,
        logs=log_store,
        executor=executor,
        registry=ListenerRegistry(),
    )
