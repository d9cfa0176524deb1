"""Action executor: turns a matched trigger into a side effect.

Handlers are looked up in a dispatch table keyed by action type; embedders can
add or replace entries with :meth:`ActionExecutor.register`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, TypeVar

import requests
from pydantic import BaseModel

from portal_workflow.delivery.mail import MailMessage, MailSender
from portal_workflow.delivery.notify import Notification, Notifier
from portal_workflow.engine.action_configs import (
    ActionConfig,
    ActionConfigError,
    CreateTaskConfig,
    NotifyConfig,
    SendEmailConfig,
    UpdateStatusConfig,
    WebhookConfig,
    parse_action_config,
)
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.errors import ActionError, WebhookError
from portal_workflow.engine.events import Event
from portal_workflow.engine.payload import coerce_int, interpolate
from portal_workflow.engine.vocabulary import ActionType

if TYPE_CHECKING:
    from portal_workflow.automations.gateway import PortalGateway

logger = logging.getLogger(__name__)

ActionHandler = Callable[[ActionConfig, Event], None]

_ConfigT = TypeVar("_ConfigT", bound=BaseModel)


def _expect(config: ActionConfig, kind: type[_ConfigT]) -> _ConfigT:
    if not isinstance(config, kind):
        raise ActionError(f"Handler expects {kind.__name__}, got {type(config).__name__}")
    return config


def _subject_for_template(template: str) -> str:
    return template.replace("_", " ").replace("-", " ").strip().capitalize()


def _plain_text_body(payload: Mapping[str, object]) -> str:
    lines = [
        f"{key}: {value}"
        for key, value in sorted(payload.items())
        if not isinstance(value, (Mapping, list, tuple))
    ]
    return "\n".join(lines)


class ActionExecutor:
    def __init__(
        self,
        *,
        settings: WorkflowSettings,
        mail_sender: MailSender,
        notifier: Notifier,
        session: requests.Session | None = None,
        gateway: PortalGateway | None = None,
    ) -> None:
        self._settings = settings
        self._mail_sender = mail_sender
        self._notifier = notifier
        self._session = session or requests.Session()
        self._gateway = gateway
        self._handlers: dict[ActionType, ActionHandler] = {
            ActionType.NOTIFY: self._notify,
            ActionType.SEND_EMAIL: self._send_email,
            ActionType.WEBHOOK: self._webhook,
            ActionType.CREATE_TASK: self._create_task,
            ActionType.UPDATE_STATUS: self._update_status,
        }

    def register(self, action_type: ActionType | str, handler: ActionHandler) -> None:
        self._handlers[ActionType(action_type)] = handler

    def close(self) -> None:
        self._session.close()

    def execute(self, action_type: str, action_config: object, event: Event) -> None:
        """Run one action for ``event``.

        The stored configuration is parsed again here; rows written before a
        schema change (or edited by hand) fail as an action error instead of
        crashing the emission.

        Raises:
            ActionError: If the configuration is invalid or the action fails.
        """

        try:
            config = parse_action_config(action_type, action_config)
        except ActionConfigError as e:
            raise ActionError(str(e)) from e

        handler = self._handlers.get(ActionType(config.type))
        if handler is None:
            raise ActionError(f"No handler registered for action type {config.type!r}")
        handler(config, event)

    def _notify(self, config: ActionConfig, event: Event) -> None:
        config = _expect(config, NotifyConfig)
        self._notifier.notify(
            Notification(
                channel=interpolate(config.channel, event.payload),
                message=interpolate(config.message, event.payload),
                event_type=event.event_type,
                entity_id=event.entity_id,
            )
        )

    def _resolve_recipient(self, to: str, payload: Mapping[str, object]) -> str:
        if to == "client":
            email = payload.get("clientEmail")
            if not isinstance(email, str) or not email.strip():
                raise ActionError("send_email to 'client' requires clientEmail in the event payload")
            return email.strip()
        if to == "admin":
            return self._settings.admin_email

        address = interpolate(to, payload).strip()
        if "@" not in address:
            raise ActionError(f"send_email recipient is not an email address: {address!r}")
        return address

    def _send_email(self, config: ActionConfig, event: Event) -> None:
        config = _expect(config, SendEmailConfig)
        recipient = self._resolve_recipient(config.to, event.payload)
        subject = (
            interpolate(config.subject, event.payload)
            if config.subject
            else _subject_for_template(config.template)
        )
        self._mail_sender.send(
            MailMessage(
                to=recipient,
                subject=subject,
                text=_plain_text_body(event.payload),
                template=config.template,
                data=event.payload_dict(),
            )
        )

    def _webhook(self, config: ActionConfig, event: Event) -> None:
        config = _expect(config, WebhookConfig)
        body = {
            "eventType": event.event_type,
            "entityId": event.entity_id,
            "payload": event.payload_dict(),
        }
        headers = {"Content-Type": "application/json", **config.headers}
        timeout = self._settings.webhook_timeout_seconds

        try:
            response = self._session.request(
                config.method,
                config.url,
                data=json.dumps(body, default=str),
                headers=headers,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise WebhookError(f"Webhook {config.method} {config.url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise WebhookError(
                f"Webhook failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        logger.info(
            "Webhook delivered",
            extra={"url": config.url, "status_code": response.status_code, "event_type": event.event_type},
        )

    def _require_gateway(self, action: str) -> PortalGateway:
        if self._gateway is None:
            raise ActionError(f"{action} requires a portal gateway, none is configured")
        return self._gateway

    def _create_task(self, config: ActionConfig, event: Event) -> None:
        config = _expect(config, CreateTaskConfig)
        gateway = self._require_gateway("create_task")

        project_id = coerce_int(event.payload.get("projectId"))
        if project_id is None and event.entity_type == "project":
            project_id = event.entity_id
        if project_id is None:
            raise ActionError("create_task requires projectId in the event payload")

        due_date = None
        if config.due_days is not None:
            due_date = (datetime.now(tz=UTC) + timedelta(days=config.due_days)).date().isoformat()

        task_id = gateway.create_task(
            project_id,
            title=interpolate(config.title, event.payload),
            description=interpolate(config.description, event.payload) if config.description else None,
            assignee=config.assignee,
            due_date=due_date,
        )
        logger.info("Task created", extra={"task_id": task_id, "project_id": project_id})

    def _update_status(self, config: ActionConfig, event: Event) -> None:
        config = _expect(config, UpdateStatusConfig)
        gateway = self._require_gateway("update_status")

        id_key = f"{config.entity}Id"
        entity_id = coerce_int(event.payload.get(id_key))
        if entity_id is None and event.entity_type == config.entity:
            entity_id = event.entity_id
        if entity_id is None:
            raise ActionError(f"update_status requires {id_key} in the event payload")

        gateway.update_entity_status(config.entity, entity_id, config.status, field=config.field)
        logger.info(
            "Entity status updated",
            extra={"entity": config.entity, "entity_id": entity_id, "status": config.status},
        )
