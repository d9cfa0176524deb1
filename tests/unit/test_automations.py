"""Unit tests for the built-in business automations (gateway mocked)."""

from __future__ import annotations

from collections.abc import Mapping
from unittest.mock import Mock

import pytest

from portal_workflow.automations.gateway import PortalGateway
from portal_workflow.automations.handlers import register_workflow_automations
from portal_workflow.delivery.mail import LoggingMailSender
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.dispatcher import EventDispatcher
from portal_workflow.engine.errors import MailDeliveryError
from portal_workflow.engine.events import Event


def _gateway(entities: Mapping[tuple[str, int], Mapping[str, object]]) -> Mock:
    gateway = Mock(spec=PortalGateway)
    gateway.get_entity.side_effect = lambda entity, entity_id: entities.get((entity, entity_id))
    gateway.count_milestones.return_value = 0
    gateway.find_milestone_invoice.return_value = None
    return gateway


def _record(dispatcher: EventDispatcher, event_type: str) -> list[Event]:
    seen: list[Event] = []
    dispatcher.on(event_type, seen.append)
    return seen


CLIENT = {"email": "client@acme.test", "contact_name": "Dana"}


def test_registers_ten_handlers(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    register_workflow_automations(dispatcher, _gateway({}), LoggingMailSender(), settings)

    total = sum(len(dispatcher.registry.listeners(t)) for t in dispatcher.registry.event_types())
    assert total == 10
    assert len(dispatcher.registry.listeners("proposal.accepted")) == 2


def test_proposal_accepted_creates_project_and_emits_project_created(
    dispatcher: EventDispatcher, settings: WorkflowSettings
) -> None:
    gateway = _gateway(
        {
            ("proposal", 5): {
                "id": 5,
                "project_id": None,
                "client_id": 9,
                "project_type": "business-site",
                "final_price": 4500,
                "description": "New site",
                "project_name": "Acme Site",
            },
            ("client", 9): CLIENT,
        }
    )
    gateway.create_project.return_value = 77
    mail = LoggingMailSender()
    register_workflow_automations(dispatcher, gateway, mail, settings)
    created = _record(dispatcher, "project.created")

    dispatcher.emit("proposal.accepted", {"entityId": 5, "triggeredBy": "admin@portal.test"})

    gateway.create_project.assert_called_once_with(
        client_id=9, name="Acme Site", project_type="business-site", description="New site", price=4500.0
    )
    gateway.link_proposal.assert_called_once_with(5, 77)
    assert gateway.create_milestone.call_count == 5

    [event] = created
    assert event.entity_id == 77
    assert event.payload["proposalId"] == 5
    assert event.payload["triggeredBy"] == "admin@portal.test"

    [message] = mail.sent
    assert message.to == "client@acme.test"
    assert "Acme Site" in message.text
    assert "https://portal.test/client/portal" in message.text

    event_types = [e.event_type for e in reversed(dispatcher.events.list())]
    assert event_types == ["proposal.accepted", "project.created"]


def test_proposal_with_existing_project_updates_it(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway(
        {("proposal", 5): {"project_id": 12, "client_id": 9, "final_price": 100, "project_type": None}}
    )
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)
    created = _record(dispatcher, "project.created")

    dispatcher.emit("proposal.accepted", {"entityId": 5})

    gateway.update_project_details.assert_called_once_with(12, price=100.0, project_type=None, description=None)
    gateway.create_project.assert_not_called()
    assert created == []


def test_milestone_generation_failure_does_not_stop_project_created(
    dispatcher: EventDispatcher, settings: WorkflowSettings
) -> None:
    gateway = _gateway({("proposal", 5): {"client_id": 9, "project_type": "web-app"}})
    gateway.create_project.return_value = 78
    gateway.count_milestones.side_effect = RuntimeError("db locked")
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)
    created = _record(dispatcher, "project.created")

    dispatcher.emit("proposal.accepted", {"entityId": 5})

    assert [e.entity_id for e in created] == [78]
    assert created[0].payload["triggeredBy"] == "workflow-automation"


def test_contract_signed_activates_pending_project(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway(
        {
            ("contract", 3): {"project_id": 12},
            ("project", 12): {"status": "pending", "project_name": "Acme Site", "client_id": 9},
            ("client", 9): CLIENT,
        }
    )
    mail = LoggingMailSender()
    register_workflow_automations(dispatcher, gateway, mail, settings)
    changed = _record(dispatcher, "project.status_changed")

    dispatcher.emit("contract.signed", {"entityId": 3, "signerName": "Dana"})

    gateway.update_entity_status.assert_called_once_with("project", 12, "active")
    gateway.log_contract_signature.assert_called_once()
    _, kwargs = gateway.log_contract_signature.call_args
    assert kwargs["action"] == "project_activated"
    assert kwargs["details"]["previousStatus"] == "pending"
    assert kwargs["details"]["signerName"] == "Dana"

    [event] = changed
    assert event.payload["newStatus"] == "active"
    assert event.payload["reason"] == "contract_signed"


@pytest.mark.parametrize("status", ["active", "completed", "in-progress"])
def test_contract_signed_leaves_running_projects_alone(
    dispatcher: EventDispatcher, settings: WorkflowSettings, status: str
) -> None:
    gateway = _gateway({("project", 12): {"status": status, "client_id": 9}})
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)
    changed = _record(dispatcher, "project.status_changed")

    dispatcher.emit("contract.signed", {"projectId": 12})

    gateway.update_entity_status.assert_not_called()
    assert changed == []


def test_milestone_completed_creates_invoice_from_priced_deliverables(
    dispatcher: EventDispatcher, settings: WorkflowSettings
) -> None:
    gateway = _gateway(
        {
            ("milestone", 8): {
                "project_id": 12,
                "client_id": 9,
                "title": "Design",
                "project_name": "Acme Site",
                "deliverables": '[{"name": "Mockups", "price": 800}, {"name": "Notes"}, {"name": "Logo", "price": 200}]',
            }
        }
    )
    gateway.create_milestone_invoice.return_value = 31
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)
    invoices = _record(dispatcher, "invoice.created")

    dispatcher.emit("project.milestone_completed", {"entityId": 8})

    _, kwargs = gateway.create_milestone_invoice.call_args
    assert [item["description"] for item in kwargs["line_items"]] == ["Mockups", "Logo"]
    assert kwargs["notes"].startswith("Acme Site - Design")
    [event] = invoices
    assert event.entity_id == 31
    assert event.payload["amount"] == 1000.0
    assert event.payload["milestoneId"] == 8


def test_milestone_invoice_is_created_once(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway(
        {("milestone", 8): {"project_id": 12, "client_id": 9, "title": "Design", "deliverables": [{"price": 10}]}}
    )
    gateway.find_milestone_invoice.return_value = 30
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)

    dispatcher.emit("project.milestone_completed", {"entityId": 8})

    gateway.create_milestone_invoice.assert_not_called()


@pytest.mark.parametrize("title", ["Final Payment", "Design"])
def test_milestone_without_prices_is_skipped(
    dispatcher: EventDispatcher, settings: WorkflowSettings, title: str
) -> None:
    gateway = _gateway({("milestone", 8): {"project_id": 12, "client_id": 9, "title": title, "deliverables": None}})
    register_workflow_automations(dispatcher, gateway, LoggingMailSender(), settings)

    dispatcher.emit("project.milestone_completed", {"entityId": 8})

    gateway.create_milestone_invoice.assert_not_called()


def test_invoice_paid_notifies_client(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway(
        {
            ("invoice", 31): {"invoice_number": "INV-0031", "total_amount": 1000, "client_id": 9},
            ("client", 9): {"email": "billing@acme.test", "company_name": "Acme"},
        }
    )
    mail = LoggingMailSender()
    register_workflow_automations(dispatcher, gateway, mail, settings)

    dispatcher.emit("invoice.paid", {"entityId": 31})

    [message] = mail.sent
    assert message.to == "billing@acme.test"
    assert message.subject == "Payment Received - Thank You!"
    assert "$1000.00" in message.text
    assert "INV-0031" in message.text
    assert message.text.startswith("Hi Acme,")
    assert message.html is not None and "https://portal.test/client/portal#invoices" in message.html


@pytest.mark.parametrize(
    ("event_type", "entity"),
    [
        ("deliverable.approved", "deliverable"),
        ("questionnaire.completed", "questionnaire"),
        ("document_request.approved", "document_request"),
    ],
)
def test_project_scoped_notifications(
    dispatcher: EventDispatcher, settings: WorkflowSettings, event_type: str, entity: str
) -> None:
    gateway = _gateway(
        {(entity, 4): {"title": "Brand Kit", "project_name": "Acme Site", "client_id": 9}, ("client", 9): CLIENT}
    )
    mail = LoggingMailSender()
    register_workflow_automations(dispatcher, gateway, mail, settings)

    dispatcher.emit(event_type, {"entityId": 4})

    [message] = mail.sent
    assert '"Brand Kit"' in message.text
    assert '"Acme Site"' in message.text


def test_mail_failures_are_logged_not_raised(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway(
        {("milestone", 8): {"title": "Launch", "client_id": 9, "project_name": "Acme"}, ("client", 9): CLIENT}
    )
    mail = Mock()
    mail.send.side_effect = MailDeliveryError("SMTP down")
    register_workflow_automations(dispatcher, gateway, mail, settings)
    after = _record(dispatcher, "project.milestone_completed")

    dispatcher.emit("project.milestone_completed", {"entityId": 8})

    mail.send.assert_called_once()
    assert len(after) == 1


def test_notifications_skip_clients_without_email(dispatcher: EventDispatcher, settings: WorkflowSettings) -> None:
    gateway = _gateway({("deliverable", 4): {"title": "Kit", "client_id": 9}, ("client", 9): {"email": None}})
    mail = LoggingMailSender()
    register_workflow_automations(dispatcher, gateway, mail, settings)

    dispatcher.emit("deliverable.approved", {"entityId": 4})

    assert mail.sent == []
