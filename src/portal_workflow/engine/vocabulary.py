"""Closed vocabularies for events and trigger actions.

Adding an event type is a vocabulary change here, not a schema change.
"""

from __future__ import annotations

from enum import Enum


class EventType(str, Enum):
    # Invoice
    INVOICE_CREATED = "invoice.created"
    INVOICE_SENT = "invoice.sent"
    INVOICE_PAID = "invoice.paid"
    INVOICE_OVERDUE = "invoice.overdue"
    INVOICE_CANCELLED = "invoice.cancelled"
    # Contract
    CONTRACT_CREATED = "contract.created"
    CONTRACT_SENT = "contract.sent"
    CONTRACT_SIGNED = "contract.signed"
    CONTRACT_EXPIRED = "contract.expired"
    # Project
    PROJECT_CREATED = "project.created"
    PROJECT_STARTED = "project.started"
    PROJECT_COMPLETED = "project.completed"
    PROJECT_STATUS_CHANGED = "project.status_changed"
    PROJECT_MILESTONE_COMPLETED = "project.milestone_completed"
    PROJECT_MILESTONES_GENERATED = "project.milestones_generated"
    MILESTONE_CREATED = "milestone.created"
    # Client
    CLIENT_CREATED = "client.created"
    CLIENT_ACTIVATED = "client.activated"
    CLIENT_DEACTIVATED = "client.deactivated"
    # Message
    MESSAGE_CREATED = "message.created"
    MESSAGE_READ = "message.read"
    # File
    FILE_UPLOADED = "file.uploaded"
    FILE_DOWNLOADED = "file.downloaded"
    # Proposal
    PROPOSAL_CREATED = "proposal.created"
    PROPOSAL_SENT = "proposal.sent"
    PROPOSAL_ACCEPTED = "proposal.accepted"
    PROPOSAL_REJECTED = "proposal.rejected"
    # Lead
    LEAD_CREATED = "lead.created"
    LEAD_CONVERTED = "lead.converted"
    LEAD_STAGE_CHANGED = "lead.stage_changed"
    # Deliverable
    DELIVERABLE_SUBMITTED = "deliverable.submitted"
    DELIVERABLE_APPROVED = "deliverable.approved"
    DELIVERABLE_REJECTED = "deliverable.rejected"
    # Task
    TASK_CREATED = "task.created"
    TASK_COMPLETED = "task.completed"
    TASK_OVERDUE = "task.overdue"
    # Questionnaires and document requests
    QUESTIONNAIRE_COMPLETED = "questionnaire.completed"
    DOCUMENT_REQUEST_SUBMITTED = "document_request.submitted"
    DOCUMENT_REQUEST_APPROVED = "document_request.approved"


class ActionType(str, Enum):
    NOTIFY = "notify"
    SEND_EMAIL = "send_email"
    WEBHOOK = "webhook"
    CREATE_TASK = "create_task"
    UPDATE_STATUS = "update_status"


ACTION_DESCRIPTIONS: dict[ActionType, str] = {
    ActionType.SEND_EMAIL: "Send an email using a template",
    ActionType.CREATE_TASK: "Create a task for the project",
    ActionType.UPDATE_STATUS: "Update entity status",
    ActionType.WEBHOOK: "Call an external webhook URL",
    ActionType.NOTIFY: "Send in-app notification",
}

EVENT_TYPES: frozenset[str] = frozenset(e.value for e in EventType)


def is_known_event_type(value: str) -> bool:
    return value in EVENT_TYPES


def event_type_values() -> list[str]:
    """Event type strings in declaration order (stable for the admin UI)."""

    return [e.value for e in EventType]


def action_type_catalogue() -> list[dict[str, str]]:
    return [
        {"type": action_type.value, "description": description}
        for action_type, description in ACTION_DESCRIPTIONS.items()
    ]


def entity_type_of(event_type: str) -> str | None:
    """Return the subject entity prefix of an event type (``invoice.paid`` -> ``invoice``)."""

    prefix, _, _rest = event_type.partition(".")
    return prefix or None


def normalize_event_type(value: str | EventType) -> str:
    """Plain string form of an event type (enum members and raw strings alike)."""

    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
