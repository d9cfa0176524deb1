"""Built-in business automations.

These are ordinary in-process listeners on the dispatcher. The business
handlers mutate portal records through :class:`PortalGateway` and announce the
follow-up event; the notification handlers email the client.
"""

from __future__ import annotations

import html
import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from portal_workflow.automations.gateway import PortalGateway
from portal_workflow.automations.milestones import generate_default_milestones
from portal_workflow.delivery.mail import MailMessage, MailSender
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.dispatcher import EventDispatcher
from portal_workflow.engine.events import Event
from portal_workflow.engine.payload import coerce_int
from portal_workflow.engine.vocabulary import EventType

logger = logging.getLogger(__name__)

AUTOMATION_ACTOR = "workflow-automation"

ACTIVE_PROJECT_STATUSES = frozenset({"active", "completed", "in-progress"})

PAYMENT_KEYWORDS = ("deposit", "payment", "invoice", "billing", "final payment")

INVOICE_TERMS = "Payment due within 14 days of receipt."

_EMAIL_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <p>Hi {name},</p>
    <p>{message}</p>
    <p style="text-align: center; margin-top: 30px;"><a href="{url}">{cta}</a></p>
  </div>
</body>
</html>
"""


def _actor(event: Event) -> str:
    value = event.payload.get("triggeredBy")
    return value if isinstance(value, str) and value else AUTOMATION_ACTOR


def _text(record: Mapping[str, object], key: str) -> str | None:
    value = record.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _price(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _priced_deliverables(raw: object, fallback_name: str) -> list[dict[str, object]]:
    """Invoice line items for deliverables that carry a positive price."""

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []

    items: list[dict[str, object]] = []
    for deliverable in raw:
        if not isinstance(deliverable, Mapping):
            continue
        price = _price(deliverable.get("price"))
        if price is None or price <= 0:
            continue
        items.append(
            {
                "description": _text(deliverable, "name") or fallback_name,
                "quantity": 1,
                "rate": price,
                "amount": price,
            }
        )
    return items


class WorkflowAutomations:
    def __init__(
        self,
        *,
        dispatcher: EventDispatcher,
        gateway: PortalGateway,
        mail_sender: MailSender,
        settings: WorkflowSettings,
    ) -> None:
        self._dispatcher = dispatcher
        self._gateway = gateway
        self._mail_sender = mail_sender
        self._settings = settings

    # Business automations

    def handle_proposal_accepted(self, event: Event) -> None:
        """Create (or refresh) the project behind an accepted proposal."""

        proposal_id = event.entity_id
        if proposal_id is None:
            logger.warning("proposal.accepted without a proposal id")
            return

        proposal = self._gateway.get_entity("proposal", proposal_id)
        if proposal is None:
            logger.warning("Proposal not found", extra={"proposal_id": proposal_id})
            return

        project_type = _text(proposal, "project_type")
        description = _text(proposal, "description")
        price = _price(proposal.get("final_price"))

        existing_project_id = coerce_int(proposal.get("project_id"))
        if existing_project_id is not None:
            logger.info(
                "Proposal already has a project, updating it",
                extra={"proposal_id": proposal_id, "project_id": existing_project_id},
            )
            self._gateway.update_project_details(
                existing_project_id, price=price, project_type=project_type, description=description
            )
            return

        client_id = coerce_int(proposal.get("client_id"))
        if client_id is None:
            logger.warning("Proposal has no client", extra={"proposal_id": proposal_id})
            return

        name = _text(proposal, "project_name") or (
            f"{project_type or 'Web'} Project - {datetime.now(tz=UTC):%b %Y}"
        )
        project_id = self._gateway.create_project(
            client_id=client_id,
            name=name,
            project_type=project_type,
            description=description,
            price=price,
        )
        self._gateway.link_proposal(proposal_id, project_id)
        logger.info(
            "Created project from proposal",
            extra={"proposal_id": proposal_id, "project_id": project_id},
        )

        try:
            generate_default_milestones(self._gateway, project_id, project_type)
        except Exception:
            logger.exception("Failed to generate milestones", extra={"project_id": project_id})

        self._dispatcher.emit(
            EventType.PROJECT_CREATED,
            {
                "entityId": project_id,
                "triggeredBy": _actor(event),
                "clientId": client_id,
                "projectType": project_type,
                "proposalId": proposal_id,
            },
        )

    def handle_contract_signed(self, event: Event) -> None:
        """Activate the contract's project unless it is already underway."""

        project_id = coerce_int(event.payload.get("projectId"))
        if project_id is None and event.entity_id is not None:
            contract = self._gateway.get_entity("contract", event.entity_id)
            if contract is not None:
                project_id = coerce_int(contract.get("project_id"))
        if project_id is None:
            logger.warning("contract.signed without a resolvable project")
            return

        project = self._gateway.get_entity("project", project_id)
        if project is None:
            logger.warning("Project not found", extra={"project_id": project_id})
            return

        previous_status = _text(project, "status")
        if previous_status in ACTIVE_PROJECT_STATUSES:
            logger.info(
                "Project already active, skipping",
                extra={"project_id": project_id, "previous_status": previous_status},
            )
            return

        actor = _actor(event)
        self._gateway.update_entity_status("project", project_id, "active")
        self._gateway.log_contract_signature(
            project_id,
            action="project_activated",
            actor=actor,
            details={
                "previousStatus": previous_status,
                "newStatus": "active",
                "signerName": event.payload.get("signerName"),
                "activatedAt": datetime.now(tz=UTC).isoformat(),
            },
        )
        logger.info("Project activated", extra={"project_id": project_id})

        self._dispatcher.emit(
            EventType.PROJECT_STATUS_CHANGED,
            {
                "entityId": project_id,
                "triggeredBy": actor,
                "previousStatus": previous_status,
                "newStatus": "active",
                "reason": "contract_signed",
            },
        )

    def handle_milestone_completed(self, event: Event) -> None:
        """Draft an invoice for a completed milestone's priced deliverables."""

        milestone_id = event.entity_id
        if milestone_id is None:
            logger.warning("project.milestone_completed without a milestone id")
            return

        milestone = self._gateway.get_entity("milestone", milestone_id)
        if milestone is None:
            logger.warning("Milestone not found", extra={"milestone_id": milestone_id})
            return

        title = _text(milestone, "title") or ""
        line_items = _priced_deliverables(milestone.get("deliverables"), title)
        if not line_items:
            if any(keyword in title.lower() for keyword in PAYMENT_KEYWORDS):
                logger.info(
                    "Payment milestone has no priced deliverables, manual invoice required",
                    extra={"milestone_id": milestone_id, "title": title},
                )
            else:
                logger.info(
                    "Not a payment milestone, skipping invoice",
                    extra={"milestone_id": milestone_id, "title": title},
                )
            return

        existing_invoice_id = self._gateway.find_milestone_invoice(milestone_id)
        if existing_invoice_id is not None:
            logger.info(
                "Invoice already exists for milestone",
                extra={"milestone_id": milestone_id, "invoice_id": existing_invoice_id},
            )
            return

        project_id = coerce_int(milestone.get("project_id"))
        client_id = coerce_int(milestone.get("client_id"))
        if project_id is None or client_id is None:
            logger.warning("Milestone has no project or client", extra={"milestone_id": milestone_id})
            return

        amount = sum(_price(item["amount"]) or 0.0 for item in line_items)
        project_name = _text(milestone, "project_name") or "Project"
        description = _text(milestone, "description") or "Invoice for milestone completion."
        invoice_id = self._gateway.create_milestone_invoice(
            milestone_id,
            project_id=project_id,
            client_id=client_id,
            line_items=line_items,
            notes=f"{project_name} - {title}\n\n{description}",
            terms=INVOICE_TERMS,
        )
        logger.info(
            "Created draft invoice for milestone",
            extra={"milestone_id": milestone_id, "invoice_id": invoice_id, "amount": amount},
        )

        self._dispatcher.emit(
            EventType.INVOICE_CREATED,
            {
                "entityId": invoice_id,
                "triggeredBy": _actor(event),
                "projectId": project_id,
                "clientId": client_id,
                "milestoneId": milestone_id,
                "amount": amount,
            },
        )

    # Client notifications

    def _notify_client(
        self, client_id: int | None, subject: str, message: str, cta_text: str, cta_path: str
    ) -> None:
        if client_id is None:
            return
        client = self._gateway.get_entity("client", client_id)
        email = _text(client, "email") if client is not None else None
        if client is None or email is None:
            logger.warning("Client email not found", extra={"client_id": client_id})
            return

        name = _text(client, "contact_name") or _text(client, "company_name") or "Valued Client"
        url = f"{self._settings.portal_url}{cta_path}"
        text = f"Hi {name},\n\n{message}\n\n{cta_text}: {url}\n\nBest regards,\nThe Portal Team"
        body = _EMAIL_HTML.format(
            name=html.escape(name),
            message=html.escape(message),
            url=html.escape(url, quote=True),
            cta=html.escape(cta_text),
        )

        try:
            self._mail_sender.send(
                MailMessage(
                    to=email,
                    subject=subject,
                    text=text,
                    html=body,
                    template="client_notification",
                    data={"clientId": client_id, "url": url},
                )
            )
        except Exception:
            logger.exception(
                "Failed to send client notification",
                extra={"client_id": client_id, "subject": subject},
            )
            return
        logger.info("Client notification sent", extra={"client_id": client_id, "subject": subject})

    def _project_scoped(self, entity: str, entity_id: int | None) -> Mapping[str, object] | None:
        if entity_id is None:
            return None
        return self._gateway.get_entity(entity, entity_id)

    def notify_proposal_accepted(self, event: Event) -> None:
        proposal = self._project_scoped("proposal", event.entity_id)
        if proposal is None:
            return
        project_name = _text(proposal, "project_name") or "your project"
        self._notify_client(
            coerce_int(proposal.get("client_id")),
            "Great News! Your Proposal Has Been Accepted",
            f'Your proposal for "{project_name}" has been accepted! '
            "The next step is to review and sign the contract to get started.",
            "View Your Portal",
            "/client/portal",
        )

    def notify_contract_signed(self, event: Event) -> None:
        project_id = coerce_int(event.payload.get("projectId"))
        project = self._project_scoped("project", project_id if project_id is not None else event.entity_id)
        if project is None:
            return
        project_name = _text(project, "project_name") or "your project"
        self._notify_client(
            coerce_int(project.get("client_id")),
            "Contract Signed - Project Now Active!",
            f'The contract for "{project_name}" has been signed and your project is now active! '
            "You can track progress, view milestones, and message us through your portal.",
            "View Project Status",
            "/client/portal#projects",
        )

    def notify_deliverable_approved(self, event: Event) -> None:
        deliverable = self._project_scoped("deliverable", event.entity_id)
        if deliverable is None:
            return
        title = _text(deliverable, "title") or "A deliverable"
        project_name = _text(deliverable, "project_name") or "your project"
        self._notify_client(
            coerce_int(deliverable.get("client_id")),
            "Deliverable Approved and Ready!",
            f'"{title}" for "{project_name}" has been approved and is now available in your Files.',
            "View Files",
            "/client/portal#files",
        )

    def notify_questionnaire_completed(self, event: Event) -> None:
        questionnaire = self._project_scoped("questionnaire", event.entity_id)
        if questionnaire is None:
            return
        title = _text(questionnaire, "title") or "Your questionnaire"
        project_name = _text(questionnaire, "project_name") or "your project"
        self._notify_client(
            coerce_int(questionnaire.get("client_id")),
            "Questionnaire Completed - Thank You!",
            f'Thank you for completing "{title}" for "{project_name}". '
            "Your responses have been received and added to your project files.",
            "View Your Portal",
            "/client/portal",
        )

    def notify_document_request_approved(self, event: Event) -> None:
        request = self._project_scoped("document_request", event.entity_id)
        if request is None:
            return
        title = _text(request, "title") or "Your document"
        project_name = _text(request, "project_name") or "your project"
        self._notify_client(
            coerce_int(request.get("client_id")),
            "Document Approved!",
            f'Your submitted document "{title}" for "{project_name}" has been approved. '
            "It has been added to your project files.",
            "View Files",
            "/client/portal#files",
        )

    def notify_invoice_paid(self, event: Event) -> None:
        invoice = self._project_scoped("invoice", event.entity_id)
        if invoice is None:
            return
        invoice_number = _text(invoice, "invoice_number") or str(event.entity_id)
        amount = _price(invoice.get("total_amount")) or 0.0
        project_name = _text(invoice, "project_name") or "your project"
        self._notify_client(
            coerce_int(invoice.get("client_id")),
            "Payment Received - Thank You!",
            f"We've received your payment of ${amount:.2f} for Invoice #{invoice_number} "
            f"({project_name}). A receipt is available in your portal.",
            "View Receipt",
            "/client/portal#invoices",
        )

    def notify_milestone_completed(self, event: Event) -> None:
        milestone = self._project_scoped("milestone", event.entity_id)
        if milestone is None:
            return
        title = (
            _text(milestone, "title") or _text(event.payload, "milestoneTitle") or "A milestone"
        )
        project_name = _text(milestone, "project_name") or "your project"
        self._notify_client(
            coerce_int(milestone.get("client_id")),
            "Milestone Completed!",
            f'Great news! The milestone "{title}" for "{project_name}" has been completed. '
            "Check your portal for updated project progress.",
            "View Project Progress",
            "/client/portal#projects",
        )


def register_workflow_automations(
    dispatcher: EventDispatcher,
    gateway: PortalGateway,
    mail_sender: MailSender,
    settings: WorkflowSettings,
) -> WorkflowAutomations:
    """Register the built-in automations on ``dispatcher``; call once per dispatcher."""

    automations = WorkflowAutomations(
        dispatcher=dispatcher, gateway=gateway, mail_sender=mail_sender, settings=settings
    )
    registrations = (
        (EventType.PROPOSAL_ACCEPTED, automations.handle_proposal_accepted),
        (EventType.CONTRACT_SIGNED, automations.handle_contract_signed),
        (EventType.PROJECT_MILESTONE_COMPLETED, automations.handle_milestone_completed),
        (EventType.PROPOSAL_ACCEPTED, automations.notify_proposal_accepted),
        (EventType.CONTRACT_SIGNED, automations.notify_contract_signed),
        (EventType.DELIVERABLE_APPROVED, automations.notify_deliverable_approved),
        (EventType.QUESTIONNAIRE_COMPLETED, automations.notify_questionnaire_completed),
        (EventType.DOCUMENT_REQUEST_APPROVED, automations.notify_document_request_approved),
        (EventType.INVOICE_PAID, automations.notify_invoice_paid),
        (EventType.PROJECT_MILESTONE_COMPLETED, automations.notify_milestone_completed),
    )
    for event_type, handler in registrations:
        dispatcher.on(event_type, handler)

    logger.info("Registered automation handlers", extra={"count": len(registrations)})
    return automations
