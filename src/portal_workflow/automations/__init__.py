"""Built-in business automations layered on the dispatcher."""

from portal_workflow.automations.gateway import PortalGateway
from portal_workflow.automations.handlers import WorkflowAutomations, register_workflow_automations
from portal_workflow.automations.milestones import (
    DEFAULT_MILESTONES,
    generate_default_milestones,
    normalize_project_type,
)

__all__ = [
    "DEFAULT_MILESTONES",
    "PortalGateway",
    "WorkflowAutomations",
    "generate_default_milestones",
    "normalize_project_type",
    "register_workflow_automations",
]
