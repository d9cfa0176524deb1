"""Portal Workflow Engine.

Event-driven automation for the client portal:
- a closed vocabulary of business events, recorded for audit
- administrator-defined triggers (conditions + action) evaluated on every event
- in-process listeners, including the built-in business automations
"""

__version__ = "0.1.0"

from portal_workflow.engine.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]
