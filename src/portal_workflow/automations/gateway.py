"""The entity-mutation collaborator used by automation handlers and actions.

The rest of the application owns projects, proposals, invoices and friends;
the engine only ever reaches them through this protocol.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol


class PortalGateway(Protocol):
    def get_entity(self, entity: str, entity_id: int) -> Mapping[str, object] | None:
        """Return a flat view of one record, or ``None`` if it does not exist.

        ``entity`` is one of ``proposal``, ``project``, ``contract``, ``milestone``,
        ``deliverable``, ``questionnaire``, ``document_request``, ``invoice`` or
        ``client``. Views that belong to a project carry ``client_id`` and
        ``project_name``.
        """
        ...

    def create_project(
        self,
        *,
        client_id: int,
        name: str,
        project_type: str | None,
        description: str | None,
        price: float | None,
        status: str = "pending",
    ) -> int: ...

    def update_project_details(
        self,
        project_id: int,
        *,
        price: float | None,
        project_type: str | None,
        description: str | None,
    ) -> None:
        """Overwrite only the fields that are not ``None``."""
        ...

    def link_proposal(self, proposal_id: int, project_id: int) -> None: ...

    def count_milestones(self, project_id: int) -> int: ...

    def create_milestone(
        self,
        project_id: int,
        *,
        title: str,
        description: str,
        due_date: str,
        deliverables: Sequence[str],
    ) -> int: ...

    def create_task(
        self,
        project_id: int,
        *,
        title: str,
        description: str | None,
        assignee: str | None,
        due_date: str | None,
    ) -> int: ...

    def update_entity_status(
        self, entity: str, entity_id: int, status: str, *, field: str = "status"
    ) -> None: ...

    def log_contract_signature(
        self, project_id: int, *, action: str, actor: str, details: Mapping[str, object]
    ) -> None: ...

    def find_milestone_invoice(self, milestone_id: int) -> int | None: ...

    def create_milestone_invoice(
        self,
        milestone_id: int,
        *,
        project_id: int,
        client_id: int,
        line_items: Sequence[Mapping[str, object]],
        notes: str,
        terms: str,
    ) -> int: ...
