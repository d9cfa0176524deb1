#!/usr/bin/env python3
"""Programmatic emission example.

This demonstrates using the engine components directly:

* build a dispatcher against a throwaway SQLite database
* create a trigger with a numeric condition
* register an in-process listener
* emit an event and read back the audit tables
"""

from __future__ import annotations

import argparse
from typing import Sequence

from portal_workflow.delivery.notify import LoggingNotifier
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.dispatcher import build_dispatcher
from portal_workflow.engine.events import Event
from portal_workflow.engine.logging import configure_logging
from portal_workflow.store.triggers import TriggerCreate


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Emit an invoice.created event (programmatic example).")
    parser.add_argument("--amount", type=float, default=1500.0, help="Invoice amount")
    parser.add_argument(
        "--database-url",
        default="sqlite://",
        help="SQLAlchemy URL (defaults to an in-memory database)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings(WORKFLOW_DATABASE_URL=args.database_url)
    configure_logging(settings.log_level)

    notifier = LoggingNotifier()
    dispatcher = build_dispatcher(settings, notifier=notifier)

    dispatcher.triggers.create(
        TriggerCreate(
            name="Large invoice alert",
            event_type="invoice.created",
            conditions={"amount_gt": 1000},
            action_type="notify",
            action_config={"channel": "admin", "message": "Invoice {{entityId}} for {{amount}}"},
        )
    )

    def on_invoice_created(event: Event) -> None:
        print(f"listener saw {event.event_type} for entity {event.entity_id}")

    dispatcher.on("invoice.created", on_invoice_created)
    dispatcher.emit("invoice.created", {"entityId": 7, "amount": args.amount})

    for entry in dispatcher.logs.list():
        print(f"trigger #{entry.trigger_id} ({entry.trigger_name}): {entry.action_result.value}")
    for notification in notifier.recent():
        print(f"[{notification.channel}] {notification.message}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
