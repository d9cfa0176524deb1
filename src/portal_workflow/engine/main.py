"""CLI entrypoint for the workflow engine.

Administrative access to triggers and the audit tables, manual emission, and
the REST server.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from portal_workflow import __version__
from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.engine.dispatcher import build_dispatcher
from portal_workflow.engine.logging import configure_logging
from portal_workflow.store.database import create_db_engine, init_schema
from portal_workflow.store.triggers import (
    InvalidTriggerError,
    TriggerCreate,
    TriggerNotFound,
    TriggerRecord,
)

logger = logging.getLogger(__name__)


def _parse_json_object(value: str | None, *, option: str) -> dict[str, object] | list[object] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"{option} is not valid JSON: {e}") from e
    if not isinstance(parsed, (dict, list)):
        raise argparse.ArgumentTypeError(f"{option} must be a JSON object or array")
    return parsed


def _format_trigger(trigger: TriggerRecord) -> str:
    state = "active" if trigger.is_active else "inactive"
    return (
        f"#{trigger.id} [{state}] p={trigger.priority} {trigger.event_type} -> "
        f"{trigger.action_type}: {trigger.name}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portal-workflow",
        description="Workflow trigger and automation engine",
    )
    parser.add_argument("--version", action="version", version=f"portal-workflow-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the engine's tables")

    list_triggers = subparsers.add_parser("list-triggers", help="List persisted triggers")
    list_triggers.add_argument("--event-type", default=None, help="Only triggers for this event type")

    create_trigger = subparsers.add_parser("create-trigger", help="Create a trigger")
    create_trigger.add_argument("--name", required=True, help="Human-readable trigger name")
    create_trigger.add_argument("--event-type", required=True, help="Event type to match, e.g. invoice.paid")
    create_trigger.add_argument(
        "--action-type",
        required=True,
        help="notify | send_email | webhook | create_task | update_status",
    )
    create_trigger.add_argument(
        "--action-config", required=True, help='Action configuration as JSON, e.g. \'{"url": "..."}\''
    )
    create_trigger.add_argument(
        "--conditions",
        default=None,
        help='Conditions as JSON: {"amount_gt": 1000} or [{"field": "amount", "op": "gt", "value": 1000}]',
    )
    create_trigger.add_argument("--description", default=None, help="Optional description")
    create_trigger.add_argument("--priority", type=int, default=0, help="Lower runs first (default 0)")
    create_trigger.add_argument("--inactive", action="store_true", help="Create the trigger disabled")

    toggle_trigger = subparsers.add_parser("toggle-trigger", help="Flip a trigger's active flag")
    toggle_trigger.add_argument("trigger_id", type=int)

    delete_trigger = subparsers.add_parser("delete-trigger", help="Delete a trigger")
    delete_trigger.add_argument("trigger_id", type=int)

    emit = subparsers.add_parser("emit", help="Emit an event through the dispatcher")
    emit.add_argument("event_type", help="Event type, e.g. invoice.created")
    emit.add_argument("--payload", default=None, help='Payload as a JSON object, e.g. \'{"entityId": 7}\'')

    logs = subparsers.add_parser("logs", help="Show trigger execution logs, newest first")
    logs.add_argument("--trigger-id", type=int, default=None)
    logs.add_argument("--limit", type=int, default=50)

    events = subparsers.add_parser("events", help="Show recorded events, newest first")
    events.add_argument("--event-type", default=None)
    events.add_argument("--limit", type=int, default=50)

    serve = subparsers.add_parser("serve", help="Run the administrative REST API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "init-db":
            init_schema(create_db_engine(settings.database_url, echo=settings.database_echo))
            print(f"Schema ready: {settings.database_url}")
            return 0

        if args.command == "serve":
            import uvicorn

            from portal_workflow.server.app import create_app
            from portal_workflow.server.config import ServerSettings

            uvicorn.run(create_app(ServerSettings()), host=args.host, port=args.port)
            return 0

        dispatcher = build_dispatcher(settings)

        if args.command == "list-triggers":
            triggers = dispatcher.triggers.list(event_type=args.event_type)
            if not triggers:
                print("No triggers")
            for trigger in triggers:
                print(_format_trigger(trigger))
            return 0

        if args.command == "create-trigger":
            data = TriggerCreate(
                name=args.name,
                description=args.description,
                event_type=args.event_type,
                action_type=args.action_type,
                action_config=_parse_json_object(args.action_config, option="--action-config"),
                conditions=_parse_json_object(args.conditions, option="--conditions"),
                priority=args.priority,
                is_active=not args.inactive,
            )
            trigger = dispatcher.triggers.create(data)
            print(f"Created {_format_trigger(trigger)}")
            return 0

        if args.command == "toggle-trigger":
            trigger = dispatcher.triggers.toggle(args.trigger_id)
            print(_format_trigger(trigger))
            return 0

        if args.command == "delete-trigger":
            dispatcher.triggers.delete(args.trigger_id)
            print(f"Deleted trigger #{args.trigger_id}")
            return 0

        if args.command == "emit":
            payload = _parse_json_object(args.payload, option="--payload") or {}
            if not isinstance(payload, dict):
                raise argparse.ArgumentTypeError("--payload must be a JSON object")
            dispatcher.emit(args.event_type, payload)
            print(f"Emitted {args.event_type}")
            return 0

        if args.command == "logs":
            for entry in dispatcher.logs.list(trigger_id=args.trigger_id, limit=args.limit):
                detail = f" ({entry.error_detail})" if entry.error_detail else ""
                print(
                    f"{entry.created_at.isoformat()} trigger #{entry.trigger_id} "
                    f"{entry.trigger_name or '<deleted>'} {entry.event_type}: "
                    f"{entry.action_result.value}{detail}"
                )
            return 0

        if args.command == "events":
            for record in dispatcher.events.list(event_type=args.event_type, limit=args.limit):
                print(
                    f"{record.created_at.isoformat()} #{record.id} {record.event_type} "
                    f"entity={record.entity_id} by={record.triggered_by} "
                    f"{json.dumps(record.payload, default=str, sort_keys=True)}"
                )
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (TriggerNotFound, InvalidTriggerError, argparse.ArgumentTypeError) as e:
        print(str(e), file=sys.stderr)
        return 1

    except ValidationError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
