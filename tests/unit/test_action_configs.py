"""Unit tests for typed action configuration."""

from __future__ import annotations

import pytest

from portal_workflow.engine.action_configs import (
    ActionConfigError,
    NotifyConfig,
    UpdateStatusConfig,
    WebhookConfig,
    parse_action_config,
)


def test_webhook_defaults_and_normalization() -> None:
    config = parse_action_config("webhook", {"url": " https://hooks.example.com/x ", "method": "put"})

    assert isinstance(config, WebhookConfig)
    assert config.url == "https://hooks.example.com/x"
    assert config.method == "PUT"
    assert config.headers == {}
    assert parse_action_config("webhook", {"url": "https://h.example"}).method == "POST"


def test_storage_form_omits_type_and_unset_optionals() -> None:
    config = parse_action_config("send_email", {"template": "invoice_paid", "to": "client"})

    assert config.to_storage() == {"template": "invoice_paid", "to": "client"}


def test_notify_requires_channel_and_message() -> None:
    assert isinstance(parse_action_config("notify", {"channel": "admin", "message": "hi"}), NotifyConfig)
    with pytest.raises(ActionConfigError, match="message"):
        parse_action_config("notify", {"channel": "admin"})


@pytest.mark.parametrize(
    ("action_type", "raw"),
    [
        ("webhook", {"url": "ftp://example.com"}),
        ("webhook", {"url": "https://example.com", "method": "TRACE"}),
        ("webhook", {"url": "https://example.com", "extra": 1}),
        ("update_status", {"entity": "spaceship", "status": "active"}),
        ("create_task", {"title": "x", "due_days": -1}),
        ("notify", ["channel", "message"]),
        ("teleport", {}),
    ],
)
def test_invalid_configs_are_rejected(action_type: str, raw: object) -> None:
    with pytest.raises(ActionConfigError):
        parse_action_config(action_type, raw)


def test_update_status_field_defaults_to_status() -> None:
    config = parse_action_config("update_status", {"entity": "project", "status": "active"})

    assert isinstance(config, UpdateStatusConfig)
    assert config.field == "status"


def test_stored_type_key_cannot_override_the_action_type() -> None:
    config = parse_action_config("notify", {"type": "webhook", "channel": "a", "message": "b"})

    assert isinstance(config, NotifyConfig)
