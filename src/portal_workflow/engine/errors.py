"""Errors raised while executing a trigger's action."""

from __future__ import annotations


class ActionError(RuntimeError):
    """An action could not be carried out; the message lands in the trigger log."""


class WebhookError(ActionError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MailDeliveryError(ActionError):
    """The mail transport rejected or could not deliver a message."""
