"""Typed action configuration.

Each action type has its own pydantic model; together they form a discriminated
union on ``type``. Stored ``action_config`` rows omit the ``type`` key (it lives
in the trigger's ``action_type`` column) and are re-joined when parsed.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from portal_workflow.engine.vocabulary import ActionType


class _ActionConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_storage(self) -> dict[str, object]:
        return self.model_dump(mode="json", exclude={"type"}, exclude_none=True)


class NotifyConfig(_ActionConfigBase):
    type: Literal["notify"] = "notify"
    channel: str = Field(min_length=1)
    message: str = Field(min_length=1)


class SendEmailConfig(_ActionConfigBase):
    """``to`` is ``client`` (payload ``clientEmail``), ``admin``, or a literal address."""

    type: Literal["send_email"] = "send_email"
    template: str = Field(min_length=1)
    to: str = Field(min_length=1)
    subject: str | None = None


class WebhookConfig(_ActionConfigBase):
    type: Literal["webhook"] = "webhook"
    url: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        url = value.strip()
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError("url must be an http(s) URL")
        return url

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class CreateTaskConfig(_ActionConfigBase):
    type: Literal["create_task"] = "create_task"
    title: str = Field(min_length=1)
    description: str | None = None
    assignee: str | None = None
    due_days: int | None = Field(default=None, ge=0)


class UpdateStatusConfig(_ActionConfigBase):
    type: Literal["update_status"] = "update_status"
    entity: Literal["project", "invoice", "client"]
    status: str = Field(min_length=1)
    field: str = Field(default="status", pattern=r"^[a-z_][a-z0-9_]*$")


ActionConfig = Annotated[
    NotifyConfig | SendEmailConfig | WebhookConfig | CreateTaskConfig | UpdateStatusConfig,
    Field(discriminator="type"),
]

_ACTION_CONFIG_ADAPTER: TypeAdapter[ActionConfig] = TypeAdapter(ActionConfig)


class ActionConfigError(ValueError):
    """Raised when an action configuration does not fit its action type."""


def parse_action_config(action_type: str | ActionType, raw: object) -> ActionConfig:
    """Validate ``raw`` as the configuration for ``action_type``.

    Raises:
        ActionConfigError: On an unknown action type or a malformed configuration.
    """

    try:
        kind = ActionType(action_type)
    except ValueError as e:
        raise ActionConfigError(f"Unknown action type: {action_type!r}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ActionConfigError(f"action_config for {kind.value} must be an object")

    try:
        return _ACTION_CONFIG_ADAPTER.validate_python({**raw, "type": kind.value})
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'action_config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ActionConfigError(f"Invalid action_config for {kind.value}: {details}") from e
