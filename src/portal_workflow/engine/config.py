"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Tests can point at a different env file via ``WorkflowSettings(_env_file=path)``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Settings for the trigger engine and its delivery collaborators.

    Environment variables:
    - WORKFLOW_DATABASE_URL
    - LOG_LEVEL
    - WORKFLOW_WEBHOOK_TIMEOUT_SECONDS
    - ADMIN_EMAIL / WEBSITE_URL
    - WORKFLOW_MAIL_BACKEND and the SMTP_* / MAIL_FROM family
    """

    database_url: str = Field(
        default="sqlite:///workflow.db",
        validation_alias="WORKFLOW_DATABASE_URL",
        description="SQLAlchemy URL of the relational store",
    )
    database_echo: bool = Field(
        default=False,
        validation_alias="WORKFLOW_DATABASE_ECHO",
        description="Echo SQL statements (debugging only)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    webhook_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="WORKFLOW_WEBHOOK_TIMEOUT_SECONDS",
        description="Upper bound for a single outbound webhook call",
        gt=0,
        le=120,
    )

    admin_email: str = Field(
        default="admin@example.com",
        validation_alias="ADMIN_EMAIL",
        description="Recipient used when an email action targets 'admin'",
    )
    website_url: str = Field(
        default="http://localhost:3000",
        validation_alias="WEBSITE_URL",
        description="Public portal URL used in client notification links",
    )

    mail_backend: Literal["log", "smtp"] = Field(
        default="log",
        validation_alias="WORKFLOW_MAIL_BACKEND",
        description="'smtp' delivers mail; 'log' only records what would be sent",
    )
    smtp_host: str = Field(default="localhost", validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT", gt=0, le=65535)
    smtp_username: str = Field(default="", validation_alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", validation_alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=True, validation_alias="SMTP_USE_TLS")
    mail_from: str = Field(default="noreply@example.com", validation_alias="MAIL_FROM")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_smtp_host(self) -> WorkflowSettings:
        if self.mail_backend == "smtp" and not self.smtp_host.strip():
            raise ValueError("SMTP_HOST is required when WORKFLOW_MAIL_BACKEND=smtp")
        return self

    @property
    def portal_url(self) -> str:
        return self.website_url.rstrip("/")
