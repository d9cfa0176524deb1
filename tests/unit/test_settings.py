"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from portal_workflow.engine.config import WorkflowSettings
from portal_workflow.server.config import ServerSettings

_ENV_NAMES = (
    "WORKFLOW_DATABASE_URL",
    "WORKFLOW_WEBHOOK_TIMEOUT_SECONDS",
    "WORKFLOW_MAIL_BACKEND",
    "WORKFLOW_CORS_ORIGINS",
    "SMTP_HOST",
    "WEBSITE_URL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = WorkflowSettings()

    assert settings.database_url == "sqlite:///workflow.db"
    assert settings.webhook_timeout_seconds == 10.0
    assert settings.mail_backend == "log"
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_DATABASE_URL", "postgresql://db/portal")
    monkeypatch.setenv("WORKFLOW_WEBHOOK_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("WEBSITE_URL", "https://portal.example.com/")

    settings = WorkflowSettings()

    assert settings.database_url == "postgresql://db/portal"
    assert settings.webhook_timeout_seconds == 2.5
    assert settings.portal_url == "https://portal.example.com"


def test_dotenv_file_is_read(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("ADMIN_EMAIL=ops@portal.test\nLOG_LEVEL=DEBUG\n", encoding="utf-8")

    settings = WorkflowSettings()

    assert settings.admin_email == "ops@portal.test"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("timeout", ["0", "-3", "500"])
def test_webhook_timeout_is_bounded(monkeypatch: pytest.MonkeyPatch, timeout: str) -> None:
    monkeypatch.setenv("WORKFLOW_WEBHOOK_TIMEOUT_SECONDS", timeout)

    with pytest.raises(ValidationError):
        WorkflowSettings()


def test_smtp_backend_requires_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_MAIL_BACKEND", "smtp")
    monkeypatch.setenv("SMTP_HOST", "  ")

    with pytest.raises(ValidationError, match="SMTP_HOST"):
        WorkflowSettings()


def test_server_settings_parse_cors_origins(monkeypatch: pytest.MonkeyPatch) -> None:
    assert ServerSettings().parsed_cors_origins() == ["http://localhost:3000", "http://127.0.0.1:3000"]

    monkeypatch.setenv("WORKFLOW_CORS_ORIGINS", " https://admin.portal.test , ,https://portal.test")
    assert ServerSettings().parsed_cors_origins() == ["https://admin.portal.test", "https://portal.test"]
