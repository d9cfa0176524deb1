from __future__ import annotations

import json
from pathlib import Path

import pytest

import portal_workflow.engine.main as cli


@pytest.fixture
def database(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    path = tmp_path / "workflow.db"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("WORKFLOW_DATABASE_URL", f"sqlite:///{path}")
    monkeypatch.delenv("WORKFLOW_MAIL_BACKEND", raising=False)
    # Keep the root logger untouched between tests.
    monkeypatch.setattr(cli, "configure_logging", lambda _level: None)
    return path


def _create(*extra: str) -> int:
    return cli.main(
        [
            "create-trigger",
            "--name",
            "Big invoices",
            "--event-type",
            "invoice.created",
            "--action-type",
            "notify",
            "--action-config",
            json.dumps({"channel": "admin", "message": "Invoice {{entityId}}"}),
            *extra,
        ]
    )


def test_init_db_creates_database_file(database: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["init-db"]) == 0
    assert database.exists()
    assert "Schema ready" in capsys.readouterr().out


def test_create_list_toggle_delete(database: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _create("--priority", "2", "--conditions", '{"amount_gt": 1000}') == 0
    assert "Created #1 [active] p=2 invoice.created -> notify: Big invoices" in capsys.readouterr().out

    assert cli.main(["list-triggers"]) == 0
    assert "#1 [active]" in capsys.readouterr().out

    assert cli.main(["toggle-trigger", "1"]) == 0
    assert "#1 [inactive]" in capsys.readouterr().out

    assert cli.main(["delete-trigger", "1"]) == 0
    capsys.readouterr()
    assert cli.main(["list-triggers"]) == 0
    assert "No triggers" in capsys.readouterr().out


def test_emit_then_inspect_logs_and_events(database: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _create("--conditions", '{"amount_gt": 1000}') == 0
    assert cli.main(["emit", "invoice.created", "--payload", '{"entityId": 7, "amount": 1500}']) == 0
    assert cli.main(["emit", "invoice.created", "--payload", '{"entityId": 8, "amount": 10}']) == 0
    capsys.readouterr()

    assert cli.main(["logs", "--trigger-id", "1"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("invoice.created: skipped")
    assert lines[1].endswith("invoice.created: success")

    assert cli.main(["events", "--event-type", "invoice.created", "--limit", "1"]) == 0
    out = capsys.readouterr().out
    assert "entity=8" in out
    assert "entity=7" not in out


@pytest.mark.parametrize(
    "argv",
    [
        ["emit", "invoice.created", "--payload", "{not json"],
        ["emit", "invoice.created", "--payload", "[1, 2]"],
        ["toggle-trigger", "404"],
    ],
)
def test_bad_input_exits_with_1(database: Path, argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(argv) == 1
    assert capsys.readouterr().err


def test_invalid_trigger_is_rejected(database: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = cli.main(
        [
            "create-trigger",
            "--name",
            "Hook",
            "--event-type",
            "invoice.paid",
            "--action-type",
            "webhook",
            "--action-config",
            '{"url": "ftp://example.com"}',
        ]
    )
    assert rc == 1
    assert "url" in capsys.readouterr().err


def test_configuration_error_exits_with_2(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("WORKFLOW_WEBHOOK_TIMEOUT_SECONDS", "-1")

    assert cli.main(["list-triggers"]) == 2
    assert "Configuration error" in capsys.readouterr().err
