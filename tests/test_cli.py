import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from followops.cli import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch, schema_path: Path) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    for args in (
        ["init"],
        ["workspace", "add", "demo", "--account", "acct-cli"],
        ["schema", "apply", "--schema", str(schema_path)],
    ):
        result = runner.invoke(app, args)
        assert result.exit_code == 0, result.output
    return tmp_path


def _invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


def test_follow_up_cycle(workspace: Path) -> None:
    created = _invoke(
        "lead", "add", "Maria Silva", "--product", "consultoria",
        "--created-at", "2024-01-01T09:00:00+00:00",
    )
    lead_id = created.stdout.strip().split(": ")[1]
    _invoke("settings", "set", "--days", "3", "--no-whatsapp")
    _invoke("template", "add", "Default", "--message", "Oi {nome}, {dias} dias sem falar!")

    checked = json.loads(_invoke("followup", "check", "--json").stdout)
    assert [item["lead_id"] for item in checked] == [lead_id]
    assert checked[0]["rendered_message"].startswith("Oi Maria, ")

    first = json.loads(_invoke("followup", "run", "--json").stdout)
    assert first[0]["account_id"] == "acct-cli"
    assert first[0]["sent"] == 1

    second = json.loads(_invoke("followup", "run", "--json").stdout)
    assert second[0]["sent"] == 0
    assert second[0]["skipped_duplicate"] == 1

    listed = _invoke("logs", "list").stdout
    assert "Maria Silva | in_app | sent" in listed

    metrics = json.loads(_invoke("metrics", "show", "--json").stdout)
    assert metrics["total_sent"] == 1
    assert metrics["response_rate"] == 0.0

    events = (workspace / "workspaces" / "demo" / "events.ndjson").read_text(encoding="utf-8")
    assert "followup.sent" in events
    assert "followup.skipped_duplicate" in events


def test_run_without_settings_fails(workspace: Path) -> None:
    result = runner.invoke(app, ["followup", "run"])

    assert result.exit_code == 1


def test_invalid_product_is_reported(workspace: Path) -> None:
    result = runner.invoke(app, ["lead", "add", "Ana", "--product", "podcast"])

    assert result.exit_code == 1


def test_exports_write_files(workspace: Path) -> None:
    _invoke("lead", "add", "Ana", "--product", "guia_ia")

    _invoke("export", "excel", "--out", "exports/crm.xlsx")
    _invoke("export", "metrics", "--out", "exports/metrics.xlsx", "--days", "3")
    _invoke("snapshot")

    assert (workspace / "exports" / "crm.xlsx").exists()
    assert (workspace / "exports" / "metrics.xlsx").exists()
    snapshots = list((workspace / "data" / "snapshots").iterdir())
    assert (snapshots[0] / "leads.csv").exists()


def test_commands_need_a_workspace(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["lead", "list"])

    assert result.exit_code == 1
