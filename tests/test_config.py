from pathlib import Path

import pytest

from followops.config import (
    WORKSPACES_DIR,
    WorkspaceError,
    _resolve_sqlite_path,
    load_workspace_file,
)


def _write(tmp_path: Path, body: str) -> Path:
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    config_path = ws_dir / "workspace.yaml"
    config_path.write_text(body, encoding="utf-8")
    return config_path


def test_resolve_sqlite_path_relative(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\n")

    resolved = _resolve_sqlite_path("./local.sqlite", config_path)
    assert resolved == (config_path.parent / "local.sqlite").resolve()


def test_resolve_sqlite_path_repo_relative(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path, "workspace: demo\nstore:\n  sqlite_path: workspaces/demo/local.sqlite\n"
    )

    resolved = _resolve_sqlite_path("workspaces/demo/local.sqlite", config_path)
    assert resolved == (tmp_path / "workspaces" / "demo" / "local.sqlite").resolve()


def test_minimal_workspace_uses_defaults(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\n")

    ws = load_workspace_file(config_path)

    assert ws.name == "demo"
    assert ws.account_id == "default"
    assert ws.followup.closed_statuses == ("won", "lost")
    assert ws.followup.dedup_window == "calendar_day"
    assert ws.followup.deadline_seconds is None
    assert ws.channels.zapi.instance_id is None
    assert ws.logging.format == "text"


def test_followup_section_is_parsed(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path,
        "workspace: demo\n"
        "account_id: acct-9\n"
        "store:\n  sqlite_path: ./local.sqlite\n"
        "followup:\n"
        "  closed_statuses: [won]\n"
        "  dedup_window: rolling_24h\n"
        "  max_workers: 8\n"
        "  deadline_seconds: 120\n"
        "logging:\n  level: debug\n  format: json\n",
    )

    ws = load_workspace_file(config_path)

    assert ws.account_id == "acct-9"
    assert ws.followup.closed_statuses == ("won",)
    assert ws.followup.dedup_window == "rolling_24h"
    assert ws.followup.max_workers == 8
    assert ws.followup.deadline_seconds == 120.0
    assert ws.logging.level == "DEBUG"
    assert ws.logging.format == "json"


@pytest.mark.parametrize(
    "followup",
    [
        "  dedup_window: weekly\n",
        "  max_workers: 0\n",
        "  closed_statuses: [archived]\n",
        "  deadline_seconds: -1\n",
    ],
)
def test_invalid_followup_values_are_rejected(tmp_path: Path, followup: str) -> None:
    config_path = _write(
        tmp_path, "workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\nfollowup:\n" + followup
    )

    with pytest.raises(WorkspaceError):
        load_workspace_file(config_path)


def test_missing_store_path_is_rejected(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "workspace: demo\nstore: {}\n")

    with pytest.raises(WorkspaceError):
        load_workspace_file(config_path)
