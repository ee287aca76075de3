from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from followops.domain.stages import DedupWindow, LeadStatus

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
DEFAULT_ACCOUNT = "default"


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class FollowUpConfig:
    closed_statuses: tuple[str, ...] = (LeadStatus.WON.value, LeadStatus.LOST.value)
    won_status: str = LeadStatus.WON.value
    dedup_window: str = DedupWindow.CALENDAR_DAY.value
    max_workers: int = 4
    deadline_seconds: float | None = None
    log_write_attempts: int = 3
    metrics_days: int = 7
    enforce_status_transitions: bool = False


@dataclass(frozen=True)
class ManyChatConfig:
    api_key_env: str = "MANYCHAT_API_KEY"
    base_url: str = "https://api.manychat.com"
    flow_ns: str | None = None


@dataclass(frozen=True)
class ZApiConfig:
    instance_id: str | None = None
    token_env: str = "ZAPI_TOKEN"
    client_token_env: str = "ZAPI_CLIENT_TOKEN"
    base_url: str = "https://api.z-api.io"


@dataclass(frozen=True)
class ChannelsConfig:
    manychat: ManyChatConfig = field(default_factory=ManyChatConfig)
    zapi: ZApiConfig = field(default_factory=ZApiConfig)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    path: Path
    account_id: str = DEFAULT_ACCOUNT
    followup: FollowUpConfig = field(default_factory=FollowUpConfig)
    channels: ChannelsConfig = field(default_factory=ChannelsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `followops workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    return load_workspace_file(workspace_config_path(name), name)


def load_workspace_file(config_path: Path, name: str | None = None) -> WorkspaceConfig:
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    return WorkspaceConfig(
        name=name or data.get("workspace") or config_path.parent.name,
        store=_parse_store(data.get("store"), config_path),
        path=config_path.parent,
        account_id=str(data.get("account_id") or DEFAULT_ACCOUNT),
        followup=_parse_followup(data.get("followup")),
        channels=_parse_channels(data.get("channels")),
        logging=_parse_logging(data.get("logging")),
    )


def write_workspace_config(name: str, account_id: str = DEFAULT_ACCOUNT) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    defaults = FollowUpConfig()
    config = {
        "workspace": name,
        "account_id": account_id,
        "store": {"sqlite_path": "./local.sqlite"},
        "followup": {
            "closed_statuses": list(defaults.closed_statuses),
            "won_status": defaults.won_status,
            "dedup_window": defaults.dedup_window,
            "max_workers": defaults.max_workers,
            "deadline_seconds": defaults.deadline_seconds,
            "log_write_attempts": defaults.log_write_attempts,
            "metrics_days": defaults.metrics_days,
            "enforce_status_transitions": defaults.enforce_status_transitions,
        },
        "channels": {
            "manychat": {"api_key_env": "MANYCHAT_API_KEY", "flow_ns": None},
            "zapi": {
                "instance_id": None,
                "token_env": "ZAPI_TOKEN",
                "client_token_env": "ZAPI_CLIENT_TOKEN",
            },
        },
        "logging": {"level": "INFO", "format": "text"},
    }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _parse_store(store_data: Any, config_path: Path) -> StoreConfig:
    if not isinstance(store_data, dict):
        raise WorkspaceError("Invalid workspace store configuration.")
    sqlite_path_raw = store_data.get("sqlite_path")
    if not sqlite_path_raw:
        raise WorkspaceError("Workspace store.sqlite_path is required.")
    sqlite_path = _resolve_sqlite_path(sqlite_path_raw, config_path)
    if sqlite_path is None:
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=sqlite_path)


def _resolve_sqlite_path(sqlite_path_raw: Any, config_path: Path) -> Path | None:
    if not isinstance(sqlite_path_raw, str):
        return None
    raw_path = Path(sqlite_path_raw)
    if raw_path.is_absolute():
        return raw_path
    # Prefer paths relative to the workspace directory.
    workspace_dir = config_path.parent
    if raw_path.parts and raw_path.parts[0] == WORKSPACES_DIR.name:
        return (workspace_dir.parent.parent / raw_path).resolve()
    return (workspace_dir / raw_path).resolve()


def _parse_followup(data: Any) -> FollowUpConfig:
    if data is None:
        return FollowUpConfig()
    if not isinstance(data, dict):
        raise WorkspaceError("Workspace followup section must be a mapping.")
    defaults = FollowUpConfig()
    statuses = [s.value for s in LeadStatus]

    closed = data.get("closed_statuses", list(defaults.closed_statuses))
    if not isinstance(closed, list) or any(s not in statuses for s in closed):
        raise WorkspaceError(f"followup.closed_statuses must be a list of: {', '.join(statuses)}")

    won_status = data.get("won_status", defaults.won_status)
    if won_status not in statuses:
        raise WorkspaceError(f"followup.won_status must be one of: {', '.join(statuses)}")

    dedup_window = data.get("dedup_window", defaults.dedup_window)
    windows = [w.value for w in DedupWindow]
    if dedup_window not in windows:
        raise WorkspaceError(f"followup.dedup_window must be one of: {', '.join(windows)}")

    deadline = data.get("deadline_seconds", defaults.deadline_seconds)
    if deadline is not None and (not isinstance(deadline, (int, float)) or deadline <= 0):
        raise WorkspaceError("followup.deadline_seconds must be a positive number.")

    return FollowUpConfig(
        closed_statuses=tuple(closed),
        won_status=won_status,
        dedup_window=dedup_window,
        max_workers=_positive_int(data, "max_workers", defaults.max_workers),
        deadline_seconds=float(deadline) if deadline is not None else None,
        log_write_attempts=_positive_int(data, "log_write_attempts", defaults.log_write_attempts),
        metrics_days=_positive_int(data, "metrics_days", defaults.metrics_days),
        enforce_status_transitions=bool(
            data.get("enforce_status_transitions", defaults.enforce_status_transitions)
        ),
    )


def _parse_channels(data: Any) -> ChannelsConfig:
    if data is None:
        return ChannelsConfig()
    if not isinstance(data, dict):
        raise WorkspaceError("Workspace channels section must be a mapping.")
    manychat = data.get("manychat") or {}
    zapi = data.get("zapi") or {}
    if not isinstance(manychat, dict) or not isinstance(zapi, dict):
        raise WorkspaceError("Workspace channels.manychat and channels.zapi must be mappings.")
    mc_defaults = ManyChatConfig()
    z_defaults = ZApiConfig()
    return ChannelsConfig(
        manychat=ManyChatConfig(
            api_key_env=manychat.get("api_key_env") or mc_defaults.api_key_env,
            base_url=manychat.get("base_url") or mc_defaults.base_url,
            flow_ns=manychat.get("flow_ns"),
        ),
        zapi=ZApiConfig(
            instance_id=zapi.get("instance_id"),
            token_env=zapi.get("token_env") or z_defaults.token_env,
            client_token_env=zapi.get("client_token_env") or z_defaults.client_token_env,
            base_url=zapi.get("base_url") or z_defaults.base_url,
        ),
    )


def _parse_logging(data: Any) -> LoggingConfig:
    if data is None:
        return LoggingConfig()
    if not isinstance(data, dict):
        raise WorkspaceError("Workspace logging section must be a mapping.")
    fmt = str(data.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise WorkspaceError("logging.format must be 'text' or 'json'.")
    return LoggingConfig(level=str(data.get("level", "INFO")).upper(), format=fmt)


def _positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise WorkspaceError(f"followup.{key} must be a positive integer.")
    return value
