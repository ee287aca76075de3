from __future__ import annotations

import json
import shutil
from pathlib import Path

import typer

from followops import __version__
from followops.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from followops.domain import rules
from followops.domain.rules import ValidationError
from followops.followup import runner
from followops.followup.engine import ConfigurationError
from followops.logging_config import configure_logging
from followops.services import exports, interactions, leads, logs, settings, templates
from followops.services.events import EventLogger
from followops.services.interactions import InteractionError
from followops.services.leads import LeadError
from followops.services.templates import TemplateError
from followops.services.utils import today_iso
from followops.store.migrations import SchemaError
from followops.store.sqlite import SqliteStore

app = typer.Typer(help="Follow-up operations CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
lead_app = typer.Typer(help="Lead operations")
interaction_app = typer.Typer(help="Interaction log")
settings_app = typer.Typer(help="Follow-up settings")
template_app = typer.Typer(help="Follow-up templates")
followup_app = typer.Typer(help="Follow-up batch")
logs_app = typer.Typer(help="Follow-up audit log")
metrics_app = typer.Typer(help="Follow-up metrics")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(lead_app, name="lead")
app.add_typer(interaction_app, name="interaction")
app.add_typer(settings_app, name="settings")
app.add_typer(template_app, name="template")
app.add_typer(followup_app, name="followup")
app.add_typer(logs_app, name="logs")
app.add_typer(metrics_app, name="metrics")
app.add_typer(export_app, name="export")

SCHEMA_PATH = Path("resources/schema/canonical.yaml")


@app.callback()
def main_callback(
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    log_level: str | None = typer.Option(None, "--log-level", help="Override the workspace log level."),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    level, fmt = "INFO", "text"
    try:
        ws = load_workspace()
        level, fmt = ws.logging.level, ws.logging.format
    except WorkspaceError:
        # No workspace yet (init, workspace add): default logging.
        pass
    configure_logging(log_level or level, fmt)


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized followops directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    account: str = typer.Option("default", "--account", help="Account id the workspace operates on."),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, account)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply(schema: Path = typer.Option(SCHEMA_PATH, "--schema")) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        version = store.apply_schema(schema)
    except SchemaError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Applied schema version {version} to {ws.store.sqlite_path}")


@lead_app.command("add")
def lead_add(
    name: str = typer.Argument(...),
    product: str = typer.Option(..., "--product"),
    status: str = typer.Option("new", "--status"),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    notes: str | None = typer.Option(None, "--notes"),
    created_at: str | None = typer.Option(
        None, "--created-at", help="ISO 8601 creation time for imported leads."
    ),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        lead_id = leads.add_lead(
            store,
            ws.account_id,
            name=name,
            product=product,
            status=status,
            email=email,
            phone=phone,
            notes=notes,
            created_at=created_at,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created lead: {lead_id}")


@lead_app.command("list")
def lead_list(status: str | None = typer.Option(None, "--status")) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        rows = leads.list_leads(store, ws.account_id, status)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    for lead in rows:
        typer.echo(f"{lead.lead_id} | {lead.name} | {lead.product} | {lead.status} | {lead.updated_at.isoformat()}")


@lead_app.command("status")
def lead_status(
    lead_id: str = typer.Argument(...),
    status: str = typer.Argument(...),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        lead = leads.update_status(
            store, lead_id, status, enforce=ws.followup.enforce_status_transitions
        )
    except (LeadError, ValidationError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id} is now {lead.status}")


@interaction_app.command("log")
def interaction_log(
    lead_id: str = typer.Argument(...),
    kind: str = typer.Option(..., "--kind"),
    description: str = typer.Option(..., "--description"),
    at: str | None = typer.Option(None, "--at", help="ISO 8601 timestamp (defaults to now)."),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        occurred_at = rules.parse_datetime(at, "at")
        interaction_id = interactions.log_interaction(
            store, lead_id, kind=kind, description=description, occurred_at=occurred_at
        )
    except (InteractionError, ValidationError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Logged interaction: {interaction_id}")


@interaction_app.command("list")
def interaction_list(lead_id: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    for item in interactions.list_interactions(store, lead_id):
        typer.echo(f"{item.occurred_at.isoformat()} | {item.kind} | {item.description}")


@settings_app.command("show")
def settings_show() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    current = settings.get_or_create_settings(store, ws.account_id)
    typer.echo(f"days_without_interaction: {current.days_without_interaction}")
    typer.echo(f"notify_in_app: {current.notify_in_app}")
    typer.echo(f"notify_whatsapp: {current.notify_whatsapp}")
    typer.echo(f"notify_lead_whatsapp: {current.notify_lead_whatsapp}")
    typer.echo(f"whatsapp_subscriber_id: {current.whatsapp_subscriber_id or '-'}")
    typer.echo(f"personal_whatsapp: {current.personal_whatsapp or '-'}")


@settings_app.command("set")
def settings_set(
    days: int | None = typer.Option(None, "--days", help="Days without interaction before a follow-up."),
    in_app: bool | None = typer.Option(None, "--in-app/--no-in-app"),
    whatsapp: bool | None = typer.Option(None, "--whatsapp/--no-whatsapp"),
    lead_whatsapp: bool | None = typer.Option(None, "--lead-whatsapp/--no-lead-whatsapp"),
    subscriber_id: str | None = typer.Option(None, "--subscriber-id"),
    personal_whatsapp: str | None = typer.Option(None, "--personal-whatsapp"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        settings.update_settings(
            store,
            ws.account_id,
            days_without_interaction=days,
            notify_in_app=in_app,
            notify_whatsapp=whatsapp,
            notify_lead_whatsapp=lead_whatsapp,
            whatsapp_subscriber_id=subscriber_id,
            personal_whatsapp=personal_whatsapp,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo("Follow-up settings saved.")


@template_app.command("add")
def template_add(
    name: str = typer.Argument(...),
    message: str = typer.Option(..., "--message", help="Body; supports {nome}, {produto}, {dias}."),
    min_days: int = typer.Option(0, "--min-days"),
    max_days: int | None = typer.Option(None, "--max-days"),
    status: list[str] = typer.Option([], "--status", help="Repeat to allow several statuses."),
    product: list[str] = typer.Option([], "--product", help="Repeat to allow several products."),
    priority: int = typer.Option(0, "--priority", help="Lower wins."),
    description: str | None = typer.Option(None, "--description"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        template_id = templates.add_template(
            store,
            ws.account_id,
            name,
            message,
            min_days=min_days,
            max_days=max_days,
            status_filter=status,
            product_filter=product,
            priority=priority,
            description=description,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created template: {template_id}")


@template_app.command("list")
def template_list() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    for item in templates.list_templates(store, ws.account_id):
        window = f"{item.min_days}-{item.max_days if item.max_days is not None else 'inf'}"
        state = "active" if item.is_active else "inactive"
        typer.echo(f"{item.template_id} | p{item.priority} | {item.name} | days {window} | {state}")


@template_app.command("enable")
def template_enable(template_id: str = typer.Argument(...)) -> None:
    _set_template_active(template_id, True)


@template_app.command("disable")
def template_disable(template_id: str = typer.Argument(...)) -> None:
    _set_template_active(template_id, False)


@followup_app.command("check")
def followup_check(json_output: bool = typer.Option(False, "--json", help="Emit JSON output.")) -> None:
    """List leads that would be followed up now, without sending."""
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        candidates = runner.check_followups(store, ws, ws.account_id)
    except ConfigurationError as exc:
        _exit_with_error(str(exc))
    if json_output:
        payload = [
            {
                "lead_id": c.lead.lead_id,
                "template_id": c.template.template_id,
                "days_since": c.days_since,
                "rendered_message": c.rendered_message,
            }
            for c in candidates
        ]
        typer.echo(json.dumps(payload, indent=2))
        return
    if not candidates:
        typer.echo("No leads due for follow-up.")
    for c in candidates:
        typer.echo(f"{c.lead.lead_id} | {c.lead.name} | {c.days_since}d | {c.template.name}")


@followup_app.command("run")
def followup_run(
    all_accounts: bool = typer.Option(False, "--all-accounts", help="Run every account with settings."),
    events: bool = typer.Option(
        True, "--events/--no-events", help="Write follow-up events to the workspace log."
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Evaluate, send and log follow-ups. Meant to be called by cron."""
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    event_logger = _event_logger(ws, enabled=events)
    try:
        if all_accounts:
            reports = runner.run_all_accounts(store, ws, events=event_logger)
        else:
            reports = [runner.run_followups(store, ws, ws.account_id, events=event_logger)]
    except ConfigurationError as exc:
        _exit_with_error(str(exc))

    if json_output:
        payload = [
            {"account_id": r.account_id, "due": len(r.candidates), **r.dispatch.summary()}
            for r in reports
        ]
        typer.echo(json.dumps(payload, indent=2))
        return
    for report in reports:
        summary = " ".join(f"{k}={v}" for k, v in report.dispatch.summary().items())
        typer.echo(f"{report.account_id} due={len(report.candidates)} {summary}")


@logs_app.command("list")
def logs_list(limit: int = typer.Option(50, "--limit")) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    items = logs.list_logs(store, ws.account_id, limit=limit)
    if not items:
        typer.echo("No follow-ups logged yet.")
    for item in items:
        error = f" | {item.error_message}" if item.error_message else ""
        typer.echo(f"{item.sent_at} | {item.lead_name} | {item.notification_type} | {item.status}{error}")


@metrics_app.command("show")
def metrics_show(
    days: int | None = typer.Option(None, "--days", help="Trailing days (defaults to workspace setting)."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    metrics = runner.account_metrics(store, ws, ws.account_id, days=days)
    if json_output:
        payload = {
            "total_sent": metrics.total_sent,
            "total_responded": metrics.total_responded,
            "total_converted": metrics.total_converted,
            "response_rate": metrics.response_rate,
            "conversion_rate": metrics.conversion_rate,
            "by_channel": [c.__dict__ for c in metrics.by_channel],
            "by_day": [{"day": d.day.isoformat(), "sent": d.sent} for d in metrics.by_day],
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(
        f"sent={metrics.total_sent} responded={metrics.total_responded} "
        f"converted={metrics.total_converted} response_rate={metrics.response_rate:.1%} "
        f"conversion_rate={metrics.conversion_rate:.1%}"
    )
    for channel in metrics.by_channel:
        typer.echo(f"channel {channel.channel} sent={channel.sent} responded={channel.responded}")
    for day in metrics.by_day:
        typer.echo(f"day {day.day.isoformat()} sent={day.sent}")


@export_app.command("excel")
def export_excel(out: str = typer.Option(..., "--out")) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    exports.export_excel(store, ws.account_id, Path(out))
    typer.echo(f"Exported Excel to {out}")


@export_app.command("metrics")
def export_metrics(
    out: str = typer.Option(..., "--out"),
    days: int | None = typer.Option(None, "--days"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    metrics = runner.account_metrics(store, ws, ws.account_id, days=days)
    exports.export_metrics_excel(metrics, Path(out))
    typer.echo(f"Exported metrics to {out}")


@app.command("snapshot")
def snapshot() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ws.store.sqlite_path.exists():
        shutil.copy2(ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    exports.export_csv_tables(store, ws.account_id, snapshot_dir)
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _set_template_active(template_id: str, is_active: bool) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        template = templates.set_active(store, template_id, is_active)
    except TemplateError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Template {template.name} is now {'active' if template.is_active else 'inactive'}")


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _event_logger(ws: WorkspaceConfig, enabled: bool) -> EventLogger:
    return EventLogger(path=ws.path / "events.ndjson", workspace=ws.name, enabled=enabled)


if __name__ == "__main__":
    app()
