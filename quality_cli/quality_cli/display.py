"""Rich output formatting for the quality-core CLI.

All functions write to a :class:`rich.console.Console` bound to *stderr*.
Secret values are never rendered; they appear as the redaction mask.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from quality_core.telemetry.redaction import MASK

if TYPE_CHECKING:
    from quality_core.config import RunConfiguration
    from quality_core.runner import BackfillResult, ReportRunResult


def _secret(value: object | None) -> str:
    return "[dim](unset)[/dim]" if value is None else MASK


def _plain(value: object | None) -> str:
    return "[dim](unset)[/dim]" if value in (None, "") else str(value)


def display_configuration(console: Console, config: RunConfiguration) -> None:
    """Render the resolved run configuration as a two-column table."""
    table = Table(title="Run Configuration", show_lines=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    rows: list[tuple[str, str]] = [
        ("Repository URL", _secret(config.repo_url)),
        ("Repository name", config.repo_name),
        ("Project directory", str(config.project_dir)),
        ("Package repo token", _secret(config.package_repo_token)),
        ("Schedule", config.schedule),
        ("Warehouse", config.warehouse_kind.value),
        ("Credential source", config.credential_source.value),
        ("Service account key", _secret(config.service_account_secret)),
        ("Service account email", _plain(config.service_account_email)),
        ("GCP project", _plain(config.gcp_project)),
        ("Profile secret", _plain(config.profile_secret_name)),
        ("re_data profile secret", _plain(config.re_data_profile_secret_name)),
        ("Environment secret", _plain(config.environment_secret_name)),
        ("Report window", config.window_kind.value),
        ("Notify Slack", "yes" if config.notify_slack else "no"),
        ("Notify email", "yes" if config.notify_email else "no"),
        ("Debug", "yes" if config.debug else "no"),
        ("Log directory", str(config.paths.logs.log_dir)),
        ("Server port", str(config.server.port)),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)


def display_report_result(console: Console, result: ReportRunResult) -> None:
    channels = ", ".join(c.value for c in result.notified) or "none"
    console.print(
        f"[green]Report generated[/green] ({result.window.kind.value}) "
        f"[cyan]{result.window.start}[/cyan] to [cyan]{result.window.end}[/cyan]; notified: {channels}"
    )


def display_backfill_result(console: Console, result: BackfillResult) -> None:
    """Summarise a completed backfill with one row per replayed day."""
    table = Table(title="Backfill")
    table.add_column("Day", style="cyan")
    table.add_column("Window start")
    table.add_column("Window end")
    for day in result.days:
        table.add_row(day.day.isoformat(), day.window_start, day.window_end)
    console.print(table)
    console.print(f"[green]Backfill completed:[/green] {len(result.days)} day(s)")
