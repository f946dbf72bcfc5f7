"""quality-core CLI application -- Typer-based container entrypoint.

Provides the container ``start`` sequence, the scheduled ``report`` job,
the manual ``backfill`` workflow, and ``show-config`` for inspecting the
resolved configuration.  Human-readable output goes to *stderr* via Rich;
operational logs go to the log files under the configured log directory.

Every fatal error is logged with its category and ends the process with
that category's exit code.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType

import typer
from rich.console import Console

from quality_cli.display import display_backfill_result, display_configuration, display_report_result
from quality_core.config import RunConfiguration, Settings, build_run_configuration, load_settings
from quality_core.errors import QualityCoreError
from quality_core.planner.backfill_range import parse_backfill_range
from quality_core.runner import BackfillRunner, ReportRunner
from quality_core.startup import run_startup
from quality_core.telemetry.logs import LogPaths, configure_logging

logger = logging.getLogger("quality_cli")

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="quality-core",
    help="Data-quality reporting workload: provisioning, scheduling, reporting and backfills.",
    no_args_is_help=True,
)
console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turn a :class:`QualityCoreError` into a logged failure and an exit code."""
    try:
        yield
    except QualityCoreError as exc:
        if logging.getLogger().handlers:
            logger.error("%s: %s", exc.category, exc, extra={"category": exc.category})
        else:
            console.print(f"[red]{exc.category}: {exc}[/red]")
        raise typer.Exit(code=exc.exit_code) from exc


def _log_paths(settings: Settings) -> LogPaths:
    return LogPaths.under(settings.log_dir or settings.data_dir / "logs")


def _bootstrap(
    env_file: Path | None = None,
    *,
    main_log: str | None = None,
) -> tuple[Settings, RunConfiguration]:
    """Load settings, configure logging, and build the run configuration."""
    settings = load_settings(env_file)
    paths = _log_paths(settings)
    configure_logging(
        paths,
        main_log=getattr(paths, main_log) if main_log else None,
        structured=settings.structured_logging,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    return settings, build_run_configuration(settings)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _request_stop(signum: int, _frame: FrameType | None) -> None:
        logger.info("Received signal %d, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGINT, _request_stop)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def start() -> None:
    """Container entrypoint: provision, schedule, report once, then serve."""
    with _fatal_errors():
        settings, config = _bootstrap()
        stop_event = threading.Event()
        _install_signal_handlers(stop_event)
        code = run_startup(settings, config, stop_event=stop_event)
    raise typer.Exit(code=code)


@app.command()
def report(
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Env file written at startup; cron jobs do not inherit the container environment.",
        dir_okay=False,
    ),
) -> None:
    """Regenerate the data-quality report (the scheduled job)."""
    with _fatal_errors():
        _, config = _bootstrap(env_file, main_log="server_log")
        result = ReportRunner(config).run()
    display_report_result(console, result)


@app.command()
def backfill(
    start_date: str | None = typer.Option(
        None,
        "--start-date",
        help="First day to replay (YYYY-MM-DD, inclusive). Defaults to BACKFILL_START_DATE.",
    ),
    end_date: str | None = typer.Option(
        None,
        "--end-date",
        help="Last day to replay (YYYY-MM-DD, inclusive). Defaults to BACKFILL_END_DATE.",
    ),
) -> None:
    """Replay the re_data models once per day across a historical range."""
    with _fatal_errors():
        settings, config = _bootstrap(main_log="job_log")
        backfill_range = parse_backfill_range(
            start_date or settings.backfill_start_date,
            end_date or settings.backfill_end_date,
        )
        console.print(
            f"Backfilling [cyan]{backfill_range.start}[/cyan] to [cyan]{backfill_range.end}[/cyan] "
            f"({backfill_range.days} day(s))"
        )
        result = BackfillRunner(config, backfill_range).run()
    display_backfill_result(console, result)


@app.command(name="show-config")
def show_config(
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Layer this env file over the process environment.",
        dir_okay=False,
    ),
) -> None:
    """Print the resolved configuration with secrets masked."""
    with _fatal_errors():
        config = build_run_configuration(load_settings(env_file))
    display_configuration(console, config)
