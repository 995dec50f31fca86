"""Entry point for serverstat — prober and status server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from serverstat.config import ConfigError, Settings, app_settings, load_settings
from serverstat.health.recorder import CycleReport
from serverstat.health.scheduler import ProbeScheduler

console = Console()
logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, app_settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def _load_or_exit(path: str) -> Settings:
    """Validate the settings file up front; a bad config never reaches the network."""
    try:
        return load_settings(path)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(2)


def _print_report(report: CycleReport | None) -> None:
    if report is None:
        console.print("[yellow]Cycle skipped, see log for details[/yellow]")
        return

    table = Table(title="Probe results")
    table.add_column("URL")
    table.add_column("Available")
    table.add_column("Detail")
    table.add_column("Row")
    for o in report.outcomes:
        table.add_row(
            o.record.url,
            "[green]yes[/green]" if o.record.available else "[red]no[/red]",
            o.record.message,
            str(o.row_id) if o.ok else f"[red]{o.error}[/red]",
        )
    console.print(table)
    console.print(
        f"[dim]{report.probed} probed | {report.recorded} recorded | {report.failed} failed[/dim]"
    )


async def _run_scheduler(scheduler: ProbeScheduler) -> None:
    loop = asyncio.get_running_loop()

    def signal_handler(sig: int) -> None:
        logger.info("Received signal %s, shutting down", sig)
        scheduler.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, partial(signal_handler, sig))

    await scheduler.run()


def run_prober(settings_path: str) -> None:
    """Run probe cycles on a fixed cadence until interrupted."""
    settings = _load_or_exit(settings_path)
    interval = app_settings.cycle_interval_minutes * 60

    console.print(
        Panel.fit(
            f"[bold]serverstat prober[/bold]\n"
            f"Settings: {settings_path}\n"
            f"Store:    {settings.driver}:{settings.database}\n"
            f"Targets:  {len(settings.servers)}\n"
            f"Interval: {app_settings.cycle_interval_minutes} min",
            title="serverstat",
            border_style="green",
        )
    )

    scheduler = ProbeScheduler(
        settings_path,
        interval_seconds=interval,
        pool_size=app_settings.store_pool_size,
        run_on_start=app_settings.run_on_start,
    )
    asyncio.run(_run_scheduler(scheduler))


def run_once(settings_path: str) -> None:
    """Run a single probe cycle and print the results."""
    _load_or_exit(settings_path)
    scheduler = ProbeScheduler(settings_path, pool_size=app_settings.store_pool_size)
    report = asyncio.run(scheduler.run_once())
    _print_report(report)
    if report is None:
        sys.exit(1)


def run_server(settings_path: str) -> None:
    """Start the status server."""
    _load_or_exit(settings_path)
    app_settings.settings_file = settings_path
    console.print(Panel("Starting serverstat status server", style="bold green"))
    uvicorn.run(
        "serverstat.api.server:app",
        host=app_settings.api_host,
        port=app_settings.api_port,
        log_level=app_settings.log_level.lower(),
        reload=False,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="serverstat: HTTP(S) availability prober")
    parser.add_argument(
        "--settings",
        default=app_settings.settings_file,
        help="Path to settings.yaml (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("probe", help="Probe all targets on a fixed cadence")
    sub.add_parser("once", help="Run a single probe cycle and exit")
    sub.add_parser("serve", help="Start the status server")

    args = parser.parse_args(argv)
    _configure_logging()

    if args.command == "probe":
        run_prober(args.settings)
    elif args.command == "once":
        run_once(args.settings)
    elif args.command == "serve":
        run_server(args.settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
