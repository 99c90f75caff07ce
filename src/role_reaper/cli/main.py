"""Main CLI entry point using Typer."""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

import psycopg
import typer
from rich.console import Console

from ..db import PostgresInspector, connect
from ..reaper.audit import AuditStorage
from ..reaper.batch import BatchAggregator
from ..reaper.discovery import TargetDiscovery
from ..reaper.orchestrator import TeardownOrchestrator
from ..reaper.reporter import AuditReporter
from ..reaper.safety import SafetyChecker
from ..reaper.summary import LeaseSummarizer
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="rolereap",
    help="Role Reaper - remove expired dynamic database credentials",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


@app.callback()
def main(
    dsn: Optional[str] = typer.Option(None, "--dsn", help="PostgreSQL connection string (default: PG* environment)"),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to config file (default: ~/.role-reaper/config.yaml or $ROLE_REAPER_CONFIG)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Role Reaper - remove expired dynamic database credentials."""
    global config

    # Load configuration
    try:
        config = Config.load(config_path)
    except ValueError as e:
        console.print(f"✗ Invalid configuration: {e}", style="bold red")
        raise typer.Exit(code=2)

    # Override with CLI options
    if dsn:
        config.dsn = dsn

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    console.print(f"role-reaper version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"psycopg {psycopg.__version__}")


@contextmanager
def open_inspector() -> Iterator[PostgresInspector]:
    """Open a database session for the configured target and wrap it in an inspector."""
    conn = connect(
        config.dsn,
        application_name=config.application_name,
        statement_timeout_ms=config.statement_timeout_ms,
        lock_timeout_ms=config.lock_timeout_ms,
    )
    try:
        yield PostgresInspector(conn)
    finally:
        conn.close()


@app.command()
def reap(
    family: Optional[List[str]] = typer.Option(
        None, "--family", "-f", help="Family to reap (repeatable, default: configured families)"
    ),
    custodian: Optional[str] = typer.Option(None, "--custodian", help="Role receiving reassigned ownership"),
    export: Optional[str] = typer.Option(None, "--export", help="Export the report to file"),
    format: str = typer.Option("json", "--format", help="Export format: json or csv"),
    no_audit: bool = typer.Option(False, "--no-audit", help="Do not write an audit log for this run"),
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir", help="Audit log directory"),
):
    """Drop expired leased roles after stripping their privileges.

    For each family, expired roles are discovered oldest expiry first and torn
    down in order: memberships, default privileges, database privileges,
    schema/object privileges, then ownership transfer and the role drop.

    Exit codes: 0 when every expired role was dropped, 1 when any role
    persists or a family could not be discovered, 2 on connection or
    configuration errors.

    Examples:
        # Reap every configured family
        rolereap reap

        # Reap two families and export the rows
        rolereap reap -f svc_user -f svc_file --export report.json
    """
    if format.lower() not in ("json", "csv"):
        console.print(f"✗ Invalid format: {format}. Must be 'json' or 'csv'", style="bold red")
        raise typer.Exit(code=2)

    families = list(family) if family else list(config.families)
    custodian_role = custodian or config.custodian_role

    try:
        with open_inspector() as inspector:
            safety_checker = SafetyChecker(custodian_role=custodian_role, protected_patterns=config.protected_roles)
            discovery = TargetDiscovery(inspector, name_prefix=config.name_prefix, safety_checker=safety_checker)
            orchestrator = TeardownOrchestrator(
                inspector,
                custodian_role=custodian_role,
                progress_interval=config.progress_interval,
            )
            audit_storage = None if no_audit else AuditStorage(audit_dir or config.audit_dir)

            aggregator = BatchAggregator(
                discovery,
                orchestrator,
                audit_storage=audit_storage,
                custodian_role=custodian_role,
            )
            run = aggregator.reap_all(families)

    except psycopg.OperationalError as e:
        console.print(f"✗ Could not connect to database: {e}", style="bold red")
        raise typer.Exit(code=2)
    except Exception as e:
        console.print(f"✗ Error during cleanup: {e}", style="bold red")
        logger.exception("Error in reap command")
        raise typer.Exit(code=2)

    reporter = AuditReporter(console)
    reporter.display(run)

    if export:
        if format.lower() == "json":
            reporter.export_json(run, export)
        else:
            reporter.export_csv(run, export)
        console.print(f"\n✓ Exported report to: [cyan]{export}[/cyan] ({format.upper()})")

    if not no_audit:
        console.print(f"\nAudit log: [cyan]{run.run_id}[/cyan]")

    if run.has_failures:
        raise typer.Exit(code=1)


@app.command()
def summary(
    family: Optional[List[str]] = typer.Option(None, "--family", "-f", help="Restrict to family (repeatable)"),
    hours: int = typer.Option(24, "--hours", min=1, help="Look-ahead window for expiring-soon count"),
):
    """Show per-family lease expiry statistics for leased roles."""
    try:
        with open_inspector() as inspector:
            summarizer = LeaseSummarizer(inspector, config.name_prefix, window=timedelta(hours=hours))
            summaries = summarizer.summarize(list(family) if family else None)
    except psycopg.Error as e:
        console.print(f"✗ Could not read role catalog: {e}", style="bold red")
        raise typer.Exit(code=2)

    AuditReporter(console).display_lease_summary(summaries)


# Audit commands group
audit_app = typer.Typer(help="Audit log commands")
app.add_typer(audit_app, name="audit")


def parse_date(value: Optional[str], option: str) -> Optional[datetime]:
    """Parse a YYYY-MM-DD option value."""
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        console.print(f"✗ Invalid date for {option}: {value}. Use YYYY-MM-DD", style="bold red")
        raise typer.Exit(code=2)


@audit_app.command("list")
def audit_list(
    since: Optional[str] = typer.Option(None, "--since", help="Only runs started on or after YYYY-MM-DD"),
    until: Optional[str] = typer.Option(None, "--until", help="Only runs started on or before YYYY-MM-DD"),
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir", help="Audit log directory"),
):
    """List recorded reaper runs."""
    since_dt = parse_date(since, "--since")
    until_dt = parse_date(until, "--until")
    if until_dt is not None:
        until_dt = until_dt.replace(hour=23, minute=59, second=59)

    storage = AuditStorage(audit_dir or config.audit_dir)
    AuditReporter(console).display_run_list(storage.query_runs(since=since_dt, until=until_dt))


@audit_app.command("show")
def audit_show(
    run_id: str = typer.Argument(..., help="Run ID to show"),
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir", help="Audit log directory"),
):
    """Show the report and failure log of a recorded run."""
    storage = AuditStorage(audit_dir or config.audit_dir)
    run = storage.load_run(run_id)
    if run is None:
        console.print(f"✗ Run not found: {run_id}", style="bold red")
        raise typer.Exit(code=1)

    AuditReporter(console).display(run)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
