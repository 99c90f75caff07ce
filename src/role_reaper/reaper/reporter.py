"""Audit reporter for reaper runs with terminal, JSON and CSV output."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.batch_report import RunReport
from ..models.lease_summary import LeaseSummary
from ..models.teardown_result import TeardownOutcome

FAMILY_FIELDS = ["family", "total_attempted", "successfully_dropped", "failed"]


class AuditReporter:
    """Render run reports: one row per family plus the detailed failure log.

    The reporter only renders; it performs no retries. Re-invoking the reaper
    is the recovery path for anything listed as failed.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize audit reporter.

        Args:
            console: Rich console instance (creates new one if not provided)
        """
        self.console = console or Console()

    def display(self, run: RunReport) -> None:
        """Display a run report to the console.

        Args:
            run: RunReport to display
        """
        self.console.print()
        self.console.print(
            Panel(
                f"[bold]Expired Credential Cleanup[/bold]\n"
                f"Run: {run.run_id}\n"
                f"Database: {run.database or '-'}\n"
                f"Started: {run.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
                style="cyan",
            )
        )
        self.console.print(self.build_family_table(run))

        if run.discovery_errors:
            self.console.print()
            for family, error in run.discovery_errors.items():
                self.console.print(f"[red]✗ Discovery failed for {family}:[/red] {error}")

        if run.phase_errors:
            self.console.print()
            self.console.print(self.build_error_table(run))

        partial = sum(batch.partially_cleaned for batch in run.batches)
        if partial:
            self.console.print(
                f"\n[yellow]{partial} principal(s) partially cleaned; re-run the reaper once blocking "
                f"sessions end[/yellow]"
            )

    def format_terminal(self, run: RunReport) -> str:
        """Render a run report to a string.

        Args:
            run: RunReport to render

        Returns:
            Formatted string for terminal display
        """
        console = Console(width=120)
        with console.capture() as capture:
            AuditReporter(console).display(run)
        return capture.get()

    def build_family_table(self, run: RunReport) -> Table:
        """Build the per-family summary table."""
        table = Table(title="Families", show_header=True, header_style="bold magenta")
        table.add_column("Family", style="cyan")
        table.add_column("Attempted", justify="right")
        table.add_column("Dropped", justify="right")
        table.add_column("Failed", justify="right")

        for batch in run.batches:
            if batch.has_discovery_error:
                failed_display = "[red]discovery error[/red]"
            elif batch.failed:
                failed_display = f"[red]{batch.failed}[/red]"
            else:
                failed_display = "0"

            table.add_row(
                batch.family,
                str(batch.total_attempted),
                f"[green]{batch.succeeded}[/green]" if batch.succeeded else "0",
                failed_display,
            )

        table.add_row("━" * 10, "━" * 9, "━" * 7, "━" * 6, style="dim")
        table.add_row("[bold]Total", f"[bold]{run.total_attempted}", f"[bold]{run.succeeded}", f"[bold]{run.failed}")
        return table

    def build_error_table(self, run: RunReport) -> Table:
        """Build the detailed phase failure table."""
        table = Table(title="Phase Errors", show_header=True, header_style="bold red")
        table.add_column("Principal", style="white")
        table.add_column("Phase")
        table.add_column("Error", style="dim")

        for error in run.phase_errors:
            phase_display = error.phase.value
            if error.is_final_removal:
                phase_display = f"[red]{phase_display}[/red]"
            table.add_row(error.principal, phase_display, error.error)

        return table

    def generate_summary(self, run: RunReport) -> dict[str, Any]:
        """Generate summary statistics for a run.

        Args:
            run: RunReport to summarize

        Returns:
            Dictionary with run totals and outcome counts
        """
        outcomes = {outcome.value: 0 for outcome in TeardownOutcome}
        for batch in run.batches:
            for result in batch.results:
                outcomes[result.outcome.value] += 1

        return {
            "run_id": run.run_id,
            "families": len(run.batches),
            "total_attempted": run.total_attempted,
            "successfully_dropped": run.succeeded,
            "failed": run.failed,
            "outcomes": outcomes,
            "phase_errors": len(run.phase_errors),
            "discovery_errors": len(run.discovery_errors),
        }

    def export_json(self, run: RunReport, filepath: str) -> None:
        """Export a run report to JSON format.

        Args:
            run: RunReport to export
            filepath: Output file path
        """
        output = {
            "summary": self.generate_summary(run),
            "families": run.to_rows(),
            "discovery_errors": run.discovery_errors,
            "errors": [error.to_dict() for error in run.phase_errors],
        }

        output_path = Path(filepath)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            json.dump(output, f, indent=2)

    def export_csv(self, run: RunReport, filepath: str) -> None:
        """Export the per-family rows to CSV format.

        Args:
            run: RunReport to export
            filepath: Output file path
        """
        output_path = Path(filepath)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=FAMILY_FIELDS)
            writer.writeheader()
            for row in run.to_rows():
                writer.writerow(row)

    def display_lease_summary(self, summaries: list[LeaseSummary]) -> None:
        """Display per-family lease expiry statistics."""
        if not summaries:
            self.console.print("[yellow]No leased roles with an expiry found[/yellow]")
            return

        table = Table(title="Leased Roles", show_header=True, header_style="bold magenta")
        table.add_column("Family", style="cyan")
        table.add_column("Total", justify="right")
        table.add_column("Expired", justify="right")
        table.add_column("Active", justify="right")
        table.add_column("Expiring <24h", justify="right")
        table.add_column("Oldest Expiry")
        table.add_column("Newest Expiry")

        for summary in summaries:
            table.add_row(
                summary.family,
                str(summary.total_roles),
                f"[red]{summary.expired}[/red]" if summary.expired else "0",
                str(summary.active),
                f"[yellow]{summary.expiring_soon}[/yellow]" if summary.expiring_soon else "0",
                _format_timestamp(summary.oldest_expiry),
                _format_timestamp(summary.newest_expiry),
            )

        self.console.print(table)

    def display_run_list(self, runs: list[dict]) -> None:
        """Display audit log entries as a table."""
        if not runs:
            self.console.print("[yellow]No runs found[/yellow]")
            return

        table = Table(title="Reaper Runs", show_header=True, header_style="bold magenta")
        table.add_column("Run ID", style="cyan")
        table.add_column("Started")
        table.add_column("Database")
        table.add_column("Attempted", justify="right")
        table.add_column("Dropped", justify="right")
        table.add_column("Failed", justify="right")

        for data in runs:
            run = data["run"]
            table.add_row(
                run["run_id"],
                run["started_at"],
                run.get("database") or "-",
                str(run["total_attempted"]),
                str(run["succeeded"]),
                f"[red]{run['failed']}[/red]" if run["failed"] else "0",
            )

        self.console.print(table)


def _format_timestamp(value: Any) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
