"""Audit storage for reaper runs.

Stores and retrieves run audit logs in YAML format for compliance and troubleshooting.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from ..models.batch_report import BatchReport, RunReport
from ..models.teardown_result import PhaseError, TeardownOutcome, TeardownResult


class AuditStorage:
    """Audit log storage and retrieval.

    Stores reaper run audit logs as YAML files organized by year/month.
    Supports querying runs by date range and retrieving detailed run logs.

    Storage structure:
        ~/.role-reaper/audit-logs/
            2026/
                10/
                    run-run_123.yaml
                    run-run_456.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.role-reaper/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".role-reaper" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_run(self, run: RunReport) -> Path:
        """Log a reaper run to audit storage.

        Creates a YAML file with run metadata, the per-family rows, every
        teardown result and every phase error. Overwrites an existing log with
        the same run ID.

        Args:
            run: Completed run report

        Returns:
            Path of the written audit file
        """
        year_month_dir = self.storage_dir / str(run.started_at.year) / f"{run.started_at.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "credential_reap",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "run": {
                "run_id": run.run_id,
                "database": run.database,
                "custodian_role": run.custodian_role,
                "started_at": run.started_at.isoformat(),
                "completed_at": run.completed_at.isoformat() if run.completed_at else None,
                "duration_seconds": run.duration_seconds,
                "total_attempted": run.total_attempted,
                "succeeded": run.succeeded,
                "failed": run.failed,
            },
            "families": [
                {
                    **batch.to_dict(),
                    "discovery_error": batch.discovery_error,
                    "results": [result.to_dict() for result in batch.results],
                }
                for batch in run.batches
            ],
            "errors": [error.to_dict() for error in run.phase_errors],
        }

        audit_file = year_month_dir / f"run-{run.run_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)

        return audit_file

    def get_run(self, run_id: str) -> Optional[dict]:
        """Retrieve a run audit log by ID.

        Args:
            run_id: Run ID to retrieve

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/run-{run_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)

        return None

    def load_run(self, run_id: str) -> Optional[RunReport]:
        """Rebuild a RunReport from its audit log.

        Args:
            run_id: Run ID to load

        Returns:
            RunReport if found, None otherwise
        """
        data = self.get_run(run_id)
        if data is None:
            return None
        return run_from_audit(data)

    def query_runs(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query runs within a date range.

        Args:
            since: Start date (inclusive), None for all
            until: End date (inclusive), None for all

        Returns:
            List of run audit logs matching criteria, oldest first
        """
        results = []

        for year_dir in sorted(self.storage_dir.glob("*")):
            if not year_dir.is_dir():
                continue

            for month_dir in sorted(year_dir.glob("*")):
                if not month_dir.is_dir():
                    continue

                for audit_file in sorted(month_dir.glob("run-*.yaml")):
                    with open(audit_file, "r") as f:
                        audit_data = yaml.safe_load(f)

                    started_at = _as_utc(datetime.fromisoformat(audit_data["run"]["started_at"]))

                    if since and started_at < _as_utc(since):
                        continue
                    if until and started_at > _as_utc(until):
                        continue

                    results.append(audit_data)

        results.sort(key=lambda data: data["run"]["started_at"])
        return results


def run_from_audit(data: dict[str, Any]) -> RunReport:
    """Rebuild a RunReport from an audit log dictionary.

    Phase-level detail is not restored; teardown results carry their outcome
    and the recorded errors.

    Args:
        data: Audit log dictionary as written by AuditStorage.log_run

    Returns:
        RunReport equivalent to the logged run
    """
    run_data = data["run"]
    errors_by_principal: dict[str, list[PhaseError]] = {}
    for error_data in data.get("errors", []):
        error = PhaseError.from_dict(error_data)
        errors_by_principal.setdefault(error.principal, []).append(error)

    batches = []
    for family_data in data.get("families", []):
        results = [
            TeardownResult(
                name=result["name"],
                outcome=TeardownOutcome(result["outcome"]),
                errors=errors_by_principal.get(result["name"], []),
                family=result.get("family"),
                valid_until=datetime.fromisoformat(result["valid_until"]) if result.get("valid_until") else None,
            )
            for result in family_data.get("results", [])
        ]
        batches.append(
            BatchReport(
                family=family_data["family"],
                total_attempted=family_data["total_attempted"],
                succeeded=family_data["successfully_dropped"],
                failed=family_data["failed"],
                discovery_error=family_data.get("discovery_error"),
                results=results,
            )
        )

    completed_at = run_data.get("completed_at")
    return RunReport(
        run_id=run_data["run_id"],
        started_at=datetime.fromisoformat(run_data["started_at"]),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        batches=batches,
        database=run_data.get("database"),
        custodian_role=run_data.get("custodian_role"),
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
