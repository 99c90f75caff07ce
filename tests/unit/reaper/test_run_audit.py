"""Tests for AuditStorage.

Test coverage for writing, loading and querying run audit logs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from role_reaper.models.batch_report import BatchReport, RunReport
from role_reaper.models.teardown_result import (
    FinalRemovalError,
    Phase,
    PhaseResult,
    TeardownOutcome,
    TeardownResult,
)
from role_reaper.reaper.audit import AuditStorage

STARTED = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _run(run_id: str = "run_1", started_at: datetime = STARTED) -> RunReport:
    error = FinalRemovalError(
        principal="v-kubernet-svc_noti-a",
        phase=Phase.FINAL_REMOVAL,
        error='role "v-kubernet-svc_noti-a" is being used by an active session',
        error_code="55006",
    )
    result = TeardownResult(
        name="v-kubernet-svc_noti-a",
        outcome=TeardownOutcome.PARTIALLY_CLEANED,
        phase_results=[
            PhaseResult.ok(Phase.MEMBERSHIP_UNLINK, changes=1),
            PhaseResult.failed(Phase.FINAL_REMOVAL, error.error),
        ],
        errors=[error],
        family="svc_noti",
        valid_until=datetime(2026, 10, 18, 11, 0, tzinfo=timezone.utc),
    )
    return RunReport(
        run_id=run_id,
        started_at=started_at,
        completed_at=started_at,
        batches=[
            BatchReport.from_results("svc_noti", [result]),
            BatchReport.from_discovery_error("svc_broken", "connection reset"),
        ],
        database="appdb",
        custodian_role="platformv2",
    )


@pytest.fixture
def storage(tmp_path: Path) -> AuditStorage:
    return AuditStorage(str(tmp_path / "audit"))


class TestAuditStorage:
    """Test suite for AuditStorage."""

    def test_log_run_layout(self, storage: AuditStorage) -> None:
        path = storage.log_run(_run())

        assert path == storage.storage_dir / "2026" / "10" / "run-run_1.yaml"
        with open(path) as f:
            data = yaml.safe_load(f)
        assert data["metadata"]["log_type"] == "credential_reap"
        assert data["run"]["failed"] == 1
        assert data["families"][1]["discovery_error"] == "connection reset"
        assert data["errors"][0]["error_code"] == "55006"

    def test_load_run_restores_report(self, storage: AuditStorage) -> None:
        """Test a logged run can be rebuilt for display."""
        original = _run()
        storage.log_run(original)

        loaded = storage.load_run("run_1")

        assert loaded.to_rows() == original.to_rows()
        assert loaded.discovery_errors == {"svc_broken": "connection reset"}
        assert isinstance(loaded.phase_errors[0], FinalRemovalError)
        assert loaded.batches[0].results[0].outcome == TeardownOutcome.PARTIALLY_CLEANED
        assert loaded.started_at == original.started_at

    def test_missing_run(self, storage: AuditStorage) -> None:
        assert storage.get_run("run_missing") is None
        assert storage.load_run("run_missing") is None

    def test_query_runs_by_date(self, storage: AuditStorage) -> None:
        storage.log_run(_run("run_sep", datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc)))
        storage.log_run(_run("run_oct", datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)))

        all_runs = storage.query_runs()
        october = storage.query_runs(since=datetime(2026, 10, 1))
        september = storage.query_runs(until=datetime(2026, 9, 30, 23, 59, 59))

        assert [r["run"]["run_id"] for r in all_runs] == ["run_sep", "run_oct"]
        assert [r["run"]["run_id"] for r in october] == ["run_oct"]
        assert [r["run"]["run_id"] for r in september] == ["run_sep"]
