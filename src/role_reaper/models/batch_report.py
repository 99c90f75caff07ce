"""Batch and run report models.

A BatchReport summarizes one family; a RunReport lists every family of one
reaper invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .teardown_result import PhaseError, TeardownOutcome, TeardownResult


@dataclass
class BatchReport:
    """Per-family teardown summary.

    Validation rules:
        - succeeded + failed == total_attempted
        - a family with a discovery error attempted nothing

    Attributes:
        family: Family pattern (naming convention string)
        total_attempted: Number of expired principals attempted
        succeeded: Number of principals dropped
        failed: Number of principals that persist
        discovery_error: Error message if discovery failed for this family
        results: Per-principal teardown results
    """

    family: str
    total_attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    discovery_error: Optional[str] = None
    results: list[TeardownResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, family: str, results: list[TeardownResult]) -> BatchReport:
        """Build a family report from teardown results.

        Args:
            family: Family pattern
            results: Teardown results for every attempted principal

        Returns:
            BatchReport with counts derived from the results
        """
        succeeded = sum(1 for result in results if result.dropped)
        return cls(
            family=family,
            total_attempted=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=list(results),
        )

    @classmethod
    def from_discovery_error(cls, family: str, error: str) -> BatchReport:
        return cls(family=family, discovery_error=error)

    @property
    def has_discovery_error(self) -> bool:
        return self.discovery_error is not None

    @property
    def partially_cleaned(self) -> int:
        return sum(1 for r in self.results if r.outcome == TeardownOutcome.PARTIALLY_CLEANED)

    @property
    def phase_errors(self) -> list[PhaseError]:
        return [error for result in self.results for error in result.errors]

    def validate(self) -> bool:
        """Validate report invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.succeeded + self.failed != self.total_attempted:
            raise ValueError("Principal counts don't match total")

        if self.has_discovery_error and self.total_attempted != 0:
            raise ValueError("Family with a discovery error cannot have attempts")

        if self.results and len(self.results) != self.total_attempted:
            raise ValueError("Result count doesn't match total")

        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stable, alerting-facing row schema."""
        return {
            "family": self.family,
            "total_attempted": self.total_attempted,
            "successfully_dropped": self.succeeded,
            "failed": self.failed,
        }


@dataclass
class RunReport:
    """Report for one reaper invocation across all families.

    Attributes:
        run_id: Unique identifier for the run
        started_at: When the run started
        completed_at: When the run completed (optional)
        batches: One BatchReport per family, in invocation order
        database: Database the run was executed against (optional)
        custodian_role: Role that received reassigned ownership (optional)
    """

    run_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    batches: list[BatchReport] = field(default_factory=list)
    database: Optional[str] = None
    custodian_role: Optional[str] = None

    @property
    def families(self) -> list[str]:
        return [batch.family for batch in self.batches]

    @property
    def total_attempted(self) -> int:
        return sum(batch.total_attempted for batch in self.batches)

    @property
    def succeeded(self) -> int:
        return sum(batch.succeeded for batch in self.batches)

    @property
    def failed(self) -> int:
        return sum(batch.failed for batch in self.batches)

    @property
    def phase_errors(self) -> list[PhaseError]:
        """All phase errors across families, in run order."""
        return [error for batch in self.batches for error in batch.phase_errors]

    @property
    def discovery_errors(self) -> dict[str, str]:
        return {b.family: b.discovery_error for b in self.batches if b.discovery_error is not None}

    @property
    def has_failures(self) -> bool:
        """True if any principal persists or any family could not be discovered."""
        return self.failed > 0 or bool(self.discovery_errors)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def get_batch(self, family: str) -> Optional[BatchReport]:
        for batch in self.batches:
            if batch.family == family:
                return batch
        return None

    def validate(self) -> bool:
        """Validate run invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if len(set(self.families)) != len(self.families):
            raise ValueError("Family reported more than once")

        for batch in self.batches:
            batch.validate()

        if self.completed_at and self.completed_at < self.started_at:
            raise ValueError("Completion time before start time")

        return True

    def to_rows(self) -> list[dict[str, Any]]:
        """Stable per-family rows."""
        return [batch.to_dict() for batch in self.batches]
