"""Teardown result models.

Per-phase results, recorded phase errors and the per-principal outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Phase(Enum):
    """Teardown phases in execution order."""

    MEMBERSHIP_UNLINK = "membership_unlink"
    DEFAULT_ACL_SCRUB = "default_acl_scrub"
    DATABASE_PRIVILEGES = "database_privileges"
    SCHEMA_PRIVILEGES = "schema_privileges"
    FINAL_REMOVAL = "final_removal"

    @property
    def order(self) -> int:
        """1-based position of the phase in the teardown sequence."""
        return list(Phase).index(self) + 1


class TeardownOutcome(Enum):
    """Outcome of a principal teardown."""

    DROPPED = "dropped"
    PARTIALLY_CLEANED = "partially_cleaned"
    FAILED = "failed"


@dataclass
class PhaseResult:
    """Result of executing one phase against one principal.

    Attributes:
        phase: Phase that produced this result
        success: True if the phase completed without error
        changes: Number of catalog entries the phase removed or transferred
        error_code: SQLSTATE or error class if the phase failed (optional)
        error_message: Human-readable error if the phase failed (optional)
        already_gone: True if the principal no longer existed (final removal only)
        warnings: Non-fatal step failures inside the phase
    """

    phase: Phase
    success: bool
    changes: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    already_gone: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def made_progress(self) -> bool:
        """Whether the phase removed at least one dependency."""
        return self.changes > 0

    @classmethod
    def ok(cls, phase: Phase, changes: int = 0, **kwargs: Any) -> PhaseResult:
        return cls(phase=phase, success=True, changes=changes, **kwargs)

    @classmethod
    def failed(
        cls,
        phase: Phase,
        error_message: str,
        error_code: Optional[str] = None,
        changes: int = 0,
        **kwargs: Any,
    ) -> PhaseResult:
        return cls(
            phase=phase,
            success=False,
            changes=changes,
            error_code=error_code,
            error_message=error_message,
            **kwargs,
        )


@dataclass
class PhaseError:
    """Recorded failure of one phase for one principal.

    Phase errors are recoverable: they are logged and execution continues with
    the next phase.

    Attributes:
        principal: Principal name
        phase: Phase that failed
        error: Human-readable error message
        error_code: SQLSTATE or error class (optional)
        timestamp: When the failure was recorded
    """

    principal: str
    phase: Phase
    error: str
    error_code: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_final_removal(self) -> bool:
        return self.phase == Phase.FINAL_REMOVAL

    def to_dict(self) -> dict[str, Any]:
        """Convert phase error to dictionary representation."""
        return {
            "principal": self.principal,
            "phase": self.phase.value,
            "error": self.error,
            "error_code": self.error_code,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PhaseError:
        """Create a phase error from its dictionary representation."""
        error_cls = FinalRemovalError if data["phase"] == Phase.FINAL_REMOVAL.value else PhaseError
        timestamp = data.get("timestamp")
        return error_cls(
            principal=data["principal"],
            phase=Phase(data["phase"]),
            error=data["error"],
            error_code=data.get("error_code"),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(timezone.utc),
        )


@dataclass
class FinalRemovalError(PhaseError):
    """Failure to drop the principal itself.

    The principal persists as partially cleaned or failed and needs operator
    follow-up (typically an active session still holding the role).
    """

    def __post_init__(self) -> None:
        if self.phase != Phase.FINAL_REMOVAL:
            raise ValueError("FinalRemovalError must belong to the final removal phase")


@dataclass
class TeardownResult:
    """Teardown result for one principal.

    Validation rules:
        - outcome=dropped: the final removal phase succeeded
        - outcome=partially_cleaned/failed: the final removal phase failed
        - phase results appear in strict phase order

    Attributes:
        name: Principal name
        outcome: Teardown outcome
        phase_results: Results for each executed phase, in order
        errors: Phase errors recorded for this principal
        family: Family the principal was discovered in (optional)
        valid_until: Lease expiry of the principal (optional)
    """

    name: str
    outcome: TeardownOutcome
    phase_results: list[PhaseResult] = field(default_factory=list)
    errors: list[PhaseError] = field(default_factory=list)
    family: Optional[str] = None
    valid_until: Optional[datetime] = None

    @property
    def dropped(self) -> bool:
        return self.outcome == TeardownOutcome.DROPPED

    @property
    def failed_phases(self) -> list[Phase]:
        """Phases that failed for this principal, in order."""
        return [error.phase for error in self.errors]

    @property
    def warnings(self) -> list[str]:
        return [warning for result in self.phase_results for warning in result.warnings]

    def validate(self) -> bool:
        """Validate result invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        orders = [result.phase.order for result in self.phase_results]
        if orders != sorted(orders):
            raise ValueError("Phase results out of order")

        final = [r for r in self.phase_results if r.phase == Phase.FINAL_REMOVAL]
        if len(final) != 1:
            raise ValueError("Final removal must run exactly once")

        if self.dropped != final[0].success:
            raise ValueError("Outcome does not match final removal result")

        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert teardown result to dictionary representation."""
        return {
            "name": self.name,
            "family": self.family,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "outcome": self.outcome.value,
            "failed_phases": [phase.value for phase in self.failed_phases],
            "phases": [
                {
                    "phase": result.phase.value,
                    "success": result.success,
                    "changes": result.changes,
                    "already_gone": result.already_gone,
                    "warnings": list(result.warnings),
                }
                for result in self.phase_results
            ],
        }
