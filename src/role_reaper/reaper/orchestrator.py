"""Teardown orchestrator.

Runs the teardown phases for one principal in fixed order with failure
isolation and classifies the outcome.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..db.inspector import DependencyInspector
from ..models.principal import CredentialPrincipal
from ..models.teardown_result import (
    FinalRemovalError,
    Phase,
    PhaseError,
    PhaseResult,
    TeardownOutcome,
    TeardownResult,
)
from .phases import TeardownPhase, default_phases

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_INTERVAL = 10


class TeardownOrchestrator:
    """Teardown orchestrator.

    Phases before final removal never stop the sequence: a failure is recorded
    as a PhaseError, logged as a warning, and the next phase runs. Final
    removal always runs exactly once, even if every earlier phase failed,
    because the principal may have had no blocking dependency at all.

    Outcome classification:
        dropped: final removal succeeded
        partially_cleaned: final removal failed, some phase made progress,
            ownership reassigned by final removal included
        failed: final removal failed and nothing made progress

    Attributes:
        inspector: Session-bound catalog inspector passed to every phase
        phases: Teardown phases in execution order
        progress_interval: Emit a progress line every N principals
    """

    def __init__(
        self,
        inspector: DependencyInspector,
        custodian_role: Optional[str] = None,
        phases: Optional[list[TeardownPhase]] = None,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        """Initialize orchestrator.

        Args:
            inspector: Catalog inspector for the current session
            custodian_role: Custodian role for the default phases (required if phases not given)
            phases: Explicit phase list (optional, defaults to the standard five)
            progress_interval: Principals between progress lines (default: 10)

        Raises:
            ValueError: If the phase list is invalid
        """
        if phases is None:
            if not custodian_role:
                raise ValueError("custodian_role is required when phases are not provided")
            phases = default_phases(custodian_role)

        if progress_interval < 1:
            raise ValueError("progress_interval must be positive")

        self.inspector = inspector
        self.phases = self._order_phases(phases)
        self.progress_interval = progress_interval

    def teardown(self, principal: CredentialPrincipal, family: Optional[str] = None) -> TeardownResult:
        """Tear down one principal.

        Args:
            principal: Expired principal to remove
            family: Family the principal belongs to (optional, for reporting)

        Returns:
            TeardownResult with per-phase results, errors and outcome
        """
        phase_results: list[PhaseResult] = []
        errors: list[PhaseError] = []

        for phase in self.phases:
            result = phase.execute(self.inspector, principal)
            phase_results.append(result)

            for warning in result.warnings:
                logger.warning(f"{principal.name}: {phase.phase.value} {warning}")

            if result.success:
                continue

            if phase.phase == Phase.FINAL_REMOVAL:
                errors.append(
                    FinalRemovalError(
                        principal=principal.name,
                        phase=Phase.FINAL_REMOVAL,
                        error=result.error_message or "Final removal failed",
                        error_code=result.error_code,
                    )
                )
                logger.error(f"Failed to drop {principal.name}: {result.error_message}")
            else:
                errors.append(
                    PhaseError(
                        principal=principal.name,
                        phase=phase.phase,
                        error=result.error_message or f"{phase.phase.value} failed",
                        error_code=result.error_code,
                    )
                )
                logger.warning(f"{principal.name}: {phase.phase.value} failed: {result.error_message}")

        outcome = self._classify(phase_results)
        if outcome == TeardownOutcome.DROPPED:
            logger.info(f"Dropped {principal.name}")

        return TeardownResult(
            name=principal.name,
            outcome=outcome,
            phase_results=phase_results,
            errors=errors,
            family=family,
            valid_until=principal.valid_until,
        )

    def run(self, principals: list[CredentialPrincipal], family: Optional[str] = None) -> list[TeardownResult]:
        """Tear down principals one after another.

        Args:
            principals: Principals to remove, in attempt order
            family: Family the principals belong to (optional)

        Returns:
            Teardown results in attempt order
        """
        total = len(principals)
        results = []
        dropped = 0

        for index, principal in enumerate(principals, start=1):
            result = self.teardown(principal, family=family)
            results.append(result)
            if result.dropped:
                dropped += 1

            if index % self.progress_interval == 0:
                logger.info(f"Progress: {index} / {total} principals processed, {dropped} dropped")

        return results

    def _classify(self, phase_results: list[PhaseResult]) -> TeardownOutcome:
        final = phase_results[-1]
        if final.success:
            return TeardownOutcome.DROPPED

        if any(result.made_progress for result in phase_results):
            return TeardownOutcome.PARTIALLY_CLEANED

        return TeardownOutcome.FAILED

    def _order_phases(self, phases: list[TeardownPhase]) -> list[TeardownPhase]:
        ordered = sorted(phases, key=lambda p: p.phase.order)

        kinds = [p.phase for p in ordered]
        if len(set(kinds)) != len(kinds):
            raise ValueError("Each phase may appear only once")
        if not ordered or ordered[-1].phase != Phase.FINAL_REMOVAL:
            raise ValueError("Final removal phase is required")

        return ordered
