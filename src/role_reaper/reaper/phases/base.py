"""Base class for teardown phases."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.teardown_result import Phase, PhaseResult
from ..errors import describe_exception

logger = logging.getLogger(__name__)


class TeardownPhase(ABC):
    """Abstract base class for all teardown phases.

    Each teardown phase should:
    1. Identify itself with a Phase value (which fixes its position in the order)
    2. Implement _apply to strip one kind of dependency from a principal
    3. Be idempotent: re-running on an already-cleaned principal is a no-op
    4. Never raise: execute() converts every failure into a failed PhaseResult
    5. Count progress from a recount of what the principal still holds
    """

    dependency_label = "dependencies"

    @property
    @abstractmethod
    def phase(self) -> Phase:
        """Phase identifier.

        Returns:
            Phase enum value
        """
        pass

    def execute(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        """Execute the phase against one principal.

        Args:
            inspector: Session-bound catalog inspector
            principal: Principal being torn down

        Returns:
            PhaseResult describing success, progress and any error
        """
        try:
            return self._apply(inspector, principal)
        except Exception as e:
            error_code, message = describe_exception(e)
            logger.debug(f"{self.phase.value} raised for {principal.name}", exc_info=True)
            return PhaseResult.failed(self.phase, message, error_code=error_code)

    @abstractmethod
    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        """Strip this phase's dependencies from the principal.

        Args:
            inspector: Session-bound catalog inspector
            principal: Principal being torn down

        Returns:
            PhaseResult for the phase
        """
        pass

    def _apply_each(
        self,
        principal: CredentialPrincipal,
        items: list,
        action: Callable[[Any], None],
        describe: Callable[[Any], str],
        remaining: Callable[[], int],
    ) -> PhaseResult:
        """Apply ``action`` to every item, continuing past individual failures.

        Args:
            principal: Principal being torn down
            items: Dependency records to remove
            action: Callable removing one item
            describe: Callable rendering one item for error messages
            remaining: Callable counting the records still held afterwards

        Returns:
            PhaseResult counting records actually removed; failed if any item
            failed or any record is still held
        """
        if not items:
            return PhaseResult.ok(self.phase)

        failures = []
        error_code = None

        for item in items:
            try:
                action(item)
            except Exception as e:
                code, message = describe_exception(e)
                error_code = error_code or code
                failures.append(f"{describe(item)}: {message}")
                logger.debug(f"{self.phase.value} failed on {describe(item)} for {principal.name}: {message}")

        return self._settle(principal, len(items), remaining, failures, error_code)

    def _settle(
        self,
        principal: CredentialPrincipal,
        before: int,
        remaining: Callable[[], int],
        failures: list[str],
        error_code: Optional[str] = None,
    ) -> PhaseResult:
        """Build the phase result from a recount taken after the revokes.

        Progress is ``before`` minus the recount, never the number of
        statements issued: the server accepts a REVOKE that removes nothing
        with only a warning.

        Args:
            principal: Principal being torn down
            before: Number of records held before the phase
            remaining: Callable counting the records still held
            failures: Error messages collected while revoking
            error_code: Code of the first failure (optional)

        Returns:
            PhaseResult for the phase
        """
        try:
            after = remaining()
        except Exception as e:
            code, message = describe_exception(e)
            error_code = error_code or code
            failures.append(f"recount: {message}")
            after = before

        changes = max(before - after, 0)
        if not failures and after > 0:
            failures.append(f"{after} {self.dependency_label} still held after revoke")
            logger.debug(f"{self.phase.value} removed {changes} of {before} for {principal.name}")

        if failures:
            return PhaseResult.failed(self.phase, "; ".join(failures), error_code=error_code, changes=changes)

        return PhaseResult.ok(self.phase, changes=changes)
