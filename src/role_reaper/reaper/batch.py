"""Batch aggregator: the reaper's invocation surface.

Runs discovery and teardown for each family and aggregates the results into
per-family BatchReports and one RunReport.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from ..models.batch_report import BatchReport, RunReport
from .audit import AuditStorage
from .discovery import TargetDiscovery
from .errors import DiscoveryError
from .orchestrator import TeardownOrchestrator

logger = logging.getLogger(__name__)


class BatchAggregator:
    """Batch aggregator orchestrator.

    Coordinates discovery and teardown across families. Families are isolated
    from each other the same way principals are isolated within a family: a
    discovery failure is recorded on that family's report and the run moves
    on. Every requested family appears exactly once in the RunReport.

    Attributes:
        discovery: Target discovery for expired principals
        orchestrator: Teardown orchestrator for single principals
        audit_storage: Audit storage for run logs (optional)
        custodian_role: Custodian role recorded on run reports (optional)
    """

    def __init__(
        self,
        discovery: TargetDiscovery,
        orchestrator: TeardownOrchestrator,
        audit_storage: Optional[AuditStorage] = None,
        custodian_role: Optional[str] = None,
    ) -> None:
        self.discovery = discovery
        self.orchestrator = orchestrator
        self.audit_storage = audit_storage
        self.custodian_role = custodian_role

    def reap_family(self, family: str) -> BatchReport:
        """Reap expired principals of one family.

        Args:
            family: Family pattern

        Returns:
            BatchReport for the family; a discovery failure yields a report with
            no attempts and the discovery error set
        """
        try:
            principals = self.discovery.discover(family)
        except DiscoveryError as e:
            return BatchReport.from_discovery_error(family, e.message)

        logger.info(f"Starting cleanup of {len(principals)} expired {family} principal(s)")

        results = self.orchestrator.run(principals, family=family)
        report = BatchReport.from_results(family, results)

        logger.info(f"Cleanup complete for {family}: {report.succeeded} dropped, {report.failed} failed")
        return report

    def reap_all(self, families: list[str]) -> RunReport:
        """Reap expired principals across families.

        Args:
            families: Family patterns, in processing order

        Returns:
            RunReport with one BatchReport per distinct family
        """
        run = RunReport(
            run_id=f"run_{uuid.uuid4()}",
            started_at=datetime.now(timezone.utc),
            database=self._database_name(),
            custodian_role=self.custodian_role,
        )

        logger.info(f"Starting cleanup of expired principals for {len(families)} family(ies)")

        seen = set()
        for family in families:
            if family in seen:
                logger.warning(f"Family {family} listed more than once, skipping duplicate")
                continue
            seen.add(family)

            try:
                batch = self.reap_family(family)
            except Exception as e:
                # Keep the remaining families running
                logger.exception(f"Unexpected error while reaping family {family}")
                batch = BatchReport.from_discovery_error(family, f"Unexpected error: {e}")

            run.batches.append(batch)

        run.completed_at = datetime.now(timezone.utc)

        if self.audit_storage is not None:
            try:
                self.audit_storage.log_run(run)
            except OSError as e:
                logger.error(f"Failed to write audit log for {run.run_id}: {e}")

        return run

    def _database_name(self) -> Optional[str]:
        try:
            return self.discovery.inspector.database_name
        except Exception:
            logger.debug("Could not determine database name", exc_info=True)
            return None
