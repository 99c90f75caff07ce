"""Per-family lease summary for leased roles."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from ..db.inspector import DependencyInspector
from ..models.lease_summary import LeaseSummary

logger = logging.getLogger(__name__)


class LeaseSummarizer:
    """Summarize lease expiry across families.

    Counts every prefixed role with a non-null expiry, grouped by the family
    tag that follows the prefix (up to the next dash).

    Attributes:
        inspector: Catalog inspector
        name_prefix: Prefix shared by every leased role
        window: Look-ahead window for the expiring-soon count
    """

    def __init__(
        self,
        inspector: DependencyInspector,
        name_prefix: str,
        window: timedelta = timedelta(hours=24),
    ) -> None:
        self.inspector = inspector
        self.name_prefix = name_prefix
        self.window = window

    def summarize(self, families: Optional[list[str]] = None) -> list[LeaseSummary]:
        """Build lease summaries, largest family first.

        Args:
            families: Restrict output to these families (optional)

        Returns:
            List of LeaseSummary rows
        """
        summaries = self.inspector.summarize_leases(self.name_prefix, self.window)
        if families:
            wanted = set(families)
            summaries = [s for s in summaries if s.family in wanted]

        logger.debug(f"Summarized {len(summaries)} lease family(ies)")
        return summaries
