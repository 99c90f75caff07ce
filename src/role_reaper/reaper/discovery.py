"""Target discovery for expired leased principals."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..db.inspector import DependencyInspector
from ..models.principal import CredentialPrincipal
from .errors import DiscoveryError, describe_exception
from .safety import SafetyChecker

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TargetDiscovery:
    """Finds expired principals for one naming family.

    A principal is a candidate only if its name starts with
    ``name_prefix + family``, its expiry is set, and the expiry is strictly
    before the clock's current time. Candidates are returned oldest expiry
    first so the most overdue leases are attempted first.

    Attributes:
        inspector: Catalog inspector
        name_prefix: Prefix shared by every leased role (e.g. "v-kubernet-")
        clock: Callable returning the current timestamp
        safety_checker: Protection rules for never-reaped roles (optional)
    """

    def __init__(
        self,
        inspector: DependencyInspector,
        name_prefix: str = "",
        clock: Optional[Clock] = None,
        safety_checker: Optional[SafetyChecker] = None,
    ) -> None:
        self.inspector = inspector
        self.name_prefix = name_prefix
        self.clock = clock or utc_now
        self.safety_checker = safety_checker

    def discover(self, family: str) -> list[CredentialPrincipal]:
        """Discover expired principals for a family.

        Args:
            family: Family pattern (naming convention string)

        Returns:
            Expired principals ordered oldest expiry first

        Raises:
            DiscoveryError: If the catalog query fails
        """
        now = self.clock()
        try:
            found = self.inspector.list_expired_principals(self.name_prefix + family, now)
        except Exception as e:
            error_code, message = describe_exception(e)
            logger.error(f"Discovery failed for family {family}: {message}")
            raise DiscoveryError(family, message, error_code) from e

        candidates = []
        for principal in found:
            # Re-check the lease rule here; the store is not trusted to filter
            if not principal.is_expired(now):
                logger.debug(f"Skipping {principal.name}: lease not expired")
                continue

            if self.safety_checker is not None:
                is_protected, reason = self.safety_checker.is_protected(principal)
                if is_protected:
                    logger.warning(f"Skipping protected principal {principal.name}: {reason}")
                    continue

            candidates.append(principal)

        candidates.sort(key=lambda p: p.valid_until)  # type: ignore[arg-type,return-value]
        logger.info(f"Discovered {len(candidates)} expired principal(s) for family {family}")
        return candidates
