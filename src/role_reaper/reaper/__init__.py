"""Expired dynamic-credential reaper.

This module tears down expired leased database roles: it discovers expired
principals per naming family, strips every privilege relationship they hold
in a fixed safe order, drops them, and reports the outcome.

Classes:
    BatchAggregator: Invocation surface (reap_family / reap_all)
    TargetDiscovery: Expired principal discovery for one family
    TeardownOrchestrator: Five-phase teardown for one principal
    SafetyChecker: Protection rules for never-reaped roles
    AuditStorage: Run audit log storage and retrieval
    AuditReporter: Terminal, JSON and CSV rendering of run reports
    LeaseSummarizer: Per-family lease expiry statistics
"""

from __future__ import annotations

__all__ = [
    "AuditReporter",
    "AuditStorage",
    "BatchAggregator",
    "LeaseSummarizer",
    "SafetyChecker",
    "TargetDiscovery",
    "TeardownOrchestrator",
]

from .audit import AuditStorage
from .batch import BatchAggregator
from .discovery import TargetDiscovery
from .orchestrator import TeardownOrchestrator
from .reporter import AuditReporter
from .safety import SafetyChecker
from .summary import LeaseSummarizer
