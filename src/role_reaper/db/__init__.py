"""PostgreSQL access: connection setup and the catalog dependency inspector."""

from __future__ import annotations

__all__ = [
    "DependencyInspector",
    "PostgresInspector",
    "connect",
]

from .connection import connect
from .inspector import DependencyInspector, PostgresInspector
