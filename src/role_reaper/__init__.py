"""Role Reaper - expired dynamic-credential cleanup for PostgreSQL."""

__version__ = "0.1.0"
