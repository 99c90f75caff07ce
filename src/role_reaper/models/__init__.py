"""Data models for principals, privileges, teardown results and run reports."""
