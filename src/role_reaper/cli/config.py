"""Configuration loading for the CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROLE_REAPER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".role-reaper" / "config.yaml"

DEFAULT_FAMILIES = ["migratio", "svc_file", "svc_noti", "svc_user"]

# Environment variable -> config field
ENV_OVERRIDES = {
    "ROLE_REAPER_DSN": "dsn",
    "ROLE_REAPER_NAME_PREFIX": "name_prefix",
    "ROLE_REAPER_FAMILIES": "families",
    "ROLE_REAPER_CUSTODIAN_ROLE": "custodian_role",
    "ROLE_REAPER_LOG_LEVEL": "log_level",
    "ROLE_REAPER_AUDIT_DIR": "audit_dir",
}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class Config:
    """Reaper configuration.

    Precedence (lowest to highest): defaults, YAML file, environment variables,
    CLI options.

    Attributes:
        dsn: libpq connection string (None uses the PG* environment)
        name_prefix: Prefix shared by every leased role
        families: Families reaped by default, in order
        custodian_role: Pre-existing role receiving reassigned ownership
        protected_roles: Glob patterns of roles never reaped
        progress_interval: Principals between progress log lines
        statement_timeout_ms: Session statement_timeout (None leaves the server default)
        lock_timeout_ms: Session lock_timeout (None leaves the server default)
        application_name: application_name reported to the server
        audit_dir: Audit log directory (None uses ~/.role-reaper/audit-logs)
        log_level: Default log level
    """

    dsn: Optional[str] = None
    name_prefix: str = "v-kubernet-"
    families: list[str] = field(default_factory=lambda: list(DEFAULT_FAMILIES))
    custodian_role: str = "platformv2"
    protected_roles: list[str] = field(default_factory=list)
    progress_interval: int = 10
    statement_timeout_ms: Optional[int] = None
    lock_timeout_ms: Optional[int] = None
    application_name: str = "role-reaper"
    audit_dir: Optional[str] = None
    log_level: str = "WARNING"

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[dict[str, str]] = None) -> Config:
        """Load configuration from file and environment.

        Args:
            path: YAML config path (default: $ROLE_REAPER_CONFIG or ~/.role-reaper/config.yaml)
            environ: Environment mapping (default: os.environ)

        Returns:
            Validated Config

        Raises:
            ValueError: If the file is malformed or a value is invalid
        """
        environ = dict(os.environ if environ is None else environ)
        config_path = Path(path or environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH).expanduser()

        config = cls()
        if config_path.exists():
            config.apply(cls._read_file(config_path))
        elif path:
            raise ValueError(f"Config file not found: {config_path}")

        for env_var, attr in ENV_OVERRIDES.items():
            value = environ.get(env_var)
            if value:
                config.apply({attr: value})

        config.validate()
        return config

    @staticmethod
    def _read_file(config_path: Path) -> dict[str, Any]:
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

        logger.debug(f"Loaded config from {config_path}")
        return data

    def apply(self, values: dict[str, Any]) -> None:
        """Apply overrides onto this config.

        Unknown keys are ignored with a warning. ``families`` and
        ``protected_roles`` accept a list or a comma-separated string.

        Args:
            values: Mapping of field name to value
        """
        known = {f.name for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue

            if key in ("families", "protected_roles") and isinstance(value, str):
                value = [item.strip() for item in value.split(",") if item.strip()]

            setattr(self, key, value)

    def validate(self) -> bool:
        """Validate configuration values.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any value is invalid
        """
        if not self.families or not all(isinstance(f, str) and f for f in self.families):
            raise ValueError("families must be a non-empty list of family names")

        if not self.custodian_role:
            raise ValueError("custodian_role cannot be empty")

        if isinstance(self.progress_interval, bool):
            raise ValueError(f"progress_interval must be an integer, got {self.progress_interval!r}")
        try:
            self.progress_interval = int(self.progress_interval)
        except (TypeError, ValueError):
            raise ValueError(f"progress_interval must be an integer, got {self.progress_interval!r}")
        if self.progress_interval < 1:
            raise ValueError("progress_interval must be positive")

        for attr in ("statement_timeout_ms", "lock_timeout_ms"):
            value = getattr(self, attr)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise ValueError(f"{attr} must be a non-negative integer")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        return True
