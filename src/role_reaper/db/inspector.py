"""Catalog dependency inspection and privilege mutation.

The DependencyInspector is the capability interface the reaper uses against
the credential principal store. PostgresInspector implements it over the
PostgreSQL system catalogs.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Optional

import psycopg
from psycopg import sql

from ..models.lease_summary import LeaseSummary
from ..models.principal import CredentialPrincipal
from ..models.privilege import DefaultACLEntry, DefaultACLObjectKind, MembershipDirection, MembershipEdge

logger = logging.getLogger(__name__)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally.

    Args:
        value: Raw string (e.g. a role name prefix)

    Returns:
        String safe to embed in a LIKE pattern using ``ESCAPE '\\'``
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DependencyInspector(ABC):
    """Capability interface over the credential principal store.

    Enumeration methods are read-only. Mutation methods raise the store's
    native error on failure; callers are responsible for isolating failures.
    """

    @property
    @abstractmethod
    def database_name(self) -> str:
        """Name of the database the session is connected to."""

    @abstractmethod
    def list_expired_principals(self, name_prefix: str, now: datetime) -> list[CredentialPrincipal]:
        """List principals whose name starts with ``name_prefix`` and whose lease expired.

        Args:
            name_prefix: Literal role name prefix (family included)
            now: Reference timestamp

        Returns:
            Principals with a non-null expiry strictly before ``now``, oldest expiry first
        """

    @abstractmethod
    def principal_exists(self, name: str) -> bool:
        """Check whether a role still exists."""

    @abstractmethod
    def list_memberships(self, name: str) -> list[MembershipEdge]:
        """List membership edges in both directions for a principal."""

    @abstractmethod
    def revoke_membership(self, edge: MembershipEdge) -> None:
        """Sever one membership edge."""

    @abstractmethod
    def list_default_acl_entries(self, name: str) -> list[DefaultACLEntry]:
        """List default ACL rules whose ACL references the principal."""

    @abstractmethod
    def revoke_default_acl(self, entry: DefaultACLEntry) -> None:
        """Revoke one default ACL rule for its exact key tuple."""

    @abstractmethod
    def count_database_grants(self, name: str) -> int:
        """Count privileges the principal holds directly on the database."""

    @abstractmethod
    def revoke_database_privileges(self, name: str) -> None:
        """Revoke all database-level privileges from the principal."""

    @abstractmethod
    def list_schemas(self) -> list[str]:
        """List non-system schemas."""

    @abstractmethod
    def count_schema_object_grants(self, name: str) -> int:
        """Count schema, table, sequence and function privileges held by the principal."""

    @abstractmethod
    def revoke_schema_privileges(self, schema: str, name: str) -> None:
        """Revoke schema usage and all object privileges inside one schema."""

    @abstractmethod
    def count_owned_objects(self, name: str) -> int:
        """Count objects in the current database owned by the principal."""

    @abstractmethod
    def reassign_owned(self, name: str, custodian_role: str) -> None:
        """Reassign every object owned by the principal to the custodian role."""

    @abstractmethod
    def drop_owned(self, name: str) -> None:
        """Drop residual owned objects and privileges of the principal."""

    @abstractmethod
    def drop_principal(self, name: str) -> None:
        """Drop the principal itself."""

    @abstractmethod
    def summarize_leases(self, name_prefix: str, window: timedelta) -> list[LeaseSummary]:
        """Summarize lease expiry per family for roles starting with ``name_prefix``."""


class PostgresInspector(DependencyInspector):
    """DependencyInspector over PostgreSQL system catalogs.

    Expects an autocommit connection with a dict row factory (see
    ``role_reaper.db.connection.connect``). Identifiers are always composed
    with ``psycopg.sql`` so role names containing dashes or quotes are safe.

    Attributes:
        conn: Open psycopg connection
    """

    EXPIRED_PRINCIPALS_SQL = """
        SELECT rolname, rolvaliduntil
        FROM pg_catalog.pg_roles
        WHERE rolname LIKE %s ESCAPE '\\'
          AND rolvaliduntil IS NOT NULL
          AND rolvaliduntil < %s
        ORDER BY rolvaliduntil ASC, rolname ASC
    """

    PRINCIPAL_EXISTS_SQL = "SELECT 1 FROM pg_catalog.pg_roles WHERE rolname = %s"

    MEMBERSHIPS_SQL = """
        SELECT r.rolname AS role, 'member_of' AS direction
        FROM pg_catalog.pg_auth_members m
        JOIN pg_catalog.pg_roles r ON r.oid = m.roleid
        JOIN pg_catalog.pg_roles p ON p.oid = m.member
        WHERE p.rolname = %s
        UNION
        SELECT r.rolname AS role, 'has_member' AS direction
        FROM pg_catalog.pg_auth_members m
        JOIN pg_catalog.pg_roles r ON r.oid = m.member
        JOIN pg_catalog.pg_roles p ON p.oid = m.roleid
        WHERE p.rolname = %s
        ORDER BY direction, role
    """

    DEFAULT_ACL_SQL = """
        SELECT g.rolname AS grantor, n.nspname AS schema, d.defaclobjtype::text AS objtype
        FROM pg_catalog.pg_default_acl d
        JOIN pg_catalog.pg_roles g ON g.oid = d.defaclrole
        LEFT JOIN pg_catalog.pg_namespace n ON n.oid = d.defaclnamespace
        WHERE EXISTS (
            SELECT 1
            FROM aclexplode(d.defaclacl) a
            JOIN pg_catalog.pg_roles p ON p.oid = a.grantee
            WHERE p.rolname = %s
        )
        ORDER BY grantor, schema NULLS FIRST, objtype
    """

    DATABASE_GRANTS_SQL = """
        SELECT count(*) AS grants
        FROM pg_catalog.pg_database d
        CROSS JOIN LATERAL aclexplode(d.datacl) a
        JOIN pg_catalog.pg_roles p ON p.oid = a.grantee
        WHERE d.datname = current_database()
          AND p.rolname = %s
    """

    SCHEMAS_SQL = """
        SELECT nspname
        FROM pg_catalog.pg_namespace
        WHERE nspname !~ '^pg_'
          AND nspname <> 'information_schema'
        ORDER BY nspname
    """

    SCHEMA_OBJECT_GRANTS_SQL = """
        WITH user_schemas AS (
            SELECT oid, nspacl
            FROM pg_catalog.pg_namespace
            WHERE nspname !~ '^pg_'
              AND nspname <> 'information_schema'
        ),
        grantees AS (
            SELECT (aclexplode(s.nspacl)).grantee AS grantee
            FROM user_schemas s
            UNION ALL
            SELECT (aclexplode(c.relacl)).grantee AS grantee
            FROM pg_catalog.pg_class c
            JOIN user_schemas s ON s.oid = c.relnamespace
            WHERE c.relkind IN ('r', 'p', 'v', 'm', 'f', 'S')
            UNION ALL
            SELECT (aclexplode(f.proacl)).grantee AS grantee
            FROM pg_catalog.pg_proc f
            JOIN user_schemas s ON s.oid = f.pronamespace
        )
        SELECT count(*) AS grants
        FROM grantees g
        JOIN pg_catalog.pg_roles p ON p.oid = g.grantee
        WHERE p.rolname = %s
    """

    OWNED_OBJECTS_SQL = """
        SELECT count(*) AS owned
        FROM pg_catalog.pg_shdepend s
        JOIN pg_catalog.pg_roles p ON p.oid = s.refobjid
        WHERE s.refclassid = 'pg_catalog.pg_authid'::regclass
          AND s.deptype = 'o'
          AND s.dbid = (SELECT oid FROM pg_catalog.pg_database WHERE datname = current_database())
          AND p.rolname = %s
    """

    LEASE_SUMMARY_SQL = """
        SELECT
            substring(rolname, %s) AS family,
            count(*) AS total_roles,
            count(*) FILTER (WHERE rolvaliduntil < now()) AS expired,
            count(*) FILTER (WHERE rolvaliduntil >= now()) AS active,
            count(*) FILTER (WHERE rolvaliduntil < now() + %s) AS expiring_soon,
            min(rolvaliduntil) FILTER (WHERE isfinite(rolvaliduntil)) AS oldest_expiry,
            max(rolvaliduntil) FILTER (WHERE isfinite(rolvaliduntil)) AS newest_expiry,
            now() AS checked_at
        FROM pg_catalog.pg_roles
        WHERE rolname LIKE %s ESCAPE '\\'
          AND rolvaliduntil IS NOT NULL
        GROUP BY 1
        ORDER BY total_roles DESC, family
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        """Initialize inspector.

        Args:
            conn: Open autocommit psycopg connection with dict rows
        """
        self.conn = conn

    @property
    def database_name(self) -> str:
        return self.conn.info.dbname

    def list_expired_principals(self, name_prefix: str, now: datetime) -> list[CredentialPrincipal]:
        rows = self._fetchall(self.EXPIRED_PRINCIPALS_SQL, (escape_like(name_prefix) + "%", now))
        return [CredentialPrincipal(name=row["rolname"], valid_until=row["rolvaliduntil"]) for row in rows]

    def principal_exists(self, name: str) -> bool:
        return bool(self._fetchall(self.PRINCIPAL_EXISTS_SQL, (name,)))

    def list_memberships(self, name: str) -> list[MembershipEdge]:
        rows = self._fetchall(self.MEMBERSHIPS_SQL, (name, name))
        return [
            MembershipEdge(principal=name, role=row["role"], direction=MembershipDirection(row["direction"]))
            for row in rows
        ]

    def revoke_membership(self, edge: MembershipEdge) -> None:
        self._execute(
            sql.SQL("REVOKE {} FROM {}").format(
                sql.Identifier(edge.granted_role),
                sql.Identifier(edge.member),
            )
        )

    def list_default_acl_entries(self, name: str) -> list[DefaultACLEntry]:
        entries = []
        for row in self._fetchall(self.DEFAULT_ACL_SQL, (name,)):
            entries.append(
                DefaultACLEntry(
                    principal=name,
                    grantor=row["grantor"],
                    object_kind=DefaultACLObjectKind.from_code(row["objtype"]),
                    schema=row["schema"],
                )
            )
        return entries

    def revoke_default_acl(self, entry: DefaultACLEntry) -> None:
        if entry.schema is not None:
            statement = sql.SQL("ALTER DEFAULT PRIVILEGES FOR ROLE {} IN SCHEMA {} REVOKE ALL ON {} FROM {}").format(
                sql.Identifier(entry.grantor),
                sql.Identifier(entry.schema),
                sql.SQL(entry.object_kind.keyword),
                sql.Identifier(entry.principal),
            )
        else:
            statement = sql.SQL("ALTER DEFAULT PRIVILEGES FOR ROLE {} REVOKE ALL ON {} FROM {}").format(
                sql.Identifier(entry.grantor),
                sql.SQL(entry.object_kind.keyword),
                sql.Identifier(entry.principal),
            )
        self._execute(statement)

    def count_database_grants(self, name: str) -> int:
        return self._count(self.DATABASE_GRANTS_SQL, (name,), "grants")

    def revoke_database_privileges(self, name: str) -> None:
        self._execute(
            sql.SQL("REVOKE ALL ON DATABASE {} FROM {}").format(
                sql.Identifier(self.database_name),
                sql.Identifier(name),
            )
        )

    def list_schemas(self) -> list[str]:
        return [row["nspname"] for row in self._fetchall(self.SCHEMAS_SQL)]

    def count_schema_object_grants(self, name: str) -> int:
        return self._count(self.SCHEMA_OBJECT_GRANTS_SQL, (name,), "grants")

    def revoke_schema_privileges(self, schema: str, name: str) -> None:
        schema_ident = sql.Identifier(schema)
        role_ident = sql.Identifier(name)
        statements = [
            sql.SQL("REVOKE ALL ON SCHEMA {} FROM {}"),
            sql.SQL("REVOKE ALL ON ALL TABLES IN SCHEMA {} FROM {}"),
            sql.SQL("REVOKE ALL ON ALL SEQUENCES IN SCHEMA {} FROM {}"),
            sql.SQL("REVOKE ALL ON ALL FUNCTIONS IN SCHEMA {} FROM {}"),
        ]

        # All four revokes for a schema land together or not at all
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                for statement in statements:
                    cur.execute(statement.format(schema_ident, role_ident))

    def count_owned_objects(self, name: str) -> int:
        return self._count(self.OWNED_OBJECTS_SQL, (name,), "owned")

    def reassign_owned(self, name: str, custodian_role: str) -> None:
        self._execute(
            sql.SQL("REASSIGN OWNED BY {} TO {}").format(
                sql.Identifier(name),
                sql.Identifier(custodian_role),
            )
        )

    def drop_owned(self, name: str) -> None:
        self._execute(sql.SQL("DROP OWNED BY {} CASCADE").format(sql.Identifier(name)))

    def drop_principal(self, name: str) -> None:
        self._execute(sql.SQL("DROP ROLE {}").format(sql.Identifier(name)))

    def summarize_leases(self, name_prefix: str, window: timedelta = timedelta(hours=24)) -> list[LeaseSummary]:
        family_regex = "^" + re.escape(name_prefix) + "([^-]+)"
        rows = self._fetchall(
            self.LEASE_SUMMARY_SQL,
            (family_regex, window, escape_like(name_prefix) + "%"),
        )
        return [
            LeaseSummary(
                family=row["family"] or "",
                total_roles=row["total_roles"],
                expired=row["expired"],
                active=row["active"],
                expiring_soon=row["expiring_soon"],
                oldest_expiry=row["oldest_expiry"],
                newest_expiry=row["newest_expiry"],
                checked_at=row["checked_at"],
            )
            for row in rows
        ]

    def _execute(self, statement: Any, params: Optional[tuple] = None) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Executing: {self._render(statement)}")
        with self.conn.cursor() as cur:
            cur.execute(statement, params)

    def _fetchall(self, query: str, params: Optional[tuple] = None) -> list[dict[str, Any]]:
        with self.conn.cursor() as cur:
            cur.execute(query, params)
            return list(cur.fetchall())

    def _count(self, query: str, params: tuple, column: str) -> int:
        rows = self._fetchall(query, params)
        return int(rows[0][column]) if rows else 0

    def _render(self, statement: Any) -> str:
        if isinstance(statement, sql.Composable):
            try:
                return statement.as_string(self.conn)
            except Exception:
                return repr(statement)
        return str(statement)
