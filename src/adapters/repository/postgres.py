"""
PostgreSQL profile store adapter - Implements ProfileStore protocol.

This module provides the PostgreSQL implementation of the domain's
profile store port using psycopg3 with raw SQL.

Allocation Rules at Write Time:
-------------------------------
The eligibility check runs against a snapshot read before the identity is
created, so two registrations can both pass it. The profiles table closes
that gap with partial unique indexes (see migrations/001_create_profiles.sql):

1. **profiles_single_admin**: at most one row with role = 'admin'.
2. **profiles_one_vendor_per_shop**: at most one vendor row per shop_id.

put() inserts with ON CONFLICT (account_id) DO NOTHING, so a retried commit
for the same account is a no-op, while a lost race on either index surfaces
as AllocationConflict.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from src.domain.exceptions import AllocationConflict, ProfileNotFound, ProfileStoreError
from src.domain.models import Profile
from src.domain.ports import RejectionReason, Role

logger = logging.getLogger(__name__)

_CONFLICT_REASONS = {
    "profiles_single_admin": RejectionReason.ADMIN_EXISTS,
    "profiles_one_vendor_per_shop": RejectionReason.SHOP_TAKEN,
}

_COLUMNS = "account_id, email, role, shop_id, created_at"


def _row_to_profile(row: tuple) -> Profile:
    return Profile(
        account_id=row[0],
        email=row[1],
        role=Role(row[2]),
        shop_id=row[3],
        created_at=row[4],
    )


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map psycopg failures onto domain exceptions."""
    try:
        yield
    except errors.UniqueViolation as e:
        constraint = e.diag.constraint_name
        reason = _CONFLICT_REASONS.get(constraint or "")
        if reason is None:
            raise ProfileStoreError(f"{action}: unexpected unique violation on {constraint}") from e
        raise AllocationConflict(reason) from e
    except psycopg.Error as e:
        raise ProfileStoreError(f"{action}: {e}") from e


class PostgresProfileStore:
    """
    Implements ProfileStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get(self, account_id: str) -> Profile:
        sql = f"SELECT {_COLUMNS} FROM profiles WHERE account_id = %s"

        with _translate_errors("get"), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id,))
            row = cursor.fetchone()

        if row is None:
            raise ProfileNotFound(account_id)
        return _row_to_profile(row)

    def put(self, profile: Profile) -> None:
        """
        Insert a profile unless the account already has one.

        Raises:
            AllocationConflict: admin slot or shop already taken
            ProfileStoreError: any other database failure
        """
        sql = f"""
            INSERT INTO profiles ({_COLUMNS})
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (account_id) DO NOTHING
        """

        with _translate_errors("put"), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    profile.account_id,
                    profile.email,
                    profile.role.value,
                    profile.shop_id,
                    profile.created_at,
                ),
            )
            conn.commit()
            if cursor.rowcount == 0:
                logger.info("Profile already present for account_id=%s", profile.account_id)

    def delete(self, account_id: str) -> None:
        sql = "DELETE FROM profiles WHERE account_id = %s"

        with _translate_errors("delete"), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id,))
            conn.commit()
            deleted = cursor.rowcount

        if deleted == 0:
            raise ProfileNotFound(account_id)

    def query(self, role: Role | None = None) -> Sequence[Profile]:
        if role is None:
            sql = f"SELECT {_COLUMNS} FROM profiles ORDER BY created_at"
            params: tuple = ()
        else:
            sql = f"SELECT {_COLUMNS} FROM profiles WHERE role = %s ORDER BY created_at"
            params = (role.value,)

        with _translate_errors("query"), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            rows = cursor.fetchall()

        return [_row_to_profile(row) for row in rows]


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
