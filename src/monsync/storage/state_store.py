"""SQLite store for persisted monitor state."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
from loguru import logger

from monsync.errors import StateMigrationError, StorageError
from monsync.migrations import MigrationChain, default_chain
from monsync.models.codec import state_from_attributes, state_to_attributes
from monsync.models.monitor import MonitorState
from monsync.storage.migrations import v001_initial


class StateStore:
    """
    SQLite database of versioned monitor state records.

    Records are keyed by resource address. Loading checks the record's
    schema version before any attribute is decoded and upgrades stale
    records in place.
    """

    def __init__(self, db_path: Path | str, chain: MigrationChain | None = None) -> None:
        """
        Initialize StateStore.

        Args:
            db_path: Path to SQLite database file.
            chain: Migration chain for stale records; the full chain when None.
        """
        self.db_path = Path(db_path)
        self.chain = chain or default_chain()
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """
        Open the database and apply schema migrations.

        Creates the database file if it doesn't exist.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.execute("PRAGMA journal_mode = WAL")

        await self._apply_migrations()

    async def _apply_migrations(self) -> None:
        conn = self._get_conn()

        cursor = await conn.execute(
            """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name='schema_version'
            """
        )
        table_exists = await cursor.fetchone()

        current_version = 0
        if table_exists:
            cursor = await conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

        if current_version < 1:
            await v001_initial.apply_migration(conn)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "StateStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _get_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Database not initialized")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Context manager for database transactions.

        Commits on success, rollbacks on exception.
        """
        conn = self._get_conn()

        try:
            yield
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

    async def fetchone(self, sql: str, params: list[Any] | None = None) -> aiosqlite.Row | None:
        cursor = await self._get_conn().execute(sql, params or [])
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: list[Any] | None = None) -> list[aiosqlite.Row]:
        cursor = await self._get_conn().execute(sql, params or [])
        result = await cursor.fetchall()
        return list(result) if result else []

    # =========================================================================
    # State Records
    # =========================================================================

    async def save(self, address: str, state: MonitorState) -> None:
        """Persist state at the current schema version, replacing any prior record."""
        await self.save_record(
            address,
            {"schema_version": self.chain.current_version, "attributes": state_to_attributes(state)},
        )

    async def save_record(self, address: str, record: dict[str, Any]) -> None:
        """Persist a raw versioned record."""
        attributes = record["attributes"]
        try:
            payload = json.dumps(attributes, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise StorageError(f"State for {address} is not JSON serializable: {e}") from e

        async with self.transaction():
            await self._get_conn().execute(
                """
                INSERT INTO monitor_states (address, monitor_id, schema_version, attributes, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(address) DO UPDATE SET
                    monitor_id = excluded.monitor_id,
                    schema_version = excluded.schema_version,
                    attributes = excluded.attributes,
                    updated_at = excluded.updated_at
                """,
                [
                    address,
                    attributes.get("id") or None,
                    record["schema_version"],
                    payload,
                    datetime.now(UTC).isoformat(),
                ],
            )

    async def load_record(self, address: str) -> dict[str, Any] | None:
        """Raw versioned record, without upgrading it."""
        row = await self.fetchone(
            "SELECT schema_version, attributes FROM monitor_states WHERE address = ?",
            [address],
        )
        if row is None:
            return None
        try:
            attributes = json.loads(row["attributes"])
        except json.JSONDecodeError as e:
            raise StateMigrationError(
                f"State for {address} is not valid JSON: {e}", version=row["schema_version"]
            ) from e
        return {"schema_version": row["schema_version"], "attributes": attributes}

    async def load(self, address: str) -> MonitorState | None:
        """
        Load state, upgrading a stale record first.

        The upgraded record is written back so the chain runs at most once
        per record.

        Raises:
            StateMigrationError: If the record is corrupt or from a newer
                version of monsync.
        """
        record = await self.load_record(address)
        if record is None:
            return None

        if record["schema_version"] != self.chain.current_version:
            result = self.chain.upgrade(record)
            for warning in result.warnings:
                logger.warning("State {}: {}", address, warning)
            logger.info(
                "Upgraded state {} from v{} to v{}",
                address,
                record["schema_version"],
                result.version,
            )
            await self.save_record(address, result.record)
            record = result.record

        return state_from_attributes(record["attributes"])

    async def delete(self, address: str) -> bool:
        """Remove a record; False when there was none."""
        async with self.transaction():
            cursor = await self._get_conn().execute(
                "DELETE FROM monitor_states WHERE address = ?", [address]
            )
        return cursor.rowcount > 0

    async def list_addresses(self) -> list[str]:
        rows = await self.fetchall("SELECT address FROM monitor_states ORDER BY address")
        return [row["address"] for row in rows]
