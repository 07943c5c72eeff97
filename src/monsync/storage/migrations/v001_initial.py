"""Initial state store schema."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

SCHEMA = """
-- ============================================================================
-- MONITOR STATES (one versioned record per resource address)
-- ============================================================================
CREATE TABLE IF NOT EXISTS monitor_states (
    address TEXT PRIMARY KEY,
    monitor_id TEXT,
    schema_version INTEGER NOT NULL CHECK (schema_version >= 0),
    attributes TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_monitor_states_monitor_id ON monitor_states(monitor_id);

-- ============================================================================
-- SCHEMA VERSION
-- ============================================================================
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

INSERT OR IGNORE INTO schema_version (version) VALUES (1);
"""


async def apply_migration(db: "aiosqlite.Connection") -> None:
    """Apply the initial schema migration."""
    await db.executescript(SCHEMA)
    await db.commit()
