"""Persisted state schema migrations."""

from monsync.migrations.chain import Migration, MigrationChain, MigrationResult
from monsync.migrations.steps import STEPS

CURRENT_VERSION = len(STEPS)


def default_chain() -> MigrationChain:
    """Chain holding every step up to CURRENT_VERSION."""
    return MigrationChain(STEPS)


__all__ = [
    "CURRENT_VERSION",
    "STEPS",
    "Migration",
    "MigrationChain",
    "MigrationResult",
    "default_chain",
]
