"""Ordered upgrade chain for persisted monitor state.

A record at version N moves only to N+1; the chain folds every pending
step in order. Steps are pure functions of the attribute mapping.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import reduce
from typing import Any

from loguru import logger

from monsync.errors import StateMigrationError

Attributes = dict[str, Any]
Upgrader = Callable[[Mapping[str, Any]], tuple[Attributes, list[str]]]


@dataclass(frozen=True)
class Migration:
    """One step from from_version to from_version + 1."""

    from_version: int
    upgrade: Upgrader
    description: str = ""

    @property
    def to_version(self) -> int:
        return self.from_version + 1


@dataclass(frozen=True)
class MigrationResult:
    """Upgraded attributes plus warnings for data that had to be dropped."""

    attributes: Attributes
    version: int
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def record(self) -> dict[str, Any]:
        return {"schema_version": self.version, "attributes": self.attributes}


class MigrationChain:
    """
    Upgrades versioned state records to the current layout.

    Steps are registered at construction and must form a contiguous run
    starting at version 0.
    """

    def __init__(self, migrations: Iterable[Migration]) -> None:
        ordered = tuple(sorted(migrations, key=lambda m: m.from_version))
        for expected, migration in enumerate(ordered):
            if migration.from_version != expected:
                raise ValueError(
                    f"Migration chain has a gap: expected step from v{expected}, "
                    f"got v{migration.from_version}"
                )
        self.migrations = ordered

    @property
    def current_version(self) -> int:
        return len(self.migrations)

    def upgrade(self, record: Any) -> MigrationResult:
        """
        Upgrade a {"schema_version": N, "attributes": {...}} record.

        Args:
            record: Versioned state record as read from storage.

        Returns:
            MigrationResult at the current version.

        Raises:
            StateMigrationError: If the record is corrupt or newer than
                this chain understands.
        """
        version, attributes = self._unpack(record)
        return self.upgrade_attributes(attributes, version)

    def upgrade_attributes(self, attributes: Mapping[str, Any], version: int) -> MigrationResult:
        """Upgrade bare attributes known to be at the given version."""
        if version > self.current_version:
            raise StateMigrationError(
                f"State schema version {version} is newer than supported "
                f"version {self.current_version}",
                version=version,
            )

        def step(acc: tuple[Attributes, list[str]], migration: Migration) -> tuple[Attributes, list[str]]:
            attrs, warnings = acc
            upgraded, new_warnings = migration.upgrade(attrs)
            logger.debug(
                "Upgraded state v{} -> v{}: {}",
                migration.from_version,
                migration.to_version,
                migration.description,
            )
            return upgraded, warnings + new_warnings

        pending = self.migrations[version:]
        upgraded, warnings = reduce(step, pending, (dict(attributes), []))
        return MigrationResult(upgraded, self.current_version, tuple(warnings))

    @staticmethod
    def _unpack(record: Any) -> tuple[int, Mapping[str, Any]]:
        if not isinstance(record, Mapping):
            raise StateMigrationError(
                f"State record must be a mapping, not {type(record).__name__}"
            )
        version = record.get("schema_version")
        if isinstance(version, bool) or not isinstance(version, int) or version < 0:
            raise StateMigrationError(f"Invalid state schema version: {version!r}")
        attributes = record.get("attributes")
        if not isinstance(attributes, Mapping):
            raise StateMigrationError("State record has no attributes mapping", version=version)
        return version, attributes
