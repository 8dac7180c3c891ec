"""Selection of migrations to apply or roll back relative to the history ledger."""

from typing import Iterable, List, Optional

from schemasync.domain.entities.migration import Migration
from schemasync.domain.exceptions import MigrationNotFoundError


def find_migration(migrations: Iterable[Migration], target: str) -> Migration:
    """Resolve a bare or timestamped name, ignoring case."""
    for migration in migrations:
        if migration.matches(target):
            return migration
    raise MigrationNotFoundError(target)


def determine_migrations_to_run(
    migrations: List[Migration], applied: Iterable[str], target: Optional[str] = None
) -> List[Migration]:
    """
    Pending migrations in discovery order.

    With a target, the list stops after the first pending migration matching
    it; a target that is already applied does not end the list early.
    """
    applied_names = set(applied)
    pending = []
    for migration in migrations:
        if migration.full_name in applied_names:
            continue
        pending.append(migration)
        if target and migration.matches(target):
            break
    return pending


def get_migrations_to_rollback(
    migrations: List[Migration], applied: Iterable[str], target: str
) -> List[Migration]:
    """Applied migrations after ``target``, newest first."""
    boundary = find_migration(migrations, target).full_name
    applied_names = set(applied)
    newer = [m for m in migrations if m.full_name > boundary and m.full_name in applied_names]
    return sorted(newer, key=lambda m: m.full_name, reverse=True)
