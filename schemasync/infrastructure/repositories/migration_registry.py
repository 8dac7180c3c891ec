from typing import Callable, Dict, List, Tuple, Union
import logging

from schemasync.domain.entities.migration import Migration
from schemasync.domain.entities.operations import MigrationOperation
from schemasync.domain.exceptions import DuplicateMigrationError
from schemasync.domain.repositories.interfaces import IMigrationSource

logger = logging.getLogger(__name__)

OperationFactory = Callable[[], List[MigrationOperation]]
Operations = Union[List[MigrationOperation], OperationFactory]


class MigrationRegistry(IMigrationSource):
    """
    Explicit, in-memory registry of migrations built at program startup.
    Single Responsibility: migration discovery without file scanning.

    Up and Down may be given as lists or as zero-argument callables that
    return lists; callables are invoked on every ``get_migrations`` call.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[str, str, Operations, Operations]] = {}

    def register(self, timestamp: str, name: str, up: Operations, down: Operations = None) -> "MigrationRegistry":
        full_name = f"{timestamp}_{name}"
        if full_name in self._entries:
            raise DuplicateMigrationError(full_name)
        self._entries[full_name] = (timestamp, name, up, down or [])
        logger.debug(f"[MigrationRegistry] Registered {full_name}")
        return self

    def add(self, migration: Migration) -> "MigrationRegistry":
        return self.register(migration.timestamp, migration.name, list(migration.up), list(migration.down))

    def migration(self, timestamp: str, name: str):
        """Decorator form: the decorated function returns ``(up, down)``."""
        def decorator(func: Callable[[], Tuple[List[MigrationOperation], List[MigrationOperation]]]):
            self.register(timestamp, name, lambda: list(func()[0]), lambda: list(func()[1]))
            return func
        return decorator

    def get_migrations(self) -> List[Migration]:
        migrations = []
        for full_name in sorted(self._entries):
            timestamp, name, up, down = self._entries[full_name]
            migrations.append(Migration(timestamp=timestamp, name=name, up=_resolve(up), down=_resolve(down)))
        return migrations

    def __len__(self):
        return len(self._entries)


def _resolve(operations: Operations) -> List[MigrationOperation]:
    return list(operations()) if callable(operations) else list(operations)
