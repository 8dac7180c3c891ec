"""Data Transfer Objects for application layer."""

from dataclasses import dataclass, field
from typing import List

from schemasync.domain.entities.operations import MigrationOperation


@dataclass
class MigrationRunResult:
    """Outcome of an apply or rollback run."""
    direction: str
    migrations: List[str] = field(default_factory=list)
    statements_executed: int = 0

    @property
    def count(self) -> int:
        return len(self.migrations)


@dataclass
class SyncResult:
    """Outcome of a direct model-to-database synchronization."""
    operations: List[MigrationOperation]
    statements: List[str]
    executed: bool = False
