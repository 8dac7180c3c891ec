from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from schemasync.domain.entities.operations import MigrationOperation


@dataclass(frozen=True)
class Migration:
    """A named unit of schema change with forward and reverse operation lists."""
    timestamp: str
    name: str
    up: List[MigrationOperation] = field(default_factory=list)
    down: List[MigrationOperation] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.timestamp}_{self.name}"

    def matches(self, target: str) -> bool:
        """True when target names this migration, bare or timestamped, ignoring case."""
        wanted = target.strip().lower()
        return wanted in (self.name.lower(), self.full_name.lower())


@dataclass(frozen=True)
class MigrationRecord:
    """One row of the history ledger."""
    migration_name: str
    applied_at: Optional[datetime] = None
    product_version: Optional[str] = None
