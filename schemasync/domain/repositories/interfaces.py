from abc import ABC, abstractmethod
from typing import List

from schemasync.domain.entities.descriptors import EntityDescriptor
from schemasync.domain.entities.migration import Migration, MigrationRecord
from schemasync.domain.entities.operations import MigrationOperation
from schemasync.domain.entities.snapshot import SchemaSnapshot


class ISnapshotReader(ABC):
    """Interface for reading the live schema of a database."""

    @abstractmethod
    def read_snapshot(self, conn) -> SchemaSnapshot:
        """Introspect non-system schemas into a normalized snapshot."""
        pass


class IDDLEmitter(ABC):
    """Interface for rendering operations to dialect-specific DDL."""

    @abstractmethod
    def emit(self, operation: MigrationOperation) -> str:
        """Render exactly one self-contained statement for the operation."""
        pass


class IMigrationHistoryRepository(ABC):
    """Interface for the applied-migrations ledger kept in the target database."""

    @abstractmethod
    def ensure_exists(self, conn) -> None:
        """Create the ledger schema and table if they are missing."""
        pass

    @abstractmethod
    def get_applied(self, conn) -> List[MigrationRecord]:
        """Applied migrations, oldest first."""
        pass

    @abstractmethod
    def record_applied(self, cur, migration_name: str) -> None:
        """Insert a ledger row using the caller's cursor (and transaction)."""
        pass

    @abstractmethod
    def remove(self, cur, migration_name: str) -> None:
        """Delete a ledger row using the caller's cursor (and transaction)."""
        pass


class IMigrationSource(ABC):
    """Interface for discovering migration definitions."""

    @abstractmethod
    def get_migrations(self) -> List[Migration]:
        """All known migrations, ascending by timestamped name."""
        pass


class IDescriptorProvider(ABC):
    """Interface for obtaining declared entity descriptors."""

    @abstractmethod
    def get_descriptors(self) -> List[EntityDescriptor]:
        """Declared tables making up the model."""
        pass
