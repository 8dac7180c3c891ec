"""Use case for generating a migration from the declared model."""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from schemasync.domain.entities.descriptors import EntityDescriptor
from schemasync.domain.entities.migration import Migration
from schemasync.domain.repositories.interfaces import IMigrationHistoryRepository, IMigrationSource, ISnapshotReader
from schemasync.domain.services.diff_engine import DiffEngine
from schemasync.domain.services.model_snapshot_builder import ModelSnapshotBuilder
from schemasync.domain.services.operation_sorter import OperationSorter
from schemasync.domain.services.snapshot_projector import SnapshotProjector
from schemasync.infrastructure.repositories.json_migration_repository import JsonMigrationRepository

logger = logging.getLogger(__name__)


class GenerateMigrationUseCase:
    """
    Use case: diff the model against the database as it will be once every
    pending migration has run, and capture the difference as a new migration.
    Single Responsibility: Generate migration artifacts.
    """

    def __init__(
        self,
        reader: ISnapshotReader,
        source: IMigrationSource,
        history: IMigrationHistoryRepository,
        model_builder: Optional[ModelSnapshotBuilder] = None,
        diff_engine: Optional[DiffEngine] = None,
        sorter: Optional[OperationSorter] = None,
        projector: Optional[SnapshotProjector] = None,
        repository: Optional[JsonMigrationRepository] = None,
    ):
        self._reader = reader
        self._source = source
        self._history = history
        self._model_builder = model_builder or ModelSnapshotBuilder()
        self._diff = diff_engine or DiffEngine()
        self._sorter = sorter or OperationSorter()
        self._projector = projector or SnapshotProjector()
        self._repository = repository

    def execute(
        self,
        conn,
        name: str,
        descriptors: List[EntityDescriptor],
        timestamp: Optional[str] = None,
    ) -> Optional[Migration]:
        """Return the new migration, or None when the model already matches."""
        model = self._model_builder.build(descriptors)
        live = self._reader.read_snapshot(conn)

        self._history.ensure_exists(conn)
        applied = {r.migration_name for r in self._history.get_applied(conn)}
        pending = [m for m in self._source.get_migrations() if m.full_name not in applied]

        projected = live
        committed = []
        for migration in pending:
            projected = self._projector.apply(projected, self._sorter.sort(migration.up))
            committed.extend(migration.up)
        if pending:
            logger.info(f"[GenerateMigration] Projected {len(pending)} pending migrations onto live schema")

        up = self._diff.diff(model, projected, committed)
        if not up:
            logger.info("[GenerateMigration] Model matches database, no migration generated")
            return None
        down = self._diff.diff(projected, model)

        migration = Migration(
            timestamp=timestamp or datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S"),
            name=name,
            up=up,
            down=down,
        )
        if self._repository is not None:
            self._repository.save(migration)
        logger.info(f"[GenerateMigration] Generated {migration.full_name}: {len(up)} up, {len(down)} down")
        return migration
