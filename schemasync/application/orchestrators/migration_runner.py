"""Applies and rolls back migrations against a live connection."""
from contextlib import contextmanager
from typing import Callable, List, Optional
import logging

from schemasync.application.dtos.migration_dto import MigrationRunResult
from schemasync.domain.entities.migration import Migration, MigrationRecord
from schemasync.domain.entities.operations import MigrationOperation
from schemasync.domain.repositories.interfaces import IDDLEmitter, IMigrationHistoryRepository, IMigrationSource
from schemasync.domain.services.migration_planner import (
    determine_migrations_to_run,
    find_migration,
    get_migrations_to_rollback,
)
from schemasync.domain.services.operation_sorter import OperationSorter

logger = logging.getLogger(__name__)

ADVISORY_LOCK_KEY = 7_364_283_901


class MigrationRunner:
    """
    Main orchestrator for migration execution.
    Single Responsibility: run migrations, one transaction each.

    Each migration's statements and its ledger row commit together; a failing
    statement rolls the whole migration back and stops the run. Migrations
    that already committed stay applied.
    """

    def __init__(
        self,
        connection,
        source: IMigrationSource,
        history: IMigrationHistoryRepository,
        emitter: IDDLEmitter,
        sorter: Optional[OperationSorter] = None,
        use_advisory_lock: bool = False,
    ):
        self._conn = connection
        self._source = source
        self._history = history
        self._emitter = emitter
        self._sorter = sorter or OperationSorter()
        self._use_advisory_lock = use_advisory_lock

    def apply_pending(self, target: Optional[str] = None) -> MigrationRunResult:
        """Apply pending migrations in order, stopping after ``target`` if given."""
        migrations = self._source.get_migrations()
        if target:
            find_migration(migrations, target)

        result = MigrationRunResult(direction="up")
        with self._lock():
            self._history.ensure_exists(self._conn)
            applied = self._applied_names()
            to_run = determine_migrations_to_run(migrations, applied, target)
            logger.info(f"[MigrationRunner] {len(to_run)} migrations to apply")

            for migration in to_run:
                logger.info(f"[MigrationRunner] Applying {migration.full_name}")
                result.statements_executed += self._execute(
                    migration,
                    migration.up,
                    lambda cur, name=migration.full_name: self._history.record_applied(cur, name),
                )
                result.migrations.append(migration.full_name)

        logger.info(f"[MigrationRunner] Applied {result.count} migrations")
        return result

    def rollback_to(self, target: str) -> MigrationRunResult:
        """Revert applied migrations newer than ``target``, newest first."""
        migrations = self._source.get_migrations()
        find_migration(migrations, target)

        result = MigrationRunResult(direction="down")
        with self._lock():
            self._history.ensure_exists(self._conn)
            to_revert = get_migrations_to_rollback(migrations, self._applied_names(), target)
            if not to_revert:
                logger.info(f"[MigrationRunner] Nothing to roll back to {target}")

            for migration in to_revert:
                logger.info(f"[MigrationRunner] Rolling back {migration.full_name}")
                result.statements_executed += self._execute(
                    migration,
                    migration.down,
                    lambda cur, name=migration.full_name: self._history.remove(cur, name),
                )
                result.migrations.append(migration.full_name)

        logger.info(f"[MigrationRunner] Rolled back {result.count} migrations")
        return result

    def get_applied_migrations(self) -> List[MigrationRecord]:
        self._history.ensure_exists(self._conn)
        return self._history.get_applied(self._conn)

    def render(self, operations: List[MigrationOperation]) -> List[str]:
        """Sorted DDL for an operation list, without executing it."""
        return [self._emitter.emit(op) for op in self._sorter.sort(list(operations))]

    def _applied_names(self) -> List[str]:
        return [r.migration_name for r in self._history.get_applied(self._conn)]

    def _execute(
        self,
        migration: Migration,
        operations: List[MigrationOperation],
        record: Callable,
    ) -> int:
        statements = self.render(operations)
        try:
            with self._conn.cursor() as cur:
                for sql in statements:
                    logger.debug(f"[MigrationRunner] {sql}")
                    cur.execute(sql)
                record(cur)
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            logger.error(f"[MigrationRunner] {migration.full_name} failed, transaction rolled back")
            raise
        return len(statements)

    @contextmanager
    def _lock(self):
        if not self._use_advisory_lock:
            yield
            return
        with self._conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_lock(%s);", (ADVISORY_LOCK_KEY,))
        self._conn.commit()
        try:
            yield
        finally:
            with self._conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_unlock(%s);", (ADVISORY_LOCK_KEY,))
            self._conn.commit()
