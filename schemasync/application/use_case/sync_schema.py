"""Use case for reconciling a database directly with the declared model."""
from typing import List, Optional
import logging

from schemasync.application.dtos.migration_dto import SyncResult
from schemasync.domain.entities.descriptors import EntityDescriptor
from schemasync.domain.repositories.interfaces import IDDLEmitter, ISnapshotReader
from schemasync.domain.services.diff_engine import DiffEngine
from schemasync.domain.services.model_snapshot_builder import ModelSnapshotBuilder
from schemasync.domain.services.operation_sorter import OperationSorter

logger = logging.getLogger(__name__)


class SyncSchemaUseCase:
    """
    Use case: bring the live schema in line with the model in one transaction,
    without writing a migration or touching the history ledger.
    """

    def __init__(
        self,
        reader: ISnapshotReader,
        emitter: IDDLEmitter,
        model_builder: Optional[ModelSnapshotBuilder] = None,
        diff_engine: Optional[DiffEngine] = None,
        sorter: Optional[OperationSorter] = None,
    ):
        self._reader = reader
        self._emitter = emitter
        self._model_builder = model_builder or ModelSnapshotBuilder()
        self._diff = diff_engine or DiffEngine()
        self._sorter = sorter or OperationSorter()

    def execute(self, conn, descriptors: List[EntityDescriptor], dry_run: bool = False) -> SyncResult:
        model = self._model_builder.build(descriptors)
        live = self._reader.read_snapshot(conn)

        operations = self._sorter.sort(self._diff.diff(model, live))
        statements = [self._emitter.emit(op) for op in operations]
        result = SyncResult(operations=operations, statements=statements)

        if dry_run or not statements:
            logger.info(f"[SyncSchema] {len(statements)} statements, nothing executed")
            return result

        try:
            with conn.cursor() as cur:
                for sql in statements:
                    logger.debug(f"[SyncSchema] {sql}")
                    cur.execute(sql)
            conn.commit()
        except Exception:
            conn.rollback()
            logger.error("[SyncSchema] Synchronization failed, transaction rolled back")
            raise

        result.executed = True
        logger.info(f"[SyncSchema] Executed {len(statements)} statements")
        return result
