from dataclasses import replace
from typing import Callable, Dict, Iterable, Optional
import logging

from schemasync.domain.entities.operations import MigrationOperation, OperationType
from schemasync.domain.entities.snapshot import ColumnSnapshot, SchemaSnapshot, TableSnapshot, TableKey
from schemasync.domain.services.normalization import normalize_data_type, normalize_default

logger = logging.getLogger(__name__)

_CLEARED_FOREIGN_KEY = dict(
    is_foreign_key=False,
    fk_constraint_name=None,
    references_schema=None,
    references_table=None,
    references_column=None,
    fk_update_rule=None,
    fk_delete_rule=None,
)


class SnapshotProjector:
    """
    Replays operations onto a snapshot without touching a database.
    Single Responsibility: compute "schema after these operations".

    Snapshots are immutable; every step builds new values, so the base
    snapshot passed in is never modified.
    """

    def __init__(self):
        self._handlers: Dict[OperationType, Callable] = {
            OperationType.CREATE_SCHEMA: self._noop,
            OperationType.CREATE_TABLE: self._noop,
            OperationType.DROP_TABLE: self._drop_table,
            OperationType.ADD_COLUMN: self._add_column,
            OperationType.DROP_COLUMN: self._drop_column,
            OperationType.ALTER_COLUMN_TYPE: self._alter_column_type,
            OperationType.ALTER_NULLABILITY: self._alter_nullability,
            OperationType.SET_DEFAULT: self._set_default,
            OperationType.DROP_DEFAULT: self._drop_default,
            OperationType.ADD_UNIQUE: self._add_unique,
            OperationType.DROP_CONSTRAINT: self._drop_constraint,
            OperationType.ADD_FOREIGN_KEY: self._add_foreign_key,
        }

    def apply(self, base: SchemaSnapshot, operations: Iterable[MigrationOperation]) -> SchemaSnapshot:
        operations = list(operations)
        tables: Dict[TableKey, TableSnapshot] = dict(base.tables_by_key)

        # tables exist before anything refers to them, whatever the list order
        for op in operations:
            if op.type == OperationType.CREATE_TABLE and op.table_key not in tables:
                tables[op.table_key] = TableSnapshot(schema=op.schema, name=op.table)

        for op in operations:
            self._handlers[op.type](tables, op)

        return SchemaSnapshot.from_tables(tables.values())

    def _noop(self, tables, op):
        pass

    def _drop_table(self, tables, op):
        tables.pop(op.table_key, None)

    def _add_column(self, tables, op):
        table = self._table(tables, op)
        if table is None:
            return
        column = ColumnSnapshot(
            name=op.column,
            data_type=normalize_data_type(op.sql_type),
            character_maximum_length=op.character_maximum_length,
            numeric_precision=op.numeric_precision,
            numeric_scale=op.numeric_scale,
            datetime_precision=op.datetime_precision,
            is_nullable=True if op.is_nullable is None else op.is_nullable,
            column_default=normalize_default(op.default_sql),
            is_identity=op.is_identity,
            identity_generation=op.identity_generation if op.is_identity else None,
            is_primary_key=op.is_primary_key,
            pk_constraint_name=f"{op.table}_pkey" if op.is_primary_key else None,
        )
        kept = tuple(c for c in table.columns if c.name != op.column)
        tables[table.key] = replace(table, columns=kept + (column,))

    def _drop_column(self, tables, op):
        table = self._table(tables, op)
        if table is not None:
            tables[table.key] = replace(table, columns=tuple(c for c in table.columns if c.name != op.column))

    def _alter_column_type(self, tables, op):
        self._update_column(tables, op, lambda c: replace(
            c,
            data_type=normalize_data_type(op.sql_type),
            character_maximum_length=op.character_maximum_length,
            numeric_precision=op.numeric_precision,
            numeric_scale=op.numeric_scale,
            datetime_precision=op.datetime_precision,
        ))

    def _alter_nullability(self, tables, op):
        self._update_column(tables, op, lambda c: replace(c, is_nullable=bool(op.is_nullable)))

    def _set_default(self, tables, op):
        self._update_column(tables, op, lambda c: replace(c, column_default=normalize_default(op.default_sql)))

    def _drop_default(self, tables, op):
        self._update_column(tables, op, lambda c: replace(c, column_default=None))

    def _add_unique(self, tables, op):
        name = op.resolved_constraint_name
        self._update_column(tables, op, lambda c: replace(c, is_unique=True, unique_constraint_name=name))

    def _add_foreign_key(self, tables, op):
        self._update_column(tables, op, lambda c: replace(
            c,
            is_foreign_key=True,
            fk_constraint_name=op.resolved_constraint_name,
            references_schema=op.ref_table_key[0],
            references_table=op.ref_table,
            references_column=op.ref_column or "id",
            fk_update_rule="NO ACTION",
            fk_delete_rule=(op.on_delete_rule or "NO ACTION").upper(),
        ))

    def _drop_constraint(self, tables, op):
        table = self._table(tables, op)
        if table is None:
            return
        columns = []
        for col in table.columns:
            if col.fk_constraint_name == op.constraint_name:
                col = replace(col, **_CLEARED_FOREIGN_KEY)
            if col.unique_constraint_name == op.constraint_name:
                col = replace(col, is_unique=False, unique_constraint_name=None)
            if col.pk_constraint_name == op.constraint_name:
                col = replace(col, is_primary_key=False, pk_constraint_name=None)
            columns.append(col)
        tables[table.key] = replace(table, columns=tuple(columns))

    def _update_column(self, tables, op, change: Callable[[ColumnSnapshot], ColumnSnapshot]):
        table = self._table(tables, op)
        if table is None:
            return
        if table.column(op.column) is None:
            logger.warning(f"[SnapshotProjector] {op}: column {op.column} not found, skipped")
            return
        columns = tuple(change(c) if c.name == op.column else c for c in table.columns)
        tables[table.key] = replace(table, columns=columns)

    def _table(self, tables, op) -> Optional[TableSnapshot]:
        table = tables.get(op.table_key)
        if table is None:
            logger.warning(f"[SnapshotProjector] {op}: table {op.schema}.{op.table} not found, skipped")
        return table
