from typing import Iterable, List, Optional, Set
import logging

from schemasync.domain.entities.operations import MigrationOperation
from schemasync.domain.entities.snapshot import ColumnSnapshot, SchemaSnapshot, TableSnapshot

logger = logging.getLogger(__name__)


class DiffEngine:
    """
    Computes the operations turning an actual snapshot into an expected one.
    Single Responsibility: Only handles diff computation.

    Tables are visited in (schema, name) order and columns in declaration
    order, so identical inputs always give the identical operation list.
    Global execution order is left to the OperationSorter.
    """

    def diff(
        self,
        expected: SchemaSnapshot,
        actual: SchemaSnapshot,
        committed_ops: Optional[Iterable[MigrationOperation]] = None,
    ) -> List[MigrationOperation]:
        """Operations that make ``actual`` match ``expected``."""
        expected_tables = expected.tables_by_key
        actual_tables = actual.tables_by_key
        operations: List[MigrationOperation] = []
        created_schemas: Set[str] = set()

        for key in sorted(expected_tables):
            table = expected_tables[key]
            if key not in actual_tables:
                operations.extend(self._create_table(table, created_schemas))
            else:
                operations.extend(self._diff_table(table, actual_tables[key]))

        for key in sorted(actual_tables):
            if key not in expected_tables:
                operations.append(MigrationOperation.drop_table(*key))

        if committed_ops:
            operations = self._without_committed(operations, committed_ops)

        logger.info(f"[DiffEngine] Computed {len(operations)} operations")
        return operations

    def _create_table(self, table: TableSnapshot, created_schemas: Set[str]) -> List[MigrationOperation]:
        ops = []
        if table.schema not in created_schemas:
            created_schemas.add(table.schema)
            ops.append(MigrationOperation.create_schema(table.schema))
        ops.append(MigrationOperation.create_table(table.schema, table.name))
        for col in table.columns:
            ops.extend(self._add_column(table, col))
        return ops

    def _diff_table(self, expected: TableSnapshot, actual: TableSnapshot) -> List[MigrationOperation]:
        added, altered, dropped = [], [], []

        for col in expected.columns:
            current = actual.column(col.name)
            if current is None:
                added.extend(self._add_column(expected, col))
            else:
                altered.extend(self._diff_column(expected, col, current))

        for col in actual.columns:
            if expected.column(col.name) is None:
                dropped.append(MigrationOperation.drop_column(actual.schema, actual.name, col.name))

        return added + altered + dropped

    def _add_column(self, table: TableSnapshot, col: ColumnSnapshot) -> List[MigrationOperation]:
        ops = [
            MigrationOperation.add_column(
                table.schema,
                table.name,
                col.name,
                col.data_type,
                is_nullable=col.is_nullable,
                default_sql=col.column_default,
                is_primary_key=col.is_primary_key,
                is_identity=col.is_identity,
                identity_generation=col.identity_generation,
                character_maximum_length=col.character_maximum_length,
                numeric_precision=col.numeric_precision,
                numeric_scale=col.numeric_scale,
                datetime_precision=col.datetime_precision,
            )
        ]
        if col.is_unique:
            ops.append(MigrationOperation.add_unique(table.schema, table.name, col.name, col.unique_constraint_name))
        if col.is_foreign_key:
            ops.append(self._add_foreign_key(table, col))
        return ops

    def _diff_column(
        self, table: TableSnapshot, expected: ColumnSnapshot, actual: ColumnSnapshot
    ) -> List[MigrationOperation]:
        schema, name = table.schema, table.name
        ops = []

        if expected.sql_type != actual.sql_type:
            ops.append(MigrationOperation.alter_column_type(
                schema,
                name,
                expected.name,
                expected.data_type,
                character_maximum_length=expected.character_maximum_length,
                numeric_precision=expected.numeric_precision,
                numeric_scale=expected.numeric_scale,
                datetime_precision=expected.datetime_precision,
            ))

        if expected.is_nullable != actual.is_nullable:
            ops.append(MigrationOperation.alter_nullability(schema, name, expected.name, expected.is_nullable))

        if expected.column_default is None and actual.column_default is not None:
            ops.append(MigrationOperation.drop_default(schema, name, expected.name))
        elif expected.column_default != actual.column_default:
            ops.append(MigrationOperation.set_default(schema, name, expected.name, expected.column_default))

        if expected.is_unique and not actual.is_unique:
            ops.append(MigrationOperation.add_unique(schema, name, expected.name, expected.unique_constraint_name))
        elif actual.is_unique and not expected.is_unique and actual.unique_constraint_name:
            ops.append(MigrationOperation.drop_constraint(schema, name, actual.unique_constraint_name))

        ops.extend(self._diff_foreign_key(table, expected, actual))
        return ops

    def _diff_foreign_key(
        self, table: TableSnapshot, expected: ColumnSnapshot, actual: ColumnSnapshot
    ) -> List[MigrationOperation]:
        if expected.foreign_key_signature == actual.foreign_key_signature:
            return []

        ops = []
        if actual.is_foreign_key:
            if actual.fk_constraint_name:
                ops.append(MigrationOperation.drop_constraint(table.schema, table.name, actual.fk_constraint_name))
            else:
                logger.warning(
                    f"[DiffEngine] Skipping drop of unnamed foreign key on {table.schema}.{table.name}.{actual.name}"
                )
        if expected.is_foreign_key:
            ops.append(self._add_foreign_key(table, expected))
        return ops

    def _add_foreign_key(self, table: TableSnapshot, col: ColumnSnapshot) -> MigrationOperation:
        return MigrationOperation.add_foreign_key(
            table.schema,
            table.name,
            col.name,
            col.fk_constraint_name,
            col.references_schema,
            col.references_table,
            col.references_column,
            col.fk_delete_rule,
        )

    def _without_committed(
        self, operations: List[MigrationOperation], committed_ops: Iterable[MigrationOperation]
    ) -> List[MigrationOperation]:
        # only exact duplicates; a different change to the same column is new work
        committed = set(committed_ops)
        kept = [op for op in operations if op not in committed]
        skipped = len(operations) - len(kept)
        if skipped:
            logger.info(f"[DiffEngine] Skipped {skipped} operations already captured by pending migrations")
        return kept
