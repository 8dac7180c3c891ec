from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional
import logging

from schemasync.domain.entities.descriptors import EntityDescriptor, ColumnDescriptor, OnDeleteBehavior
from schemasync.domain.entities.snapshot import ColumnSnapshot, SchemaSnapshot, TableSnapshot
from schemasync.domain.services.normalization import (
    INTEGER_TYPES,
    extract_data_type_details,
    extract_datetime_precision,
    normalize_data_type,
    normalize_default,
    normalize_identifier,
)

logger = logging.getLogger(__name__)

DEFAULT_FK_UPDATE_RULE = "NO ACTION"


def format_default_literal(value: Any) -> Optional[str]:
    """Render a Python literal as the SQL text of a column default."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return format_default_literal(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return _quote(value.strftime("%Y-%m-%d %H:%M:%S"))
    if isinstance(value, (date, time)):
        return _quote(value.isoformat())
    return _quote(str(value))


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class ModelSnapshotBuilder:
    """
    Converts declared entity descriptors into a normalized SchemaSnapshot.
    Single Responsibility: model side of the comparison.
    """

    def build(self, descriptors: Iterable[EntityDescriptor]) -> SchemaSnapshot:
        tables = [self._build_table(d) for d in descriptors]
        logger.info(f"[ModelSnapshotBuilder] Built model snapshot with {len(tables)} tables")
        return SchemaSnapshot.from_tables(tables)

    def _build_table(self, descriptor: EntityDescriptor) -> TableSnapshot:
        schema = normalize_identifier(descriptor.schema) or "public"
        table = normalize_identifier(descriptor.table)
        columns = [self._build_column(descriptor, table, c) for c in descriptor.columns]
        return TableSnapshot(schema=schema, name=table, columns=tuple(columns))

    def _build_column(self, descriptor: EntityDescriptor, table: str, column: ColumnDescriptor) -> ColumnSnapshot:
        name = normalize_identifier(column.name)
        data_type = normalize_data_type(column.db_type)
        char_len, precision, scale = extract_data_type_details(column.db_type)

        pk = descriptor.primary_key
        is_pk = pk is not None and normalize_identifier(pk.column) == name
        is_identity = is_pk and pk.auto_increment and data_type in INTEGER_TYPES
        if is_pk and pk.auto_increment and not is_identity:
            logger.warning(f"[ModelSnapshotBuilder] {table}.{name}: auto increment ignored for type {data_type}")

        if column.default_is_raw_sql:
            default = normalize_default(column.default)
        else:
            default = normalize_default(format_default_literal(column.default))

        fk = descriptor.foreign_key_for(column.name)
        fk_fields = {}
        if fk is not None:
            fk_fields = dict(
                is_foreign_key=True,
                fk_constraint_name=normalize_identifier(fk.constraint_name) or f"{table}_{name}_fkey",
                references_schema=normalize_identifier(fk.ref_schema) or "public",
                references_table=normalize_identifier(fk.ref_table),
                references_column=normalize_identifier(fk.ref_column) or "id",
                fk_update_rule=DEFAULT_FK_UPDATE_RULE,
                fk_delete_rule=OnDeleteBehavior.parse_or_default(fk.on_delete).value,
            )

        return ColumnSnapshot(
            name=name,
            data_type=data_type,
            character_maximum_length=char_len,
            numeric_precision=precision,
            numeric_scale=scale,
            datetime_precision=extract_datetime_precision(column.db_type),
            is_nullable=column.nullable and not is_pk,
            column_default=None if is_identity else default,
            is_identity=is_identity,
            identity_generation="always" if is_identity else None,
            is_primary_key=is_pk,
            pk_constraint_name=f"{table}_pkey" if is_pk else None,
            is_unique=column.unique and not is_pk,
            unique_constraint_name=f"{table}_{name}_key" if column.unique and not is_pk else None,
            **fk_fields,
        )
