"""Database introspection services."""
from typing import Any, Dict, List, Tuple
import logging

import psycopg2
from psycopg2.extras import RealDictCursor

from schemasync.domain.entities.snapshot import ColumnSnapshot, SchemaSnapshot, TableSnapshot
from schemasync.domain.exceptions import IntrospectionError
from schemasync.domain.repositories.interfaces import ISnapshotReader
from schemasync.domain.services.normalization import (
    DATETIME_TYPES,
    collapse_whitespace,
    normalize_data_type,
    normalize_default,
    normalize_identifier,
)
from schemasync.infrastructure.config import HISTORY_SCHEMA, HISTORY_TABLE

logger = logging.getLogger(__name__)

_SYSTEM_SCHEMA_FILTER = """
    {alias}.table_schema NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
    AND {alias}.table_schema NOT LIKE 'pg_temp%%'
    AND {alias}.table_schema NOT LIKE 'pg_toast_temp%%'
    AND NOT ({alias}.table_schema = %(history_schema)s AND {alias}.table_name = %(history_table)s)
"""

TABLES_QUERY = """
    SELECT t.table_schema, t.table_name
    FROM information_schema.tables t
    WHERE t.table_type = 'BASE TABLE'
    AND """ + _SYSTEM_SCHEMA_FILTER.format(alias="t") + """
    ORDER BY t.table_schema, t.table_name
"""

COLUMNS_QUERY = """
    WITH key_columns AS (
        SELECT tc.table_schema, tc.table_name, kcu.column_name, tc.constraint_name, tc.constraint_type
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON kcu.constraint_schema = tc.constraint_schema
         AND kcu.constraint_name = tc.constraint_name
         AND kcu.table_schema = tc.table_schema
         AND kcu.table_name = tc.table_name
        WHERE tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE', 'FOREIGN KEY')
    ),
    pk AS (
        SELECT DISTINCT ON (table_schema, table_name, column_name)
               table_schema, table_name, column_name, constraint_name
        FROM key_columns
        WHERE constraint_type = 'PRIMARY KEY'
        ORDER BY table_schema, table_name, column_name, constraint_name
    ),
    uq AS (
        SELECT DISTINCT ON (table_schema, table_name, column_name)
               table_schema, table_name, column_name, constraint_name
        FROM key_columns
        WHERE constraint_type = 'UNIQUE'
        ORDER BY table_schema, table_name, column_name, constraint_name
    ),
    fk AS (
        SELECT DISTINCT ON (kc.table_schema, kc.table_name, kc.column_name)
               kc.table_schema, kc.table_name, kc.column_name, kc.constraint_name,
               ccu.table_schema AS references_schema,
               ccu.table_name AS references_table,
               ccu.column_name AS references_column,
               rc.update_rule, rc.delete_rule
        FROM key_columns kc
        JOIN information_schema.referential_constraints rc
          ON rc.constraint_schema = kc.table_schema
         AND rc.constraint_name = kc.constraint_name
        JOIN information_schema.constraint_column_usage ccu
          ON ccu.constraint_schema = rc.constraint_schema
         AND ccu.constraint_name = rc.constraint_name
        WHERE kc.constraint_type = 'FOREIGN KEY'
        ORDER BY kc.table_schema, kc.table_name, kc.column_name, kc.constraint_name
    )
    SELECT
        c.table_schema, c.table_name, c.column_name,
        c.data_type, c.udt_name,
        c.character_maximum_length, c.numeric_precision, c.numeric_scale, c.datetime_precision,
        c.is_nullable, c.column_default,
        c.is_identity, c.identity_generation,
        c.is_generated, c.generation_expression,
        pk.constraint_name AS pk_constraint_name,
        uq.constraint_name AS unique_constraint_name,
        fk.constraint_name AS fk_constraint_name,
        fk.references_schema, fk.references_table, fk.references_column,
        fk.update_rule AS fk_update_rule, fk.delete_rule AS fk_delete_rule
    FROM information_schema.columns c
    JOIN information_schema.tables t
      ON t.table_schema = c.table_schema
     AND t.table_name = c.table_name
     AND t.table_type = 'BASE TABLE'
    LEFT JOIN pk ON pk.table_schema = c.table_schema AND pk.table_name = c.table_name AND pk.column_name = c.column_name
    LEFT JOIN uq ON uq.table_schema = c.table_schema AND uq.table_name = c.table_name AND uq.column_name = c.column_name
    LEFT JOIN fk ON fk.table_schema = c.table_schema AND fk.table_name = c.table_name AND fk.column_name = c.column_name
    WHERE """ + _SYSTEM_SCHEMA_FILTER.format(alias="c") + """
    ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""


def _yes(value: Any) -> bool:
    return str(value or "").strip().upper() in ("YES", "ALWAYS")


def _rule(value: Any) -> str:
    return collapse_whitespace(str(value)).upper() if value else "NO ACTION"


class PostgresSnapshotReader(ISnapshotReader):
    """
    PostgreSQL catalog reader.
    Single Responsibility: Database introspection.

    The read is not wrapped in its own transaction, so the result is a
    best-effort point-in-time view.
    """

    def __init__(self, history_schema: str = HISTORY_SCHEMA, history_table: str = HISTORY_TABLE):
        self._params = {"history_schema": history_schema, "history_table": history_table}

    def read_snapshot(self, conn) -> SchemaSnapshot:
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(TABLES_QUERY, self._params)
                table_rows = cur.fetchall()
                cur.execute(COLUMNS_QUERY, self._params)
                column_rows = cur.fetchall()
        except psycopg2.Error as e:
            raise IntrospectionError(f"Failed to read live schema: {e}") from e

        snapshot = self.build_snapshot(table_rows, column_rows)
        logger.info(f"[PostgresSnapshotReader] Read {len(snapshot)} tables from live schema")
        return snapshot

    def build_snapshot(self, table_rows: List[Dict[str, Any]], column_rows: List[Dict[str, Any]]) -> SchemaSnapshot:
        """Assemble a snapshot from catalog rows (tables first, so empty tables survive)."""
        columns: Dict[Tuple[str, str], List[ColumnSnapshot]] = {}
        for row in table_rows:
            key = (normalize_identifier(row['table_schema']), normalize_identifier(row['table_name']))
            columns.setdefault(key, [])
        for row in column_rows:
            key = (normalize_identifier(row['table_schema']), normalize_identifier(row['table_name']))
            columns.setdefault(key, []).append(self._column_from_row(row))

        return SchemaSnapshot.from_tables(
            TableSnapshot(schema=schema, name=name, columns=tuple(cols))
            for (schema, name), cols in columns.items()
        )

    def _column_from_row(self, row: Dict[str, Any]) -> ColumnSnapshot:
        data_type = normalize_data_type(self._resolve_type(row))
        is_identity = _yes(row.get('is_identity'))
        is_generated = _yes(row.get('is_generated'))
        is_fk = bool(row.get('fk_constraint_name'))
        is_unique = bool(row.get('unique_constraint_name'))
        is_pk = bool(row.get('pk_constraint_name'))

        return ColumnSnapshot(
            name=normalize_identifier(row['column_name']),
            data_type=data_type,
            character_maximum_length=row.get('character_maximum_length'),
            numeric_precision=row.get('numeric_precision'),
            numeric_scale=row.get('numeric_scale'),
            datetime_precision=row.get('datetime_precision') if data_type in DATETIME_TYPES else None,
            is_nullable=_yes(row.get('is_nullable')),
            column_default=normalize_default(row.get('column_default')),
            is_identity=is_identity,
            identity_generation=collapse_whitespace(row['identity_generation']).lower()
            if is_identity and row.get('identity_generation') else None,
            is_generated=is_generated,
            generation_expression=normalize_default(row.get('generation_expression')) if is_generated else None,
            is_primary_key=is_pk,
            pk_constraint_name=normalize_identifier(row.get('pk_constraint_name')) if is_pk else None,
            is_unique=is_unique,
            unique_constraint_name=normalize_identifier(row.get('unique_constraint_name')) if is_unique else None,
            is_foreign_key=is_fk,
            fk_constraint_name=normalize_identifier(row.get('fk_constraint_name')) if is_fk else None,
            references_schema=normalize_identifier(row.get('references_schema')) if is_fk else None,
            references_table=normalize_identifier(row.get('references_table')) if is_fk else None,
            references_column=normalize_identifier(row.get('references_column')) if is_fk else None,
            fk_update_rule=_rule(row.get('fk_update_rule')) if is_fk else None,
            fk_delete_rule=_rule(row.get('fk_delete_rule')) if is_fk else None,
        )

    def _resolve_type(self, row: Dict[str, Any]) -> str:
        data_type = row.get('data_type') or ""
        udt_name = row.get('udt_name') or ""
        if data_type == "USER-DEFINED" and udt_name:
            return udt_name
        if data_type == "ARRAY" and udt_name:
            return udt_name.lstrip("_") + "[]"
        return data_type
