import re
from typing import Optional
import logging

from schemasync.domain.entities.operations import MigrationOperation, OperationType
from schemasync.domain.repositories.interfaces import IDDLEmitter
from schemasync.infrastructure.validators.sql_validator import SQLValidator

logger = logging.getLogger(__name__)

_PLAIN_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_$]*$")
_RESERVED = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc", "both", "case", "cast", "check",
    "collate", "column", "constraint", "create", "current_date", "current_role", "current_time",
    "current_timestamp", "current_user", "default", "deferrable", "desc", "distinct", "do", "else",
    "end", "except", "false", "fetch", "for", "foreign", "from", "grant", "group", "having", "in",
    "initially", "intersect", "into", "lateral", "leading", "limit", "localtime", "localtimestamp",
    "not", "null", "offset", "on", "only", "or", "order", "placing", "primary", "references",
    "returning", "select", "session_user", "some", "symmetric", "table", "then", "to", "trailing",
    "true", "union", "unique", "user", "using", "variadic", "when", "where", "window", "with",
})


def quote_identifier(name: str) -> str:
    """Leave plain lower-case identifiers bare, double-quote everything else."""
    if _PLAIN_IDENTIFIER.match(name) and name not in _RESERVED:
        return name
    return '"' + name.replace('"', '""') + '"'


class PostgresDDLEmitter(IDDLEmitter):
    """
    Generates PostgreSQL DDL from migration operations, one statement each.
    Single Responsibility: SQL generation only.
    """

    def __init__(self, validator: Optional[SQLValidator] = None):
        self._validator = validator or SQLValidator("postgresql")
        self._generators = {
            OperationType.CREATE_SCHEMA: self._gen_create_schema,
            OperationType.CREATE_TABLE: self._gen_create_table,
            OperationType.DROP_TABLE: self._gen_drop_table,
            OperationType.ADD_COLUMN: self._gen_add_column,
            OperationType.DROP_COLUMN: self._gen_drop_column,
            OperationType.ALTER_COLUMN_TYPE: self._gen_alter_column_type,
            OperationType.ALTER_NULLABILITY: self._gen_alter_nullability,
            OperationType.SET_DEFAULT: self._gen_set_default,
            OperationType.DROP_DEFAULT: self._gen_drop_default,
            OperationType.ADD_UNIQUE: self._gen_add_unique,
            OperationType.DROP_CONSTRAINT: self._gen_drop_constraint,
            OperationType.ADD_FOREIGN_KEY: self._gen_add_foreign_key,
        }

    def emit(self, operation: MigrationOperation) -> str:
        operation.validate()
        sql = self._generators[operation.type](operation)
        logger.debug(f"[PostgresDDLEmitter] Generated SQL: {sql}")
        return self._validator.ensure_valid(sql)

    def _table(self, op: MigrationOperation) -> str:
        return f"{quote_identifier(op.schema)}.{quote_identifier(op.table)}"

    def _alter_column(self, op: MigrationOperation) -> str:
        return f"ALTER TABLE {self._table(op)} ALTER COLUMN {quote_identifier(op.column)}"

    def _gen_create_schema(self, op: MigrationOperation) -> str:
        return f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(op.schema)};"

    def _gen_create_table(self, op: MigrationOperation) -> str:
        return f"CREATE TABLE {self._table(op)} ();"

    def _gen_drop_table(self, op: MigrationOperation) -> str:
        return f"DROP TABLE IF EXISTS {self._table(op)} CASCADE;"

    def _gen_add_column(self, op: MigrationOperation) -> str:
        parts = [f"ALTER TABLE {self._table(op)} ADD COLUMN {quote_identifier(op.column)} {op.sql_type_text()}"]
        if op.default_sql is not None and not op.is_identity:
            parts.append(f"DEFAULT {op.default_sql}")
        if op.is_nullable is False and not op.is_primary_key and not op.is_identity:
            parts.append("NOT NULL")
        if op.is_primary_key:
            parts.append("PRIMARY KEY")
        if op.is_identity:
            generation = "BY DEFAULT" if (op.identity_generation or "").lower() == "by default" else "ALWAYS"
            parts.append(f"GENERATED {generation} AS IDENTITY")
        return " ".join(parts) + ";"

    def _gen_drop_column(self, op: MigrationOperation) -> str:
        return f"ALTER TABLE {self._table(op)} DROP COLUMN IF EXISTS {quote_identifier(op.column)};"

    def _gen_alter_column_type(self, op: MigrationOperation) -> str:
        sql_type = op.sql_type_text()
        return f"{self._alter_column(op)} TYPE {sql_type} USING {quote_identifier(op.column)}::{sql_type};"

    def _gen_alter_nullability(self, op: MigrationOperation) -> str:
        action = "DROP NOT NULL" if op.is_nullable else "SET NOT NULL"
        return f"{self._alter_column(op)} {action};"

    def _gen_set_default(self, op: MigrationOperation) -> str:
        return f"{self._alter_column(op)} SET DEFAULT {op.default_sql};"

    def _gen_drop_default(self, op: MigrationOperation) -> str:
        return f"{self._alter_column(op)} DROP DEFAULT;"

    def _gen_add_unique(self, op: MigrationOperation) -> str:
        name = op.resolved_constraint_name
        return (
            f"ALTER TABLE {self._table(op)} ADD CONSTRAINT {quote_identifier(name)} "
            f"UNIQUE ({quote_identifier(op.column)});"
        )

    def _gen_drop_constraint(self, op: MigrationOperation) -> str:
        return f"ALTER TABLE {self._table(op)} DROP CONSTRAINT IF EXISTS {quote_identifier(op.constraint_name)};"

    def _gen_add_foreign_key(self, op: MigrationOperation) -> str:
        name = op.resolved_constraint_name
        ref_schema = op.ref_table_key[0]
        ref_column = op.ref_column or "id"
        sql = (
            f"ALTER TABLE {self._table(op)} ADD CONSTRAINT {quote_identifier(name)} "
            f"FOREIGN KEY ({quote_identifier(op.column)}) "
            f"REFERENCES {quote_identifier(ref_schema)}.{quote_identifier(op.ref_table)}({quote_identifier(ref_column)})"
        )
        if op.on_delete_rule:
            sql += f" ON DELETE {op.on_delete_rule.upper()}"
        return sql + ";"
