from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Tuple, Dict, Any

from schemasync.domain.exceptions import InvalidOperationError


class OperationType(Enum):
    """Kinds of structural change a migration can carry."""
    CREATE_SCHEMA = "CreateSchema"
    CREATE_TABLE = "CreateTable"
    DROP_TABLE = "DropTable"
    ADD_COLUMN = "AddColumn"
    DROP_COLUMN = "DropColumn"
    ALTER_COLUMN_TYPE = "AlterColumnType"
    ALTER_NULLABILITY = "AlterNullability"
    SET_DEFAULT = "SetDefault"
    DROP_DEFAULT = "DropDefault"
    ADD_UNIQUE = "AddUnique"
    DROP_CONSTRAINT = "DropConstraint"
    ADD_FOREIGN_KEY = "AddForeignKey"


# Fields each variant cannot do without.
REQUIRED_FIELDS: Dict[OperationType, Tuple[str, ...]] = {
    OperationType.CREATE_SCHEMA: ("schema",),
    OperationType.CREATE_TABLE: ("schema", "table"),
    OperationType.DROP_TABLE: ("schema", "table"),
    OperationType.ADD_COLUMN: ("schema", "table", "column", "sql_type"),
    OperationType.DROP_COLUMN: ("schema", "table", "column"),
    OperationType.ALTER_COLUMN_TYPE: ("schema", "table", "column", "sql_type"),
    OperationType.ALTER_NULLABILITY: ("schema", "table", "column", "is_nullable"),
    OperationType.SET_DEFAULT: ("schema", "table", "column", "default_sql"),
    OperationType.DROP_DEFAULT: ("schema", "table", "column"),
    OperationType.ADD_UNIQUE: ("schema", "table", "column"),
    OperationType.DROP_CONSTRAINT: ("schema", "table", "constraint_name"),
    OperationType.ADD_FOREIGN_KEY: ("schema", "table", "column", "ref_table"),
}

_RENDERED_NAMES = {
    "double": "DOUBLE PRECISION",
}
_LENGTH_TYPES = {"varchar", "char", "character", "character varying", "bit", "varbit", "bit varying"}
_NUMERIC_TYPES = {"numeric", "decimal"}
_DATETIME_TYPES = {"timestamp", "timestamptz", "time", "timetz"}


def render_sql_type(
    base: str,
    character_maximum_length: Optional[int] = None,
    numeric_precision: Optional[int] = None,
    numeric_scale: Optional[int] = None,
    datetime_precision: Optional[int] = None,
) -> str:
    """Render a canonical base type plus its parameters, e.g. ``VARCHAR(25)``."""
    base = (base or "").strip().lower()
    rendered = _RENDERED_NAMES.get(base, base.upper())

    if base in _LENGTH_TYPES and character_maximum_length is not None:
        return f"{rendered}({character_maximum_length})"
    if base in _NUMERIC_TYPES and numeric_precision is not None:
        if numeric_scale is not None:
            return f"{rendered}({numeric_precision},{numeric_scale})"
        return f"{rendered}({numeric_precision})"
    if base in _DATETIME_TYPES and datetime_precision is not None:
        return f"{rendered}({datetime_precision})"
    return rendered


@dataclass(frozen=True)
class MigrationOperation:
    """
    One atomic schema change, before it is rendered to SQL.

    Only the fields relevant to ``type`` are set; build instances with the
    named constructors (``MigrationOperation.add_column(...)`` etc.).
    """
    type: OperationType
    schema: Optional[str] = None
    table: Optional[str] = None
    column: Optional[str] = None
    sql_type: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    datetime_precision: Optional[int] = None
    is_nullable: Optional[bool] = None
    default_sql: Optional[str] = None
    is_primary_key: bool = False
    is_identity: bool = False
    identity_generation: Optional[str] = None
    constraint_name: Optional[str] = None
    ref_schema: Optional[str] = None
    ref_table: Optional[str] = None
    ref_column: Optional[str] = None
    on_delete_rule: Optional[str] = None

    @classmethod
    def create_schema(cls, schema: str) -> "MigrationOperation":
        return cls(OperationType.CREATE_SCHEMA, schema=schema)

    @classmethod
    def create_table(cls, schema: str, table: str) -> "MigrationOperation":
        return cls(OperationType.CREATE_TABLE, schema=schema, table=table)

    @classmethod
    def drop_table(cls, schema: str, table: str) -> "MigrationOperation":
        return cls(OperationType.DROP_TABLE, schema=schema, table=table)

    @classmethod
    def add_column(
        cls,
        schema: str,
        table: str,
        column: str,
        sql_type: str,
        is_nullable: bool = True,
        default_sql: Optional[str] = None,
        is_primary_key: bool = False,
        is_identity: bool = False,
        identity_generation: Optional[str] = None,
        character_maximum_length: Optional[int] = None,
        numeric_precision: Optional[int] = None,
        numeric_scale: Optional[int] = None,
        datetime_precision: Optional[int] = None,
    ) -> "MigrationOperation":
        return cls(
            OperationType.ADD_COLUMN,
            schema=schema,
            table=table,
            column=column,
            sql_type=sql_type,
            is_nullable=is_nullable,
            default_sql=default_sql,
            is_primary_key=is_primary_key,
            is_identity=is_identity,
            identity_generation=identity_generation,
            character_maximum_length=character_maximum_length,
            numeric_precision=numeric_precision,
            numeric_scale=numeric_scale,
            datetime_precision=datetime_precision,
        )

    @classmethod
    def drop_column(cls, schema: str, table: str, column: str) -> "MigrationOperation":
        return cls(OperationType.DROP_COLUMN, schema=schema, table=table, column=column)

    @classmethod
    def alter_column_type(
        cls,
        schema: str,
        table: str,
        column: str,
        sql_type: str,
        character_maximum_length: Optional[int] = None,
        numeric_precision: Optional[int] = None,
        numeric_scale: Optional[int] = None,
        datetime_precision: Optional[int] = None,
    ) -> "MigrationOperation":
        return cls(
            OperationType.ALTER_COLUMN_TYPE,
            schema=schema,
            table=table,
            column=column,
            sql_type=sql_type,
            character_maximum_length=character_maximum_length,
            numeric_precision=numeric_precision,
            numeric_scale=numeric_scale,
            datetime_precision=datetime_precision,
        )

    @classmethod
    def alter_nullability(cls, schema: str, table: str, column: str, is_nullable: bool) -> "MigrationOperation":
        return cls(OperationType.ALTER_NULLABILITY, schema=schema, table=table, column=column, is_nullable=is_nullable)

    @classmethod
    def set_default(cls, schema: str, table: str, column: str, default_sql: str) -> "MigrationOperation":
        return cls(OperationType.SET_DEFAULT, schema=schema, table=table, column=column, default_sql=default_sql)

    @classmethod
    def drop_default(cls, schema: str, table: str, column: str) -> "MigrationOperation":
        return cls(OperationType.DROP_DEFAULT, schema=schema, table=table, column=column)

    @classmethod
    def add_unique(
        cls, schema: str, table: str, column: str, constraint_name: Optional[str] = None
    ) -> "MigrationOperation":
        return cls(
            OperationType.ADD_UNIQUE, schema=schema, table=table, column=column, constraint_name=constraint_name
        )

    @classmethod
    def drop_constraint(cls, schema: str, table: str, constraint_name: str) -> "MigrationOperation":
        return cls(OperationType.DROP_CONSTRAINT, schema=schema, table=table, constraint_name=constraint_name)

    @classmethod
    def add_foreign_key(
        cls,
        schema: str,
        table: str,
        column: str,
        constraint_name: Optional[str],
        ref_schema: Optional[str],
        ref_table: str,
        ref_column: Optional[str],
        on_delete_rule: Optional[str] = None,
    ) -> "MigrationOperation":
        return cls(
            OperationType.ADD_FOREIGN_KEY,
            schema=schema,
            table=table,
            column=column,
            constraint_name=constraint_name,
            ref_schema=ref_schema,
            ref_table=ref_table,
            ref_column=ref_column,
            on_delete_rule=on_delete_rule,
        )

    @property
    def table_key(self) -> Tuple[Optional[str], Optional[str]]:
        return self.schema, self.table

    @property
    def ref_table_key(self) -> Tuple[Optional[str], Optional[str]]:
        """Referenced table; an unqualified reference lives in the source table's schema."""
        return self.ref_schema or self.schema, self.ref_table

    @property
    def resolved_constraint_name(self) -> Optional[str]:
        """Constraint name, or the conventional one for an unnamed unique or foreign key."""
        if self.constraint_name:
            return self.constraint_name
        if self.type == OperationType.ADD_UNIQUE:
            return f"{self.table}_{self.column}_key"
        if self.type == OperationType.ADD_FOREIGN_KEY:
            return f"{self.table}_{self.column}_fkey"
        return None

    def sql_type_text(self) -> str:
        return render_sql_type(
            self.sql_type,
            self.character_maximum_length,
            self.numeric_precision,
            self.numeric_scale,
            self.datetime_precision,
        )

    def validate(self) -> "MigrationOperation":
        """Raise InvalidOperationError when a field the variant needs is missing."""
        missing = [name for name in REQUIRED_FIELDS[self.type] if getattr(self, name) in (None, "")]
        if missing:
            raise InvalidOperationError(
                f"{self.type.value} on {self.schema}.{self.table} is missing: {', '.join(missing)}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields only, with ``type`` as its string value."""
        data = {key: value for key, value in asdict(self).items() if value is not None}
        for flag in ("is_primary_key", "is_identity"):
            if not data[flag]:
                del data[flag]
        data["type"] = self.type.value
        return data

    def __str__(self) -> str:
        target = ".".join(part for part in (self.schema, self.table, self.column) if part)
        if self.constraint_name:
            target += f" [{self.constraint_name}]"
        return f"{self.type.value}({target})"
