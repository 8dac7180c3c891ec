from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, List, Optional, Tuple

from schemasync.domain.entities.operations import render_sql_type
from schemasync.domain.exceptions import DuplicateTableError

TableKey = Tuple[str, str]


@dataclass(frozen=True)
class ColumnSnapshot:
    """Normalized shape of one column."""
    name: str
    data_type: str
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    datetime_precision: Optional[int] = None
    is_nullable: bool = True
    column_default: Optional[str] = None
    is_identity: bool = False
    identity_generation: Optional[str] = None
    is_generated: bool = False
    generation_expression: Optional[str] = None
    is_primary_key: bool = False
    pk_constraint_name: Optional[str] = None
    is_unique: bool = False
    unique_constraint_name: Optional[str] = None
    is_foreign_key: bool = False
    fk_constraint_name: Optional[str] = None
    references_schema: Optional[str] = None
    references_table: Optional[str] = None
    references_column: Optional[str] = None
    fk_update_rule: Optional[str] = None
    fk_delete_rule: Optional[str] = None

    @property
    def sql_type(self) -> str:
        return render_sql_type(
            self.data_type,
            self.character_maximum_length,
            self.numeric_precision,
            self.numeric_scale,
            self.datetime_precision,
        )

    @property
    def foreign_key_signature(self) -> Optional[Tuple]:
        if not self.is_foreign_key:
            return None
        return (
            self.fk_constraint_name,
            self.references_schema,
            self.references_table,
            self.references_column,
            self.fk_delete_rule,
        )

    def describe_differences(self, other: "ColumnSnapshot") -> List[str]:
        diffs = []
        for f in fields(self):
            mine, theirs = getattr(self, f.name), getattr(other, f.name)
            if mine != theirs:
                diffs.append(f"{f.name} differs (this={mine!r}, other={theirs!r})")
        return diffs

    def __str__(self) -> str:
        parts = [self.name, self.sql_type]
        if not self.is_nullable:
            parts.append("NOT NULL")
        if self.column_default is not None:
            parts.append(f"DEFAULT {self.column_default}")
        if self.is_primary_key:
            parts.append("PK")
        if self.is_identity:
            parts.append(f"IDENTITY {self.identity_generation or 'always'}")
        if self.is_unique:
            parts.append("UNIQUE")
        if self.is_foreign_key:
            parts.append(f"FK -> {self.references_schema}.{self.references_table}.{self.references_column}")
        return " ".join(parts)


@dataclass(frozen=True, eq=False)
class TableSnapshot:
    """
    A table and its columns.

    Equality ignores column order: live catalog reads and declared models do
    not enumerate columns the same way.
    """
    schema: str
    name: str
    columns: Tuple[ColumnSnapshot, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def key(self) -> TableKey:
        return self.schema, self.name

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Optional[ColumnSnapshot]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def _sorted_columns(self) -> Tuple[ColumnSnapshot, ...]:
        return tuple(sorted(self.columns, key=lambda c: c.name))

    def __eq__(self, other):
        if not isinstance(other, TableSnapshot):
            return NotImplemented
        return self.key == other.key and self._sorted_columns() == other._sorted_columns()

    def __hash__(self):
        return hash((self.key, self._sorted_columns()))

    def describe_differences(self, other: "TableSnapshot") -> List[str]:
        prefix = f"{self.schema}.{self.name}"
        lines = []
        for col in self.columns:
            theirs = other.column(col.name)
            if theirs is None:
                lines.append(f"{prefix}.{col.name}: missing in other")
                continue
            lines.extend(f"{prefix}.{col.name}: {d}" for d in col.describe_differences(theirs))
        for col in other.columns:
            if self.column(col.name) is None:
                lines.append(f"{prefix}.{col.name}: missing in this")
        return lines

    def __str__(self) -> str:
        body = "\n".join(f"  {c}" for c in self.columns)
        return f"{self.schema}.{self.name}\n{body}" if body else f"{self.schema}.{self.name}"


@dataclass(frozen=True, eq=False)
class SchemaSnapshot:
    """A set of tables keyed by (schema, name); comparison is order-independent."""
    tables: Tuple[TableSnapshot, ...] = field(default_factory=tuple)

    def __post_init__(self):
        tables = tuple(self.tables)
        seen = set()
        for table in tables:
            if table.key in seen:
                raise DuplicateTableError(f"Table {table.schema}.{table.name} appears more than once")
            seen.add(table.key)
        object.__setattr__(self, "tables", tables)

    @classmethod
    def empty(cls) -> "SchemaSnapshot":
        return cls(())

    @classmethod
    def from_tables(cls, tables: Iterable[TableSnapshot]) -> "SchemaSnapshot":
        return cls(tuple(tables))

    @property
    def tables_by_key(self) -> Dict[TableKey, TableSnapshot]:
        return {t.key: t for t in self.tables}

    @property
    def schemas(self) -> List[str]:
        return sorted({t.schema for t in self.tables})

    def table(self, schema: str, name: str) -> Optional[TableSnapshot]:
        return self.tables_by_key.get((schema, name))

    def _sorted_tables(self) -> Tuple[TableSnapshot, ...]:
        return tuple(sorted(self.tables, key=lambda t: t.key))

    def __eq__(self, other):
        if not isinstance(other, SchemaSnapshot):
            return NotImplemented
        return self._sorted_tables() == other._sorted_tables()

    def __hash__(self):
        return hash(self._sorted_tables())

    def __len__(self):
        return len(self.tables)

    def describe_differences(self, other: "SchemaSnapshot") -> List[str]:
        """Human-readable lines explaining why two snapshots are not equal."""
        mine, theirs = self.tables_by_key, other.tables_by_key
        lines = []
        for key in sorted(set(mine) | set(theirs)):
            label = f"{key[0]}.{key[1]}"
            if key not in theirs:
                lines.append(f"{label}: table missing in other")
            elif key not in mine:
                lines.append(f"{label}: table missing in this")
            else:
                lines.extend(mine[key].describe_differences(theirs[key]))
        return lines

    def __str__(self) -> str:
        return "\n".join(str(t) for t in self._sorted_tables())
