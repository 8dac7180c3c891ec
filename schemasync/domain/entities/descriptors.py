from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class OnDeleteBehavior(Enum):
    """Referential action applied when a referenced row is deleted."""
    NO_ACTION = "NO ACTION"
    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    @classmethod
    def parse_or_default(cls, value: Optional[str], default: "OnDeleteBehavior" = None) -> "OnDeleteBehavior":
        """Accept ``cascade``, ``SET_NULL``, ``set null`` ...; fall back to default (NO ACTION)."""
        if value is None:
            return default or cls.NO_ACTION
        if isinstance(value, cls):
            return value
        text = " ".join(str(value).replace("_", " ").split()).upper()
        for member in cls:
            if member.value == text:
                return member
        return default or cls.NO_ACTION


@dataclass(frozen=True)
class ColumnDescriptor:
    """A declared column. ``default`` is a Python literal unless ``default_is_raw_sql``."""
    name: str
    db_type: str
    nullable: bool = True
    default: Any = None
    default_is_raw_sql: bool = False
    unique: bool = False


@dataclass(frozen=True)
class PrimaryKeyDescriptor:
    column: str
    auto_increment: bool = True


@dataclass(frozen=True)
class ForeignKeyDescriptor:
    column: str
    ref_table: str
    ref_schema: str = "public"
    ref_column: str = "id"
    on_delete: OnDeleteBehavior = OnDeleteBehavior.NO_ACTION
    constraint_name: Optional[str] = None


@dataclass(frozen=True)
class EntityDescriptor:
    """Declared table: what the model says the database should look like."""
    table: str
    columns: List[ColumnDescriptor]
    schema: str = "public"
    primary_key: Optional[PrimaryKeyDescriptor] = None
    foreign_keys: List[ForeignKeyDescriptor] = field(default_factory=list)

    def foreign_key_for(self, column: str) -> Optional[ForeignKeyDescriptor]:
        for fk in self.foreign_keys:
            if fk.column == column:
                return fk
        return None
