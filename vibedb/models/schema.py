"""Schema data models for the visual database designer.

A Schema is an ordered list of tables; each table holds an ordered list
of columns. Order is significant: exporters emit tables and columns in
list order.

Identifiers are opaque strings. Table ids are unique within a schema,
column ids only within their table.

Reference: DESIGN.md — Data Model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional
import uuid

from vibedb.constants import DEFAULT_LINKED_COLUMN


def new_id() -> str:
    return str(uuid.uuid4())


class ColumnType(Enum):
    UUID = "uuid"
    VARCHAR = "varchar"
    INT = "int"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    TEXT = "text"
    JSONB = "jsonb"
    DECIMAL = "decimal"
    FLOAT = "float"

    @classmethod
    def coerce(cls, value: object) -> ColumnType:
        """Map a loose type string onto the vocabulary (unknown -> varchar)."""
        if isinstance(value, ColumnType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.VARCHAR


class ConstraintType(Enum):
    PRIMARY = "primary"
    UNIQUE = "unique"
    NOT_NULL = "notNull"
    DEFAULT = "default"


class FkStatus(Enum):
    """Whether a foreign-key column currently points at a real table/column."""
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass
class Constraint:
    """Column-level constraint. ``value`` is only used by DEFAULT."""
    type: ConstraintType = ConstraintType.NOT_NULL
    value: Optional[str] = None


@dataclass
class Column:
    """Single column of a table.

    Attributes:
        id: Identifier, unique within the owning table.
        name: Column name.
        type: Normalized column type.
        is_foreign_key: True if the column references another table.
        linked_table_id: Referenced table id (None = not linked by id).
        linked_table: Referenced table name, kept in sync on rename.
        linked_column: Referenced column name.
        fk_status: Resolution state of the reference.
        constraints: Ordered column constraints.
        description: Free text.
    """
    id: str = field(default_factory=new_id)
    name: str = "new_col"
    type: ColumnType = ColumnType.VARCHAR
    is_foreign_key: bool = False
    linked_table_id: Optional[str] = None
    linked_table: Optional[str] = None
    linked_column: str = DEFAULT_LINKED_COLUMN
    fk_status: FkStatus = FkStatus.RESOLVED
    constraints: list[Constraint] = field(default_factory=list)
    description: str = ""

    def has_constraint(self, ctype: ConstraintType) -> bool:
        return any(c.type == ctype for c in self.constraints)

    @property
    def is_primary(self) -> bool:
        return self.has_constraint(ConstraintType.PRIMARY)

    @property
    def is_unique(self) -> bool:
        return self.has_constraint(ConstraintType.UNIQUE)

    @property
    def is_not_null(self) -> bool:
        return self.has_constraint(ConstraintType.NOT_NULL)

    @property
    def default_value(self) -> str | None:
        for c in self.constraints:
            if c.type == ConstraintType.DEFAULT and c.value:
                return c.value
        return None


@dataclass
class Index:
    """Secondary index definition."""
    name: str = ""
    columns: list[str] = field(default_factory=list)
    type: str = "btree"
    unique: bool = False


@dataclass
class Table:
    """Table node on the design canvas.

    Attributes:
        id: Identifier, unique within the schema.
        name: Table name.
        columns: Ordered columns.
        x: Canvas X position.
        y: Canvas Y position.
        indexes: Optional secondary indexes.
        description: Optional free text.
    """
    id: str = field(default_factory=new_id)
    name: str = "new_table"
    columns: list[Column] = field(default_factory=list)
    x: float = 0.0
    y: float = 0.0
    indexes: list[Index] = field(default_factory=list)
    description: str = ""

    def find_column(self, column_id: str) -> Column | None:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None

    def find_column_by_name(self, name: str) -> Column | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def primary_key(self) -> Column | None:
        for col in self.columns:
            if col.is_primary:
                return col
        return None


@dataclass
class Schema:
    """The full ordered collection of tables being designed."""
    tables: list[Table] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tables)

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables)

    @property
    def table_ids(self) -> list[str]:
        return [t.id for t in self.tables]

    def find_table(self, table_id: str | None) -> Table | None:
        if table_id is None:
            return None
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def find_table_by_name(self, name: str | None) -> Table | None:
        """Case-insensitive lookup; the first match wins."""
        if not name:
            return None
        key = name.lower()
        for table in self.tables:
            if table.name.lower() == key:
                return table
        return None

    def index_of(self, table_id: str) -> int:
        for i, table in enumerate(self.tables):
            if table.id == table_id:
                return i
        return -1

    def edges(self) -> list[tuple[str, str]]:
        """Resolved foreign-key edges as (source_table_id, target_table_id)."""
        result = []
        for table in self.tables:
            for col in table.columns:
                if (
                    col.is_foreign_key
                    and col.fk_status == FkStatus.RESOLVED
                    and self.find_table(col.linked_table_id) is not None
                ):
                    result.append((table.id, col.linked_table_id))
        return result
