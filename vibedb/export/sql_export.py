"""SQL export — generic relational DDL.

Each table becomes ``CREATE TABLE name (...)`` with inline column
constraints in their stored order and ``REFERENCES table(column)`` for
foreign keys, followed by one ``CREATE INDEX`` per table index.
"""

from __future__ import annotations

from vibedb.constants import DEFAULT_LINKED_COLUMN
from vibedb.export.base import TextExporter
from vibedb.models.schema import Column, ConstraintType, Index, Schema, Table

HEADER = "-- Generated by VibeDB\n\n"

_CONSTRAINT_SQL = {
    ConstraintType.PRIMARY: "PRIMARY KEY",
    ConstraintType.NOT_NULL: "NOT NULL",
    ConstraintType.UNIQUE: "UNIQUE",
}


class SqlExporter(TextExporter):
    """CREATE TABLE / CREATE INDEX script."""

    format_key = "sql"
    file_extension = ".sql"

    def render(self, schema: Schema) -> str:
        sql = HEADER
        for table in schema.tables:
            sql += self.render_table(table)
        return sql

    def render_table(self, table: Table) -> str:
        lines = [self._column_line(col) for col in table.columns]
        sql = f"CREATE TABLE {table.name} (\n"
        sql += ",\n".join(lines)
        sql += "\n);\n\n"
        for index in table.indexes:
            sql += self._index_statement(table, index)
        return sql

    @staticmethod
    def _column_line(col: Column) -> str:
        line = f"  {col.name} {col.type.value.upper()}"
        for c in col.constraints:
            if c.type == ConstraintType.DEFAULT:
                if c.value:
                    line += f" DEFAULT {c.value}"
            else:
                line += f" {_CONSTRAINT_SQL[c.type]}"
        if col.is_foreign_key and col.linked_table:
            line += f" REFERENCES {col.linked_table}({col.linked_column or DEFAULT_LINKED_COLUMN})"
        return line

    @staticmethod
    def _index_statement(table: Table, index: Index) -> str:
        if not index.columns:
            return ""
        name = index.name or f"idx_{table.name}_{'_'.join(index.columns)}"
        unique = "UNIQUE " if index.unique else ""
        return f"CREATE {unique}INDEX {name} ON {table.name} ({', '.join(index.columns)});\n\n"
