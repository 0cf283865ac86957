"""DBML export — database markup language (dbdiagram.io).

Foreign keys are written as inline ``ref: > table.column`` settings so
each reference stays next to its column.
"""

from __future__ import annotations

from vibedb.export.base import TextExporter
from vibedb.models.schema import Column, Schema, Table


def _quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _default_setting(value: str) -> str:
    if value.startswith("'") and value.endswith("'") and len(value) >= 2:
        return f"default: {value}"
    try:
        float(value)
    except ValueError:
        if value.lower() in ("true", "false", "null"):
            return f"default: {value.lower()}"
        return f"default: `{value}`"
    return f"default: {value}"


class DbmlExporter(TextExporter):
    """``Table name { ... }`` blocks."""

    format_key = "dbml"
    file_extension = ".dbml"

    def render(self, schema: Schema) -> str:
        return "\n".join(self._table_block(t) for t in schema.tables)

    def _table_block(self, table: Table) -> str:
        lines = [f"Table {table.name} {{"]
        for col in table.columns:
            lines.append("  " + self._column_line(col))
        indexes = [i for i in table.indexes if i.columns]
        if indexes:
            lines.append("")
            lines.append("  indexes {")
            for index in indexes:
                settings = []
                if index.unique:
                    settings.append("unique")
                if index.name:
                    settings.append(f"name: {_quote(index.name)}")
                cols = index.columns[0] if len(index.columns) == 1 else f"({', '.join(index.columns)})"
                suffix = f" [{', '.join(settings)}]" if settings else ""
                lines.append(f"    {cols}{suffix}")
            lines.append("  }")
        if table.description:
            lines.append("")
            lines.append(f"  Note: {_quote(table.description)}")
        lines.append("}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _column_line(col: Column) -> str:
        settings = []
        if col.is_primary:
            settings.append("pk")
        if col.is_unique:
            settings.append("unique")
        if col.is_not_null:
            settings.append("not null")
        if col.default_value is not None:
            settings.append(_default_setting(col.default_value))
        if col.is_foreign_key and col.linked_table:
            settings.append(f"ref: > {col.linked_table}.{col.linked_column}")
        if col.description:
            settings.append(f"note: {_quote(col.description)}")
        line = f"{col.name} {col.type.value}"
        if settings:
            line += f" [{', '.join(settings)}]"
        return line
