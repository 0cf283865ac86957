"""Prisma export — one ``model`` block per table.

Foreign keys become a scalar field plus a relation field; the referenced
model gets the matching back-relation list. Relation names are
``<table>_<column>`` so several links between the same pair of models
stay unambiguous.
"""

from __future__ import annotations

import re

from vibedb.export.base import TextExporter, foreign_keys, referenced_table
from vibedb.models.schema import Column, ColumnType, Schema, Table

_PRISMA_TYPES = {
    ColumnType.UUID: "String",
    ColumnType.VARCHAR: "String",
    ColumnType.INT: "Int",
    ColumnType.TIMESTAMP: "DateTime",
    ColumnType.BOOLEAN: "Boolean",
    ColumnType.NUMERIC: "Decimal",
    ColumnType.TEXT: "String",
    ColumnType.JSONB: "Json",
    ColumnType.DECIMAL: "Decimal",
    ColumnType.FLOAT: "Float",
}

_NATIVE_TYPES = {
    ColumnType.UUID: "@db.Uuid",
    ColumnType.TEXT: "@db.Text",
}

_LITERAL = re.compile(r"^(?:-?\d+(?:\.\d+)?|true|false)$", re.IGNORECASE)

HEADER = (
    "// Generated by VibeDB\n\n"
    "datasource db {\n"
    '  provider = "postgresql"\n'
    '  url      = env("DATABASE_URL")\n'
    "}\n\n"
)


def _default_attr(value: str) -> str:
    lowered = value.lower()
    if lowered in ("now()", "current_timestamp"):
        return "@default(now())"
    if lowered in ("gen_random_uuid()", "uuid_generate_v4()"):
        return "@default(uuid())"
    if _LITERAL.match(value):
        return f"@default({lowered if lowered in ('true', 'false') else value})"
    if value.startswith("'") and value.endswith("'") and len(value) >= 2:
        return f'@default("{value[1:-1]}")'
    escaped = value.replace('"', '\\"')
    return f'@default(dbgenerated("{escaped}"))'


def _relation_field(col: Column) -> str:
    if col.name.lower().endswith("_id") and len(col.name) > 3:
        return col.name[:-3]
    return f"{col.name}_rel"


class PrismaExporter(TextExporter):
    """Prisma schema file (``schema.prisma``)."""

    format_key = "prisma"
    file_extension = ".prisma"

    def render(self, schema: Schema) -> str:
        blocks = [self._model(schema, table) for table in schema.tables]
        return HEADER + "\n".join(blocks)

    def _model(self, schema: Schema, table: Table) -> str:
        lines = [f"model {table.name} {{"]
        for col in table.columns:
            lines.append("  " + self._scalar_field(col))
        for col in foreign_keys(table):
            target = referenced_table(schema, col)
            if target is None:
                continue
            optional = "" if col.is_not_null or col.is_primary else "?"
            lines.append(
                f"  {_relation_field(col)} {target.name}{optional} "
                f'@relation("{table.name}_{col.name}", fields: [{col.name}], '
                f"references: [{col.linked_column}])"
            )
        for other in schema.tables:
            for col in foreign_keys(other):
                if referenced_table(schema, col) is table:
                    lines.append(
                        f"  {other.name}_{col.name}_refs {other.name}[] "
                        f'@relation("{other.name}_{col.name}")'
                    )
        for index in table.indexes:
            if index.columns:
                attr = "@@unique" if index.unique else "@@index"
                lines.append(f"  {attr}([{', '.join(index.columns)}])")
        lines.append("}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _scalar_field(col: Column) -> str:
        optional = "" if col.is_not_null or col.is_primary else "?"
        parts = [col.name, _PRISMA_TYPES[col.type] + optional]
        if col.is_primary:
            parts.append("@id")
        if col.is_unique:
            parts.append("@unique")
        if col.default_value is not None:
            parts.append(_default_attr(col.default_value))
        native = _NATIVE_TYPES.get(col.type)
        if native:
            parts.append(native)
        return " ".join(parts)
