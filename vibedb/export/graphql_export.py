"""GraphQL export — SDL object types.

Primary keys map to ``ID``. A foreign key keeps its scalar field and, when
the referenced table is part of the schema, gains an object field named
after the column without its ``_id`` suffix.
"""

from __future__ import annotations

from vibedb.export.base import TextExporter, class_name, foreign_keys, referenced_table
from vibedb.models.schema import Column, ColumnType, Schema, Table

_GQL_TYPES = {
    ColumnType.UUID: "ID",
    ColumnType.VARCHAR: "String",
    ColumnType.INT: "Int",
    ColumnType.TIMESTAMP: "DateTime",
    ColumnType.BOOLEAN: "Boolean",
    ColumnType.NUMERIC: "Float",
    ColumnType.TEXT: "String",
    ColumnType.JSONB: "JSON",
    ColumnType.DECIMAL: "Float",
    ColumnType.FLOAT: "Float",
}

_CUSTOM_SCALARS = ("DateTime", "JSON")


def _gql_type(col: Column) -> str:
    base = "ID" if col.is_primary else _GQL_TYPES[col.type]
    return base + ("!" if col.is_primary or col.is_not_null else "")


def _object_field(col: Column, taken: set[str]) -> str:
    name = col.name[:-3] if col.name.lower().endswith("_id") and len(col.name) > 3 else col.name + "Ref"
    if name in taken:
        name += "Ref"
    return name


class GraphQLExporter(TextExporter):
    """``type Name { ... }`` per table."""

    format_key = "graphql"
    file_extension = ".graphql"

    def render(self, schema: Schema) -> str:
        blocks = [self._type_block(schema, t) for t in schema.tables]
        used = {
            _GQL_TYPES[c.type]
            for t in schema.tables for c in t.columns if not c.is_primary
        }
        scalars = [f"scalar {s}\n" for s in _CUSTOM_SCALARS if s in used]
        head = "".join(scalars)
        if head:
            head += "\n"
        return head + "\n".join(blocks)

    def _type_block(self, schema: Schema, table: Table) -> str:
        lines = [f"type {class_name(table.name)} {{"]
        taken = {c.name for c in table.columns}
        for col in table.columns:
            lines.append(f"  {col.name}: {_gql_type(col)}")
        for col in foreign_keys(table):
            target = referenced_table(schema, col)
            if target is None:
                continue
            field_name = _object_field(col, taken)
            taken.add(field_name)
            bang = "!" if col.is_not_null else ""
            lines.append(f"  {field_name}: {class_name(target.name)}{bang}")
        lines.append("}")
        return "\n".join(lines) + "\n"
