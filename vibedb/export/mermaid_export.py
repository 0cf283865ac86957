"""Mermaid export — ``erDiagram`` source.

Entities list ``type name`` attributes with PK / FK / UK markers, then one
relationship line per foreign key (``target ||--o{ source``).
"""

from __future__ import annotations

import re

from vibedb.export.base import TextExporter, foreign_keys
from vibedb.models.schema import Column, Schema

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def safe_name(name: str) -> str:
    """Entity names may only contain word characters and hyphens."""
    return _UNSAFE.sub("_", name) or "_"


def _markers(col: Column) -> str:
    keys = []
    if col.is_primary:
        keys.append("PK")
    if col.is_foreign_key and col.linked_table:
        keys.append("FK")
    if col.is_unique:
        keys.append("UK")
    return ", ".join(keys)


class MermaidExporter(TextExporter):
    """Entity-relationship diagram for Mermaid renderers."""

    format_key = "mermaid"
    file_extension = ".mmd"

    def render(self, schema: Schema) -> str:
        lines = ["erDiagram"]
        for table in schema.tables:
            lines.append(f"    {safe_name(table.name)} {{")
            for col in table.columns:
                line = f"        {col.type.value} {safe_name(col.name)}"
                markers = _markers(col)
                if markers:
                    line += f" {markers}"
                lines.append(line)
            lines.append("    }")

        relations = []
        for table in schema.tables:
            for col in foreign_keys(table):
                cardinality = "||--|{" if col.is_not_null else "||--o{"
                relations.append(
                    f'    {safe_name(col.linked_table)} {cardinality} '
                    f'{safe_name(table.name)} : "{col.name}"'
                )
        if relations:
            lines.append("")
            lines.extend(relations)
        return "\n".join(lines) + "\n"
