"""Shared pieces of the text exporters.

Every text exporter is a pure ``render(schema) -> str``; ``export`` only
writes that text to disk.
"""

from __future__ import annotations

import re

from vibedb.models.schema import Column, Schema, Table

_WORD_SPLIT = re.compile(r"[^A-Za-z0-9]+")


class TextExporter:
    """Base class: subclasses implement ``render``."""

    format_key = ""
    file_extension = ".txt"

    def render(self, schema: Schema) -> str:
        raise NotImplementedError

    def export(self, schema: Schema, output_path: str) -> None:
        """Write the rendered text to ``output_path`` (UTF-8, LF newlines).

        Args:
            schema: The schema to export.
            output_path: Destination file path.
        """
        with open(output_path, "w", encoding="utf-8", newline="\n") as f:
            f.write(self.render(schema))


def class_name(table_name: str) -> str:
    """``order_items`` -> ``OrderItems`` (keeps inner capitals)."""
    parts = [p for p in _WORD_SPLIT.split(table_name) if p]
    name = "".join(p[0].upper() + p[1:] for p in parts)
    if not name:
        return "Table"
    if name[0].isdigit():
        name = "T" + name
    return name


def referenced_table(schema: Schema, col: Column) -> Table | None:
    """Target of a foreign key, looked up by ``linked_table`` name."""
    if not col.is_foreign_key or not col.linked_table:
        return None
    return schema.find_table_by_name(col.linked_table)


def foreign_keys(table: Table) -> list[Column]:
    return [c for c in table.columns if c.is_foreign_key and c.linked_table]
