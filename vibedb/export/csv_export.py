"""CSV export — flat data dictionary, one row per column.

Files are written with a UTF-8 BOM for Excel compatibility; ``render``
returns the same rows without it.
"""

from __future__ import annotations

import csv
import io

from vibedb.export.base import TextExporter
from vibedb.models.schema import Schema

HEADERS = [
    "Table", "Column", "Type",
    "Primary Key", "Not Null", "Unique", "Default",
    "References", "Description",
]


def _flag(value: bool) -> str:
    return "yes" if value else ""


class CsvExporter(TextExporter):
    """Data dictionary as CSV."""

    format_key = "csv"
    file_extension = ".csv"

    def rows(self, schema: Schema) -> list[list[str]]:
        rows = []
        for table in schema.tables:
            for col in table.columns:
                ref = ""
                if col.is_foreign_key and col.linked_table:
                    ref = f"{col.linked_table}.{col.linked_column}"
                rows.append([
                    table.name,
                    col.name,
                    col.type.value,
                    _flag(col.is_primary),
                    _flag(col.is_not_null),
                    _flag(col.is_unique),
                    col.default_value or "",
                    ref,
                    col.description,
                ])
        return rows

    def render(self, schema: Schema) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(HEADERS)
        writer.writerows(self.rows(schema))
        return buf.getvalue()

    def export(self, schema: Schema, output_path: str) -> None:
        """Write the data dictionary as CSV.

        Args:
            schema: The schema to export.
            output_path: Destination file path (.csv).
        """
        with open(output_path, "w", newline="", encoding="utf-8-sig") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerow(HEADERS)
            writer.writerows(self.rows(schema))
