"""JSON schema document export/import.

Exports the Schema as formatted JSON with the document format version.
Import is defensive: missing ids and arrays are filled in and foreign
keys are re-resolved against the loaded tables.
"""

from __future__ import annotations

import json

from vibedb.core.relationship_resolver import resolve_foreign_keys
from vibedb.core.serializers import dict_to_schema, schema_to_document
from vibedb.export.base import TextExporter
from vibedb.models.schema import Schema


class JsonExporter(TextExporter):
    """JSON schema document file operations."""

    format_key = "json"
    file_extension = ".json"

    def render(self, schema: Schema) -> str:
        return json.dumps(schema_to_document(schema), indent=2, ensure_ascii=False) + "\n"

    def parse(self, text: str) -> Schema:
        """Schema from document text.

        Raises:
            ValueError: If the text is not valid JSON.
        """
        return resolve_foreign_keys(dict_to_schema(json.loads(text)))

    def import_schema(self, input_path: str) -> Schema:
        """Read a schema document.

        Args:
            input_path: Source file path (.json).

        Returns:
            Reconstructed Schema.
        """
        with open(input_path, "r", encoding="utf-8") as f:
            return self.parse(f.read())
