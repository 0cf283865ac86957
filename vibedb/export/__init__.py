"""Export — schema code generation (SQL, ORM, DBML, GraphQL, Mermaid, CSV, JSON) and PDF report."""

from vibedb.export.base import TextExporter
from vibedb.export.csv_export import CsvExporter
from vibedb.export.dbml_export import DbmlExporter
from vibedb.export.graphql_export import GraphQLExporter
from vibedb.export.json_export import JsonExporter
from vibedb.export.mermaid_export import MermaidExporter
from vibedb.export.pdf_report import SchemaReportExporter
from vibedb.export.prisma_export import PrismaExporter
from vibedb.export.sql_export import SqlExporter
from vibedb.export.sqlalchemy_export import SqlAlchemyExporter
from vibedb.models.schema import Schema

_EXPORTERS: dict[str, type[TextExporter]] = {
    cls.format_key: cls
    for cls in (
        SqlExporter,
        PrismaExporter,
        SqlAlchemyExporter,
        DbmlExporter,
        GraphQLExporter,
        MermaidExporter,
        CsvExporter,
        JsonExporter,
    )
}

EXPORT_FORMATS = list(_EXPORTERS)


def get_exporter(fmt: str) -> TextExporter:
    """Exporter instance for a format key.

    Raises:
        ValueError: If the format is unknown.
    """
    try:
        return _EXPORTERS[fmt.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown export format: {fmt!r} (expected one of {', '.join(EXPORT_FORMATS)})"
        ) from None


def render_schema(schema: Schema, fmt: str) -> str:
    """Render ``schema`` in the given text format."""
    return get_exporter(fmt).render(schema)


__all__ = [
    "CsvExporter",
    "DbmlExporter",
    "EXPORT_FORMATS",
    "GraphQLExporter",
    "JsonExporter",
    "MermaidExporter",
    "PrismaExporter",
    "SchemaReportExporter",
    "SqlAlchemyExporter",
    "SqlExporter",
    "TextExporter",
    "get_exporter",
    "render_schema",
]
