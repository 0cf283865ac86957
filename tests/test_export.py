"""Tests for export modules — text generators, CSV, JSON and the PDF report.

Covers:
- Determinism and table order for every text format
- Foreign key rendering per format
- SQL constraints, defaults and indexes
- CSV data dictionary (BOM on disk)
- JSON document round trip
- PDF report file generation
"""

import csv
import json

import pytest

from vibedb.constants import SCHEMA_FORMAT_VERSION
from vibedb.core.serializers import schema_to_dict
from vibedb.export import (
    EXPORT_FORMATS,
    CsvExporter,
    JsonExporter,
    SchemaReportExporter,
    get_exporter,
    render_schema,
)
from vibedb.export.base import class_name
from vibedb.export.mermaid_export import safe_name
from vibedb.models.schema import (
    Column,
    ColumnType,
    Constraint,
    ConstraintType,
    Index,
    Schema,
    Table,
)


# ── Helpers ──────────────────────────────────────────────────────────

def _make_schema() -> Schema:
    return Schema(tables=[
        Table(id="u", name="users", columns=[
            Column(id="u1", name="id", type=ColumnType.UUID,
                   constraints=[Constraint(ConstraintType.PRIMARY)]),
            Column(id="u2", name="email", constraints=[
                Constraint(ConstraintType.UNIQUE), Constraint(ConstraintType.NOT_NULL),
            ], description="Login address"),
            Column(id="u3", name="created_at", type=ColumnType.TIMESTAMP,
                   constraints=[Constraint(ConstraintType.DEFAULT, "now()")]),
        ], indexes=[Index(name="idx_users_email", columns=["email"], unique=True)]),
        Table(id="p", name="blog_posts", columns=[
            Column(id="p1", name="id", type=ColumnType.UUID,
                   constraints=[Constraint(ConstraintType.PRIMARY)]),
            Column(id="p2", name="user_id", type=ColumnType.UUID, is_foreign_key=True,
                   linked_table_id="u", linked_table="users", linked_column="id"),
            Column(id="p3", name="meta", type=ColumnType.JSONB),
        ]),
    ])


# ── Registry ─────────────────────────────────────────────────────────

class TestRegistry:

    def test_all_formats_registered(self):
        assert EXPORT_FORMATS == [
            "sql", "prisma", "sqlalchemy", "dbml", "graphql", "mermaid", "csv", "json",
        ]

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown export format"):
            render_schema(_make_schema(), "cobol")

    def test_format_key_case_insensitive(self):
        assert get_exporter("SQL").format_key == "sql"

    @pytest.mark.parametrize("fmt", EXPORT_FORMATS)
    def test_deterministic(self, fmt):
        assert render_schema(_make_schema(), fmt) == render_schema(_make_schema(), fmt)

    @pytest.mark.parametrize("fmt", ["sql", "prisma", "dbml", "mermaid", "csv"])
    def test_table_order_preserved(self, fmt):
        text = render_schema(_make_schema(), fmt)
        assert text.index("users") < text.index("blog_posts")

    @pytest.mark.parametrize("fmt", EXPORT_FORMATS)
    def test_empty_schema(self, fmt):
        assert isinstance(render_schema(Schema(), fmt), str)

    @pytest.mark.parametrize("fmt", EXPORT_FORMATS)
    def test_export_writes_rendered_text(self, fmt, tmp_path):
        exporter = get_exporter(fmt)
        path = tmp_path / f"schema{exporter.file_extension}"
        exporter.export(_make_schema(), str(path))
        content = path.read_text(encoding="utf-8-sig")
        assert content == exporter.render(_make_schema())


# ── SQL ──────────────────────────────────────────────────────────────

class TestSqlExport:

    def test_create_table_block(self):
        sql = render_schema(_make_schema(), "sql")
        assert sql.startswith("-- Generated by VibeDB\n\n")
        assert (
            "CREATE TABLE users (\n"
            "  id UUID PRIMARY KEY,\n"
            "  email VARCHAR UNIQUE NOT NULL,\n"
            "  created_at TIMESTAMP DEFAULT now()\n"
            ");\n"
        ) in sql

    def test_foreign_key_reference(self):
        sql = render_schema(_make_schema(), "sql")
        assert "  user_id UUID REFERENCES users(id)" in sql

    def test_index_statement(self):
        sql = render_schema(_make_schema(), "sql")
        assert "CREATE UNIQUE INDEX idx_users_email ON users (email);" in sql

    def test_fk_without_target_name_not_referenced(self):
        schema = Schema(tables=[Table(name="t", columns=[
            Column(name="x_id", is_foreign_key=True, linked_table=None),
        ])])
        assert "REFERENCES" not in render_schema(schema, "sql")


# ── Code generators ──────────────────────────────────────────────────

class TestCodeGenerators:

    def test_prisma_relation_and_back_relation(self):
        text = render_schema(_make_schema(), "prisma")
        assert "model users {" in text
        assert "  id String @id @db.Uuid" in text
        assert "  created_at DateTime? @default(now())" in text
        assert '@relation("blog_posts_user_id", fields: [user_id], references: [id])' in text
        assert '  blog_posts_user_id_refs blog_posts[] @relation("blog_posts_user_id")' in text
        assert "  @@unique([email])" in text

    def test_sqlalchemy_module(self):
        text = render_schema(_make_schema(), "sqlalchemy")
        assert "from sqlalchemy.dialects.postgresql import JSONB, UUID" in text
        assert "class BlogPosts(Base):" in text
        assert '    __tablename__ = "blog_posts"' in text
        assert 'user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))' in text
        assert 'server_default=text("now()")' in text
        assert 'Index("idx_users_email", "email", unique=True)' in text

    def test_sqlalchemy_keyword_column_renamed(self):
        schema = Schema(tables=[Table(name="t", columns=[Column(name="class")])])
        text = render_schema(schema, "sqlalchemy")
        assert 'col_class = Column("class", String)' in text

    def test_dbml_inline_ref(self):
        text = render_schema(_make_schema(), "dbml")
        assert "Table users {" in text
        assert "  id uuid [pk]" in text
        assert "  user_id uuid [ref: > users.id]" in text
        assert "  email varchar [unique, not null, note: 'Login address']" in text
        assert "  created_at timestamp [default: `now()`]" in text

    def test_graphql_types(self):
        text = render_schema(_make_schema(), "graphql")
        assert text.startswith("scalar DateTime\nscalar JSON\n\n")
        assert "type BlogPosts {" in text
        assert "  id: ID!" in text
        assert "  email: String!" in text
        assert "  user: Users" in text

    def test_mermaid_diagram(self):
        text = render_schema(_make_schema(), "mermaid")
        assert text.startswith("erDiagram\n")
        assert "        uuid id PK" in text
        assert "        varchar email UK" in text
        assert '    users ||--o{ blog_posts : "user_id"' in text

    def test_helpers(self):
        assert class_name("order_items") == "OrderItems"
        assert class_name("2fa codes") == "T2faCodes"
        assert class_name("") == "Table"
        assert safe_name("my table") == "my_table"


# ── CSV ──────────────────────────────────────────────────────────────

class TestCsvExport:

    def test_rows(self):
        rows = CsvExporter().rows(_make_schema())
        assert len(rows) == 6
        assert rows[1] == [
            "users", "email", "varchar", "", "yes", "yes", "", "", "Login address",
        ]
        assert rows[4][7] == "users.id"

    def test_file_has_bom_and_header(self, tmp_path):
        path = tmp_path / "dictionary.csv"
        CsvExporter().export(_make_schema(), str(path))
        assert path.read_bytes().startswith(b"\xef\xbb\xbf")
        with open(path, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0][:3] == ["Table", "Column", "Type"]
        assert len(rows) == 7


# ── JSON ─────────────────────────────────────────────────────────────

class TestJsonExport:

    def test_document_version(self):
        doc = json.loads(JsonExporter().render(_make_schema()))
        assert doc["schemaVersion"] == SCHEMA_FORMAT_VERSION
        assert [t["name"] for t in doc["tables"]] == ["users", "blog_posts"]

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "schema.json"
        exporter = JsonExporter()
        exporter.export(_make_schema(), str(path))
        loaded = exporter.import_schema(str(path))
        assert schema_to_dict(loaded) == schema_to_dict(_make_schema())

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            JsonExporter().parse("{not json")


# ── PDF ──────────────────────────────────────────────────────────────

class TestPdfReport:

    def test_report_written(self, tmp_path):
        path = tmp_path / "report.pdf"
        SchemaReportExporter().generate_report(_make_schema(), str(path), title="Blog")
        assert path.read_bytes().startswith(b"%PDF")

    def test_empty_schema(self, tmp_path):
        path = tmp_path / "empty.pdf"
        SchemaReportExporter().export(Schema(), str(path))
        assert path.stat().st_size > 0
