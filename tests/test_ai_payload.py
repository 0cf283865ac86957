"""Tests for AI payload reconciliation.

Covers:
- Fence stripping and malformed replies
- Full generation (defaults, grid placement, FK resolution, id de-dup)
- Single-table generation for add-table replies
- Batch edit merge (id/name matching, kept ids and positions, new
  tables, stale replies)
- Column and audit suggestions
- Context builders and the injected assistant
"""

import json

import pytest

from vibedb.core.ai_payload import (
    AIPayloadError,
    RequestKind,
    apply_audit_suggestion,
    build_add_table_prompt,
    build_batch_context,
    build_query_context,
    build_smart_column_prompt,
    column_from_suggestion,
    merge_batch_edit,
    parse_ai_result,
    request_payload,
    schema_from_generation,
    table_from_generation,
)
from vibedb.models.schema import (
    Column,
    ColumnType,
    Constraint,
    ConstraintType,
    FkStatus,
    Schema,
    Table,
)


def _make_local() -> Schema:
    return Schema(tables=[
        Table(id="t-users", name="users", x=50.0, y=60.0, columns=[
            Column(id="c-id", name="id", type=ColumnType.UUID,
                   constraints=[Constraint(ConstraintType.PRIMARY)]),
            Column(id="c-email", name="email", description="login"),
        ]),
        Table(id="t-posts", name="posts", x=500.0, y=60.0, columns=[
            Column(id="c-pid", name="id", type=ColumnType.UUID),
        ]),
    ])


def _make_linked() -> Schema:
    """Local schema where posts.author_id references users.id."""
    schema = _make_local()
    schema.tables[1].columns.append(Column(
        id="c-author", name="author_id", type=ColumnType.UUID,
        is_foreign_key=True, linked_table_id="t-users",
        linked_table="users", linked_column="id",
    ))
    return schema


class _FakeAssistant:
    def __init__(self, reply: str):
        self.reply = reply
        self.calls = []

    def complete(self, kind, prompt, context=None):
        self.calls.append((kind, prompt, context))
        return self.reply


class TestParse:

    def test_plain_json(self):
        assert parse_ai_result('{"tables": []}') == {"tables": []}

    def test_fenced_json(self):
        text = '```json\n{"name": "slug", "type": "varchar"}\n```'
        assert parse_ai_result(text)["name"] == "slug"

    def test_invalid_json(self):
        with pytest.raises(AIPayloadError):
            parse_ai_result("Sure! Here is your schema:")

    def test_non_object(self):
        with pytest.raises(AIPayloadError):
            parse_ai_result("[1, 2, 3]")


class TestGeneration:

    def test_defaults_and_grid(self):
        payload = {"tables": [
            {"name": "users", "columns": [{"name": "id", "type": "uuid", "constraints": [{"type": "primary"}]}]},
            {"name": "posts"},
            {"name": "tags", "columns": [{"name": "geo", "type": "geometry"}]},
            {"name": "likes"},
        ]}
        s = schema_from_generation(payload)
        assert [t.name for t in s.tables] == ["users", "posts", "tags", "likes"]
        assert [(t.x, t.y) for t in s.tables] == [
            (100.0, 100.0), (400.0, 100.0), (700.0, 100.0), (100.0, 400.0),
        ]
        assert s.tables[1].columns == []
        assert s.tables[2].columns[0].type == ColumnType.VARCHAR
        assert all(t.id for t in s.tables)

    def test_fk_resolved_by_name(self):
        payload = {"tables": [
            {"name": "users", "columns": [{"name": "id", "type": "uuid"}]},
            {"name": "posts", "columns": [
                {"name": "user_id", "type": "uuid", "isForeignKey": True,
                 "linkedTable": "users", "linkedColumn": "id"},
                {"name": "tag_id", "type": "uuid", "isForeignKey": True,
                 "linkedTable": "tags"},
            ]},
        ]}
        s = schema_from_generation(payload)
        user_fk, tag_fk = s.tables[1].columns
        assert user_fk.fk_status == FkStatus.RESOLVED
        assert user_fk.linked_table_id == s.tables[0].id
        assert tag_fk.fk_status == FkStatus.UNRESOLVED

    def test_duplicate_ids_replaced(self):
        payload = {"tables": [
            {"id": "same", "name": "a", "columns": [{"id": "c", "name": "x"}, {"id": "c", "name": "y"}]},
            {"id": "same", "name": "b"},
        ]}
        s = schema_from_generation(payload)
        assert s.tables[0].id != s.tables[1].id
        assert s.tables[0].columns[0].id != s.tables[0].columns[1].id

    def test_missing_tables_key(self):
        assert schema_from_generation({"oops": 1}).tables == []


class TestSingleTableGeneration:
    """Add-table replies: only the first table is used."""

    def test_first_table_with_fresh_ids(self):
        payload = {"tables": [
            {"id": "t-users", "name": "reviews", "columns": [
                {"id": "c-id", "name": "id", "type": "uuid"},
                {"id": "c-id", "name": "body", "type": "text"},
            ]},
            {"name": "ignored"},
        ]}
        table = table_from_generation(payload, origin=(30.0, 40.0))
        assert table.name == "reviews"
        assert table.id != "t-users"
        assert [c.name for c in table.columns] == ["id", "body"]
        ids = [c.id for c in table.columns]
        assert "c-id" not in ids
        assert len(set(ids)) == 2
        assert (table.x, table.y) == (230.0, 240.0)

    def test_default_origin(self):
        table = table_from_generation({"tables": [{"name": "tags"}]})
        assert (table.x, table.y) == (200.0, 200.0)
        assert table.columns == []

    @pytest.mark.parametrize("payload", [{}, {"tables": []}, {"tables": ["x"]}])
    def test_no_table(self, payload):
        assert table_from_generation(payload) is None

    def test_prompts(self):
        local = _make_local()
        assert build_smart_column_prompt(local.tables[0]) == (
            'Table "users" with columns: [id, email]. Suggest ONE missing column.'
        )
        assert build_add_table_prompt(local, "comments") == (
            'Existing tables: [users, posts]. Generate 1 new table for: "comments". '
            'Return JSON with "tables" key containing exactly 1 table.'
        )


class TestBatchMerge:

    def test_match_by_id_keeps_position(self):
        local = _make_local()
        payload = {"tables": [
            {"id": "t-users", "name": "accounts", "columns": [
                {"id": "c-id", "name": "id", "type": "uuid"},
            ]},
        ]}
        merged = merge_batch_edit(local, payload)
        (table,) = merged.tables
        assert table.id == "t-users"
        assert table.name == "accounts"
        assert (table.x, table.y) == (50.0, 60.0)

    def test_match_by_name_keeps_ids(self):
        local = _make_local()
        payload = {"tables": [
            {"name": "Users", "columns": [
                {"name": "email", "type": "text"},
                {"name": "phone", "type": "varchar"},
            ]},
        ]}
        merged = merge_batch_edit(local, payload)
        table = merged.tables[0]
        assert table.id == "t-users"
        email, phone = table.columns
        assert email.id == "c-email"
        assert email.type == ColumnType.TEXT
        assert phone.id not in ("c-id", "c-email")

    def test_omitted_fields_keep_local_values(self):
        local = _make_local()
        payload = {"tables": [
            {"id": "t-users", "name": "users", "columns": [
                {"id": "c-id", "name": "id", "type": "uuid"},
                {"id": "c-email", "name": "email", "type": "varchar"},
            ]},
        ]}
        table = merge_batch_edit(local, payload).tables[0]
        assert table.columns[0].is_primary
        assert table.columns[1].description == "login"

    def test_omitted_table_name_keeps_local_name(self):
        """Referrers keep pointing at the table under its local name."""
        payload = {"tables": [
            {"id": "t-users", "columns": [{"id": "c-id", "name": "id", "type": "uuid"}]},
            {"id": "t-posts", "name": "posts"},
        ]}
        merged = merge_batch_edit(_make_linked(), payload)
        users, posts = merged.tables
        assert users.name == "users"
        fk = posts.find_column("c-author")
        assert fk.linked_table == "users"
        assert fk.linked_table_id == "t-users"
        assert fk.fk_status == FkStatus.RESOLVED

    @pytest.mark.parametrize("columns", [None, "not a list"])
    def test_omitted_columns_keep_local_columns(self, columns):
        raw = {"id": "t-users", "name": "users"}
        if columns is not None:
            raw["columns"] = columns
        table = merge_batch_edit(_make_local(), {"tables": [raw]}).tables[0]
        assert [(c.id, c.name, c.type) for c in table.columns] == [
            ("c-id", "id", ColumnType.UUID),
            ("c-email", "email", ColumnType.VARCHAR),
        ]
        assert table.columns[0].is_primary
        assert table.columns[1].description == "login"

    def test_omitted_column_type_keeps_local_type(self):
        payload = {"tables": [
            {"id": "t-users", "name": "users", "columns": [
                {"id": "c-id", "name": "id"},
            ]},
        ]}
        col = merge_batch_edit(_make_local(), payload).tables[0].columns[0]
        assert col.type == ColumnType.UUID

    def test_omitted_column_name_keeps_local_name(self):
        payload = {"tables": [
            {"id": "t-users", "name": "users", "columns": [
                {"id": "c-email", "type": "text"},
            ]},
        ]}
        col = merge_batch_edit(_make_local(), payload).tables[0].columns[0]
        assert col.name == "email"
        assert col.type == ColumnType.TEXT

    def test_omitted_link_fields_keep_local_reference(self):
        payload = {"tables": [
            {"id": "t-users", "name": "users"},
            {"id": "t-posts", "name": "posts", "columns": [
                {"id": "c-author", "name": "writer_id", "type": "uuid"},
            ]},
        ]}
        fk = merge_batch_edit(_make_linked(), payload).tables[1].columns[0]
        assert fk.name == "writer_id"
        assert fk.is_foreign_key
        assert fk.linked_table == "users"
        assert fk.linked_column == "id"
        assert fk.linked_table_id == "t-users"

    def test_explicit_link_fields_override_local(self):
        payload = {"tables": [
            {"id": "t-users", "name": "users"},
            {"id": "t-posts", "name": "posts", "columns": [
                {"id": "c-author", "name": "author_id", "isForeignKey": False},
            ]},
        ]}
        fk = merge_batch_edit(_make_linked(), payload).tables[1].columns[0]
        assert not fk.is_foreign_key
        assert fk.linked_table_id is None

    def test_new_tables_placed_after_existing(self):
        local = _make_local()
        payload = {"tables": [
            {"id": "t-users", "name": "users"},
            {"id": "t-posts", "name": "posts"},
            {"name": "comments"},
            {"name": "likes"},
        ]}
        merged = merge_batch_edit(local, payload)
        comments, likes = merged.tables[2:]
        assert (comments.x, comments.y) == (700.0, 100.0)
        assert (likes.x, likes.y) == (100.0, 400.0)

    def test_deletions_follow_proposal(self):
        merged = merge_batch_edit(_make_local(), {"tables": [{"id": "t-posts", "name": "posts"}]})
        assert [t.id for t in merged.tables] == ["t-posts"]

    def test_stale_reply_keeps_tables_created_after_request(self):
        base = _make_local()
        current = _make_local()
        current.tables.append(Table(id="t-new", name="drafts", x=9.0, y=9.0))
        payload = {"tables": [
            {"id": "t-users", "name": "users"},
            {"id": "t-posts", "name": "posts"},
        ]}
        merged = merge_batch_edit(current, payload, base=base)
        assert [t.id for t in merged.tables] == ["t-users", "t-posts", "t-new"]
        assert (merged.tables[2].x, merged.tables[2].y) == (9.0, 9.0)

    def test_without_base_new_local_tables_dropped(self):
        current = _make_local()
        current.tables.append(Table(id="t-new", name="drafts"))
        merged = merge_batch_edit(current, {"tables": [{"id": "t-users", "name": "users"}]})
        assert [t.id for t in merged.tables] == ["t-users"]

    def test_fk_to_new_table_resolved(self):
        payload = {"tables": [
            {"id": "t-posts", "name": "posts", "columns": [
                {"name": "category_id", "isForeignKey": True, "linkedTable": "categories"},
            ]},
            {"name": "categories", "columns": [{"name": "id"}]},
        ]}
        merged = merge_batch_edit(_make_local(), payload)
        fk = merged.tables[0].columns[0]
        assert fk.fk_status == FkStatus.RESOLVED
        assert fk.linked_table_id == merged.tables[1].id

    def test_input_not_mutated(self):
        local = _make_local()
        merge_batch_edit(local, {"tables": []})
        assert [t.id for t in local.tables] == ["t-users", "t-posts"]


class TestSuggestions:

    def test_column_from_suggestion(self):
        col = column_from_suggestion({"name": "slug", "type": "varchar", "description": "URL"})
        assert col.name == "slug"
        assert col.type == ColumnType.VARCHAR
        assert col.description == "URL"

    def test_column_without_name(self):
        assert column_from_suggestion({"type": "int"}) is None

    def test_add_column_suggestion(self):
        suggestion = {
            "type": "add_column", "target_table": "users",
            "payload": {"name": "updated_at", "type": "timestamp"},
            "reason": "track edits",
        }
        schema, applied = apply_audit_suggestion(_make_local(), suggestion)
        assert applied
        col = schema.tables[0].columns[-1]
        assert col.name == "updated_at"
        assert col.type == ColumnType.TIMESTAMP
        assert col.description == "track edits"

    def test_add_table_suggestion(self):
        suggestion = {
            "type": "add_table",
            "payload": {"name": "audit_log", "columns": [{"name": "id", "type": "uuid"}]},
        }
        schema, applied = apply_audit_suggestion(_make_local(), suggestion, origin=(10.0, 0.0))
        assert applied
        table = schema.tables[-1]
        assert table.name == "audit_log"
        assert (table.x, table.y) == (210.0, 200.0)

    def test_add_index_suggestion(self):
        suggestion = {
            "type": "add_index", "target_table": "users",
            "payload": {"columns": ["email"], "unique": True},
        }
        schema, applied = apply_audit_suggestion(_make_local(), suggestion)
        assert applied
        index = schema.tables[0].indexes[0]
        assert index.columns == ["email"]
        assert index.unique

    @pytest.mark.parametrize("suggestion", [
        {"type": "add_column", "target_table": "ghosts", "payload": {"name": "x"}},
        {"type": "drop_everything", "payload": {}},
        {"type": "add_column", "target_table": "users"},
    ])
    def test_not_applicable(self, suggestion):
        local = _make_local()
        schema, applied = apply_audit_suggestion(local, suggestion)
        assert not applied
        assert schema is local


class TestContext:

    def test_batch_context_has_ids_without_positions(self):
        data = json.loads(build_batch_context(_make_local()))
        assert data[0]["id"] == "t-users"
        assert data[0]["columns"][0] == {
            "name": "id", "type": "uuid", "id": "c-id", "isForeignKey": False,
            "linkedTable": None, "linkedColumn": "id",
        }
        assert "x" not in data[0]

    def test_query_context(self):
        assert build_query_context(_make_local()) == (
            "users(id:uuid, email:varchar)\nposts(id:uuid)"
        )

    def test_request_payload_uses_assistant(self):
        assistant = _FakeAssistant('```json\n{"tables": []}\n```')
        result = request_payload(assistant, RequestKind.GENERATE_SCHEMA, "a blog")
        assert result == {"tables": []}
        assert assistant.calls == [(RequestKind.GENERATE_SCHEMA, "a blog", None)]
