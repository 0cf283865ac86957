"""Tests for the schema diff engine.

Covers:
- Identical snapshots and missing baseline
- Added / removed / modified tables and columns, matched by id
- Breaking flag on removals
- Record ordering and position changes ignored
- summarize_changes
"""

from vibedb.core.diff_engine import diff_schemas, summarize_changes
from vibedb.core.serializers import clone_schema
from vibedb.models.diff import ChangeType
from vibedb.models.schema import Column, ColumnType, Constraint, ConstraintType, Schema, Table


def _make_schema() -> Schema:
    return Schema(tables=[
        Table(id="u", name="users", columns=[
            Column(id="u1", name="id", type=ColumnType.UUID,
                   constraints=[Constraint(ConstraintType.PRIMARY)]),
            Column(id="u2", name="email"),
            Column(id="u3", name="nickname"),
        ]),
        Table(id="p", name="posts", columns=[
            Column(id="p1", name="id", type=ColumnType.UUID),
            Column(id="p2", name="title", type=ColumnType.TEXT),
        ]),
    ])


class TestNoChanges:
    """Empty results."""

    def test_identical_snapshots(self):
        s = _make_schema()
        assert diff_schemas(s, clone_schema(s)) == []

    def test_no_baseline(self):
        assert diff_schemas(None, _make_schema()) == []

    def test_position_change_ignored(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables[0].x = 999.0
        current.tables[1].y = -40.0
        assert diff_schemas(base, current) == []


class TestColumnChanges:
    """Per-column records."""

    def test_removed_column_is_single_breaking_record(self):
        base = _make_schema()
        current = clone_schema(base)
        del current.tables[0].columns[2]
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.REMOVED
        assert change.target == "users.nickname"
        assert change.breaking

    def test_added_column(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables[1].columns.append(Column(id="p3", name="body"))
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.ADDED
        assert change.target == "posts.body"
        assert not change.breaking

    def test_modified_column_lists_fields(self):
        base = _make_schema()
        current = clone_schema(base)
        col = current.tables[0].columns[1]
        col.type = ColumnType.TEXT
        col.constraints = [Constraint(ConstraintType.NOT_NULL)]
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.MODIFIED
        assert change.fields == ["type", "constraints"]
        assert not change.breaking

    def test_rename_is_modification_not_remove_add(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables[0].columns[2].name = "handle"
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.MODIFIED
        assert change.target == "users.handle"
        assert "renamed from nickname" in change.details

    def test_same_name_new_id_is_remove_plus_add(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables[0].columns[1] = Column(id="u9", name="email")
        types = sorted(c.type.value for c in diff_schemas(base, current))
        assert types == ["added", "removed"]


class TestTableChanges:
    """Table-level records."""

    def test_added_table(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables.append(Table(id="c", name="comments", columns=[Column(name="id")]))
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.ADDED
        assert change.target == "comments"
        assert not change.is_column_change

    def test_removed_table_is_breaking(self):
        base = _make_schema()
        current = clone_schema(base)
        del current.tables[1]
        (change,) = diff_schemas(base, current)
        assert change.type == ChangeType.REMOVED
        assert change.target == "posts"
        assert change.breaking

    def test_table_rename_alone_not_reported(self):
        base = _make_schema()
        current = clone_schema(base)
        current.tables[0].name = "accounts"
        assert diff_schemas(base, current) == []


class TestOrdering:
    """Current-table order first, then removed tables in base order."""

    def test_record_order(self):
        base = _make_schema()
        base.tables.append(Table(id="x", name="legacy"))
        current = clone_schema(base)
        del current.tables[2]                                   # remove legacy
        current.tables.insert(0, Table(id="n", name="new_one"))  # add first
        current.tables[1].columns[1].name = "mail"               # modify users.email
        del current.tables[1].columns[0]                         # remove users.id
        current.tables[2].columns.append(Column(id="p3", name="body"))

        targets = [(c.type.value, c.target) for c in diff_schemas(base, current)]
        assert targets == [
            ("added", "new_one"),
            ("modified", "users.mail"),
            ("removed", "users.id"),
            ("added", "posts.body"),
            ("removed", "legacy"),
        ]

    def test_summary(self):
        base = _make_schema()
        current = clone_schema(base)
        del current.tables[1]
        current.tables[0].columns.append(Column(id="u4", name="age", type=ColumnType.INT))
        summary = summarize_changes(diff_schemas(base, current))
        assert summary == {"added": 1, "removed": 1, "modified": 0, "breaking": 1}
