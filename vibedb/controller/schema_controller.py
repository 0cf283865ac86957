"""Schema controller — central mediator between the schema model and views.

Owns the single live Schema and its HistoryManager. Every mutation goes
through this controller: it computes the next schema with the pure core
functions, records one history snapshot and emits Qt signals so views can
refresh.

Reference: DESIGN.md — Controller.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from PyQt6.QtCore import QObject, pyqtSignal

from vibedb.constants import DEFAULT_LINKED_COLUMN, DEFAULT_NAMING_CONVENTION, NEW_TABLE_OFFSET
from vibedb.core import ai_payload, ddl_parser, relationship_resolver
from vibedb.core.diff_engine import diff_schemas
from vibedb.core.history_manager import HistoryManager
from vibedb.core.layout_engine import LayoutConfig, run_force_layout
from vibedb.core.schema_audit import audit_schema
from vibedb.core.serializers import clone_schema
from vibedb.export import render_schema
from vibedb.models.audit import AuditReport
from vibedb.models.diff import ChangeRecord
from vibedb.models.schema import (
    Column,
    ColumnType,
    Constraint,
    ConstraintType,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)

# Column attributes editable through update_column
_COLUMN_FIELDS = {
    "name", "type", "is_foreign_key", "linked_table", "linked_column",
    "constraints", "description",
}


def _undoable(method):
    """Decorator: the wrapped method returns the next Schema (or None for
    no change); it becomes current and one history snapshot is pushed."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        result = method(self, *args, **kwargs)
        if isinstance(result, Schema):
            self._commit(result)
        return result
    return wrapper


class SchemaController(QObject):
    """Central mediator between the Schema data model and its views.

    Signals carry table ids (str).
    """

    # Full schema refresh needed
    schema_changed = pyqtSignal()
    table_added = pyqtSignal(str)
    table_removed = pyqtSignal(str)
    # Undo/redo availability changed (for menu enable/disable)
    history_changed = pyqtSignal()
    # Manual link refused (message)
    link_rejected = pyqtSignal(str)
    # Connection mode entered (table_id, column_id)
    connection_started = pyqtSignal(str, str)

    def __init__(
        self,
        schema: Schema | None = None,
        max_history: int | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._schema = clone_schema(schema) if schema is not None else Schema()
        self._history = HistoryManager(self._schema, max_levels=max_history)
        self._connection = relationship_resolver.ConnectionSession()
        self._baseline: Schema | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def schema(self) -> Schema:
        """Current schema (read-only reference)."""
        return self._schema

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def is_connecting(self) -> bool:
        return self._connection.is_active

    @property
    def baseline(self) -> Schema | None:
        return self._baseline

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _commit(self, schema: Schema) -> None:
        self._schema = schema
        self._history.push(schema)
        self.schema_changed.emit()
        self.history_changed.emit()

    def _draft(self) -> Schema:
        return clone_schema(self._schema)

    @staticmethod
    def _require_table(schema: Schema, table_id: str) -> Table:
        table = schema.find_table(table_id)
        if table is None:
            raise KeyError(f"Table not found: {table_id}")
        return table

    @staticmethod
    def _require_column(table: Table, column_id: str) -> Column:
        col = table.find_column(column_id)
        if col is None:
            raise KeyError(f"Column not found: {table.name}.{column_id}")
        return col

    # ------------------------------------------------------------------
    # Undo / Redo
    # ------------------------------------------------------------------

    def undo(self) -> None:
        """Revert to the previous snapshot (no-op at the start)."""
        if not self._history.can_undo:
            return
        self._schema = self._history.undo()
        self._connection.cancel()
        self.schema_changed.emit()
        self.history_changed.emit()

    def redo(self) -> None:
        """Re-apply the next snapshot (no-op at the end)."""
        if not self._history.can_redo:
            return
        self._schema = self._history.redo()
        self._connection.cancel()
        self.schema_changed.emit()
        self.history_changed.emit()

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    @_undoable
    def set_schema(self, schema: Schema) -> Schema:
        """Replace the whole schema (e.g. document load)."""
        return relationship_resolver.resolve_foreign_keys(schema)

    def add_table(
        self,
        name: str | None = None,
        origin: tuple[float, float] = (0.0, 0.0),
    ) -> Table:
        """Add a ``table_N`` with an ``id`` primary key and ``created_at``.

        Args:
            name: Table name (default ``table_<count + 1>``).
            origin: Top-left of the visible canvas; the table is placed
                at a fixed offset from it.
        """
        schema = self._draft()
        table = Table(
            name=name or f"table_{len(schema.tables) + 1}",
            x=origin[0] + NEW_TABLE_OFFSET,
            y=origin[1] + NEW_TABLE_OFFSET,
            columns=[
                Column(
                    name="id",
                    type=ColumnType.UUID,
                    constraints=[Constraint(ConstraintType.PRIMARY)],
                ),
                Column(
                    name="created_at",
                    type=ColumnType.TIMESTAMP,
                    constraints=[Constraint(ConstraintType.NOT_NULL)],
                ),
            ],
        )
        schema.tables.append(table)
        self._commit(relationship_resolver.resolve_foreign_keys(schema))
        self.table_added.emit(table.id)
        return table

    def remove_table(self, table_id: str) -> None:
        """Delete a table; foreign keys pointing at it become unresolved."""
        schema = self._draft()
        table = self._require_table(schema, table_id)
        schema.tables.remove(table)
        self._commit(relationship_resolver.resolve_foreign_keys(schema))
        self.table_removed.emit(table_id)

    @_undoable
    def rename_table(self, table_id: str, name: str) -> Schema:
        schema = relationship_resolver.rename_table(self._schema, table_id, name)
        return relationship_resolver.resolve_foreign_keys(schema)

    @_undoable
    def move_table(self, table_id: str, x: float, y: float) -> Schema:
        schema = self._draft()
        table = self._require_table(schema, table_id)
        table.x, table.y = float(x), float(y)
        return schema

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column(
        self,
        table_id: str,
        name: str = "new_col",
        type: ColumnType = ColumnType.VARCHAR,
    ) -> Column:
        """Append a column (default ``new_col varchar``)."""
        schema = self._draft()
        table = self._require_table(schema, table_id)
        col = Column(name=name, type=ColumnType.coerce(type))
        table.columns.append(col)
        self._commit(relationship_resolver.resolve_foreign_keys(schema))
        return col

    def add_suggested_column(self, table_id: str, payload: dict) -> Column | None:
        """Append the column proposed by a smart-add-column reply."""
        col = ai_payload.column_from_suggestion(payload)
        if col is None:
            logger.warning("Column suggestion without a name ignored")
            return None
        schema = self._draft()
        table = self._require_table(schema, table_id)
        table.columns.append(col)
        self._commit(relationship_resolver.resolve_foreign_keys(schema))
        return col

    @_undoable
    def update_column(self, table_id: str, column_id: str, **changes: Any) -> Schema:
        """Edit column attributes.

        Keyword args use Column field names (``name``, ``type``,
        ``linked_table``...). Turning ``is_foreign_key`` off clears the
        reference.

        Raises:
            KeyError: Unknown table or column.
            ValueError: Unknown attribute.
        """
        unknown = set(changes) - _COLUMN_FIELDS
        if unknown:
            raise ValueError(f"Unknown column attribute(s): {', '.join(sorted(unknown))}")
        schema = self._draft()
        col = self._require_column(self._require_table(schema, table_id), column_id)
        for key, value in changes.items():
            if key == "type":
                value = ColumnType.coerce(value)
            elif key == "constraints":
                value = list(value)
            setattr(col, key, value)
        if "linked_table" in changes:
            col.linked_table_id = None
        if not col.is_foreign_key:
            col.linked_table_id = None
            col.linked_table = None
            col.linked_column = DEFAULT_LINKED_COLUMN
        return relationship_resolver.resolve_foreign_keys(schema)

    @_undoable
    def remove_column(self, table_id: str, column_id: str) -> Schema:
        schema = self._draft()
        table = self._require_table(schema, table_id)
        table.columns.remove(self._require_column(table, column_id))
        return relationship_resolver.resolve_foreign_keys(schema)

    # ------------------------------------------------------------------
    # Import / layout / inference
    # ------------------------------------------------------------------

    def import_ddl(
        self, sql: str, origin: tuple[float, float] = (0.0, 0.0),
    ) -> ddl_parser.ParseResult:
        """Append the tables parsed from ``sql`` (one snapshot).

        Nothing is recorded when no table could be parsed.
        """
        schema, result = ddl_parser.import_ddl(self._schema, sql, origin)
        if result.tables:
            self._commit(schema)
            for table in result.tables:
                self.table_added.emit(table.id)
        return result

    @_undoable
    def auto_layout(self, config: LayoutConfig | None = None) -> Schema:
        """Run the force layout synchronously."""
        return run_force_layout(self._schema, config)

    @_undoable
    def apply_positions(self, laid_out: Schema) -> Schema:
        """Copy x/y by table id from a layout result (e.g. LayoutWorker).

        Tables created after the layout started keep their position.
        """
        schema = self._draft()
        for table in schema.tables:
            source = laid_out.find_table(table.id)
            if source is not None:
                table.x, table.y = source.x, source.y
        return schema

    def infer_relationships(self) -> int:
        """Magic link. Returns the number of new links (no snapshot if 0)."""
        result = relationship_resolver.infer_foreign_keys(self._schema)
        if result.count:
            self._commit(result.schema)
        return result.count

    # ------------------------------------------------------------------
    # Connection mode
    # ------------------------------------------------------------------

    def start_connection(self, table_id: str, column_id: str) -> None:
        self._require_column(self._require_table(self._schema, table_id), column_id)
        self._connection.start(table_id, column_id)
        self.connection_started.emit(table_id, column_id)

    def complete_connection(self, table_id: str, column_id: str) -> bool:
        """Link the pending source column to this target.

        Returns:
            True if the link was made. A link within one table is refused
            with ``link_rejected`` and leaves connection mode active.
        """
        try:
            schema = self._connection.complete(self._schema, table_id, column_id)
        except relationship_resolver.SelfLinkError as e:
            self.link_rejected.emit(str(e))
            return False
        self._commit(schema)
        return True

    def cancel_connection(self) -> None:
        self._connection.cancel()

    @_undoable
    def unlink_column(self, table_id: str, column_id: str) -> Schema:
        return relationship_resolver.unlink_column(self._schema, table_id, column_id)

    # ------------------------------------------------------------------
    # AI results
    # ------------------------------------------------------------------

    @staticmethod
    def _payload(reply: dict | str) -> dict:
        if isinstance(reply, str):
            return ai_payload.parse_ai_result(reply)
        return reply

    @_undoable
    def apply_generation(self, reply: dict | str) -> Schema:
        """Replace the schema with an AI-generated one.

        Raises:
            AIPayloadError: If ``reply`` is text that is not a JSON object.
        """
        return ai_payload.schema_from_generation(self._payload(reply))

    @_undoable
    def apply_batch_edit(self, reply: dict | str, base: Schema | None = None) -> Schema:
        """Merge an AI batch edit into the current schema.

        Args:
            reply: Parsed reply or raw reply text.
            base: Schema the request was made against (stale protection).
        """
        return ai_payload.merge_batch_edit(self._schema, self._payload(reply), base)

    def add_generated_table(
        self, reply: dict | str, origin: tuple[float, float] = (0.0, 0.0),
    ) -> Table | None:
        """Append the first table of an AI add-table reply.

        Existing tables are untouched. Returns None and records nothing
        when the reply holds no table.
        """
        table = ai_payload.table_from_generation(self._payload(reply), origin)
        if table is None:
            logger.warning("Add-table reply without a table ignored")
            return None
        schema = self._draft()
        schema.tables.append(table)
        self._commit(relationship_resolver.resolve_foreign_keys(schema))
        self.table_added.emit(table.id)
        return self._schema.find_table(table.id)

    def smart_column_prompt(self, table_id: str) -> str:
        """Prompt asking the assistant for one missing column of a table."""
        table = self._require_table(self._schema, table_id)
        return ai_payload.build_smart_column_prompt(table)

    def add_table_prompt(self, description: str) -> str:
        """Prompt asking the assistant for one new table beside the existing ones."""
        return ai_payload.build_add_table_prompt(self._schema, description)

    def apply_suggestion(
        self, suggestion: dict, origin: tuple[float, float] = (0.0, 0.0),
    ) -> bool:
        """Apply one audit suggestion. Returns False if it was not applicable."""
        schema, applied = ai_payload.apply_audit_suggestion(self._schema, suggestion, origin)
        if applied:
            self._commit(schema)
        return applied

    # ------------------------------------------------------------------
    # Baseline, audit, export
    # ------------------------------------------------------------------

    def mark_baseline(self) -> None:
        """Remember the current schema as the diff baseline."""
        self._baseline = clone_schema(self._schema)

    def diff_against_baseline(self) -> list[ChangeRecord]:
        return diff_schemas(self._baseline, self._schema)

    def audit(self, convention: str = DEFAULT_NAMING_CONVENTION) -> AuditReport:
        return audit_schema(self._schema, convention)

    def export(self, fmt: str) -> str:
        """Render the current schema (see ``vibedb.export.EXPORT_FORMATS``)."""
        return render_schema(self._schema, fmt)
