"""AI payload reconciliation — untrusted model output → Schema.

The AI collaborator is an injected black box (``SchemaAssistant``). Its
replies are JSON text from a language model and may be wrapped in
markdown fences, miss arrays or ids, or be malformed outright. This
module turns them into schemas:

  - full generation: ``{"tables": [...]}`` → new Schema on a grid;
  - batch edit: full replacement merged into the local schema by id,
    then by name, keeping local ids, positions and any field the reply
    leaves out;
  - single-column and audit suggestions.

Reference: DESIGN.md — AI Payloads.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Protocol

from vibedb.constants import GRID_COLUMNS, GRID_MARGIN, GRID_SPACING, NEW_TABLE_OFFSET
from vibedb.core.relationship_resolver import resolve_foreign_keys
from vibedb.core.serializers import clone_schema, dict_to_column, dict_to_table
from vibedb.models.schema import Column, ColumnType, Index, Schema, Table, new_id

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|sql)?\n?")


class AIPayloadError(ValueError):
    """The AI reply could not be interpreted."""


class RequestKind(Enum):
    GENERATE_SCHEMA = "generate-schema"
    BATCH_COMMAND = "batch-command"
    SMART_ADD_COLUMN = "smart-add-column"
    INSPECT_SCHEMA = "inspect-schema"
    GENERATE_QUERY = "generate-query"
    GENERATE_SQL = "generate-sql"
    GENERATE_MOCK_DATA = "generate-mock-data"


class SchemaAssistant(Protocol):
    """AI collaborator: returns raw model text for a request."""

    def complete(self, kind: RequestKind, prompt: str, context: str | None = None) -> str:
        ...


# =====================================================================
# Parsing
# =====================================================================


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_ai_result(text: str) -> dict:
    """Parse an AI reply into a JSON object.

    Raises:
        AIPayloadError: If the reply is not a JSON object.
    """
    cleaned = strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise AIPayloadError(
            "AI returned invalid data. Try a simpler command."
        ) from exc
    if not isinstance(data, dict):
        raise AIPayloadError("AI reply is not a JSON object")
    return data


def _raw_tables(payload: dict) -> list[dict]:
    tables = payload.get("tables") if isinstance(payload, dict) else None
    if not isinstance(tables, list):
        return []
    return [t for t in tables if isinstance(t, dict)]


def _grid_position(slot: int) -> tuple[float, float]:
    return (
        GRID_MARGIN + (slot % GRID_COLUMNS) * GRID_SPACING,
        GRID_MARGIN + (slot // GRID_COLUMNS) * GRID_SPACING,
    )


def _dedupe_column_ids(table: Table) -> None:
    seen: set[str] = set()
    for col in table.columns:
        if col.id in seen:
            col.id = new_id()
        seen.add(col.id)


# =====================================================================
# Full generation
# =====================================================================


def schema_from_generation(payload: dict) -> Schema:
    """Build a fresh Schema from a ``{"tables": [...]}`` reply.

    Tables are placed on the 3-column grid in reply order; duplicate or
    missing ids are replaced; foreign keys are resolved by name.
    """
    seen: set[str] = set()
    tables = []
    for slot, raw in enumerate(_raw_tables(payload)):
        table = dict_to_table(raw)
        if table.id in seen:
            table.id = new_id()
        seen.add(table.id)
        _dedupe_column_ids(table)
        table.x, table.y = _grid_position(slot)
        tables.append(table)
    logger.info("AI generation produced %d table(s)", len(tables))
    return resolve_foreign_keys(Schema(tables))


def table_from_generation(
    payload: dict,
    origin: tuple[float, float] = (0.0, 0.0),
) -> Table | None:
    """First table of a ``{"tables": [...]}`` reply, ready to append.

    The table and its columns always get fresh ids so the result can
    never collide with a local table. It is placed at ``origin`` plus
    the new-table offset. Returns None when the reply has no table.
    """
    raw_tables = _raw_tables(payload)
    if not raw_tables:
        return None
    table = dict_to_table(raw_tables[0])
    table.id = new_id()
    for col in table.columns:
        col.id = new_id()
    table.x = origin[0] + NEW_TABLE_OFFSET
    table.y = origin[1] + NEW_TABLE_OFFSET
    return table


# =====================================================================
# Batch edit merge
# =====================================================================


def _omitted(raw: dict, *keys: str) -> bool:
    return not any(k in raw for k in keys)


def _merge_column(raw: dict, local: Column | None) -> Column:
    col = dict_to_column(raw)
    if local is None:
        return col
    col.id = local.id
    if _omitted(raw, "name"):
        col.name = local.name
    if _omitted(raw, "type"):
        col.type = local.type
    if _omitted(raw, "constraints"):
        col.constraints = list(local.constraints)
    if _omitted(raw, "description"):
        col.description = local.description
    if _omitted(raw, "isForeignKey", "is_foreign_key"):
        col.is_foreign_key = local.is_foreign_key
    if _omitted(raw, "linkedTable", "linked_table"):
        col.linked_table = local.linked_table
    if _omitted(raw, "linkedColumn", "linked_column"):
        col.linked_column = local.linked_column
    if _omitted(raw, "fkStatus", "fk_status"):
        col.fk_status = local.fk_status
    if _omitted(raw, "linkedTableId", "linked_table_id"):
        col.linked_table_id = local.linked_table_id if col.is_foreign_key else None
    return col


def _merge_table(raw: dict, local: Table) -> Table:
    table = dict_to_table({**raw, "columns": []})
    table.id = local.id
    table.x, table.y = local.x, local.y
    if _omitted(raw, "name"):
        table.name = local.name
    if _omitted(raw, "indexes"):
        table.indexes = list(local.indexes)
    if _omitted(raw, "description"):
        table.description = local.description

    raw_columns = raw.get("columns")
    if not isinstance(raw_columns, list):
        table.columns = clone_schema(Schema([local])).tables[0].columns
        return table

    used: set[str] = set()
    for raw_col in raw_columns:
        if not isinstance(raw_col, dict):
            continue
        match = local.find_column(str(raw_col.get("id") or ""))
        if match is None or match.id in used:
            match = local.find_column_by_name(str(raw_col.get("name") or ""))
        if match is not None and match.id in used:
            match = None
        col = _merge_column(raw_col, match)
        if match is None and (col.id in used or local.find_column(col.id)):
            col.id = new_id()
        used.add(col.id)
        table.columns.append(col)
    return table


def merge_batch_edit(
    current: Schema,
    payload: dict,
    base: Schema | None = None,
) -> Schema:
    """Merge a batch-edit reply (full replacement) into ``current``.

    Proposed tables are matched to local ones by id first, then by name
    (case-insensitive). Matched tables and columns keep their local ids
    and positions. Unmatched tables get fresh grid slots after the local
    tables.

    Args:
        current: Local schema at the time the reply is applied.
        payload: Parsed AI reply.
        base: Schema the request was made against. Local tables created
            after it and absent from the reply are kept.

    Returns:
        Merged schema with foreign keys re-resolved.
    """
    tables: list[Table] = []
    used: set[str] = set()
    new_slot = len(current.tables)

    for raw in _raw_tables(payload):
        local = current.find_table(str(raw.get("id") or ""))
        if local is None or local.id in used:
            local = current.find_table_by_name(str(raw.get("name") or ""))
        if local is not None and local.id in used:
            local = None

        if local is not None:
            table = _merge_table(raw, local)
        else:
            table = dict_to_table(raw)
            if table.id in used or current.find_table(table.id) is not None:
                table.id = new_id()
            _dedupe_column_ids(table)
            table.x, table.y = _grid_position(new_slot)
            new_slot += 1
        used.add(table.id)
        tables.append(table)

    if base is not None:
        kept = [
            t for t in current.tables
            if t.id not in used and base.find_table(t.id) is None
        ]
        if kept:
            logger.warning(
                "Stale batch edit: keeping %d table(s) created after the request",
                len(kept),
            )
            tables.extend(clone_schema(Schema(kept)).tables)

    logger.info(
        "Batch edit merged: %d table(s) (%d local before)",
        len(tables), len(current.tables),
    )
    return resolve_foreign_keys(Schema(tables))


# =====================================================================
# Suggestions
# =====================================================================


def column_from_suggestion(payload: dict) -> Column | None:
    """Column from a ``{name, type, description}`` reply (None if nameless)."""
    if not isinstance(payload, dict) or not payload.get("name"):
        return None
    return Column(
        name=str(payload["name"]),
        type=ColumnType.coerce(payload.get("type") or "varchar"),
        description=str(payload.get("description") or ""),
    )


def apply_audit_suggestion(
    schema: Schema,
    suggestion: dict,
    origin: tuple[float, float] = (0.0, 0.0),
) -> tuple[Schema, bool]:
    """Apply an ``add_column`` / ``add_table`` / ``add_index`` suggestion.

    Returns:
        (schema, applied). Unknown or incomplete suggestions return the
        input unchanged with ``applied`` False.
    """
    kind = suggestion.get("type") if isinstance(suggestion, dict) else None
    payload = suggestion.get("payload") if isinstance(suggestion, dict) else None
    if not isinstance(payload, dict):
        return schema, False

    result = clone_schema(schema)
    if kind in ("add_column", "add_index"):
        table = result.find_table_by_name(suggestion.get("target_table"))
        if table is None:
            return schema, False
        if kind == "add_column":
            table.columns.append(Column(
                name=str(payload.get("name") or "new_column"),
                type=ColumnType.coerce(payload.get("type") or "varchar"),
                description=str(
                    payload.get("description") or suggestion.get("reason") or ""
                ),
            ))
        else:
            columns = [str(c) for c in payload.get("columns") or []]
            if not columns:
                return schema, False
            table.indexes.append(Index(
                name=str(payload.get("name") or f"idx_{table.name}_{'_'.join(columns)}"),
                columns=columns,
                unique=bool(payload.get("unique", False)),
            ))
    elif kind == "add_table":
        table = dict_to_table({
            "name": payload.get("name") or "new_table",
            "columns": payload.get("columns") or [],
        })
        _dedupe_column_ids(table)
        table.x = origin[0] + NEW_TABLE_OFFSET
        table.y = origin[1] + NEW_TABLE_OFFSET
        result.tables.append(table)
    else:
        return schema, False
    return resolve_foreign_keys(result), True


# =====================================================================
# Request context
# =====================================================================


def build_batch_context(schema: Schema) -> str:
    """JSON schema context sent with a batch command (no positions)."""
    return json.dumps([
        {
            "id": t.id,
            "name": t.name,
            "columns": [
                {
                    "name": c.name,
                    "type": c.type.value,
                    "id": c.id,
                    "isForeignKey": c.is_foreign_key,
                    "linkedTable": c.linked_table,
                    "linkedColumn": c.linked_column,
                }
                for c in t.columns
            ],
        }
        for t in schema.tables
    ])


def build_query_context(schema: Schema) -> str:
    """``table(col:type, ...)`` lines for query generation."""
    return "\n".join(
        f"{t.name}({', '.join(f'{c.name}:{c.type.value}' for c in t.columns)})"
        for t in schema.tables
    )


def build_smart_column_prompt(table: Table) -> str:
    names = ", ".join(c.name for c in table.columns)
    return f'Table "{table.name}" with columns: [{names}]. Suggest ONE missing column.'


def build_add_table_prompt(schema: Schema, description: str) -> str:
    names = ", ".join(t.name for t in schema.tables)
    return (
        f'Existing tables: [{names}]. Generate 1 new table for: "{description}". '
        'Return JSON with "tables" key containing exactly 1 table.'
    )


def request_payload(
    assistant: SchemaAssistant, kind: RequestKind, prompt: str, context: str | None = None,
) -> dict:
    """Call the assistant and parse its reply as a JSON object."""
    return parse_ai_result(assistant.complete(kind, prompt, context))
