"""Serialization utilities — dataclass ↔ JSON-safe dict conversion.

Dict keys use the camelCase wire shape shared with schema documents and
AI payloads (``isForeignKey``, ``linkedTableId``, ``fkStatus``...).
Deserialization is defensive: payloads may come from an untrusted text
model, so missing ids are generated and missing arrays defaulted.

Used by HistoryManager (snapshots), JsonExporter and ai_payload.

Reference: DESIGN.md — Serialization.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from typing import Any

from vibedb.constants import DEFAULT_LINKED_COLUMN, SCHEMA_FORMAT_VERSION
from vibedb.models.schema import (
    Column,
    ColumnType,
    Constraint,
    ConstraintType,
    FkStatus,
    Index,
    Schema,
    Table,
    new_id,
)

logger = logging.getLogger(__name__)


# =====================================================================
# Generic helpers
# =====================================================================


def _wire_key(name: str) -> str:
    """snake_case field name -> camelCase wire key."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize_value(val: Any) -> Any:
    """Convert a value to a JSON-safe type."""
    if val is None:
        return None
    if isinstance(val, Enum):
        return val.value
    if dataclasses.is_dataclass(val) and not isinstance(val, type):
        return _dataclass_to_dict(val)
    if isinstance(val, list):
        return [_serialize_value(v) for v in val]
    if isinstance(val, (int, float, str, bool)):
        return val
    return str(val)


def _dataclass_to_dict(obj: Any) -> dict:
    """Recursively convert a dataclass to a JSON-safe dict."""
    result = {}
    for f in dataclasses.fields(obj):
        val = getattr(obj, f.name)
        result[_wire_key(f.name)] = _serialize_value(val)
    return result


def _get(d: dict, name: str, default: Any = None) -> Any:
    """Read a field by wire key, falling back to the snake_case name."""
    key = _wire_key(name)
    if key in d:
        return d[key]
    return d.get(name, default)


def _as_list(val: Any) -> list:
    return val if isinstance(val, list) else []


def _as_float(val: Any, default: float = 0.0) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def _as_text(val: Any, default: str = "") -> str:
    if val is None:
        return default
    return str(val)


# =====================================================================
# Schema serialization
# =====================================================================


def schema_to_dict(schema: Schema) -> dict:
    """Serialize a Schema to a JSON-safe dict (fully independent copy).

    Args:
        schema: The schema to serialize.

    Returns:
        ``{"tables": [...]}`` in wire shape.
    """
    return _dataclass_to_dict(schema)


def column_to_dict(col: Column) -> dict:
    """Serialize one Column to its wire dict."""
    return _dataclass_to_dict(col)


def schema_to_document(schema: Schema) -> dict:
    """Schema dict with the document format version embedded."""
    d = schema_to_dict(schema)
    d["schemaVersion"] = SCHEMA_FORMAT_VERSION
    return d


def dict_to_schema(data: dict) -> Schema:
    """Deserialize a dict to a Schema.

    Accepts both camelCase and snake_case keys. Non-dict table or column
    entries are dropped.

    Args:
        data: JSON-parsed dict.

    Returns:
        Reconstructed Schema.
    """
    if not isinstance(data, dict):
        return Schema()
    tables = []
    for raw in _as_list(data.get("tables")):
        if not isinstance(raw, dict):
            logger.debug("Dropping non-object table entry: %r", raw)
            continue
        tables.append(dict_to_table(raw))
    return Schema(tables=tables)


def dict_to_table(d: dict) -> Table:
    columns = [
        dict_to_column(c) for c in _as_list(d.get("columns"))
        if isinstance(c, dict)
    ]
    return Table(
        id=_as_text(d.get("id")) or new_id(),
        name=_as_text(d.get("name"), "new_table"),
        columns=columns,
        x=_as_float(d.get("x")),
        y=_as_float(d.get("y")),
        indexes=[
            _dict_to_index(i) for i in _as_list(d.get("indexes"))
            if isinstance(i, dict)
        ],
        description=_as_text(d.get("description")),
    )


def dict_to_column(d: dict) -> Column:
    is_fk = bool(_get(d, "is_foreign_key", False))
    status_raw = _get(d, "fk_status")
    try:
        fk_status = FkStatus(status_raw) if status_raw else FkStatus.RESOLVED
    except ValueError:
        fk_status = FkStatus.UNRESOLVED if is_fk else FkStatus.RESOLVED
    linked_table_id = _get(d, "linked_table_id")
    linked_table = _get(d, "linked_table")
    return Column(
        id=_as_text(d.get("id")) or new_id(),
        name=_as_text(d.get("name"), "new_col"),
        type=ColumnType.coerce(d.get("type", "varchar")),
        is_foreign_key=is_fk,
        linked_table_id=_as_text(linked_table_id) or None,
        linked_table=_as_text(linked_table) or None,
        linked_column=_as_text(_get(d, "linked_column")) or DEFAULT_LINKED_COLUMN,
        fk_status=fk_status,
        constraints=_dict_to_constraints(d.get("constraints")),
        description=_as_text(d.get("description")),
    )


def _dict_to_constraints(raw: Any) -> list[Constraint]:
    constraints = []
    for item in _as_list(raw):
        if isinstance(item, str):
            item = {"type": item}
        if not isinstance(item, dict):
            continue
        try:
            ctype = ConstraintType(item.get("type"))
        except ValueError:
            logger.debug("Dropping unknown constraint type: %r", item.get("type"))
            continue
        value = item.get("value")
        constraints.append(Constraint(
            type=ctype,
            value=None if value is None else str(value),
        ))
    return constraints


def _dict_to_index(d: dict) -> Index:
    return Index(
        name=_as_text(d.get("name")),
        columns=[str(c) for c in _as_list(d.get("columns"))],
        type=_as_text(d.get("type"), "btree") or "btree",
        unique=bool(d.get("unique", False)),
    )


def clone_schema(schema: Schema) -> Schema:
    """Deep copy through the dict form."""
    return dict_to_schema(schema_to_dict(schema))
