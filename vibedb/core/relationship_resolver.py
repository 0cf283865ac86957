"""Relationship resolver — foreign-key inference, manual linking, resolution.

Three concerns:
  - Auto-inference ("magic link"): ``<name>_id`` columns become foreign
    keys to the table called ``<name>`` or ``<name>s``.
  - Manual linking ("connection mode"): a two-step source → target
    protocol that rejects links within a single table.
  - Resolution: recompute ``fk_status`` for every foreign key from the
    tables that actually exist.

All operations are pure: they return a new Schema and leave the input
untouched.

Reference: DESIGN.md — Relationship Resolver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vibedb.constants import DEFAULT_LINKED_COLUMN
from vibedb.core.serializers import clone_schema
from vibedb.models.schema import Column, FkStatus, Schema, Table

logger = logging.getLogger(__name__)

FK_SUFFIX = "_id"


class SelfLinkError(ValueError):
    """Raised when a connection is completed on the source column's own table."""


# =====================================================================
# Resolution
# =====================================================================


def _find_target(schema: Schema, col: Column) -> Table | None:
    target = schema.find_table(col.linked_table_id)
    if target is None:
        target = schema.find_table_by_name(col.linked_table)
    return target


def fk_status_for(schema: Schema, col: Column) -> FkStatus:
    """Resolution state of a column against ``schema`` (no mutation)."""
    if not col.is_foreign_key:
        return FkStatus.RESOLVED
    target = _find_target(schema, col)
    if target is None:
        return FkStatus.UNRESOLVED
    wanted = (col.linked_column or DEFAULT_LINKED_COLUMN).lower()
    if any(c.name.lower() == wanted for c in target.columns):
        return FkStatus.RESOLVED
    return FkStatus.UNRESOLVED


def resolve_foreign_keys(schema: Schema) -> Schema:
    """Recompute link ids, names and ``fk_status`` for every foreign key.

    A reference is matched by ``linked_table_id`` first, then by
    ``linked_table`` name (case-insensitive). Matched references get the
    target's current id and name; unmatched ones lose their stale id and
    keep the name so a later import can resolve them.
    """
    result = clone_schema(schema)
    for table in result.tables:
        for col in table.columns:
            if not col.is_foreign_key:
                col.fk_status = FkStatus.RESOLVED
                continue
            target = _find_target(result, col)
            if target is None:
                col.linked_table_id = None
            else:
                col.linked_table_id = target.id
                col.linked_table = target.name
            col.fk_status = fk_status_for(result, col)
    return result


def rename_table(schema: Schema, table_id: str, new_name: str) -> Schema:
    """Rename a table and propagate ``linked_table`` to its referrers.

    Raises:
        KeyError: If the table does not exist.
    """
    result = clone_schema(schema)
    table = result.find_table(table_id)
    if table is None:
        raise KeyError(f"Table not found: {table_id}")
    table.name = new_name
    for other in result.tables:
        for col in other.columns:
            if col.is_foreign_key and col.linked_table_id == table_id:
                col.linked_table = new_name
    return result


# =====================================================================
# Auto-inference
# =====================================================================


@dataclass
class InferenceResult:
    """Outcome of a magic-link pass.

    Attributes:
        schema: Schema with the new links applied.
        count: Number of newly created links.
        ambiguous: Lookup keys claimed by more than one table, mapped to
            the claiming table names in schema order (the last one wins).
    """
    schema: Schema
    count: int = 0
    ambiguous: dict[str, list[str]] = field(default_factory=dict)


def _build_name_map(schema: Schema) -> tuple[dict[str, str], dict[str, list[str]]]:
    name_map: dict[str, str] = {}
    claims: dict[str, list[str]] = {}
    for table in schema.tables:
        base = table.name.lower()
        for key in (base, base + "s"):
            owners = claims.setdefault(key, [])
            if table.name not in owners:
                owners.append(table.name)
            name_map[key] = table.id
    ambiguous = {k: v for k, v in claims.items() if len(v) > 1}
    return name_map, ambiguous


def infer_foreign_keys(schema: Schema) -> InferenceResult:
    """Link ``<name>_id`` columns to matching tables by naming convention.

    For every non-FK column ending in ``_id``, the stripped stem is
    looked up (case-insensitive) among table names and their ``+s``
    plurals, first as written and then with an ``s`` appended, so both
    ``user_id -> users`` and ``user_id -> user`` link. Self links are
    never created. Links point at the target's ``id`` column.
    """
    result = clone_schema(schema)
    name_map, ambiguous = _build_name_map(result)
    if ambiguous:
        logger.warning(
            "Ambiguous table names for relationship inference: %s",
            ", ".join(f"{k} -> {'/'.join(v)}" for k, v in sorted(ambiguous.items())),
        )

    count = 0
    for table in result.tables:
        for col in table.columns:
            if col.is_foreign_key or not col.name.endswith(FK_SUFFIX):
                continue
            stem = col.name[:-len(FK_SUFFIX)].lower()
            target_id = name_map.get(stem) or name_map.get(stem + "s")
            if target_id is None or target_id == table.id:
                continue
            target = result.find_table(target_id)
            col.is_foreign_key = True
            col.linked_table_id = target.id
            col.linked_table = target.name
            col.linked_column = DEFAULT_LINKED_COLUMN
            col.fk_status = fk_status_for(result, col)
            count += 1

    logger.info("Inferred %d relationship(s)", count)
    return InferenceResult(schema=result, count=count, ambiguous=ambiguous)


# =====================================================================
# Manual linking
# =====================================================================


def _require_column(schema: Schema, table_id: str, column_id: str) -> tuple[Table, Column]:
    table = schema.find_table(table_id)
    if table is None:
        raise KeyError(f"Table not found: {table_id}")
    col = table.find_column(column_id)
    if col is None:
        raise KeyError(f"Column not found: {table.name}.{column_id}")
    return table, col


def link_columns(
    schema: Schema,
    source_table_id: str,
    source_column_id: str,
    target_table_id: str,
    target_column_id: str,
) -> Schema:
    """Make the source column a resolved foreign key to the target column.

    Raises:
        SelfLinkError: If source and target are on the same table.
        KeyError: If a table or column id does not exist.
    """
    if source_table_id == target_table_id:
        raise SelfLinkError("Cannot link a column to its own table")
    result = clone_schema(schema)
    _, source = _require_column(result, source_table_id, source_column_id)
    target_table, target = _require_column(result, target_table_id, target_column_id)
    source.is_foreign_key = True
    source.linked_table_id = target_table.id
    source.linked_table = target_table.name
    source.linked_column = target.name
    source.fk_status = FkStatus.RESOLVED
    return result


def unlink_column(schema: Schema, table_id: str, column_id: str) -> Schema:
    """Clear the foreign-key reference of a column."""
    result = clone_schema(schema)
    _, col = _require_column(result, table_id, column_id)
    col.is_foreign_key = False
    col.linked_table_id = None
    col.linked_table = None
    col.linked_column = DEFAULT_LINKED_COLUMN
    col.fk_status = FkStatus.RESOLVED
    return result


class ConnectionSession:
    """Two-click manual linking protocol.

    ``start`` selects the source column; ``complete`` links it to a target
    column on a different table and ends the session. A rejected
    completion keeps the session active so the user can pick another
    target or ``cancel``.
    """

    def __init__(self) -> None:
        self._source: tuple[str, str] | None = None

    @property
    def is_active(self) -> bool:
        return self._source is not None

    @property
    def source(self) -> tuple[str, str] | None:
        """(table_id, column_id) of the pending source, if any."""
        return self._source

    def start(self, table_id: str, column_id: str) -> None:
        self._source = (table_id, column_id)

    def cancel(self) -> None:
        self._source = None

    def complete(self, schema: Schema, table_id: str, column_id: str) -> Schema:
        """Finish the connection.

        Returns:
            New schema with the link applied.

        Raises:
            RuntimeError: If no connection was started.
            SelfLinkError: If the target is on the source table.
        """
        if self._source is None:
            raise RuntimeError("No connection in progress")
        source_table_id, source_column_id = self._source
        result = link_columns(
            schema, source_table_id, source_column_id, table_id, column_id,
        )
        self._source = None
        return result
