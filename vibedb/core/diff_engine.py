"""Schema diff engine — structural comparison of two snapshots.

Tables and columns are matched by id, never by name, so a renamed column
is reported as modified instead of a remove + add pair. Only columns are
compared field by field; table attributes (name, position, indexes) are
not reported.

Record order: for each table of ``current`` in list order, an ``added``
table record or that table's column records (added / modified in column
order, then removed in base column order); then ``removed`` records for
tables missing from ``current``, in base order.

Reference: DESIGN.md — Diff Engine.
"""

from __future__ import annotations

from collections import Counter

from vibedb.core.serializers import column_to_dict
from vibedb.models.diff import ChangeRecord, ChangeType
from vibedb.models.schema import Column, Schema, Table


def _column_fields(col: Column) -> dict:
    return column_to_dict(col)


def _changed_fields(old: Column, new: Column) -> list[str]:
    before = _column_fields(old)
    after = _column_fields(new)
    return [key for key in after if before.get(key) != after[key]]


def _diff_columns(base: Table, current: Table) -> list[ChangeRecord]:
    changes: list[ChangeRecord] = []
    base_ids = {c.id for c in base.columns}
    current_ids = {c.id for c in current.columns}

    for col in current.columns:
        path = f"{current.name}.{col.name}"
        if col.id not in base_ids:
            changes.append(ChangeRecord(
                type=ChangeType.ADDED,
                target=path,
                details=f"Column {path} ({col.type.value}) added",
            ))
            continue
        old = base.find_column(col.id)
        fields = _changed_fields(old, col)
        if fields:
            details = f"Column {path} changed: {', '.join(fields)}"
            if old.name != col.name:
                details += f" (renamed from {old.name})"
            changes.append(ChangeRecord(
                type=ChangeType.MODIFIED,
                target=path,
                details=details,
                fields=fields,
            ))

    for col in base.columns:
        if col.id not in current_ids:
            path = f"{current.name}.{col.name}"
            changes.append(ChangeRecord(
                type=ChangeType.REMOVED,
                target=path,
                details=f"Column {path} removed",
                breaking=True,
            ))
    return changes


def diff_schemas(base: Schema | None, current: Schema) -> list[ChangeRecord]:
    """Compare two snapshots.

    Args:
        base: Baseline snapshot, or None when no baseline exists.
        current: Snapshot to compare against the baseline.

    Returns:
        Ordered change records; empty when nothing changed or when
        ``base`` is None.
    """
    if base is None:
        return []

    changes: list[ChangeRecord] = []
    for table in current.tables:
        old = base.find_table(table.id)
        if old is None:
            changes.append(ChangeRecord(
                type=ChangeType.ADDED,
                target=table.name,
                details=f"Table {table.name} added with {len(table.columns)} column(s)",
            ))
            continue
        changes.extend(_diff_columns(old, table))

    current_ids = set(current.table_ids)
    for table in base.tables:
        if table.id not in current_ids:
            changes.append(ChangeRecord(
                type=ChangeType.REMOVED,
                target=table.name,
                details=f"Table {table.name} removed",
                breaking=True,
            ))
    return changes


def summarize_changes(changes: list[ChangeRecord]) -> dict[str, int]:
    """Counts per change type plus ``breaking``."""
    counts = Counter(c.type.value for c in changes)
    summary = {t.value: counts.get(t.value, 0) for t in ChangeType}
    summary["breaking"] = sum(1 for c in changes if c.breaking)
    return summary
