"""History manager — linear snapshot-based undo/redo for the schema.

Stores serialized schema snapshots (dicts) in a single list with a
current index. Every push stores an independent deep copy, so later
mutation of a live Schema never alters a past snapshot.
Pure Python class (no Qt dependency).

Reference: DESIGN.md — History Manager.
"""

from __future__ import annotations

from typing import Any

from vibedb.core.serializers import dict_to_schema, schema_to_dict
from vibedb.models.schema import Schema


class HistoryManager:
    """Linear snapshot history.

    Usage::

        history = HistoryManager(Schema())
        history.push(edited_schema)     # After mutation
        previous = history.undo()       # Step back
        again = history.redo()          # Step forward

    Args:
        initial: Schema at index 0 (empty schema if omitted).
        max_levels: Optional bound on stored snapshots; the oldest is
            dropped when exceeded. None = unbounded.
    """

    def __init__(
        self,
        initial: Schema | None = None,
        max_levels: int | None = None,
    ) -> None:
        self._snapshots: list[dict[str, Any]] = [
            schema_to_dict(initial if initial is not None else Schema())
        ]
        self._index = 0
        self._max_levels = max_levels

    @property
    def index(self) -> int:
        return self._index

    @property
    def snapshot_count(self) -> int:
        return len(self._snapshots)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def push(self, next_schema: Schema) -> None:
        """Record a new snapshot. Discards redo history.

        Args:
            next_schema: Schema after the mutation (copied, not referenced).
        """
        del self._snapshots[self._index + 1:]
        self._snapshots.append(schema_to_dict(next_schema))
        if self._max_levels is not None and len(self._snapshots) > self._max_levels:
            del self._snapshots[0]  # Drop oldest
        self._index = len(self._snapshots) - 1

    def undo(self) -> Schema:
        """Step back one snapshot (no-op at the start).

        Returns:
            The snapshot now current.
        """
        self._index = max(0, self._index - 1)
        return self.current()

    def redo(self) -> Schema:
        """Step forward one snapshot (no-op at the end).

        Returns:
            The snapshot now current.
        """
        self._index = min(len(self._snapshots) - 1, self._index + 1)
        return self.current()

    def current(self) -> Schema:
        """Fresh Schema rebuilt from the snapshot at the current index."""
        return dict_to_schema(self._snapshots[self._index])

    def clear(self, initial: Schema | None = None) -> None:
        """Reset to a single snapshot (e.g., on new document load)."""
        self._snapshots = [
            schema_to_dict(initial if initial is not None else Schema())
        ]
        self._index = 0
