"""Change records produced by the schema diff engine.

Lightweight dataclasses — no schema data is held by reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ChangeType(Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class ChangeRecord:
    """Single structural difference between two snapshots.

    Attributes:
        type: Kind of change.
        target: ``"table"`` name or ``"table.column"`` path.
        details: Human-readable description.
        breaking: True for removed tables and columns.
        fields: Names of changed column fields (MODIFIED only).
    """
    type: ChangeType
    target: str
    details: str = ""
    breaking: bool = False
    fields: list[str] = field(default_factory=list)

    @property
    def is_column_change(self) -> bool:
        return "." in self.target
