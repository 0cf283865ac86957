"""Force-directed layout engine — assigns canvas positions to tables.

Physics model (per iteration, per table A):
  - Repulsion from every other table, magnitude R / d (inverse distance,
    not inverse square), directed away from the other table.
  - Hooke spring along each resolved foreign key of A, magnitude
    (d - L) * k, pulling A only. The reverse pull on the target is
    produced when the target itself is processed.
  - Centering force -position * C toward the origin.
  - Per-axis displacement clamped to [-D, D].

Default update is sequential (Gauss-Seidel): each table sees the
positions already moved earlier in the same iteration, so the result
depends on table order. ``LayoutConfig.synchronous`` selects the
order-independent update (all forces from the same positions, applied
together).

Positions are held in a NumPy (n, 2) array; only ``x``/``y`` of the
returned schema differ from the input.

Reference: DESIGN.md — Layout Engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from vibedb.constants import (
    LAYOUT_CENTERING,
    LAYOUT_ITERATIONS,
    LAYOUT_MAX_DISPLACEMENT,
    LAYOUT_REPULSION,
    LAYOUT_SPRING_LENGTH,
    LAYOUT_SPRING_STIFFNESS,
)
from vibedb.core.serializers import clone_schema
from vibedb.models.schema import FkStatus, Schema


@dataclass
class LayoutConfig:
    """Tunable layout constants.

    Attributes:
        iterations: Number of simulation passes (N).
        repulsion: Repulsion coefficient (R).
        spring_length: Spring rest length (L).
        spring_stiffness: Spring coefficient applied to (d - L).
        centering: Centering coefficient (C).
        max_displacement: Per-axis displacement clamp (D).
        synchronous: Compute all forces before applying any.
    """
    iterations: int = LAYOUT_ITERATIONS
    repulsion: float = LAYOUT_REPULSION
    spring_length: float = LAYOUT_SPRING_LENGTH
    spring_stiffness: float = LAYOUT_SPRING_STIFFNESS
    centering: float = LAYOUT_CENTERING
    max_displacement: float = LAYOUT_MAX_DISPLACEMENT
    synchronous: bool = False


def _spring_targets(schema: Schema) -> list[list[int]]:
    """Per table, indices of tables reached by its resolved foreign keys.

    One entry per FK column (two FKs to the same table pull twice).
    Self references are dropped.
    """
    index_by_id = {t.id: i for i, t in enumerate(schema.tables)}
    targets: list[list[int]] = []
    for i, table in enumerate(schema.tables):
        row = []
        for col in table.columns:
            if not col.is_foreign_key or col.fk_status != FkStatus.RESOLVED:
                continue
            j = index_by_id.get(col.linked_table_id)
            if j is not None and j != i:
                row.append(j)
        targets.append(row)
    return targets


class ForceLayoutEngine:
    """Runs the force simulation over a schema.

    Args:
        config: Layout constants (defaults from ``vibedb.constants``).
    """

    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config or LayoutConfig()

    def run(
        self,
        schema: Schema,
        progress_callback: Callable[[int], None] | None = None,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> Schema:
        """Compute a layout.

        Args:
            schema: Input schema (not modified).
            progress_callback: Receives 0-100 after each iteration.
            is_cancelled: Polled once per iteration; a cancelled run
                returns an unchanged copy of the input.

        Returns:
            New schema with updated table positions.
        """
        result = clone_schema(schema)
        n = len(result.tables)
        if n == 0:
            return result

        positions = np.array(
            [[t.x, t.y] for t in result.tables], dtype=np.float64,
        )
        springs = _spring_targets(result)
        iterations = max(0, int(self.config.iterations))

        for it in range(iterations):
            if is_cancelled is not None and is_cancelled():
                return clone_schema(schema)
            if self.config.synchronous:
                self._step_synchronous(positions, springs)
            else:
                self._step_sequential(positions, springs)
            if progress_callback is not None:
                progress_callback(int((it + 1) * 100 / iterations))

        for table, (x, y) in zip(result.tables, positions):
            table.x = float(x)
            table.y = float(y)
        return result

    # ------------------------------------------------------------------
    # Iteration kernels
    # ------------------------------------------------------------------

    def _step_sequential(
        self, positions: NDArray[np.float64], springs: list[list[int]],
    ) -> None:
        for i in range(len(positions)):
            positions[i] += self._displacement(i, positions, springs[i])

    def _step_synchronous(
        self, positions: NDArray[np.float64], springs: list[list[int]],
    ) -> None:
        moves = np.array([
            self._displacement(i, positions, springs[i])
            for i in range(len(positions))
        ])
        positions += moves

    def _displacement(
        self,
        i: int,
        positions: NDArray[np.float64],
        targets: list[int],
    ) -> NDArray[np.float64]:
        """Clamped displacement of table i from its net force."""
        cfg = self.config
        here = positions[i]

        # Repulsion: R / d along the unit vector away from each other table
        delta = here - positions
        dist = np.hypot(delta[:, 0], delta[:, 1])
        dist[i] = 0.0
        safe = np.where(dist > 0.0, dist, 1.0)
        magnitude = np.where(dist > 0.0, cfg.repulsion / safe, 0.0)
        force = (delta / safe[:, None] * magnitude[:, None]).sum(axis=0)

        # Springs toward FK targets
        for j in targets:
            toward = positions[j] - here
            d = float(np.hypot(toward[0], toward[1]))
            if d == 0.0:
                continue
            force += toward / d * ((d - cfg.spring_length) * cfg.spring_stiffness)

        force -= here * cfg.centering
        return np.clip(force, -cfg.max_displacement, cfg.max_displacement)


def run_force_layout(schema: Schema, config: LayoutConfig | None = None) -> Schema:
    """Convenience wrapper: one layout run with the given config."""
    return ForceLayoutEngine(config).run(schema)
