"""Layout worker — background thread for the force-directed layout.

Runs ForceLayoutEngine off the UI thread. ``cancel()`` is polled once per
iteration; a cancelled run emits ``cancelled`` and no result.

Reference: DESIGN.md — Workers.
"""

from __future__ import annotations

from PyQt6.QtCore import QThread, pyqtSignal

from vibedb.core.layout_engine import ForceLayoutEngine, LayoutConfig
from vibedb.models.schema import Schema


class LayoutWorker(QThread):
    """Background thread for auto-layout.

    Signals:
        progress(int): 0-100%.
        result_ready(object): Laid-out Schema.
        cancelled(): Stopped before completion.
        error_occurred(str): Error message on failure.
    """

    progress = pyqtSignal(int)
    result_ready = pyqtSignal(object)  # Schema
    cancelled = pyqtSignal()
    error_occurred = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._schema: Schema | None = None
        self._config: LayoutConfig | None = None
        self._cancelled = False

    def setup(self, schema: Schema, config: LayoutConfig | None = None) -> None:
        """Configure layout input before starting."""
        self._schema = schema
        self._config = config
        self._cancelled = False

    def cancel(self) -> None:
        """Request graceful cancellation."""
        self._cancelled = True

    def _is_cancelled(self) -> bool:
        return self._cancelled or self.isInterruptionRequested()

    def run(self) -> None:
        """Execute the layout in background thread."""
        try:
            if self._schema is None:
                self.error_occurred.emit("No schema to lay out.")
                return

            engine = ForceLayoutEngine(self._config)
            result = engine.run(
                self._schema,
                progress_callback=lambda p: self.progress.emit(p),
                is_cancelled=self._is_cancelled,
            )

            if self._is_cancelled():
                self.cancelled.emit()
                return
            self.result_ready.emit(result)

        except Exception as e:
            self.error_occurred.emit(str(e))
