"""AI request worker — background thread for SchemaAssistant calls.

The assistant is injected; the worker only runs it off the UI thread and
parses the reply. Reconciliation with the live schema happens on the UI
side (SchemaController.apply_*), against the schema current at that
time.

Reference: DESIGN.md — Workers.
"""

from __future__ import annotations

from PyQt6.QtCore import QThread, pyqtSignal

from vibedb.core.ai_payload import RequestKind, SchemaAssistant, parse_ai_result


class AIRequestWorker(QThread):
    """Background thread for one assistant request.

    Signals:
        result_ready(object): Parsed reply (dict).
        error_occurred(str): Transport failure or unparseable reply.
    """

    result_ready = pyqtSignal(object)  # dict
    error_occurred = pyqtSignal(str)

    def __init__(self, assistant: SchemaAssistant, parent=None):
        super().__init__(parent)
        self._assistant = assistant
        self._kind: RequestKind | None = None
        self._prompt: str = ""
        self._context: str | None = None

    def setup(
        self,
        kind: RequestKind,
        prompt: str,
        context: str | None = None,
    ) -> None:
        """Configure the request before starting."""
        self._kind = kind
        self._prompt = prompt
        self._context = context

    def run(self) -> None:
        """Execute the request in background thread."""
        try:
            if self._kind is None:
                self.error_occurred.emit("No request configured.")
                return

            reply = self._assistant.complete(self._kind, self._prompt, self._context)
            self.result_ready.emit(parse_ai_result(reply))

        except Exception as e:
            self.error_occurred.emit(str(e))
