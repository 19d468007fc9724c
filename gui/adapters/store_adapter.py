"""Qt adapter for the board engine.

The engine owns persistence and sync. The GUI talks to this adapter and never
touches contexts from a worker thread.

Threading model
---------------
- `QtDispatcher` lives on the GUI thread. The container hands it view-context
  merges from whichever thread committed; a queued signal runs them on the
  GUI thread.
- Forced sync runs on the container's single background worker.
- A QTimer triggers forced sync periodically when a cloud folder is configured.
"""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, Qt, QTimer, Signal, Slot

from board_engine.board import BoardController
from board_engine.data_models import Dream
from board_engine.editor import EditorSession
from board_engine.store.container import PersistentContainer


class QtDispatcher(QObject):
    """Run callables on the thread that owns this object (the GUI thread)."""

    _requested = Signal(object)

    def __init__(self) -> None:
        super().__init__()
        self._requested.connect(self._run, type=Qt.ConnectionType.QueuedConnection)

    def dispatch(self, fn: Callable[[], None]) -> None:
        """Queue `fn` for execution on the GUI thread. Callable from any thread."""
        self._requested.emit(fn)

    @Slot(object)
    def _run(self, fn: object) -> None:
        assert callable(fn)
        fn()


class BoardAdapter(QObject):
    """Qt adapter that exposes board actions and change notifications as signals."""

    dreams_changed = Signal(object)  # list[Dream]

    def __init__(self, container: PersistentContainer, *, sync_interval_seconds: int = 0) -> None:
        super().__init__()
        self._container = container
        self._controller = BoardController(container)
        self._subscription = self._controller.query.subscribe(self.dreams_changed.emit)

        self._timer = QTimer(self)
        self._timer.timeout.connect(self.force_sync)
        if container.sync_enabled and sync_interval_seconds > 0:
            self._timer.start(sync_interval_seconds * 1000)

    @property
    def dreams(self) -> list[Dream]:
        return self._controller.dreams

    @property
    def sync_enabled(self) -> bool:
        return self._container.sync_enabled

    def create_dream(self) -> EditorSession:
        return self._controller.create_dream()

    def edit_dream(self, dream: Dream) -> EditorSession:
        return self._controller.edit_dream(dream)

    def delete_dream(self, dream: Dream) -> None:
        self._controller.delete_dream(dream)

    def refresh(self) -> None:
        """Re-run the board query and emit `dreams_changed`."""
        self._controller.query.refresh()

    @Slot()
    def force_sync(self) -> None:
        self._controller.force_sync()

    def shutdown(self) -> None:
        """Stop the timer, detach from the store, and close the container."""
        self._timer.stop()
        self._subscription.unsubscribe()
        self._controller.close()
        self._container.close()
