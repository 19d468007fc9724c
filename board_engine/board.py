"""
Board controller: the data side of the grid view.

Holds a live, title-sorted query against the view context and dispatches the
grid's create, edit, and delete actions.
"""

from __future__ import annotations

import logging
from typing import Callable

from .data_models import ChangeNotification, Dream
from .editor import EditorSession
from .store.container import PersistentContainer
from .store.context import ObjectContext
from .store.notifications import NotificationCenter, Subscription

logger = logging.getLogger(__name__)


class LiveQuery:
    """
    All Dreams visible in a context, sorted by title, kept current.

    The result list is re-evaluated on every context notification and
    delivered to subscribers. Call `close` to stop observing.
    """

    def __init__(self, context: ObjectContext) -> None:
        self._context = context
        self._results: list[Dream] = context.fetch_dreams()
        self._listeners: NotificationCenter[list[Dream]] = NotificationCenter("live-query")
        self._subscription: Subscription[ChangeNotification] | None = context.subscribe(self._on_change)

    @property
    def results(self) -> list[Dream]:
        return list(self._results)

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    def titles(self) -> list[str]:
        return [d.title for d in self._results]

    def subscribe(self, callback: Callable[[list[Dream]], None]) -> Subscription[list[Dream]]:
        return self._listeners.subscribe(callback)

    def refresh(self) -> list[Dream]:
        self._results = self._context.fetch_dreams()
        self._listeners.post(list(self._results))
        return self.results

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()

    def _on_change(self, _notification: ChangeNotification) -> None:
        self.refresh()


class BoardController:
    """
    Grid actions over a container's view context.

    Parameters
    ----------
    container:
        Opened container. The controller does not own or close it.
    """

    def __init__(self, container: PersistentContainer) -> None:
        self._container = container
        self.query = LiveQuery(container.view_context)

    @property
    def context(self) -> ObjectContext:
        return self._container.view_context

    @property
    def dreams(self) -> list[Dream]:
        return self.query.results

    def create_dream(self) -> EditorSession:
        """Insert a pending, empty Dream and open an editor on it."""
        dream = self.context.insert_new_dream()
        return EditorSession(self.context, dream)

    def edit_dream(self, dream: Dream) -> EditorSession:
        return EditorSession(self.context, dream)

    def delete_dream(self, dream: Dream) -> bool:
        """
        Delete `dream` and save immediately. Deletion cannot be undone.

        Returns
        -------
        bool
            Result of the save. On failure the deletion stays pending.
        """
        self.context.delete(dream)
        return self._container.save_context()

    def force_sync(self) -> None:
        self._container.force_sync()

    def close(self) -> None:
        self.query.close()
