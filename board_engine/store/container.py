"""
Persistent container: the process-level entry point to the Dream store.

The container is constructed explicitly (see `open_container`) and passed to
whatever composes the UI. It owns:

- the durable SQLite store,
- the UI-bound view context, which automatically merges changes committed by
  other contexts and by remote imports,
- a single background worker used for forced sync,
- the optional cloud replication coordinator.

Threading model
---------------
Merges into the view context are handed to an injected `dispatch` callable.
The default runs them inline; the GUI passes a dispatcher that queues them onto
the Qt main thread.
"""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..clock import Clock
from ..data_models import ChangeNotification, ChangeOrigin
from ..errors import VisionBoardError
from ..paths_and_safety import ensure_board_directories, resolve_board_paths, validate_cloud_root
from ..sync.coordinator import SyncCoordinator, SyncReport
from ..sync.transport import FolderTransport
from .context import MergePolicy, ObjectContext
from .notifications import Subscription
from .sqlite_store import SqliteDreamStore

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _inline_dispatch(fn: Callable[[], None]) -> None:
    fn()


@dataclass(frozen=True, slots=True)
class StoreOptions:
    """
    Options for opening a container.

    Attributes
    ----------
    cloud_root:
        Cloud folder used for replication, or None to keep the board local.
    automatically_merges_changes:
        Merge changes committed elsewhere into the view context.
    merge_policy:
        Conflict policy for the view context.
    remote_change_notifications:
        Log an INFO line when remote changes are merged.
    """

    cloud_root: Path | None = None
    automatically_merges_changes: bool = True
    merge_policy: MergePolicy = MergePolicy.OBJECT_TRUMP
    remote_change_notifications: bool = True


class PersistentContainer:
    """
    Durable, sync-replicated collection of Dreams with its contexts.

    Parameters
    ----------
    store:
        An opened store.
    options:
        Container options.
    dispatch:
        Callable that runs view-context merges on the UI thread.
    """

    def __init__(
        self,
        store: SqliteDreamStore,
        *,
        options: StoreOptions | None = None,
        dispatch: Dispatch | None = None,
    ) -> None:
        self._store = store
        self.options = options or StoreOptions()
        self._dispatch: Dispatch = dispatch or _inline_dispatch
        self._background_ids = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="visionboard-sync")
        self._closed = False

        self._view_context = ObjectContext(store, name="view", merge_policy=self.options.merge_policy)

        self._coordinator: SyncCoordinator | None = None
        if self.options.cloud_root is not None:
            try:
                transport = FolderTransport(validate_cloud_root(self.options.cloud_root))
            except VisionBoardError:
                self._executor.shutdown(wait=False)
                store.close()
                raise
            self._coordinator = SyncCoordinator(store, transport)

        self._store_subscription = store.subscribe(self._on_store_change)

    def __enter__(self) -> "PersistentContainer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def store(self) -> SqliteDreamStore:
        return self._store

    @property
    def view_context(self) -> ObjectContext:
        """The context used from the UI thread."""
        return self._view_context

    @property
    def sync_enabled(self) -> bool:
        return self._coordinator is not None

    def new_background_context(self) -> ObjectContext:
        """
        Return a fresh context for off-UI-thread work.

        Its changes are invisible to the view context until saved.
        """
        return ObjectContext(
            self._store,
            name=f"background-{next(self._background_ids)}",
            merge_policy=self.options.merge_policy,
        )

    def save_context(self) -> bool:
        """Save the view context. See `ObjectContext.save`."""
        return self._view_context.save()

    def durable_count(self) -> int:
        """Return the number of Dreams committed to the store."""
        return self._store.count()

    def subscribe(self, callback: Callable[[ChangeNotification], None]) -> Subscription[ChangeNotification]:
        """Receive a notification after every store commit, from any context or import."""
        return self._store.subscribe(callback)

    def sync_now(self) -> SyncReport | None:
        """
        Run one replication pass on the calling thread.

        Returns
        -------
        SyncReport | None
            The pass result, or None if no cloud folder is configured.

        Raises
        ------
        SyncError
            If the cloud folder cannot be read or written.
        """
        if self._coordinator is None:
            return None
        return self._coordinator.sync()

    def force_sync(self) -> "Future[None]":
        """
        Re-read at the current generation and replicate, on the background worker.

        Fire-and-forget: the returned future always resolves to None. Failures
        are logged and never raised to the caller.
        """
        return self._executor.submit(self._run_forced_sync)

    def close(self) -> None:
        """Wait for background work, then release the store."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._store_subscription.unsubscribe()
        self._store.close()

    def _run_forced_sync(self) -> None:
        context = self.new_background_context()
        try:
            generation = context.set_query_generation_current()
            report = self.sync_now()
        except (VisionBoardError, OSError) as exc:
            logger.warning("Error forcing sync: %s", exc)
            return
        except Exception:
            logger.exception("Error forcing sync")
            return
        if report is None:
            logger.info("Forced sync at generation %d (no cloud folder configured).", generation)
        else:
            logger.info(
                "Forced sync at generation %d: imported %d, exported %d.",
                generation,
                report.imported,
                report.exported,
            )
        if context.store_has_advanced:
            logger.info("Store advanced to generation %d during forced sync.", self._store.generation())

    def _on_store_change(self, notification: ChangeNotification) -> None:
        if notification.origin is ChangeOrigin.REMOTE and self.options.remote_change_notifications:
            logger.info("Remote changes merged (generation %d).", notification.generation)
        if not self.options.automatically_merges_changes:
            return
        if notification.author is self._view_context:
            return
        self._dispatch(lambda: self._view_context.merge_changes(notification))


def open_container(
    db_path: Path | None = None,
    *,
    in_memory: bool = False,
    options: StoreOptions | None = None,
    dispatch: Dispatch | None = None,
    clock: Clock | None = None,
) -> PersistentContainer:
    """
    Open the local store and return a ready-to-use container.

    Parameters
    ----------
    db_path:
        SQLite database path. Required unless `in_memory` is True.
    in_memory:
        Use a throwaway, non-durable store (for tests).
    options:
        Container options.
    dispatch:
        UI-thread dispatcher for view-context merges.
    clock:
        Source of field stamps.

    Raises
    ------
    StoreOpenError
        If the store cannot be opened. Application entry points treat this as fatal.
    """
    if not in_memory and db_path is None:
        raise ValueError("db_path is required unless in_memory is True")
    store = SqliteDreamStore(None if in_memory else db_path, clock=clock)
    return PersistentContainer(store, options=options, dispatch=dispatch)


def open_board_container(
    board_name: str,
    data_root: Path | None = None,
    *,
    options: StoreOptions | None = None,
    dispatch: Dispatch | None = None,
) -> PersistentContainer:
    """Convenience constructor that ensures board directories exist."""
    paths = resolve_board_paths(board_name=board_name, data_root=data_root)
    ensure_board_directories(paths)
    return open_container(paths.store_path, options=options, dispatch=dispatch)
