"""Periodic snapshotting of the experience store."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional, Union

from ..errors import AICoreError
from ..logging import get_logger
from .store import ExperienceStore

logger = get_logger("persistence")


def load_store(
    path: Union[str, Path],
    store: Optional[ExperienceStore] = None,
    lock_timeout_s: Optional[float] = None,
) -> ExperienceStore:
    """Restore a store from a snapshot, starting empty if there is none.

    Args:
        path: Snapshot file
        store: Existing store to restore into (a new one is created if None)
        lock_timeout_s: Lock timeout for a newly created store

    Returns:
        The restored (or fresh) store

    Raises:
        SnapshotError: If the file exists but is malformed
    """
    if store is None:
        store = ExperienceStore(lock_timeout_s=lock_timeout_s)
    try:
        loaded = store.restore_from(path)
    except FileNotFoundError:
        logger.info("No snapshot at %s, starting with fresh memory", path)
        return store
    logger.info("Loaded %d experiences from %s", loaded, path)
    return store


class SnapshotWorker:
    """Background thread that writes the store to disk on a fixed interval.

    A failed write is logged and retried on the next tick; it never stops
    the worker.
    """

    def __init__(
        self,
        store: ExperienceStore,
        path: Union[str, Path],
        interval_s: float = 60.0,
        snapshot_on_stop: bool = True,
    ):
        """Initialize the worker.

        Args:
            store: Store to snapshot
            path: Destination file
            interval_s: Seconds between snapshots
            snapshot_on_stop: Write one last snapshot when stopped
        """
        self.store = store
        self.path = Path(path)
        self.interval_s = max(0.01, float(interval_s))
        self.snapshot_on_stop = snapshot_on_stop
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.snapshots_written = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="ai-core-snapshot", daemon=True
        )
        self._thread.start()
        logger.debug("Snapshot worker started (every %.1fs -> %s)", self.interval_s, self.path)

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
            self._thread = None
        if self.snapshot_on_stop:
            self.snapshot_once()

    def snapshot_once(self) -> bool:
        """Write one snapshot now. Returns True on success.

        Write errors and lock timeouts are logged and counted; the next
        tick tries again.
        """
        try:
            count = self.store.snapshot_to(self.path)
        except AICoreError as exc:
            self.failures += 1
            logger.error("Failed to save memory: %s", exc)
            return False
        self.snapshots_written += 1
        logger.debug("Memory saved to %s (%d experiences)", self.path, count)
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.snapshot_once()
            except Exception:
                self.failures += 1
                logger.exception("Unexpected error while saving memory")
