"""Debounced background re-indexing.

A tool that changes a project's file structure asks for a re-index. The
request is deferred by a short delay so a burst of changes costs one scan:

  - schedule() inside the delay window restarts the window (coalescing).
  - At most one run is in flight per project; a schedule() arriving during a
    run queues exactly one follow-up run.
  - Failures are logged and dropped, never retried or surfaced to the turn.

Runs happen on daemon timer threads. Each run must open its own database
connection (see deskmate.indexing.indexer.reindex_project).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from deskmate.db.models import Project
from deskmate.indexing.indexer import reindex_project

logger = logging.getLogger(__name__)


class ReindexScheduler:
    """Per-project debounce queue in front of a re-index callable.

    Args:
        run: Called with the Project to re-index, on a worker thread.
        delay: Debounce window in seconds.
    """

    def __init__(self, run: Callable[[Project], object], delay: float = 0.1) -> None:
        self._run = run
        self.delay = delay
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending: dict[str, tuple[threading.Timer, object]] = {}
        self._running: set[str] = set()
        self._rerun: dict[str, Project] = {}
        self._closed = False
        self.runs = 0

    @classmethod
    def for_database(
        cls, db_path: Path | str, max_depth: int = 5, delay: float = 0.1
    ) -> ReindexScheduler:
        """Scheduler that re-indexes into the database at *db_path*."""

        def run(project: Project) -> object:
            return reindex_project(db_path, project.root_path, max_depth=max_depth)

        return cls(run, delay=delay)

    def schedule(self, project: Project) -> None:
        """Request a re-index of *project* after the debounce delay."""
        key = project.root_path
        with self._lock:
            if self._closed:
                logger.warning("Re-index of %s requested after shutdown; ignored", project.name)
                return
            if key in self._running:
                self._rerun[key] = project
                logger.debug("Re-index of %s queued behind the running one", project.name)
                return
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous[0].cancel()
            token = object()
            timer = threading.Timer(self.delay, self._fire, args=(key, project, token))
            timer.daemon = True
            self._pending[key] = (timer, token)
            timer.start()
        logger.debug("Re-index of %s scheduled in %.2fs", project.name, self.delay)

    def _fire(self, key: str, project: Project, token: object) -> None:
        with self._lock:
            entry = self._pending.get(key)
            if entry is None or entry[1] is not token:
                return  # superseded by a later schedule()
            del self._pending[key]
            self._running.add(key)

        finished = False
        try:
            while True:
                logger.info("Re-indexing %s (%s)", project.name, project.root_path)
                try:
                    self._run(project)
                except Exception:
                    logger.exception("Background re-index of %s failed", project.name)
                with self._lock:
                    self.runs += 1
                    follow_up = self._rerun.pop(key, None)
                    if follow_up is None:
                        self._running.discard(key)
                        self._idle.notify_all()
                        finished = True
                        return
                project = follow_up
        finally:
            if not finished:
                # BaseException out of the run; release the key so waiters wake up
                with self._lock:
                    self._running.discard(key)
                    self._rerun.pop(key, None)
                    self._idle.notify_all()

    def is_idle(self) -> bool:
        with self._lock:
            return not self._pending and not self._running

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or running. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(
                lambda: not self._pending and not self._running, timeout=timeout
            )

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting work.

        With *wait*, pending runs still fire and this blocks until they finish;
        otherwise pending runs are cancelled.
        """
        with self._lock:
            self._closed = True
            if not wait:
                for timer, _ in self._pending.values():
                    timer.cancel()
                self._pending.clear()
                self._rerun.clear()
                self._idle.notify_all()
        if wait:
            self.wait_idle(timeout)
