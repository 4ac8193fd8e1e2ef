# resume_ab/recompute.py
"""
Background recomputation of experiment results.

Recording an outcome only marks its experiment as dirty; a daemon
thread picks up the dirty experiments and rebuilds their snapshots.
Marking the same experiment several times before the worker gets to
it results in a single recompute.

drain() does the same work on the calling thread, for code (and tests)
that need the snapshots to be current right away.
"""
import logging
import threading
from typing import Callable, Dict, Optional, Set

from sqlalchemy.orm import Session

from .repository import Repository
from .results import ResultsAggregator

logger = logging.getLogger(__name__)


class RecomputeWorker:
    def __init__(self, session_factory: Callable[[], Session], poll_interval: float = 1.0):
        self.session_factory = session_factory
        self.poll_interval = poll_interval
        self._pending: Set[int] = set()
        self._condition = threading.Condition()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def mark_dirty(self, experiment_id: int) -> None:
        with self._condition:
            self._pending.add(experiment_id)
            self._condition.notify()

    def pending(self) -> Set[int]:
        with self._condition:
            return set(self._pending)

    def _take_pending(self) -> Set[int]:
        with self._condition:
            batch, self._pending = self._pending, set()
            return batch

    def _process(self, experiment_ids: Set[int], raise_errors: bool) -> Dict[int, int]:
        """Recompute each experiment; returns experiment id -> snapshots written."""
        written: Dict[int, int] = {}
        db = self.session_factory()
        try:
            aggregator = ResultsAggregator(Repository(db))
            ordered = sorted(experiment_ids)
            for position, experiment_id in enumerate(ordered):
                try:
                    written[experiment_id] = len(aggregator.recompute(experiment_id))
                except Exception:
                    db.rollback()
                    if raise_errors:
                        # The failed experiment and everything after it stay dirty
                        for remaining in ordered[position:]:
                            self.mark_dirty(remaining)
                        raise
                    logger.exception(
                        "Recompute failed for experiment %s, dropped until it is marked dirty again",
                        experiment_id,
                    )
        finally:
            db.close()
        return written

    def drain(self) -> Dict[int, int]:
        """Recompute everything pending on the calling thread."""
        batch = self._take_pending()
        if not batch:
            return {}
        return self._process(batch, raise_errors=True)

    # ==================== Thread lifecycle ====================

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="recompute-worker", daemon=True)
        self._thread.start()
        logger.info("Recompute worker started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        with self._condition:
            self._condition.notify_all()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Recompute worker stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            with self._condition:
                if not self._pending:
                    self._condition.wait(timeout=self.poll_interval)
            batch = self._take_pending()
            if batch:
                self._process(batch, raise_errors=False)
