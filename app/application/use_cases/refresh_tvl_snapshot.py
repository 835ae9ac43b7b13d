from __future__ import annotations

from datetime import datetime, timezone
import logging
from threading import Event, Lock, Thread

from app.application.dto.tvl_snapshot import RefresherStatus
from app.application.use_cases.build_tvl_snapshot import BuildTvlSnapshotUseCase
from app.domain.entities.tvl import SystemTVL
from app.domain.exceptions import DiscoveryUnavailableError, SnapshotCancelledError, SnapshotNotReadyError


logger = logging.getLogger(__name__)


class SnapshotRefresher:
    """Owns the latest `SystemTVL` and runs at most one build at a time.

    A refresh triggered while another is in flight is dropped. A failed
    refresh keeps the previously published snapshot. Readers always see one
    complete snapshot because publication is a single reference swap.
    """

    def __init__(self, *, build_use_case: BuildTvlSnapshotUseCase, interval_seconds: float):
        self._build_use_case = build_use_case
        self._interval_seconds = interval_seconds
        self._run_lock = Lock()
        self._state_lock = Lock()
        self._latest: SystemTVL | None = None
        self._last_success_at: datetime | None = None
        self._last_error: str | None = None
        self._cancel_event = Event()
        self._stop_event = Event()
        self._thread: Thread | None = None

    def latest(self) -> SystemTVL:
        snapshot = self._latest
        if snapshot is None:
            raise SnapshotNotReadyError("No TVL snapshot has been built yet.")
        return snapshot

    def status(self) -> RefresherStatus:
        with self._state_lock:
            return RefresherStatus(
                refreshing=self._run_lock.locked(),
                has_snapshot=self._latest is not None,
                last_success_at=self._last_success_at,
                last_error=self._last_error,
            )

    def refresh(self) -> SystemTVL | None:
        """Build and publish a snapshot; returns None if a build was already running.

        Build failures propagate after being recorded in `status()`; the
        previous snapshot stays published.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("snapshot_refresher: refresh_skipped reason=in_flight")
            return None
        try:
            self._cancel_event.clear()
            try:
                snapshot = self._build_use_case.execute(cancel_event=self._cancel_event)
            except SnapshotCancelledError:
                logger.info("snapshot_refresher: refresh_cancelled")
                raise
            except Exception as exc:
                self._record_failure(str(exc))
                raise
            with self._state_lock:
                self._latest = snapshot
                self._last_success_at = datetime.now(timezone.utc)
                self._last_error = None
            return snapshot
        finally:
            self._run_lock.release()

    def cancel(self) -> None:
        self._cancel_event.set()

    def start(self) -> None:
        if self._interval_seconds <= 0 or self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = Thread(target=self._run_periodically, name="tvl-refresher", daemon=True)
        self._thread.start()
        logger.info("snapshot_refresher: started interval_seconds=%s", self._interval_seconds)

    def stop(self, timeout_seconds: float = 5.0) -> None:
        self._stop_event.set()
        self._cancel_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout=timeout_seconds)
            logger.info("snapshot_refresher: stopped")

    def _record_failure(self, message: str) -> None:
        with self._state_lock:
            self._last_error = message
        logger.error("snapshot_refresher: refresh_failed error=%s", message)

    def _run_periodically(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.refresh()
            except (SnapshotCancelledError, DiscoveryUnavailableError) as exc:
                # already logged by refresh(); retry on the next tick
                logger.debug("snapshot_refresher: tick_failed error=%s", exc)
            except Exception:
                logger.exception("snapshot_refresher: unexpected_failure")
            self._stop_event.wait(self._interval_seconds)
