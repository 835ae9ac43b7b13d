from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Event
import time
from typing import Generic, TypeVar

from app.domain.exceptions import SnapshotCancelledError


K = TypeVar("K")
T = TypeVar("T")

CANCEL_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class CallOutcomes(Generic[K, T]):
    results: dict[K, T]
    failures: dict[K, BaseException]
    timed_out: tuple[K, ...]


class _TimedCall:
    """Wraps a call and records when a worker actually ran it."""

    def __init__(self, call: Callable[[], T]):
        self._call = call
        self.started_at: float | None = None
        self.finished_at: float | None = None

    def __call__(self):
        self.started_at = time.monotonic()
        try:
            return self._call()
        finally:
            self.finished_at = time.monotonic()

    def overran(self, timeout_seconds: float, now: float) -> bool:
        if self.started_at is None:
            return False
        end = self.finished_at if self.finished_at is not None else now
        return end - self.started_at > timeout_seconds


def run_calls(
    calls: Mapping[K, Callable[[], T]],
    *,
    timeout_seconds: float,
    max_workers: int,
    cancel_event: Event | None = None,
    thread_name_prefix: str = "tvl",
) -> CallOutcomes[K, T]:
    """Run independent collaborator calls on a thread pool.

    Each call's `timeout_seconds` starts when a worker picks it up, so a call
    queued behind a slow one keeps its full budget. A call that runs past its
    budget is abandoned and reported in `timed_out` even if it finishes later.
    Raises `SnapshotCancelledError` as soon as `cancel_event` is set.
    """
    if not calls:
        return CallOutcomes(results={}, failures={}, timed_out=())

    workers = max(1, min(max_workers, len(calls)))
    # queued calls never start while every worker is held by an abandoned call
    queue_deadline = time.monotonic() + timeout_seconds * len(calls)

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix)
    try:
        timed = {key: _TimedCall(call) for key, call in calls.items()}
        futures: dict[Future, K] = {executor.submit(timed_call): key for key, timed_call in timed.items()}
        pending = set(futures)
        abandoned: set[Future] = set()
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                raise SnapshotCancelledError("Refresh cancelled by caller.")
            now = time.monotonic()
            for future in list(pending):
                timed_call = timed[futures[future]]
                never_started = timed_call.started_at is None and now >= queue_deadline
                if never_started or timed_call.overran(timeout_seconds, now):
                    pending.discard(future)
                    abandoned.add(future)
            if not pending:
                break
            _, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)

        results: dict[K, T] = {}
        failures: dict[K, BaseException] = {}
        timed_out: list[K] = []
        now = time.monotonic()
        for future, key in futures.items():
            if future in abandoned or timed[key].overran(timeout_seconds, now):
                future.cancel()
                timed_out.append(key)
                continue
            exc = future.exception()
            if exc is not None:
                failures[key] = exc
            else:
                results[key] = future.result()
        return CallOutcomes(results=results, failures=failures, timed_out=tuple(timed_out))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
