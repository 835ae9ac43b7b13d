from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Lock
import time
from urllib.parse import quote

import httpx


logger = logging.getLogger(__name__)


class IndexerRequestError(RuntimeError):
    pass


@dataclass(frozen=True)
class IndexerClientSettings:
    api_base: str
    timeout_seconds: float
    max_retries: int
    min_interval_ms: int


class IndexerClient:
    """HTTP client for the event-indexing service that tracks farm, locker and pair state."""

    def __init__(self, settings: IndexerClientSettings, transport: httpx.BaseTransport | None = None):
        self._settings = settings
        self._transport = transport
        self._lock = Lock()
        self._last_request_at = 0.0

    def list_farm_pools(self) -> list[dict]:
        return self._list("/farm/pools", key="pools")

    def list_lock_buckets(self) -> list[dict]:
        return self._list("/locker/buckets", key="buckets")

    def get_reward_pools(self) -> dict:
        return self._object("/locker/reward-pools")

    def get_emission_status(self) -> dict:
        return self._object("/emission/status")

    def get_pair(self, token0: str, token1: str) -> dict | None:
        path = f"/pairs/{quote(token0, safe='')}/{quote(token1, safe='')}"
        payload = self._get(path, allow_missing=True)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise IndexerRequestError(f"Unexpected payload for {path}: expected an object.")
        return payload

    def _list(self, path: str, *, key: str) -> list[dict]:
        payload = self._get(path)
        if isinstance(payload, dict):
            payload = payload.get(key)
        if not isinstance(payload, list):
            raise IndexerRequestError(f"Unexpected payload for {path}: expected a list of {key}.")
        return payload

    def _object(self, path: str) -> dict:
        payload = self._get(path)
        if not isinstance(payload, dict):
            raise IndexerRequestError(f"Unexpected payload for {path}: expected an object.")
        return payload

    def _get(self, path: str, *, allow_missing: bool = False):
        url = f"{self._settings.api_base.rstrip('/')}{path}"
        attempts = max(1, self._settings.max_retries)
        delay = 0.25
        last_exc: Exception | None = None

        for attempt in range(1, attempts + 1):
            self._respect_rate_limit()
            try:
                with httpx.Client(timeout=self._settings.timeout_seconds, transport=self._transport) as client:
                    response = client.get(url)
                    if allow_missing and response.status_code == 404:
                        return None
                    response.raise_for_status()
                    return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                if attempt == attempts:
                    break
                logger.warning(
                    "indexer_client: request_retry path=%s attempt=%s/%s error=%s",
                    path,
                    attempt,
                    attempts,
                    exc,
                )
                time.sleep(delay)
                delay *= 2

        raise IndexerRequestError(f"Indexer request {path} failed after retries: {last_exc}") from last_exc

    def _respect_rate_limit(self) -> None:
        min_interval = max(0, self._settings.min_interval_ms) / 1000.0
        if min_interval <= 0:
            return

        with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_at
            if elapsed < min_interval:
                time.sleep(min_interval - elapsed)
            self._last_request_at = time.monotonic()
