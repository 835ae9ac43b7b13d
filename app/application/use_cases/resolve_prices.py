from __future__ import annotations

from collections.abc import Iterable
import logging
from threading import Event

from app.application.concurrency import run_calls
from app.application.dto.tvl_snapshot import PriceResolution
from app.application.ports.price_source_port import PriceSourcePort
from app.domain.entities.pricing import TokenPrice


logger = logging.getLogger(__name__)


class ResolvePricesUseCase:
    def __init__(self, *, price_port: PriceSourcePort, timeout_seconds: float, max_workers: int = 8):
        self._price_port = price_port
        self._timeout_seconds = timeout_seconds
        self._max_workers = max_workers

    def execute(self, tokens: Iterable[str], *, cancel_event: Event | None = None) -> PriceResolution:
        unique_tokens = sorted(set(tokens))
        outcomes = run_calls(
            {token: (lambda token=token: self._price_port.get_price(token)) for token in unique_tokens},
            timeout_seconds=self._timeout_seconds,
            max_workers=self._max_workers,
            cancel_event=cancel_event,
            thread_name_prefix="price",
        )

        prices: dict[str, TokenPrice] = {}
        failed: list[str] = []
        for token in unique_tokens:
            if token in outcomes.timed_out:
                logger.warning(
                    "resolve_prices: timeout token=%s timeout_seconds=%s",
                    token,
                    self._timeout_seconds,
                )
                failed.append(token)
                continue
            if token in outcomes.failures:
                logger.warning(
                    "resolve_prices: lookup_failed token=%s error=%s",
                    token,
                    outcomes.failures[token],
                )
                failed.append(token)
                continue
            price = outcomes.results.get(token)
            if price is None:
                logger.warning("resolve_prices: no_price token=%s", token)
                failed.append(token)
                continue
            prices[token] = price

        logger.info(
            "resolve_prices: done requested=%s resolved=%s failed=%s",
            len(unique_tokens),
            len(prices),
            len(failed),
        )
        return PriceResolution(
            prices=prices,
            failed_tokens=tuple(failed),
            warnings=tuple(f"price unavailable for {token}" for token in failed),
        )
