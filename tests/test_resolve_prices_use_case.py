from __future__ import annotations

from decimal import Decimal
from threading import Event
import time

import pytest

from app.application.concurrency import run_calls
from app.application.use_cases.resolve_prices import ResolvePricesUseCase
from app.domain.entities.pricing import TokenPrice
from app.domain.exceptions import SnapshotCancelledError


class FakePricePort:
    def __init__(self, prices: dict[str, TokenPrice | None], *, failing: set[str] = frozenset(), hanging=None):
        self._prices = prices
        self._failing = failing
        self._hanging = hanging or {}
        self.calls: list[str] = []

    def get_price(self, token_id: str) -> TokenPrice | None:
        self.calls.append(token_id)
        if token_id in self._hanging:
            self._hanging[token_id].wait(5)
        if token_id in self._failing:
            raise RuntimeError("upstream 500")
        return self._prices.get(token_id)


def test_resolves_each_distinct_token_once():
    port = FakePricePort({"A": TokenPrice(Decimal("1"), "OVERRIDE"), "B": TokenPrice(Decimal("2"), "DEX")})
    use_case = ResolvePricesUseCase(price_port=port, timeout_seconds=1)

    resolution = use_case.execute(["B", "A", "B"])

    assert sorted(port.calls) == ["A", "B"]
    assert resolution.prices["B"].source == "DEX"
    assert resolution.failed_tokens == ()
    assert resolution.warnings == ()
    assert resolution.prices_updated == 2


def test_failures_and_missing_prices_are_omitted_with_one_warning_each():
    port = FakePricePort(
        {"A": TokenPrice(Decimal("1"), "OVERRIDE"), "C": None},
        failing={"B"},
    )
    use_case = ResolvePricesUseCase(price_port=port, timeout_seconds=1)

    resolution = use_case.execute({"A", "B", "C"})

    assert set(resolution.prices) == {"A"}
    assert resolution.failed_tokens == ("B", "C")
    assert resolution.warnings == ("price unavailable for B", "price unavailable for C")


def test_zero_price_is_kept_but_not_counted_as_updated():
    port = FakePricePort({"A": TokenPrice(Decimal("0"), "DEX"), "B": TokenPrice(Decimal("3"), "DEX")})

    resolution = ResolvePricesUseCase(price_port=port, timeout_seconds=1).execute({"A", "B"})

    assert set(resolution.prices) == {"A", "B"}
    assert resolution.prices_updated == 1


def test_slow_price_lookup_times_out_without_blocking_others():
    release = Event()
    port = FakePricePort(
        {"A": TokenPrice(Decimal("1"), "DEX"), "SLOW": TokenPrice(Decimal("9"), "DEX")},
        hanging={"SLOW": release},
    )
    use_case = ResolvePricesUseCase(price_port=port, timeout_seconds=0.2, max_workers=4)

    try:
        resolution = use_case.execute({"A", "SLOW"})
    finally:
        release.set()

    assert set(resolution.prices) == {"A"}
    assert resolution.failed_tokens == ("SLOW",)
    assert resolution.warnings == ("price unavailable for SLOW",)


def test_empty_token_set_resolves_nothing():
    port = FakePricePort({})

    resolution = ResolvePricesUseCase(price_port=port, timeout_seconds=1).execute([])

    assert resolution.prices == {}
    assert port.calls == []


def test_run_calls_raises_when_cancelled():
    cancel = Event()
    cancel.set()
    release = Event()

    try:
        with pytest.raises(SnapshotCancelledError):
            run_calls(
                {"slow": lambda: release.wait(5)},
                timeout_seconds=5,
                max_workers=1,
                cancel_event=cancel,
            )
    finally:
        release.set()


def test_run_calls_collects_results_and_failures():
    def boom():
        raise ValueError("bad")

    outcomes = run_calls({"ok": lambda: 42, "bad": boom}, timeout_seconds=1, max_workers=2)

    assert outcomes.results == {"ok": 42}
    assert isinstance(outcomes.failures["bad"], ValueError)
    assert outcomes.timed_out == ()


class SleepingPricePort:
    def __init__(self, delays: dict[str, float]):
        self._delays = delays

    def get_price(self, token_id: str) -> TokenPrice | None:
        time.sleep(self._delays[token_id])
        return TokenPrice(Decimal("1"), "DEX")


def test_queued_lookup_keeps_its_own_timeout_behind_a_slow_one():
    port = SleepingPricePort({"A": 0.35, "B": 0.05})
    use_case = ResolvePricesUseCase(price_port=port, timeout_seconds=0.2, max_workers=1)

    resolution = use_case.execute(["A", "B"])

    assert set(resolution.prices) == {"B"}
    assert resolution.failed_tokens == ("A",)
    assert resolution.warnings == ("price unavailable for A",)


def test_run_calls_rejects_a_result_that_arrived_after_its_timeout():
    def late():
        time.sleep(0.3)
        return "late"

    outcomes = run_calls({"late": late, "quick": lambda: "quick"}, timeout_seconds=0.1, max_workers=1)

    assert outcomes.results == {"quick": "quick"}
    assert outcomes.timed_out == ("late",)
