from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
import logging
from threading import Event
from time import perf_counter

from app.application.concurrency import run_calls
from app.application.ports.farm_discovery_port import FarmDiscoveryPort
from app.application.ports.locker_discovery_port import LockerDiscoveryPort
from app.application.use_cases.resolve_prices import ResolvePricesUseCase
from app.domain.entities.farm import LpPoolInfo, RawLockInfo, RawPoolInfo, RewardPools, SinglePoolInfo
from app.domain.entities.tvl import SnapshotMetadata, SystemTVL
from app.domain.exceptions import (
    DiscoveryUnavailableError,
    MalformedDiscoveryDataError,
    SnapshotCancelledError,
)
from app.domain.services.apr_calculator import compute_locker_apr, compute_pool_apr
from app.domain.services.locker_valuation import value_lock_bucket
from app.domain.services.pool_valuation import value_pool
from app.domain.services.sanitize import ZERO, non_negative
from app.domain.services.snapshot_totals import build_farm_tvl, build_locker_tvl, build_system_totals


logger = logging.getLogger(__name__)

FARM_POOLS = "farm pool discovery"
LOCK_BUCKETS = "locker discovery"
REWARD_POOLS = "reward pools"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BuildTvlSnapshotUseCase:
    """Assemble a fresh `SystemTVL` from discovery, pricing and emission data.

    Degraded inputs (missing prices, missing emission data, bad numbers) end
    up in `metadata.errors` / `metadata.warnings`. Only a failed pool or lock
    discovery aborts the build, by raising `DiscoveryUnavailableError`.
    """

    def __init__(
        self,
        *,
        farm_port: FarmDiscoveryPort,
        locker_port: LockerDiscoveryPort,
        resolve_prices: ResolvePricesUseCase,
        protocol_token: str,
        discovery_timeout_seconds: float,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._farm_port = farm_port
        self._locker_port = locker_port
        self._resolve_prices = resolve_prices
        self._protocol_token = protocol_token
        self._discovery_timeout_seconds = discovery_timeout_seconds
        self._clock = clock

    def execute(self, *, cancel_event: Event | None = None) -> SystemTVL:
        started = perf_counter()
        errors: list[str] = []
        warnings: list[str] = []

        pools, buckets, reward_pools = self._discover(cancel_event=cancel_event, warnings=warnings)
        if not pools:
            warnings.append("No active farm pools found")

        tokens: set[str] = set()
        for pool in pools:
            tokens.update(pool.referenced_tokens)
        if buckets:
            tokens.add(self._protocol_token)
        for bucket in buckets:
            if bucket.emission is not None:
                tokens.update(bucket.emission.tokens)

        resolution = self._resolve_prices.execute(tokens, cancel_event=cancel_event)
        warnings.extend(resolution.warnings)
        reported = set(resolution.failed_tokens)
        prices = resolution.prices

        valued_pools = [
            value_pool(pool, prices, warnings=warnings, reported_tokens=reported)
            for pool in pools
        ]
        allocation_total = sum(valued.allocation_points for valued in valued_pools)
        valued_pools = [
            replace(
                valued,
                apr_result=compute_pool_apr(
                    pool=valued,
                    emission=raw.emission,
                    protocol_allocation_total=allocation_total,
                    reward_tokens=raw.reward_tokens,
                    prices=prices,
                    warnings=warnings,
                    errors=errors,
                ),
            )
            for raw, valued in zip(pools, valued_pools)
        ]

        protocol_price = prices.get(self._protocol_token)
        valued_buckets = []
        for bucket in buckets:
            valued = value_lock_bucket(
                bucket,
                self._protocol_token,
                protocol_price,
                warnings=warnings,
                reported_tokens=reported,
            )
            valued_buckets.append(
                replace(
                    valued,
                    apr_result=compute_locker_apr(
                        bucket=valued,
                        emission=bucket.emission,
                        prices=prices,
                        warnings=warnings,
                        errors=errors,
                    ),
                )
            )

        farm_tvl = build_farm_tvl(valued_pools)
        locker_tvl = build_locker_tvl(valued_buckets, reward_pools)
        totals = build_system_totals(farm_tvl, locker_tvl)

        zero_priced = sorted(token for token, price in prices.items() if price.price <= 0)
        if zero_priced:
            warnings.append(
                f"{len(zero_priced)} of {len(tokens)} referenced tokens resolved to a zero price: "
                + ", ".join(zero_priced)
            )

        if cancel_event is not None and cancel_event.is_set():
            raise SnapshotCancelledError("Refresh cancelled by caller.")

        duration_ms = int((perf_counter() - started) * 1000)
        snapshot = SystemTVL(
            system_tvl=totals,
            farm_tvl=farm_tvl,
            locker_tvl=locker_tvl,
            metadata=SnapshotMetadata(
                last_updated=self._clock(),
                update_duration_ms=duration_ms,
                pools_processed=len(pools),
                prices_updated=resolution.prices_updated,
                errors=tuple(errors),
                warnings=tuple(warnings),
            ),
        )
        logger.info(
            "build_tvl_snapshot: completed total_tvl=%s farm_tvl=%s locker_tvl=%s pools=%s lock_buckets=%s prices_updated=%s errors=%s warnings=%s duration_ms=%s",
            totals.total_tvl,
            farm_tvl.total_farm_tvl,
            locker_tvl.total_locker_tvl,
            len(pools),
            len(buckets),
            resolution.prices_updated,
            len(errors),
            len(warnings),
            duration_ms,
        )
        return snapshot

    def _discover(
        self,
        *,
        cancel_event: Event | None,
        warnings: list[str],
    ) -> tuple[list[RawPoolInfo], list[RawLockInfo], RewardPools]:
        outcomes = run_calls(
            {
                FARM_POOLS: self._farm_port.list_farm_pools,
                LOCK_BUCKETS: self._locker_port.list_lock_buckets,
                REWARD_POOLS: self._locker_port.get_reward_pools,
            },
            timeout_seconds=self._discovery_timeout_seconds,
            max_workers=3,
            cancel_event=cancel_event,
            thread_name_prefix="discovery",
        )

        for name in (FARM_POOLS, LOCK_BUCKETS):
            if name in outcomes.timed_out:
                logger.error(
                    "build_tvl_snapshot: discovery_timeout source=%s timeout_seconds=%s",
                    name,
                    self._discovery_timeout_seconds,
                )
                raise DiscoveryUnavailableError(
                    f"{name} timed out after {self._discovery_timeout_seconds}s"
                )
            exc = outcomes.failures.get(name)
            if exc is not None:
                logger.error("build_tvl_snapshot: discovery_failed source=%s error=%s", name, exc)
                if isinstance(exc, DiscoveryUnavailableError):
                    raise exc
                raise DiscoveryUnavailableError(f"{name} failed: {exc}") from exc

        pools = list(outcomes.results[FARM_POOLS])
        buckets = list(outcomes.results[LOCK_BUCKETS])
        _check_pool_identities(pools)
        _check_lock_periods(buckets)

        reward_pools = outcomes.results.get(REWARD_POOLS)
        if reward_pools is None:
            reason = outcomes.failures.get(REWARD_POOLS) or "timed out"
            warnings.append(f"reward pools unavailable ({reason}); reported as 0")
            logger.warning("build_tvl_snapshot: reward_pools_unavailable reason=%s", reason)
            reward_pools = RewardPools(auxiliary_rewards_usd=ZERO, protocol_token_rewards_usd=ZERO)
        else:
            warnings.extend(reward_pools.warnings)
            reward_pools = RewardPools(
                auxiliary_rewards_usd=non_negative(
                    reward_pools.auxiliary_rewards_usd,
                    label="auxiliary rewards pool",
                    warnings=warnings,
                ),
                protocol_token_rewards_usd=non_negative(
                    reward_pools.protocol_token_rewards_usd,
                    label="protocol token rewards pool",
                    warnings=warnings,
                ),
            )
        return pools, buckets, reward_pools


def _check_pool_identities(pools: list[RawPoolInfo]) -> None:
    seen: set[tuple[str, str]] = set()
    for pool in pools:
        if not isinstance(pool, (LpPoolInfo, SinglePoolInfo)):
            raise MalformedDiscoveryDataError(f"Unsupported pool record: {type(pool).__name__}")
        key = (pool.pool_type.value, pool.pool_id)
        if key in seen:
            raise MalformedDiscoveryDataError(f"Duplicate {pool.pool_type.value} pool id: {pool.pool_id}")
        seen.add(key)


def _check_lock_periods(buckets: list[RawLockInfo]) -> None:
    seen: set[int] = set()
    for bucket in buckets:
        if not isinstance(bucket, RawLockInfo):
            raise MalformedDiscoveryDataError(f"Unsupported lock record: {type(bucket).__name__}")
        if bucket.lock_period in seen:
            raise MalformedDiscoveryDataError(f"Duplicate lock period: {bucket.lock_period}")
        seen.add(bucket.lock_period)
