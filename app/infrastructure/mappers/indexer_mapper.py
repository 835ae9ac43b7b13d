from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from app.domain.entities.farm import (
    EmissionInfo,
    LpPoolInfo,
    PoolType,
    RawLockInfo,
    RawPoolInfo,
    RewardStream,
    SinglePoolInfo,
)
from app.domain.exceptions import MalformedDiscoveryDataError
from app.domain.services.emission_schedule import current_week, rates_for_week
from app.domain.services.token_types import extract_lp_tokens, is_lp_token, scale_amount, sort_token_types


LOCK_PERIOD_NAMES = {
    7: "1 Week",
    90: "3 Months",
    365: "1 Year",
    1095: "3 Years",
}


@dataclass(frozen=True)
class TokenDecimals:
    lp_decimals: int = 9
    default_decimals: int = 9
    overrides: Mapping[str, int] = field(default_factory=dict)

    def for_token(self, token: str) -> int:
        if token in self.overrides:
            return int(self.overrides[token])
        if is_lp_token(token):
            return self.lp_decimals
        return self.default_decimals


@dataclass(frozen=True)
class ScheduleEmission:
    farm: EmissionInfo | None
    locker: EmissionInfo | None


def lock_period_name(lock_period: int) -> str:
    return LOCK_PERIOD_NAMES.get(lock_period, f"{lock_period} Days")


def map_emission(payload: Mapping[str, Any] | None) -> EmissionInfo | None:
    if not payload:
        return None
    bonus = None
    if payload.get("bonusToken"):
        bonus = RewardStream(
            token=payload["bonusToken"],
            rate_per_second=Decimal(str(payload.get("bonusRatePerSecond", "0"))),
        )
    return EmissionInfo(
        emission_week=int(payload["week"]),
        reward=RewardStream(
            token=payload["rewardToken"],
            rate_per_second=Decimal(str(payload["ratePerSecond"])),
        ),
        bonus=bonus,
    )


def map_emission_status(
    payload: Mapping[str, Any],
    *,
    protocol_token: str,
    now_timestamp: int,
) -> ScheduleEmission:
    """Derive farm and locker emission streams from the on-chain schedule.

    A paused or not-yet-started schedule has no emission data.
    """
    start = int(payload.get("emissionStartTimestamp") or 0)
    if payload.get("paused") or start <= 0:
        return ScheduleEmission(farm=None, locker=None)

    week = current_week(emission_start_timestamp=start, current_timestamp=now_timestamp)
    rates = rates_for_week(week)
    if week <= 0 or rates.total_per_second <= 0:
        return ScheduleEmission(farm=None, locker=None)

    return ScheduleEmission(
        farm=EmissionInfo(
            emission_week=week,
            reward=RewardStream(token=protocol_token, rate_per_second=rates.farm_per_second),
        ),
        locker=EmissionInfo(
            emission_week=week,
            reward=RewardStream(token=protocol_token, rate_per_second=rates.locker_per_second),
        ),
    )


def map_farm_pool(
    payload: Mapping[str, Any],
    *,
    decimals: TokenDecimals,
    fallback_emission: EmissionInfo | None = None,
) -> RawPoolInfo:
    token_type = payload["tokenType"]
    pool_type = PoolType(payload["type"]) if payload.get("type") else _infer_pool_type(token_type)
    emission = map_emission(payload.get("emission")) or fallback_emission
    staked = scale_amount(payload["totalStaked"], decimals.for_token(token_type))
    common = dict(
        pool_id=str(payload["poolId"]),
        pool_name=payload.get("name") or token_type,
        total_staked_formatted=staked,
        allocation_points=int(payload.get("allocationPoints", 0)),
        is_active=bool(payload.get("isActive", True)),
        reward_tokens=frozenset(payload.get("rewardTokens") or ()),
        emission=emission,
        last_updated=_parse_timestamp(payload.get("lastUpdated")),
    )

    if pool_type is PoolType.SINGLE:
        return SinglePoolInfo(token=token_type, **common)

    if payload.get("token0") and payload.get("token1"):
        token0, token1 = sort_token_types(payload["token0"], payload["token1"])
    else:
        pair = extract_lp_tokens(token_type)
        if pair is None:
            raise MalformedDiscoveryDataError(f"LP pool {common['pool_id']} has no pair tokens: {token_type}")
        token0, token1 = pair
    return LpPoolInfo(lp_token=token_type, token0=token0, token1=token1, **common)


def map_lock_bucket(
    payload: Mapping[str, Any],
    *,
    locked_token_decimals: int,
    fallback_emission: EmissionInfo | None = None,
) -> RawLockInfo:
    lock_period = int(payload["lockPeriod"])
    return RawLockInfo(
        lock_period=lock_period,
        lock_period_name=payload.get("lockPeriodName") or lock_period_name(lock_period),
        total_locked_formatted=scale_amount(payload["totalLocked"], locked_token_decimals),
        allocation_percentage=Decimal(str(payload.get("allocationBps", 0))) / Decimal("100"),
        emission=map_emission(payload.get("emission")) or fallback_emission,
    )


def _infer_pool_type(token_type: str) -> PoolType:
    return PoolType.LP if is_lp_token(token_type) else PoolType.SINGLE


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
