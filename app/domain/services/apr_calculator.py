from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
import logging

from app.domain.entities.apr import APRBreakdown, AprResult, AprUnavailable, EstimatedApr, LiveApr
from app.domain.entities.farm import EmissionInfo, RewardStream
from app.domain.entities.pricing import TokenPrice
from app.domain.entities.tvl import LockerTVLData, PoolTVLData
from app.domain.services.sanitize import HUNDRED, ZERO, non_negative


SECONDS_PER_DAY = Decimal("86400")
DAYS_PER_YEAR = Decimal("365")
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardExpansion:
    per_second: Decimal
    per_day: Decimal
    annual: Decimal
    daily_usd: Decimal
    annual_usd: Decimal


def pool_share(*, allocation_points: Decimal | int, allocation_total: Decimal | int) -> Decimal:
    total = Decimal(allocation_total)
    if total <= 0:
        return ZERO
    share = Decimal(allocation_points) / total
    return min(max(share, ZERO), Decimal("1"))


def expand_reward_rate(*, rate_per_second: Decimal, share: Decimal, token_price: Decimal) -> RewardExpansion:
    per_second = rate_per_second * share
    per_day = per_second * SECONDS_PER_DAY
    annual = per_day * DAYS_PER_YEAR
    daily_usd = per_day * token_price
    return RewardExpansion(
        per_second=per_second,
        per_day=per_day,
        annual=annual,
        daily_usd=daily_usd,
        annual_usd=daily_usd * DAYS_PER_YEAR,
    )


def annualized_apr(*, annual_rewards_usd: Decimal, tvl_usd: Decimal) -> Decimal:
    if tvl_usd <= 0:
        return ZERO
    return (annual_rewards_usd / tvl_usd) * HUNDRED


def compute_pool_apr(
    *,
    pool: PoolTVLData,
    emission: EmissionInfo | None,
    protocol_allocation_total: Decimal | int,
    reward_tokens: Iterable[str],
    prices: Mapping[str, TokenPrice],
    warnings: list[str],
    errors: list[str],
) -> AprResult:
    share = pool_share(
        allocation_points=pool.allocation_points,
        allocation_total=protocol_allocation_total,
    )
    return compute_apr(
        label=f"pool {pool.pool_name}",
        emission=emission,
        share=share,
        tvl_usd=pool.tvl_usd,
        reward_tokens=reward_tokens,
        prices=prices,
        warnings=warnings,
        errors=errors,
    )


def compute_locker_apr(
    *,
    bucket: LockerTVLData,
    emission: EmissionInfo | None,
    prices: Mapping[str, TokenPrice],
    warnings: list[str],
    errors: list[str],
) -> AprResult:
    return compute_apr(
        label=f"lock period {bucket.lock_period_name}",
        emission=emission,
        share=bucket.allocation_percentage / HUNDRED,
        tvl_usd=bucket.tvl_usd,
        reward_tokens=emission.tokens if emission is not None else (),
        prices=prices,
        warnings=warnings,
        errors=errors,
    )


def compute_apr(
    *,
    label: str,
    emission: EmissionInfo | None,
    share: Decimal,
    tvl_usd: Decimal,
    reward_tokens: Iterable[str],
    prices: Mapping[str, TokenPrice],
    warnings: list[str],
    errors: list[str],
) -> AprResult:
    """Expand a per-second emission into the APR breakdown of one pool or lock bucket.

    Without a live emission rate the result is an `EstimatedApr` with every
    figure at 0 and emission week 0. A live emission whose reward token has no
    USD price cannot be valued and yields `AprUnavailable`.
    """
    tokens = frozenset(reward_tokens)
    rate = ZERO
    if emission is not None:
        rate = non_negative(emission.reward.rate_per_second, label=f"reward rate for {label}", warnings=warnings)
    if emission is None or emission.emission_week <= 0 or rate == 0:
        warnings.append(f"emission data unavailable for {label}; APR estimated as 0")
        logger.warning("apr_calculator: emission_unavailable target=%s", label)
        return EstimatedApr(_empty_breakdown(share=share, reward_tokens=tokens))

    reward_price = prices.get(emission.reward.token)
    if reward_price is None or reward_price.price <= 0:
        errors.append(f"reward token price unavailable for {label}; APR not computed")
        logger.warning(
            "apr_calculator: reward_price_unavailable target=%s token=%s",
            label,
            emission.reward.token,
        )
        return AprUnavailable()

    base = expand_reward_rate(rate_per_second=rate, share=share, token_price=reward_price.price)
    base_apr = annualized_apr(annual_rewards_usd=base.annual_usd, tvl_usd=tvl_usd)
    bonus_apr = _bonus_apr(
        label=label,
        bonus=emission.bonus,
        share=share,
        tvl_usd=tvl_usd,
        prices=prices,
        warnings=warnings,
    )

    return LiveApr(
        APRBreakdown(
            base_apr=base_apr,
            bonus_apr=bonus_apr,
            daily_rewards_usd=base.daily_usd,
            annual_rewards_usd=base.annual_usd,
            victory_rewards_per_second=base.per_second,
            victory_rewards_per_day=base.per_day,
            victory_rewards_annual=base.annual,
            pool_share=share,
            emission_week=emission.emission_week,
            reward_tokens=tokens | emission.tokens,
        )
    )


def _bonus_apr(
    *,
    label: str,
    bonus: RewardStream | None,
    share: Decimal,
    tvl_usd: Decimal,
    prices: Mapping[str, TokenPrice],
    warnings: list[str],
) -> Decimal:
    if bonus is None:
        return ZERO
    rate = non_negative(bonus.rate_per_second, label=f"bonus rate for {label}", warnings=warnings)
    if rate == 0:
        return ZERO
    bonus_price = prices.get(bonus.token)
    if bonus_price is None or bonus_price.price <= 0:
        warnings.append(f"bonus reward price unavailable for {label}; bonus APR set to 0")
        return ZERO
    expansion = expand_reward_rate(rate_per_second=rate, share=share, token_price=bonus_price.price)
    return annualized_apr(annual_rewards_usd=expansion.annual_usd, tvl_usd=tvl_usd)


def _empty_breakdown(*, share: Decimal, reward_tokens: frozenset[str]) -> APRBreakdown:
    return APRBreakdown(
        base_apr=ZERO,
        bonus_apr=ZERO,
        daily_rewards_usd=ZERO,
        annual_rewards_usd=ZERO,
        victory_rewards_per_second=ZERO,
        victory_rewards_per_day=ZERO,
        victory_rewards_annual=ZERO,
        pool_share=share,
        emission_week=0,
        reward_tokens=reward_tokens,
    )
