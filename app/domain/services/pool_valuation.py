from __future__ import annotations

from collections.abc import Collection, Mapping
from decimal import Decimal
import logging

from app.domain.entities.farm import LpPoolInfo, RawPoolInfo, SinglePoolInfo
from app.domain.entities.pricing import TokenPrice
from app.domain.entities.tvl import PoolTVLData
from app.domain.services.sanitize import ZERO, non_negative


UNPRICED_SOURCE = "UNAVAILABLE"
logger = logging.getLogger(__name__)


def value_pool(
    pool: RawPoolInfo,
    prices: Mapping[str, TokenPrice],
    *,
    warnings: list[str],
    reported_tokens: Collection[str] = (),
) -> PoolTVLData:
    """Value one farm pool; APR is filled in later by the APR calculator.

    `reported_tokens` are tokens whose missing price was already reported by
    the price resolver, so the pool does not repeat the same warning.
    """
    if isinstance(pool, LpPoolInfo):
        quantity_label = "LP shares"
    elif isinstance(pool, SinglePoolInfo):
        quantity_label = "staked tokens"
    else:
        raise TypeError(f"Unsupported pool variant: {type(pool).__name__}")

    staked = non_negative(
        pool.total_staked_formatted,
        label=f"{quantity_label} for pool {pool.pool_name}",
        warnings=warnings,
    )
    allocation_points = int(
        non_negative(
            pool.allocation_points,
            label=f"allocation points for pool {pool.pool_name}",
            warnings=warnings,
        )
    )

    price, source = _resolve_pool_price(
        pool=pool,
        prices=prices,
        warnings=warnings,
        reported_tokens=reported_tokens,
    )

    return PoolTVLData(
        pool_id=pool.pool_id,
        pool_name=pool.pool_name,
        pool_type=pool.pool_type,
        tvl_usd=staked * price,
        total_staked_formatted=staked,
        token_price=price,
        price_source=source,
        allocation_points=allocation_points,
        is_active=pool.is_active,
        last_updated=pool.last_updated,
    )


def _resolve_pool_price(
    *,
    pool: RawPoolInfo,
    prices: Mapping[str, TokenPrice],
    warnings: list[str],
    reported_tokens: Collection[str],
) -> tuple[Decimal, str]:
    token = pool.priced_token
    resolved = prices.get(token)
    if resolved is None:
        if token not in reported_tokens:
            warnings.append(f"pool {pool.pool_name} has no price for {token}; TVL reported as 0")
        logger.warning("pool_valuation: missing_price pool=%s token=%s", pool.pool_id, token)
        return ZERO, UNPRICED_SOURCE

    price = non_negative(resolved.price, label=f"price for {token}", warnings=warnings)
    if price == 0:
        warnings.append(f"pool {pool.pool_name} priced at 0 for {token}; TVL reported as 0")
        logger.warning("pool_valuation: zero_price pool=%s token=%s", pool.pool_id, token)
    return price, resolved.source
