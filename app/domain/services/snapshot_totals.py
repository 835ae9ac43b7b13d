from __future__ import annotations

from collections.abc import Sequence

from app.domain.entities.farm import PoolType, RewardPools
from app.domain.entities.tvl import FarmTVL, LockerTVL, LockerTVLData, PoolTVLData, SystemTotals
from app.domain.services.sanitize import HUNDRED, ZERO


def build_farm_tvl(pools: Sequence[PoolTVLData]) -> FarmTVL:
    lp_pools = tuple(pool for pool in pools if pool.pool_type is PoolType.LP)
    single_pools = tuple(pool for pool in pools if pool.pool_type is PoolType.SINGLE)
    total_lp = sum((pool.tvl_usd for pool in lp_pools), ZERO)
    total_single = sum((pool.tvl_usd for pool in single_pools), ZERO)
    return FarmTVL(
        total_farm_tvl=total_lp + total_single,
        total_lp_tvl=total_lp,
        total_single_tvl=total_single,
        lp_pools=lp_pools,
        single_pools=single_pools,
    )


def build_locker_tvl(buckets: Sequence[LockerTVLData], reward_pools: RewardPools) -> LockerTVL:
    ordered = tuple(sorted(buckets, key=lambda bucket: bucket.lock_period))
    return LockerTVL(
        total_locker_tvl=sum((bucket.tvl_usd for bucket in ordered), ZERO),
        pools=ordered,
        sui_rewards_pool=reward_pools.auxiliary_rewards_usd,
        victory_rewards_pool=reward_pools.protocol_token_rewards_usd,
    )


def build_system_totals(farm: FarmTVL, locker: LockerTVL) -> SystemTotals:
    total = farm.total_farm_tvl + locker.total_locker_tvl
    if total <= 0:
        return SystemTotals(total_tvl=total, farm_percentage=ZERO, locker_percentage=ZERO)
    farm_pct = (farm.total_farm_tvl / total) * HUNDRED
    return SystemTotals(
        total_tvl=total,
        farm_percentage=farm_pct,
        locker_percentage=(locker.total_locker_tvl / total) * HUNDRED,
    )
