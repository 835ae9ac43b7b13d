from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.domain.entities.apr import APRBreakdown, AprResult, AprUnavailable, apr_breakdown_of, total_apr_of
from app.domain.entities.farm import PoolType


@dataclass(frozen=True)
class PoolTVLData:
    pool_id: str
    pool_name: str
    pool_type: PoolType
    tvl_usd: Decimal
    total_staked_formatted: Decimal
    token_price: Decimal
    price_source: str
    allocation_points: int
    is_active: bool
    last_updated: datetime | None
    apr_result: AprResult = field(default_factory=AprUnavailable)

    @property
    def apr(self) -> Decimal:
        return total_apr_of(self.apr_result)

    @property
    def apr_breakdown(self) -> APRBreakdown | None:
        return apr_breakdown_of(self.apr_result)


@dataclass(frozen=True)
class LockerTVLData:
    lock_period: int
    lock_period_name: str
    total_locked_formatted: Decimal
    victory_price: Decimal
    allocation_percentage: Decimal
    tvl_usd: Decimal
    apr_result: AprResult = field(default_factory=AprUnavailable)

    @property
    def estimated_apr(self) -> Decimal:
        return total_apr_of(self.apr_result)

    @property
    def apr_breakdown(self) -> APRBreakdown | None:
        return apr_breakdown_of(self.apr_result)


@dataclass(frozen=True)
class FarmTVL:
    total_farm_tvl: Decimal
    total_lp_tvl: Decimal
    total_single_tvl: Decimal
    lp_pools: tuple[PoolTVLData, ...]
    single_pools: tuple[PoolTVLData, ...]


@dataclass(frozen=True)
class LockerTVL:
    total_locker_tvl: Decimal
    pools: tuple[LockerTVLData, ...]
    sui_rewards_pool: Decimal
    victory_rewards_pool: Decimal


@dataclass(frozen=True)
class SystemTotals:
    total_tvl: Decimal
    farm_percentage: Decimal
    locker_percentage: Decimal


@dataclass(frozen=True)
class SnapshotMetadata:
    last_updated: datetime
    update_duration_ms: int
    pools_processed: int
    prices_updated: int
    errors: tuple[str, ...]
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class SystemTVL:
    system_tvl: SystemTotals
    farm_tvl: FarmTVL
    locker_tvl: LockerTVL
    metadata: SnapshotMetadata
