from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class APRBreakdownResponse(BaseModel):
    base_apr: Decimal
    bonus_apr: Decimal
    total_apr: Decimal
    daily_rewards_usd: Decimal
    annual_rewards_usd: Decimal
    victory_rewards_per_second: Decimal
    victory_rewards_per_day: Decimal
    victory_rewards_annual: Decimal
    pool_share: Decimal = Field(..., description="Fraction of protocol emissions, in [0, 1].")
    emission_week: int = Field(..., description="0 when no live emission data is available.")
    reward_tokens: list[str]


class PoolTVLResponse(BaseModel):
    pool_id: str
    pool_name: str
    pool_type: Literal["LP", "Single"]
    tvl_usd: Decimal
    apr: Decimal
    apr_status: Literal["live", "estimated", "unavailable"]
    apr_breakdown: APRBreakdownResponse | None
    total_staked_formatted: Decimal
    token_price: Decimal
    price_source: str
    allocation_points: int
    is_active: bool
    last_updated: datetime | None


class FarmTVLResponse(BaseModel):
    total_farm_tvl: Decimal
    total_lp_tvl: Decimal
    total_single_tvl: Decimal
    lp_pools: list[PoolTVLResponse]
    single_pools: list[PoolTVLResponse]


class LockerTVLDataResponse(BaseModel):
    lock_period: int = Field(..., description="Lock duration in days.")
    lock_period_name: str
    total_locked_formatted: Decimal
    victory_price: Decimal
    allocation_percentage: Decimal
    tvl_usd: Decimal
    estimated_apr: Decimal
    apr_status: Literal["live", "estimated", "unavailable"]
    apr_breakdown: APRBreakdownResponse | None


class LockerTVLResponse(BaseModel):
    total_locker_tvl: Decimal
    pools: list[LockerTVLDataResponse]
    sui_rewards_pool: Decimal
    victory_rewards_pool: Decimal


class SystemTotalsResponse(BaseModel):
    total_tvl: Decimal
    farm_percentage: Decimal
    locker_percentage: Decimal


class SnapshotMetadataResponse(BaseModel):
    last_updated: datetime
    update_duration_ms: int
    pools_processed: int
    prices_updated: int
    errors: list[str]
    warnings: list[str]


class SystemTVLResponse(BaseModel):
    system_tvl: SystemTotalsResponse
    farm_tvl: FarmTVLResponse
    locker_tvl: LockerTVLResponse
    metadata: SnapshotMetadataResponse


class RefresherStatusResponse(BaseModel):
    refreshing: bool
    has_snapshot: bool
    last_success_at: datetime | None
    last_error: str | None
