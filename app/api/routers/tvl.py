from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_snapshot_refresher
from app.api.schemas.tvl import (
    APRBreakdownResponse,
    FarmTVLResponse,
    LockerTVLDataResponse,
    LockerTVLResponse,
    PoolTVLResponse,
    RefresherStatusResponse,
    SnapshotMetadataResponse,
    SystemTotalsResponse,
    SystemTVLResponse,
)
from app.application.use_cases.refresh_tvl_snapshot import SnapshotRefresher
from app.domain.entities.apr import APRBreakdown
from app.domain.entities.tvl import LockerTVLData, PoolTVLData, SystemTVL
from app.domain.exceptions import DiscoveryUnavailableError, SnapshotCancelledError, SnapshotNotReadyError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/v1/tvl", response_model=SystemTVLResponse)
def get_tvl(refresher: SnapshotRefresher = Depends(get_snapshot_refresher)):
    try:
        snapshot = refresher.latest()
    except SnapshotNotReadyError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _snapshot_response(snapshot)


@router.post("/v1/tvl/refresh", response_model=SystemTVLResponse)
def refresh_tvl(refresher: SnapshotRefresher = Depends(get_snapshot_refresher)):
    try:
        snapshot = refresher.refresh()
    except DiscoveryUnavailableError as exc:
        logger.warning("tvl_router: refresh_failed detail=%s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except SnapshotCancelledError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if snapshot is None:
        raise HTTPException(status_code=409, detail="A refresh is already in progress.")
    return _snapshot_response(snapshot)


@router.get("/v1/tvl/status", response_model=RefresherStatusResponse)
def get_tvl_status(refresher: SnapshotRefresher = Depends(get_snapshot_refresher)):
    status = refresher.status()
    return RefresherStatusResponse(
        refreshing=status.refreshing,
        has_snapshot=status.has_snapshot,
        last_success_at=status.last_success_at,
        last_error=status.last_error,
    )


def _breakdown_response(breakdown: APRBreakdown | None) -> APRBreakdownResponse | None:
    if breakdown is None:
        return None
    return APRBreakdownResponse(
        base_apr=breakdown.base_apr,
        bonus_apr=breakdown.bonus_apr,
        total_apr=breakdown.total_apr,
        daily_rewards_usd=breakdown.daily_rewards_usd,
        annual_rewards_usd=breakdown.annual_rewards_usd,
        victory_rewards_per_second=breakdown.victory_rewards_per_second,
        victory_rewards_per_day=breakdown.victory_rewards_per_day,
        victory_rewards_annual=breakdown.victory_rewards_annual,
        pool_share=breakdown.pool_share,
        emission_week=breakdown.emission_week,
        reward_tokens=sorted(breakdown.reward_tokens),
    )


def _pool_response(pool: PoolTVLData) -> PoolTVLResponse:
    return PoolTVLResponse(
        pool_id=pool.pool_id,
        pool_name=pool.pool_name,
        pool_type=pool.pool_type.value,
        tvl_usd=pool.tvl_usd,
        apr=pool.apr,
        apr_status=pool.apr_result.status,
        apr_breakdown=_breakdown_response(pool.apr_breakdown),
        total_staked_formatted=pool.total_staked_formatted,
        token_price=pool.token_price,
        price_source=pool.price_source,
        allocation_points=pool.allocation_points,
        is_active=pool.is_active,
        last_updated=pool.last_updated,
    )


def _lock_bucket_response(bucket: LockerTVLData) -> LockerTVLDataResponse:
    return LockerTVLDataResponse(
        lock_period=bucket.lock_period,
        lock_period_name=bucket.lock_period_name,
        total_locked_formatted=bucket.total_locked_formatted,
        victory_price=bucket.victory_price,
        allocation_percentage=bucket.allocation_percentage,
        tvl_usd=bucket.tvl_usd,
        estimated_apr=bucket.estimated_apr,
        apr_status=bucket.apr_result.status,
        apr_breakdown=_breakdown_response(bucket.apr_breakdown),
    )


def _snapshot_response(snapshot: SystemTVL) -> SystemTVLResponse:
    farm = snapshot.farm_tvl
    locker = snapshot.locker_tvl
    metadata = snapshot.metadata
    return SystemTVLResponse(
        system_tvl=SystemTotalsResponse(
            total_tvl=snapshot.system_tvl.total_tvl,
            farm_percentage=snapshot.system_tvl.farm_percentage,
            locker_percentage=snapshot.system_tvl.locker_percentage,
        ),
        farm_tvl=FarmTVLResponse(
            total_farm_tvl=farm.total_farm_tvl,
            total_lp_tvl=farm.total_lp_tvl,
            total_single_tvl=farm.total_single_tvl,
            lp_pools=[_pool_response(pool) for pool in farm.lp_pools],
            single_pools=[_pool_response(pool) for pool in farm.single_pools],
        ),
        locker_tvl=LockerTVLResponse(
            total_locker_tvl=locker.total_locker_tvl,
            pools=[_lock_bucket_response(bucket) for bucket in locker.pools],
            sui_rewards_pool=locker.sui_rewards_pool,
            victory_rewards_pool=locker.victory_rewards_pool,
        ),
        metadata=SnapshotMetadataResponse(
            last_updated=metadata.last_updated,
            update_duration_ms=metadata.update_duration_ms,
            pools_processed=metadata.pools_processed,
            prices_updated=metadata.prices_updated,
            errors=list(metadata.errors),
            warnings=list(metadata.warnings),
        ),
    )
