from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
import pytest

from app.api.deps import get_snapshot_refresher
from app.application.dto.tvl_snapshot import RefresherStatus
from app.domain.entities.apr import APRBreakdown, EstimatedApr, LiveApr
from app.domain.entities.farm import PoolType, RewardPools
from app.domain.entities.tvl import LockerTVLData, PoolTVLData, SnapshotMetadata, SystemTVL
from app.domain.exceptions import DiscoveryUnavailableError, SnapshotNotReadyError
from app.domain.services.snapshot_totals import build_farm_tvl, build_locker_tvl, build_system_totals
from app.main import app


NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _breakdown(base_apr: str, emission_week: int) -> APRBreakdown:
    return APRBreakdown(
        base_apr=Decimal(base_apr),
        bonus_apr=Decimal("0"),
        daily_rewards_usd=Decimal("21600"),
        annual_rewards_usd=Decimal("7884000"),
        victory_rewards_per_second=Decimal("0.5"),
        victory_rewards_per_day=Decimal("43200"),
        victory_rewards_annual=Decimal("15768000"),
        pool_share=Decimal("0.25"),
        emission_week=emission_week,
        reward_tokens=frozenset({"VIC"}),
    )


def _snapshot() -> SystemTVL:
    farm = build_farm_tvl(
        [
            PoolTVLData(
                pool_id="0",
                pool_name="SUI-VICTORY LP",
                pool_type=PoolType.LP,
                tvl_usd=Decimal("10000"),
                total_staked_formatted=Decimal("100"),
                token_price=Decimal("100"),
                price_source="LP",
                allocation_points=100,
                is_active=True,
                last_updated=NOW,
                apr_result=LiveApr(_breakdown("78840", 3)),
            )
        ]
    )
    locker = build_locker_tvl(
        [
            LockerTVLData(
                lock_period=7,
                lock_period_name="1 Week",
                total_locked_formatted=Decimal("1000"),
                victory_price=Decimal("0.5"),
                allocation_percentage=Decimal("5"),
                tvl_usd=Decimal("500"),
                apr_result=EstimatedApr(_breakdown("0", 0)),
            )
        ],
        RewardPools(Decimal("10"), Decimal("20")),
    )
    return SystemTVL(
        system_tvl=build_system_totals(farm, locker),
        farm_tvl=farm,
        locker_tvl=locker,
        metadata=SnapshotMetadata(
            last_updated=NOW,
            update_duration_ms=42,
            pools_processed=1,
            prices_updated=2,
            errors=(),
            warnings=("price unavailable for 0xdead::x::X",),
        ),
    )


class FakeRefresher:
    def __init__(self, *, snapshot=None, refresh_result=None, refresh_error=None):
        self._snapshot = snapshot
        self._refresh_result = refresh_result
        self._refresh_error = refresh_error

    def latest(self):
        if self._snapshot is None:
            raise SnapshotNotReadyError("No TVL snapshot has been built yet.")
        return self._snapshot

    def refresh(self):
        if self._refresh_error is not None:
            raise self._refresh_error
        return self._refresh_result

    def status(self):
        return RefresherStatus(
            refreshing=False,
            has_snapshot=self._snapshot is not None,
            last_success_at=NOW if self._snapshot is not None else None,
            last_error=None,
        )


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_get_tvl_returns_latest_snapshot(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher(snapshot=_snapshot())

    response = client.get("/v1/tvl")

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["system_tvl"]["total_tvl"]) == Decimal("10500")
    lp_pool = body["farm_tvl"]["lp_pools"][0]
    assert lp_pool["pool_type"] == "LP"
    assert lp_pool["apr_status"] == "live"
    assert Decimal(lp_pool["apr"]) == Decimal("78840")
    assert lp_pool["apr_breakdown"]["reward_tokens"] == ["VIC"]
    bucket = body["locker_tvl"]["pools"][0]
    assert bucket["apr_status"] == "estimated"
    assert bucket["apr_breakdown"]["emission_week"] == 0
    assert Decimal(body["locker_tvl"]["victory_rewards_pool"]) == Decimal("20")
    assert body["metadata"]["warnings"] == ["price unavailable for 0xdead::x::X"]
    assert body["metadata"]["update_duration_ms"] == 42


def test_get_tvl_before_first_snapshot_is_503(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher()

    response = client.get("/v1/tvl")

    assert response.status_code == 503


def test_refresh_returns_new_snapshot(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher(refresh_result=_snapshot())

    response = client.post("/v1/tvl/refresh")

    assert response.status_code == 200
    assert response.json()["metadata"]["pools_processed"] == 1


def test_refresh_in_flight_is_409(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher(refresh_result=None)

    response = client.post("/v1/tvl/refresh")

    assert response.status_code == 409


def test_refresh_discovery_failure_is_502(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher(
        refresh_error=DiscoveryUnavailableError("farm pool discovery failed: timeout")
    )

    response = client.post("/v1/tvl/refresh")

    assert response.status_code == 502
    assert response.json()["detail"] == "farm pool discovery failed: timeout"


def test_status_reports_refresher_state(client: TestClient):
    app.dependency_overrides[get_snapshot_refresher] = lambda: FakeRefresher(snapshot=_snapshot())

    response = client.get("/v1/tvl/status")

    assert response.status_code == 200
    assert response.json()["has_snapshot"] is True
    assert response.json()["refreshing"] is False
