from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.domain.entities.farm import LpPoolInfo, SinglePoolInfo
from app.domain.entities.pricing import TokenPrice
from app.domain.exceptions import DiscoveryUnavailableError, MalformedDiscoveryDataError
from app.domain.services.emission_schedule import SECONDS_PER_WEEK
from app.infrastructure.clients.discovery_adapter import IndexerFarmDiscovery, IndexerLockerDiscovery
from app.infrastructure.clients.indexer_client import IndexerRequestError
from app.infrastructure.mappers.indexer_mapper import (
    TokenDecimals,
    lock_period_name,
    map_emission_status,
    map_farm_pool,
    map_lock_bucket,
)


SUI = "0x2::sui::SUI"
VIC = "0xfeed::victory_token::VICTORY_TOKEN"
LP_TOKEN = f"0xabc::pair::LPCoin<{VIC}, {SUI}>"
START = 1_700_000_000
DECIMALS = TokenDecimals(overrides={VIC: 6})


class FakeIndexer:
    def __init__(self, *, pools=None, buckets=None, reward_pools=None, emission_status=None, error=None):
        self.pools = pools or []
        self.buckets = buckets or []
        self.reward_pools = reward_pools or {}
        self.emission_status = emission_status or {"emissionStartTimestamp": START, "paused": False}
        self.error = error
        self.emission_status_calls = 0

    def _check(self):
        if self.error is not None:
            raise self.error

    def list_farm_pools(self):
        self._check()
        return self.pools

    def list_lock_buckets(self):
        self._check()
        return self.buckets

    def get_reward_pools(self):
        self._check()
        return self.reward_pools

    def get_emission_status(self):
        self.emission_status_calls += 1
        return self.emission_status


class FakePricePort:
    def __init__(self, prices):
        self._prices = prices

    def get_price(self, token_id):
        value = self._prices.get(token_id)
        return TokenPrice(Decimal(value), "OVERRIDE") if value is not None else None


def _lp_payload(**overrides):
    payload = {
        "poolId": "0",
        "name": "VICTORY-SUI LP",
        "type": "LP",
        "tokenType": LP_TOKEN,
        "totalStaked": "2500000000",
        "allocationPoints": 400,
        "isActive": True,
        "rewardTokens": [VIC],
        "lastUpdated": "2025-02-01T00:00:00Z",
        "emission": {"week": 7, "rewardToken": VIC, "ratePerSecond": "1.5"},
    }
    payload.update(overrides)
    return payload


def test_map_lp_pool_scales_lp_shares_and_orders_pair():
    pool = map_farm_pool(_lp_payload(), decimals=DECIMALS)

    assert isinstance(pool, LpPoolInfo)
    assert pool.total_staked_formatted == Decimal("2.5")
    assert (pool.token0, pool.token1) == (SUI, VIC)
    assert pool.allocation_points == 400
    assert pool.emission.emission_week == 7
    assert pool.emission.reward.rate_per_second == Decimal("1.5")
    assert pool.last_updated == datetime(2025, 2, 1, tzinfo=timezone.utc)


def test_map_single_pool_infers_type_and_uses_token_decimals():
    pool = map_farm_pool(
        {"poolId": "3", "tokenType": VIC, "totalStaked": 12_000_000, "allocationPoints": 10},
        decimals=DECIMALS,
    )

    assert isinstance(pool, SinglePoolInfo)
    assert pool.token == VIC
    assert pool.pool_name == VIC
    assert pool.total_staked_formatted == Decimal("12")
    assert pool.is_active is True
    assert pool.emission is None
    assert pool.last_updated is None


def test_map_lp_pool_without_pair_tokens_is_malformed():
    with pytest.raises(MalformedDiscoveryDataError):
        map_farm_pool(_lp_payload(tokenType="0xabc::pair::NotAnLp"), decimals=DECIMALS)


def test_map_lock_bucket_defaults_name_and_converts_bps():
    bucket = map_lock_bucket(
        {"lockPeriod": 90, "totalLocked": "5000000", "allocationBps": 2500},
        locked_token_decimals=6,
    )

    assert bucket.lock_period_name == "3 Months"
    assert bucket.total_locked_formatted == Decimal("5")
    assert bucket.allocation_percentage == Decimal("25")


def test_lock_period_names():
    assert lock_period_name(7) == "1 Week"
    assert lock_period_name(365) == "1 Year"
    assert lock_period_name(1095) == "3 Years"
    assert lock_period_name(30) == "30 Days"


def test_emission_status_derives_farm_and_locker_rates():
    emission = map_emission_status(
        {"emissionStartTimestamp": START, "paused": False},
        protocol_token=VIC,
        now_timestamp=START + 10,
    )

    assert emission.farm.emission_week == 1
    assert emission.farm.reward.token == VIC
    assert emission.farm.reward.rate_per_second == Decimal("5.28")
    assert emission.locker.reward.rate_per_second == Decimal("1.155")


def test_paused_or_ended_schedule_has_no_emission():
    paused = map_emission_status({"emissionStartTimestamp": START, "paused": True}, protocol_token=VIC, now_timestamp=START)
    ended = map_emission_status(
        {"emissionStartTimestamp": START},
        protocol_token=VIC,
        now_timestamp=START + SECONDS_PER_WEEK * 200,
    )

    assert paused.farm is None and paused.locker is None
    assert ended.farm is None and ended.locker is None


def test_farm_discovery_falls_back_to_schedule_emission():
    indexer = FakeIndexer(pools=[_lp_payload(emission=None)])
    discovery = IndexerFarmDiscovery(indexer, protocol_token=VIC, decimals=DECIMALS, clock=lambda: START + 1)

    pools = discovery.list_farm_pools()

    assert pools[0].emission.emission_week == 1
    assert pools[0].emission.reward.rate_per_second == Decimal("5.28")
    assert indexer.emission_status_calls == 1


def test_farm_discovery_skips_schedule_when_pools_report_emission():
    indexer = FakeIndexer(pools=[_lp_payload()])
    discovery = IndexerFarmDiscovery(indexer, protocol_token=VIC, decimals=DECIMALS)

    discovery.list_farm_pools()

    assert indexer.emission_status_calls == 0


def test_farm_discovery_wraps_indexer_errors():
    discovery = IndexerFarmDiscovery(
        FakeIndexer(error=IndexerRequestError("connection refused")),
        protocol_token=VIC,
        decimals=DECIMALS,
    )

    with pytest.raises(DiscoveryUnavailableError, match="connection refused"):
        discovery.list_farm_pools()


def test_farm_discovery_rejects_malformed_payload():
    discovery = IndexerFarmDiscovery(
        FakeIndexer(pools=[{"poolId": "0", "emission": {"week": 1}}]),
        protocol_token=VIC,
        decimals=DECIMALS,
    )

    with pytest.raises(MalformedDiscoveryDataError):
        discovery.list_farm_pools()


def _locker(indexer, prices=None) -> IndexerLockerDiscovery:
    return IndexerLockerDiscovery(
        indexer,
        protocol_token=VIC,
        auxiliary_token=SUI,
        decimals=DECIMALS,
        price_port=FakePricePort(prices or {}),
        clock=lambda: START + 1,
    )


def test_locker_discovery_scales_locked_amount_with_protocol_decimals():
    indexer = FakeIndexer(buckets=[{"lockPeriod": 7, "totalLocked": "3000000", "allocationBps": 500}])

    buckets = _locker(indexer).list_lock_buckets()

    assert buckets[0].total_locked_formatted == Decimal("3")
    assert buckets[0].allocation_percentage == Decimal("5")
    assert buckets[0].emission.reward.rate_per_second == Decimal("1.155")


def test_reward_pools_are_valued_in_usd():
    indexer = FakeIndexer(reward_pools={"suiBalance": "4000000000", "victoryBalance": "1000000"})

    pools = _locker(indexer, {SUI: "1.5", VIC: "0.25"}).get_reward_pools()

    assert pools.auxiliary_rewards_usd == Decimal("6")
    assert pools.protocol_token_rewards_usd == Decimal("0.25")


def test_unpriced_reward_pool_is_zeroed_without_losing_the_other():
    indexer = FakeIndexer(reward_pools={"suiBalance": "4000000000", "victoryBalance": "1000000"})

    pools = _locker(indexer, {VIC: "0.25"}).get_reward_pools()

    assert pools.auxiliary_rewards_usd == Decimal("0")
    assert pools.protocol_token_rewards_usd == Decimal("0.25")
    assert pools.warnings == (f"reward pool for {SUI} has no USD price; reported as 0",)
