from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal, InvalidOperation
import logging
import time

from app.application.ports.farm_discovery_port import FarmDiscoveryPort
from app.application.ports.locker_discovery_port import LockerDiscoveryPort
from app.application.ports.price_source_port import PriceSourcePort
from app.domain.entities.farm import RawLockInfo, RawPoolInfo, RewardPools
from app.domain.exceptions import DiscoveryUnavailableError, MalformedDiscoveryDataError
from app.domain.services.token_types import scale_amount
from app.infrastructure.clients.indexer_client import IndexerClient, IndexerRequestError
from app.infrastructure.mappers.indexer_mapper import (
    ScheduleEmission,
    TokenDecimals,
    map_emission_status,
    map_farm_pool,
    map_lock_bucket,
)


logger = logging.getLogger(__name__)

_MAPPING_ERRORS = (KeyError, TypeError, ValueError, InvalidOperation)


class _ScheduleEmissionSource:
    def __init__(self, indexer: IndexerClient, *, protocol_token: str, clock: Callable[[], float]):
        self._indexer = indexer
        self._protocol_token = protocol_token
        self._clock = clock

    def load(self) -> ScheduleEmission:
        try:
            payload = self._indexer.get_emission_status()
            return map_emission_status(
                payload,
                protocol_token=self._protocol_token,
                now_timestamp=int(self._clock()),
            )
        except (IndexerRequestError, *_MAPPING_ERRORS) as exc:
            logger.warning("discovery_adapter: emission_status_unavailable error=%s", exc)
            return ScheduleEmission(farm=None, locker=None)


class IndexerFarmDiscovery(FarmDiscoveryPort):
    def __init__(
        self,
        indexer: IndexerClient,
        *,
        protocol_token: str,
        decimals: TokenDecimals,
        clock: Callable[[], float] = time.time,
    ):
        self._indexer = indexer
        self._decimals = decimals
        self._schedule = _ScheduleEmissionSource(indexer, protocol_token=protocol_token, clock=clock)

    def list_farm_pools(self) -> list[RawPoolInfo]:
        try:
            payloads = self._indexer.list_farm_pools()
        except IndexerRequestError as exc:
            raise DiscoveryUnavailableError(str(exc)) from exc

        fallback = None
        if any(not isinstance(item, dict) or not item.get("emission") for item in payloads):
            fallback = self._schedule.load().farm

        try:
            return [
                map_farm_pool(item, decimals=self._decimals, fallback_emission=fallback)
                for item in payloads
            ]
        except _MAPPING_ERRORS as exc:
            raise MalformedDiscoveryDataError(f"Invalid farm pool payload: {exc}") from exc


class IndexerLockerDiscovery(LockerDiscoveryPort):
    def __init__(
        self,
        indexer: IndexerClient,
        *,
        protocol_token: str,
        auxiliary_token: str,
        decimals: TokenDecimals,
        price_port: PriceSourcePort,
        clock: Callable[[], float] = time.time,
    ):
        self._indexer = indexer
        self._protocol_token = protocol_token
        self._auxiliary_token = auxiliary_token
        self._decimals = decimals
        self._price_port = price_port
        self._schedule = _ScheduleEmissionSource(indexer, protocol_token=protocol_token, clock=clock)

    def list_lock_buckets(self) -> list[RawLockInfo]:
        try:
            payloads = self._indexer.list_lock_buckets()
        except IndexerRequestError as exc:
            raise DiscoveryUnavailableError(str(exc)) from exc

        fallback = None
        if any(not isinstance(item, dict) or not item.get("emission") for item in payloads):
            fallback = self._schedule.load().locker

        locked_decimals = self._decimals.for_token(self._protocol_token)
        try:
            return [
                map_lock_bucket(item, locked_token_decimals=locked_decimals, fallback_emission=fallback)
                for item in payloads
            ]
        except _MAPPING_ERRORS as exc:
            raise MalformedDiscoveryDataError(f"Invalid lock bucket payload: {exc}") from exc

    def get_reward_pools(self) -> RewardPools:
        try:
            payload = self._indexer.get_reward_pools()
        except IndexerRequestError as exc:
            raise DiscoveryUnavailableError(str(exc)) from exc

        try:
            auxiliary_balance = scale_amount(
                payload.get("suiBalance", 0), self._decimals.for_token(self._auxiliary_token)
            )
            protocol_balance = scale_amount(
                payload.get("victoryBalance", 0), self._decimals.for_token(self._protocol_token)
            )
        except _MAPPING_ERRORS as exc:
            raise MalformedDiscoveryDataError(f"Invalid reward pools payload: {exc}") from exc

        warnings: list[str] = []
        auxiliary_usd = self._value(self._auxiliary_token, auxiliary_balance, warnings)
        protocol_usd = self._value(self._protocol_token, protocol_balance, warnings)
        return RewardPools(
            auxiliary_rewards_usd=auxiliary_usd,
            protocol_token_rewards_usd=protocol_usd,
            warnings=tuple(warnings),
        )

    def _value(self, token: str, balance: Decimal, warnings: list[str]) -> Decimal:
        if balance == 0:
            return Decimal("0")
        price = self._price_port.get_price(token)
        if price is None:
            logger.warning("discovery_adapter: reward_pool_unpriced token=%s", token)
            warnings.append(f"reward pool for {token} has no USD price; reported as 0")
            return Decimal("0")
        return balance * price.price
