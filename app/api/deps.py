from __future__ import annotations

from functools import lru_cache

from app.application.use_cases.build_tvl_snapshot import BuildTvlSnapshotUseCase
from app.application.use_cases.refresh_tvl_snapshot import SnapshotRefresher
from app.application.use_cases.resolve_prices import ResolvePricesUseCase
from app.infrastructure.clients.dex_pricing import DexPriceProvider
from app.infrastructure.clients.discovery_adapter import IndexerFarmDiscovery, IndexerLockerDiscovery
from app.infrastructure.clients.indexer_client import IndexerClient, IndexerClientSettings
from app.infrastructure.clients.pricing import CoingeckoPriceProvider, PriceOverrides, TokenPriceService
from app.infrastructure.mappers.indexer_mapper import TokenDecimals
from app.shared.config import get_settings


@lru_cache(maxsize=1)
def _get_indexer_client() -> IndexerClient:
    settings = get_settings()
    return IndexerClient(
        IndexerClientSettings(
            api_base=settings.indexer_api_base,
            timeout_seconds=settings.indexer_timeout_seconds,
            max_retries=settings.indexer_max_retries,
            min_interval_ms=settings.indexer_min_interval_ms,
        )
    )


@lru_cache(maxsize=1)
def _get_token_decimals() -> TokenDecimals:
    settings = get_settings()
    return TokenDecimals(
        lp_decimals=settings.lp_token_decimals,
        overrides=settings.token_decimals,
    )


@lru_cache(maxsize=1)
def _get_price_service() -> TokenPriceService:
    settings = get_settings()
    overrides = PriceOverrides(settings.price_overrides)
    coingecko = CoingeckoPriceProvider(
        api_base=settings.coingecko_api_base,
        timeout_seconds=settings.coingecko_timeout_seconds,
        cache_ttl_seconds=settings.coingecko_cache_ttl_seconds,
    )
    dex = DexPriceProvider(
        _get_indexer_client(),
        auxiliary_token=settings.auxiliary_token,
        quote_tokens=settings.quote_tokens,
        decimals=_get_token_decimals(),
    )
    return TokenPriceService(
        overrides=overrides,
        coingecko=coingecko,
        coingecko_ids=settings.coingecko_ids,
        dex=dex,
    )


def get_build_tvl_snapshot_use_case() -> BuildTvlSnapshotUseCase:
    settings = get_settings()
    price_service = _get_price_service()
    farm_port = IndexerFarmDiscovery(
        _get_indexer_client(),
        protocol_token=settings.protocol_token,
        decimals=_get_token_decimals(),
    )
    locker_port = IndexerLockerDiscovery(
        _get_indexer_client(),
        protocol_token=settings.protocol_token,
        auxiliary_token=settings.auxiliary_token,
        decimals=_get_token_decimals(),
        price_port=price_service,
    )
    return BuildTvlSnapshotUseCase(
        farm_port=farm_port,
        locker_port=locker_port,
        resolve_prices=ResolvePricesUseCase(
            price_port=price_service,
            timeout_seconds=settings.price_timeout_seconds,
            max_workers=settings.price_workers,
        ),
        protocol_token=settings.protocol_token,
        discovery_timeout_seconds=settings.discovery_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_snapshot_refresher() -> SnapshotRefresher:
    settings = get_settings()
    return SnapshotRefresher(
        build_use_case=get_build_tvl_snapshot_use_case(),
        interval_seconds=settings.refresh_interval_seconds,
    )
