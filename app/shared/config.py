from __future__ import annotations

import json
import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()

DEFAULT_PROTOCOL_TOKEN = "0x0::victory_token::VICTORY_TOKEN"
DEFAULT_AUXILIARY_TOKEN = "0x2::sui::SUI"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _json(name: str, default=None):
    value = _env(name)
    if not value:
        return {} if default is None else default
    return json.loads(value)


@dataclass(frozen=True)
class Settings:
    indexer_api_base: str
    indexer_timeout_seconds: float
    indexer_max_retries: int
    indexer_min_interval_ms: int
    coingecko_api_base: str
    coingecko_timeout_seconds: float
    coingecko_cache_ttl_seconds: float
    price_overrides: dict
    coingecko_ids: dict | None
    protocol_token: str
    auxiliary_token: str
    quote_tokens: list
    lp_token_decimals: int
    token_decimals: dict
    price_timeout_seconds: float
    discovery_timeout_seconds: float
    price_workers: int
    refresh_interval_seconds: float


def get_settings() -> Settings:
    protocol_token = _env("PROTOCOL_TOKEN", DEFAULT_PROTOCOL_TOKEN)
    token_decimals = {protocol_token: 6}
    token_decimals.update(_json("TOKEN_DECIMALS"))
    return Settings(
        indexer_api_base=_env("INDEXER_API_BASE", "http://localhost:8080"),
        indexer_timeout_seconds=float(_env("INDEXER_TIMEOUT_SECONDS", "10")),
        indexer_max_retries=int(_env("INDEXER_MAX_RETRIES", "3")),
        indexer_min_interval_ms=int(_env("INDEXER_MIN_INTERVAL_MS", "0")),
        coingecko_api_base=_env("COINGECKO_API_BASE", "https://api.coingecko.com/api/v3"),
        coingecko_timeout_seconds=float(_env("COINGECKO_TIMEOUT_SECONDS", "10")),
        coingecko_cache_ttl_seconds=float(_env("COINGECKO_CACHE_TTL_SECONDS", "300")),
        price_overrides=_json("PRICE_OVERRIDES"),
        coingecko_ids=_json("COINGECKO_IDS") or None,
        protocol_token=protocol_token,
        auxiliary_token=_env("AUXILIARY_TOKEN", DEFAULT_AUXILIARY_TOKEN),
        quote_tokens=_json("QUOTE_TOKENS", default=[]),
        lp_token_decimals=int(_env("LP_TOKEN_DECIMALS", "9")),
        token_decimals=token_decimals,
        price_timeout_seconds=float(_env("PRICE_TIMEOUT_SECONDS", "10")),
        discovery_timeout_seconds=float(_env("DISCOVERY_TIMEOUT_SECONDS", "30")),
        price_workers=int(_env("PRICE_WORKERS", "8")),
        refresh_interval_seconds=float(_env("REFRESH_INTERVAL_SECONDS", "300")),
    )
