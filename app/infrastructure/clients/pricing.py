from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import logging
from threading import Lock
import time

import httpx

from app.domain.entities.pricing import TokenPrice
from app.domain.services.token_types import extract_token_symbol, is_lp_token


logger = logging.getLogger(__name__)

SOURCE_OVERRIDE = "OVERRIDE"
SOURCE_LP = "LP"
SOURCE_DEX = "DEX"
SOURCE_COINGECKO = "COINGECKO"

DEFAULT_COINGECKO_IDS = {
    "SUI": "sui",
    "USDC": "usd-coin",
    "USDT": "tether",
    "WBTC": "wrapped-bitcoin",
    "WETH": "weth",
}


class PriceLookupError(RuntimeError):
    pass


@dataclass(frozen=True)
class PriceOverrides:
    data: dict

    def get_price(self, token: str) -> Decimal | None:
        if not isinstance(self.data, dict):
            return None
        value = self.data.get(token)
        # LP types embed their pair tokens, so only an exact type match applies
        if value is None and not is_lp_token(token):
            value = self.data.get(extract_token_symbol(token))
        if value is None:
            return None
        return Decimal(str(value))


class CoingeckoPriceProvider:
    def __init__(
        self,
        api_base: str,
        timeout_seconds: float,
        cache_ttl_seconds: float = 300,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self._transport = transport
        self._fetched: dict[str, tuple[float, Decimal]] = {}
        self._lock = Lock()

    def _fresh(self, coingecko_id: str) -> Decimal | None:
        with self._lock:
            fetched_at, value = self._fetched.get(coingecko_id, (None, None))
        if fetched_at is None or time.monotonic() - fetched_at >= self.cache_ttl_seconds:
            return None
        return value

    def get_price_usd(self, coingecko_id: str) -> Decimal:
        cached = self._fresh(coingecko_id)
        if cached is not None:
            return cached

        url = f"{self.api_base}/simple/price"
        params = {"ids": coingecko_id, "vs_currencies": "usd"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PriceLookupError(f"Coingecko request failed for {coingecko_id}: {exc}") from exc

        entry = payload.get(coingecko_id) if isinstance(payload, dict) else None
        if not isinstance(entry, dict) or "usd" not in entry:
            raise PriceLookupError(f"Price not found for {coingecko_id}.")
        try:
            value = Decimal(str(entry["usd"]))
        except InvalidOperation as exc:
            raise PriceLookupError(f"Invalid Coingecko price for {coingecko_id}: {entry['usd']}") from exc
        if self.cache_ttl_seconds > 0:
            with self._lock:
                self._fetched[coingecko_id] = (time.monotonic(), value)
        return value


class TokenPriceService:
    """Resolve one token's USD price from the first source that yields a positive value.

    Order: overrides, LP share pricing for LP token types, DEX pairs, then
    Coingecko by symbol. Returns None when every source comes up empty.
    """

    def __init__(
        self,
        *,
        overrides: PriceOverrides,
        coingecko: CoingeckoPriceProvider,
        coingecko_ids: Mapping[str, str] | None = None,
        dex=None,
    ):
        self.overrides = overrides
        self.coingecko = coingecko
        self.coingecko_ids = dict(DEFAULT_COINGECKO_IDS if coingecko_ids is None else coingecko_ids)
        self.dex = dex

    def get_price(self, token_id: str) -> TokenPrice | None:
        override = self.overrides.get_price(token_id)
        if override is not None and override > 0:
            return TokenPrice(price=override, source=SOURCE_OVERRIDE)

        if is_lp_token(token_id):
            if self.dex is None:
                return None
            price = self._try(
                SOURCE_LP,
                token_id,
                lambda: self.dex.lp_share_price(token_id, price_of=self._usd_price),
            )
            return TokenPrice(price=price, source=SOURCE_LP) if price else None

        if self.dex is not None:
            price = self._try(SOURCE_DEX, token_id, lambda: self._dex_usd_price(token_id))
            if price:
                return TokenPrice(price=price, source=SOURCE_DEX)

        coingecko_id = self.coingecko_ids.get(extract_token_symbol(token_id))
        if coingecko_id:
            price = self._try(SOURCE_COINGECKO, token_id, lambda: self.coingecko.get_price_usd(coingecko_id))
            if price:
                return TokenPrice(price=price, source=SOURCE_COINGECKO)
        return None

    def _usd_price(self, token_id: str) -> Decimal | None:
        resolved = self.get_price(token_id)
        return resolved.price if resolved is not None else None

    def _dex_usd_price(self, token_id: str) -> Decimal | None:
        if token_id == self.dex.auxiliary_token:
            return self.dex.auxiliary_usd_price()
        in_auxiliary = self.dex.price_in_auxiliary(token_id)
        if not in_auxiliary:
            return None
        auxiliary_usd = self._usd_price(self.dex.auxiliary_token)
        if not auxiliary_usd:
            return None
        return in_auxiliary * auxiliary_usd

    def _try(self, source: str, token_id: str, lookup) -> Decimal | None:
        try:
            price = lookup()
        except PriceLookupError as exc:
            logger.warning("token_price_service: source_failed source=%s token=%s error=%s", source, token_id, exc)
            return None
        if price is None or not price.is_finite() or price <= 0:
            return None
        return price
