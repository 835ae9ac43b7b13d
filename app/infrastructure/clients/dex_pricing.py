from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import logging

from app.domain.services.token_types import extract_lp_tokens, scale_amount, sort_token_types
from app.infrastructure.clients.indexer_client import IndexerClient, IndexerRequestError
from app.infrastructure.clients.pricing import PriceLookupError
from app.infrastructure.mappers.indexer_mapper import TokenDecimals


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairReserves:
    token0: str
    token1: str
    reserve0: Decimal
    reserve1: Decimal
    total_supply: Decimal

    def reserve_of(self, token: str) -> Decimal:
        if token == self.token0:
            return self.reserve0
        if token == self.token1:
            return self.reserve1
        raise PriceLookupError(f"Token {token} is not part of pair {self.token0}/{self.token1}.")


class DexPriceProvider:
    """Prices tokens from constant-product pair reserves reported by the indexer.

    The auxiliary token is quoted against stablecoins (taken as 1 USD); other
    tokens are quoted in the auxiliary token.
    """

    def __init__(
        self,
        indexer: IndexerClient,
        *,
        auxiliary_token: str,
        quote_tokens: Sequence[str],
        decimals: TokenDecimals,
    ):
        self.indexer = indexer
        self.auxiliary_token = auxiliary_token
        self.quote_tokens = tuple(quote_tokens)
        self.decimals = decimals

    def pair_reserves(self, token_a: str, token_b: str) -> PairReserves | None:
        try:
            token0, token1 = sort_token_types(token_a, token_b)
        except ValueError as exc:
            raise PriceLookupError(str(exc)) from exc
        try:
            payload = self.indexer.get_pair(token0, token1)
        except IndexerRequestError as exc:
            raise PriceLookupError(str(exc)) from exc
        if payload is None:
            return None

        token0 = payload.get("token0") or token0
        token1 = payload.get("token1") or token1
        try:
            return PairReserves(
                token0=token0,
                token1=token1,
                reserve0=scale_amount(payload["reserve0"], self.decimals.for_token(token0)),
                reserve1=scale_amount(payload["reserve1"], self.decimals.for_token(token1)),
                total_supply=scale_amount(payload.get("totalSupply", 0), self.decimals.lp_decimals),
            )
        except (KeyError, InvalidOperation) as exc:
            raise PriceLookupError(f"Malformed pair payload for {token0}/{token1}: {exc}") from exc

    def auxiliary_usd_price(self) -> Decimal | None:
        for quote in self.quote_tokens:
            reserves = self.pair_reserves(self.auxiliary_token, quote)
            if reserves is None:
                continue
            auxiliary_reserve = reserves.reserve_of(self.auxiliary_token)
            if auxiliary_reserve <= 0:
                continue
            return reserves.reserve_of(quote) / auxiliary_reserve
        return None

    def price_in_auxiliary(self, token: str) -> Decimal | None:
        reserves = self.pair_reserves(token, self.auxiliary_token)
        if reserves is None:
            return None
        token_reserve = reserves.reserve_of(token)
        if token_reserve <= 0:
            return None
        return reserves.reserve_of(self.auxiliary_token) / token_reserve

    def lp_share_price(
        self,
        lp_token: str,
        *,
        price_of: Callable[[str], Decimal | None],
    ) -> Decimal | None:
        pair = extract_lp_tokens(lp_token)
        if pair is None:
            raise PriceLookupError(f"Not an LP token type: {lp_token}")
        reserves = self.pair_reserves(*pair)
        if reserves is None or reserves.total_supply <= 0:
            return None

        price0 = price_of(reserves.token0)
        price1 = price_of(reserves.token1)
        if not price0 or not price1:
            logger.warning(
                "dex_pricing: lp_component_unpriced lp_token=%s token0_priced=%s token1_priced=%s",
                lp_token,
                bool(price0),
                bool(price1),
            )
            return None
        pool_value = reserves.reserve0 * price0 + reserves.reserve1 * price1
        return pool_value / reserves.total_supply
