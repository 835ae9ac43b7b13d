from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.domain.entities.pricing import TokenPrice


@dataclass(frozen=True)
class PriceResolution:
    prices: dict[str, TokenPrice]
    failed_tokens: tuple[str, ...]
    warnings: tuple[str, ...]

    @property
    def prices_updated(self) -> int:
        return sum(1 for price in self.prices.values() if price.price > 0)


@dataclass(frozen=True)
class RefresherStatus:
    refreshing: bool
    has_snapshot: bool
    last_success_at: datetime | None
    last_error: str | None
