from __future__ import annotations

from typing import Protocol

from app.domain.entities.pricing import TokenPrice


class PriceSourcePort(Protocol):
    def get_price(self, token_id: str) -> TokenPrice | None:
        ...
