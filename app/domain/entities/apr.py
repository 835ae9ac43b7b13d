from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class APRBreakdown:
    base_apr: Decimal
    bonus_apr: Decimal
    daily_rewards_usd: Decimal
    annual_rewards_usd: Decimal
    victory_rewards_per_second: Decimal
    victory_rewards_per_day: Decimal
    victory_rewards_annual: Decimal
    pool_share: Decimal
    emission_week: int
    reward_tokens: frozenset[str]

    @property
    def total_apr(self) -> Decimal:
        return self.base_apr + self.bonus_apr


@dataclass(frozen=True)
class LiveApr:
    status: ClassVar[str] = "live"

    breakdown: APRBreakdown


@dataclass(frozen=True)
class EstimatedApr:
    status: ClassVar[str] = "estimated"

    breakdown: APRBreakdown


@dataclass(frozen=True)
class AprUnavailable:
    status: ClassVar[str] = "unavailable"


AprResult = LiveApr | EstimatedApr | AprUnavailable


def apr_breakdown_of(result: AprResult) -> APRBreakdown | None:
    if isinstance(result, (LiveApr, EstimatedApr)):
        return result.breakdown
    return None


def total_apr_of(result: AprResult) -> Decimal:
    breakdown = apr_breakdown_of(result)
    return breakdown.total_apr if breakdown is not None else Decimal("0")
