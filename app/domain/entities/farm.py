from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar


class PoolType(str, Enum):
    LP = "LP"
    SINGLE = "Single"


@dataclass(frozen=True)
class RewardStream:
    token: str
    rate_per_second: Decimal


@dataclass(frozen=True)
class EmissionInfo:
    emission_week: int
    reward: RewardStream
    bonus: RewardStream | None = None

    @property
    def is_live(self) -> bool:
        rate = self.reward.rate_per_second
        return self.emission_week > 0 and rate.is_finite() and rate > 0

    @property
    def tokens(self) -> frozenset[str]:
        tokens = {self.reward.token}
        if self.bonus is not None:
            tokens.add(self.bonus.token)
        return frozenset(tokens)


@dataclass(frozen=True)
class LpPoolInfo:
    """Farm pool staking LP shares of a DEX pair.

    `total_staked_formatted` is expressed in LP-share units and is priced per
    share under `lp_token`.
    """

    pool_type: ClassVar[PoolType] = PoolType.LP

    pool_id: str
    pool_name: str
    lp_token: str
    token0: str
    token1: str
    total_staked_formatted: Decimal
    allocation_points: int
    is_active: bool
    reward_tokens: frozenset[str]
    emission: EmissionInfo | None
    last_updated: datetime | None = None

    @property
    def priced_token(self) -> str:
        return self.lp_token

    @property
    def referenced_tokens(self) -> frozenset[str]:
        tokens = {self.lp_token, *self.reward_tokens}
        if self.emission is not None:
            tokens.update(self.emission.tokens)
        return frozenset(tokens)


@dataclass(frozen=True)
class SinglePoolInfo:
    """Farm pool staking a plain token, quantity in token units."""

    pool_type: ClassVar[PoolType] = PoolType.SINGLE

    pool_id: str
    pool_name: str
    token: str
    total_staked_formatted: Decimal
    allocation_points: int
    is_active: bool
    reward_tokens: frozenset[str]
    emission: EmissionInfo | None
    last_updated: datetime | None = None

    @property
    def priced_token(self) -> str:
        return self.token

    @property
    def referenced_tokens(self) -> frozenset[str]:
        tokens = {self.token, *self.reward_tokens}
        if self.emission is not None:
            tokens.update(self.emission.tokens)
        return frozenset(tokens)


RawPoolInfo = LpPoolInfo | SinglePoolInfo


@dataclass(frozen=True)
class RawLockInfo:
    lock_period: int
    lock_period_name: str
    total_locked_formatted: Decimal
    allocation_percentage: Decimal
    emission: EmissionInfo | None


@dataclass(frozen=True)
class RewardPools:
    auxiliary_rewards_usd: Decimal
    protocol_token_rewards_usd: Decimal
    warnings: tuple[str, ...] = ()
