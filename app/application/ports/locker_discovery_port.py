from __future__ import annotations

from typing import Protocol

from app.domain.entities.farm import RawLockInfo, RewardPools


class LockerDiscoveryPort(Protocol):
    def list_lock_buckets(self) -> list[RawLockInfo]:
        ...

    def get_reward_pools(self) -> RewardPools:
        ...
