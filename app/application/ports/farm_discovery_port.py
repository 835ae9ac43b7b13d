from __future__ import annotations

from typing import Protocol

from app.domain.entities.farm import RawPoolInfo


class FarmDiscoveryPort(Protocol):
    def list_farm_pools(self) -> list[RawPoolInfo]:
        ...
