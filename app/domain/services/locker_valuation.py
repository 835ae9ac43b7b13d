from __future__ import annotations

from collections.abc import Collection
import logging

from app.domain.entities.farm import RawLockInfo
from app.domain.entities.pricing import TokenPrice
from app.domain.entities.tvl import LockerTVLData
from app.domain.services.sanitize import ZERO, non_negative, percentage


logger = logging.getLogger(__name__)


def value_lock_bucket(
    bucket: RawLockInfo,
    protocol_token: str,
    protocol_price: TokenPrice | None,
    *,
    warnings: list[str],
    reported_tokens: Collection[str] = (),
) -> LockerTVLData:
    locked = non_negative(
        bucket.total_locked_formatted,
        label=f"locked amount for {bucket.lock_period_name}",
        warnings=warnings,
    )
    allocation = percentage(
        bucket.allocation_percentage,
        label=f"allocation percentage for {bucket.lock_period_name}",
        warnings=warnings,
    )

    price = ZERO
    if protocol_price is None:
        if protocol_token not in reported_tokens:
            warnings.append(
                f"lock period {bucket.lock_period_name} has no price for {protocol_token}; TVL reported as 0"
            )
        logger.warning(
            "locker_valuation: missing_price lock_period=%s token=%s",
            bucket.lock_period,
            protocol_token,
        )
    else:
        price = non_negative(protocol_price.price, label=f"price for {protocol_token}", warnings=warnings)
        if price == 0:
            warnings.append(
                f"lock period {bucket.lock_period_name} priced at 0 for {protocol_token}; TVL reported as 0"
            )
            logger.warning(
                "locker_valuation: zero_price lock_period=%s token=%s",
                bucket.lock_period,
                protocol_token,
            )

    return LockerTVLData(
        lock_period=bucket.lock_period,
        lock_period_name=bucket.lock_period_name,
        total_locked_formatted=locked,
        victory_price=price,
        allocation_percentage=allocation,
        tvl_usd=locked * price,
    )
