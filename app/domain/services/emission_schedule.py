from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


SECONDS_PER_WEEK = 604800
BASIS_POINTS = 10000
TOTAL_EMISSION_WEEKS = 156
BOOTSTRAP_WEEKS = 4
# Rates are in protocol-token base units (6 decimals) per second.
BOOTSTRAP_RATE = 6_600_000
POST_BOOTSTRAP_START_RATE = 5_470_000
WEEKLY_DECAY_BPS = 9900
PROTOCOL_TOKEN_DECIMALS = 6

PHASE_NOT_STARTED = 0
PHASE_BOOTSTRAP = 1
PHASE_POST_BOOTSTRAP = 2
PHASE_ENDED = 3

# (last week, lp, single, locker, dev) in basis points.
_ALLOCATION_STEPS = (
    (4, 6500, 1500, 1750, 250),
    (12, 6200, 1200, 2350, 250),
    (26, 5800, 700, 3250, 250),
    (52, 5500, 200, 4050, 250),
    (104, 5000, 0, 4750, 250),
    (156, 4500, 0, 5250, 250),
)


@dataclass(frozen=True)
class WeekAllocation:
    lp_bps: int
    single_bps: int
    locker_bps: int
    dev_bps: int


@dataclass(frozen=True)
class EmissionRates:
    week: int
    total_per_second: Decimal
    lp_per_second: Decimal
    single_per_second: Decimal
    locker_per_second: Decimal
    dev_per_second: Decimal

    @property
    def farm_per_second(self) -> Decimal:
        return self.lp_per_second + self.single_per_second


def current_week(*, emission_start_timestamp: int, current_timestamp: int) -> int:
    if emission_start_timestamp <= 0 or current_timestamp < emission_start_timestamp:
        return 0
    return (current_timestamp - emission_start_timestamp) // SECONDS_PER_WEEK + 1


def phase_for_week(week: int) -> int:
    if week <= 0:
        return PHASE_NOT_STARTED
    if week <= BOOTSTRAP_WEEKS:
        return PHASE_BOOTSTRAP
    if week <= TOTAL_EMISSION_WEEKS:
        return PHASE_POST_BOOTSTRAP
    return PHASE_ENDED


def total_rate_for_week(week: int) -> int:
    if week <= 0 or week > TOTAL_EMISSION_WEEKS:
        return 0
    if week <= BOOTSTRAP_WEEKS:
        return BOOTSTRAP_RATE
    rate = POST_BOOTSTRAP_START_RATE
    for _ in range(week - BOOTSTRAP_WEEKS - 1):
        rate = rate * WEEKLY_DECAY_BPS // BASIS_POINTS
    return rate


def allocation_for_week(week: int) -> WeekAllocation:
    if week > 0:
        for last_week, lp, single, locker, dev in _ALLOCATION_STEPS:
            if week <= last_week:
                return WeekAllocation(lp_bps=lp, single_bps=single, locker_bps=locker, dev_bps=dev)
    return WeekAllocation(lp_bps=0, single_bps=0, locker_bps=0, dev_bps=0)


def rates_for_week(week: int) -> EmissionRates:
    total = total_rate_for_week(week)
    allocation = allocation_for_week(week)
    scale = Decimal(10) ** PROTOCOL_TOKEN_DECIMALS

    def _share(bps: int) -> Decimal:
        return (Decimal(total) * Decimal(bps) / Decimal(BASIS_POINTS)) / scale

    return EmissionRates(
        week=week,
        total_per_second=Decimal(total) / scale,
        lp_per_second=_share(allocation.lp_bps),
        single_per_second=_share(allocation.single_bps),
        locker_per_second=_share(allocation.locker_bps),
        dev_per_second=_share(allocation.dev_bps),
    )
