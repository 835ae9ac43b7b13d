from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging


logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def non_negative(value: object, *, label: str, warnings: list[str]) -> Decimal:
    """Coerce a collaborator-supplied number to a finite Decimal >= 0.

    Negative, NaN, infinite or unparseable values become 0 and leave a
    warning behind.
    """
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        number = Decimal("NaN")

    if number.is_finite() and number >= 0:
        return number

    message = f"invalid {label} ({value}); clamped to 0"
    warnings.append(message)
    logger.warning("sanitize: clamped_value label=%s value=%s", label, value)
    return ZERO


def percentage(value: object, *, label: str, warnings: list[str]) -> Decimal:
    number = non_negative(value, label=label, warnings=warnings)
    if number > HUNDRED:
        warnings.append(f"invalid {label} ({value}); clamped to 100")
        logger.warning("sanitize: clamped_percentage label=%s value=%s", label, value)
        return HUNDRED
    return number
