from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every timestamp is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def today() -> date:
    return utcnow().date()


def day_bounds(target: date) -> tuple[datetime, datetime]:
    start = datetime.combine(target, time.min)
    return start, start + timedelta(days=1)


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Any) -> Decimal:
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def percent(part: Any, whole: Any, places: int = 1) -> float:
    whole = to_decimal(whole)
    if whole == 0:
        return 0.0
    ratio = to_decimal(part) * 100 / whole
    return float(ratio.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def percent_change(current: Any, previous: Any) -> float:
    previous = to_decimal(previous)
    if previous == 0:
        return 0.0
    return percent(to_decimal(current) - previous, previous, 1)


def iso(value: Optional[datetime | date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
