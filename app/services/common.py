"""
Small helpers shared by the engine services.

Rounding is half-up everywhere (Decimal), never Python's banker's rounding:
2.5 -> 3, 0.25 -> 0.3.
"""
from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

Number = Union[int, float, Decimal]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def today() -> date:
    return utcnow().date()


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def ev(v) -> str:
    """Return bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def round_half_up(value: Number, places: int = 0) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP)


def average(values: list[Number]) -> float:
    """Arithmetic mean rounded to one decimal; 0 for an empty list."""
    valid = [v for v in values if v is not None]
    if not valid:
        return 0.0
    mean = Decimal(sum(Decimal(str(v)) for v in valid)) / Decimal(len(valid))
    return float(round_half_up(mean, 1))


def jdump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def jload(text: Optional[str], default: Any) -> Any:
    if not text:
        return default
    try:
        result = json.loads(text)
    except (ValueError, TypeError):
        return default
    return result if isinstance(result, type(default)) else default
