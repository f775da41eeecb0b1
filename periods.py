from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    start: date
    end: date


def resolve_period(
    start: Optional[str],
    end: Optional[str],
) -> Period:
    """Inclusive range from ISO ``start_date`` / ``end_date`` query values."""
    if not start or not end:
        raise ValueError("Start date and end date are required")
    try:
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD") from exc
    if start_date > end_date:
        raise ValueError("Start date must be before end date")
    return Period(start_date, end_date)


def resolve_year(year: Optional[str], *, today: Optional[date] = None) -> int:
    today = today or date.today()
    if not year:
        return today.year
    try:
        value = int(year)
    except ValueError as exc:
        raise ValueError("Invalid year") from exc
    if value < 2000 or value > 3000:
        raise ValueError("Invalid year")
    return value


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"
