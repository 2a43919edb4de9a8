"""
Local-date helpers: ledger dates are YYYY-MM-DD strings, periods YYYY-MM
"""
from datetime import date, datetime, timedelta, timezone

from app.domain.errors import ValidationError
from app.config import get_settings


def now_local() -> datetime:
    """Текущее время в настроенном TIMEZONE."""
    return datetime.now(get_settings().get_timezone())


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def today_local() -> str:
    return now_local().strftime("%Y-%m-%d")


def parse_date_local(value: str) -> date:
    """
    Parse a YYYY-MM-DD string

    Raises:
        ValidationError: if the string is not a calendar date
    """
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def resolve_date_local(value: str | None) -> str:
    """Проверенная дата, сегодня если значение пустое."""
    if not value:
        return today_local()
    return parse_date_local(value).isoformat()


def period_ym(date_local: str) -> str:
    """'2025-05-10' -> '2025-05'"""
    return date_local[:7]


def last_7_days_range(date_local: str) -> tuple[str, str]:
    """Окно (start, end) из 7 дней включительно, заканчивается на date_local."""
    end = parse_date_local(date_local)
    start = end - timedelta(days=6)
    return start.isoformat(), end.isoformat()
