"""Czech (cs-CZ) formatting of dates, amounts and quantities for printed documents"""
from datetime import date, datetime
from typing import Any, Optional

from rentdesk.config import settings


def to_date(value: Any) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).astimezone().date()
    except ValueError:
        return None


def format_date(value: Any, default: str = "-") -> str:
    """1. 5. 2024"""
    day = to_date(value)
    if day is None:
        return default if value in (None, '') else str(value)
    return f"{day.day}. {day.month}. {day.year}"


def format_datetime(value: Any, default: str = "-") -> str:
    if value in (None, ''):
        return default
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return str(value)
    return f"{format_date(moment)} {moment.strftime('%H:%M')}"


def format_number(value: Any, decimals: int = 2) -> str:
    """1234.5 -> 1 234,50"""
    formatted = f"{float(value):,.{decimals}f}"
    return formatted.replace(",", " ").replace(".", ",")


def format_currency(amount: Any, default: str = "") -> str:
    if amount in (None, ''):
        return default
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return str(amount)
    return f"{format_number(value)} {settings.currency_code}"


def format_quantity(quantity: Any) -> str:
    return f"{quantity or 1} ks"


def format_difference(difference: Optional[int]) -> str:
    if difference is None:
        return "-"
    if difference > 0:
        return f"+{difference}"
    return str(difference)
