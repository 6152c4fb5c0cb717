"""Utility helper functions."""
from datetime import date, datetime
from typing import Optional


def format_currency(amount: float, currency: str = "KRW") -> str:
    """Format currency amount.

    Args:
        amount: Amount to format
        currency: Currency code

    Returns:
        Formatted currency string
    """
    return f"{amount:,.0f} {currency}"


def calculate_profit_rate(profit: float, cost_basis: float) -> float:
    """Calculate a profit rate in percent, rounded to 2 decimals.

    Args:
        profit: Realized profit
        cost_basis: Amount originally paid for the units sold

    Returns:
        Profit percentage (0.0 when there is no cost basis)
    """
    if cost_basis == 0:
        return 0.0
    return round(profit / cost_basis * 100, 2)


def format_timestamp(dt: datetime) -> str:
    """Format datetime to string.

    Args:
        dt: Datetime object

    Returns:
        Formatted datetime string
    """
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def parse_login_date(value: Optional[str]) -> Optional[date]:
    """Parse a stored login date.

    Accepts ISO dates ("2025-12-12") and the legacy browser format
    ("Fri Dec 12 2025").

    Returns:
        date, or None if missing or unparseable
    """
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%a %b %d %Y").date()
    except ValueError:
        return None
