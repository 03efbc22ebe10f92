"""Date parsing utilities."""

from datetime import date, datetime, timedelta
import re

from dateutil import parser as date_parser

_STATEMENT_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def parse_statement_date(date_str: str) -> datetime:
    """Parse a bank statement posting date in DD/MM/YYYY format.

    Args:
        date_str: Date string such as "05/01/2024"

    Returns:
        Naive datetime at midnight of that day

    Raises:
        ValueError: If the string is not a valid DD/MM/YYYY date
    """
    match = _STATEMENT_DATE.match(date_str.strip()) if date_str else None
    if match is None:
        raise ValueError(f"Could not parse statement date '{date_str}'")
    day, month, year = (int(part) for part in match.groups())
    return datetime(year, month, day)


def parse_date(date_str: str) -> date:
    """Parse a date typed by an operator.

    Supports "today", "yesterday", ISO dates ("2024-01-15") and anything
    dateutil understands. Slash dates are read day first ("05/01/2024" is
    5 January), matching the bank's statements.

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    if date_str == "today":
        return today
    if date_str == "yesterday":
        return today - timedelta(days=1)

    try:
        if _STATEMENT_DATE.match(date_str):
            return parse_statement_date(date_str).date()
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def start_of_day(value: date) -> datetime:
    """Midnight at the start of ``value``."""
    return datetime(value.year, value.month, value.day)


def end_of_day(value: date) -> datetime:
    """Last representable second of ``value``."""
    return datetime(value.year, value.month, value.day, 23, 59, 59)
