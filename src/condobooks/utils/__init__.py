"""Utility functions for condobooks."""

from condobooks.utils.date_parser import parse_date, parse_statement_date
from condobooks.utils.amount_parser import parse_amount
from condobooks.utils.money import format_currency

__all__ = ["parse_date", "parse_statement_date", "parse_amount", "format_currency"]
