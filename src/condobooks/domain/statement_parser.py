"""Parser for Banco Popular Dominicano statement exports.

The export is a CSV file with a few metadata lines on top (account number,
period), one header row and then data rows mixed with running-balance and
summary noise. The delimiter varies between exports.
"""

import csv
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, UTC
from decimal import Decimal
from enum import Enum
from typing import IO, Optional, Union

from condobooks.domain.entities import TransactionType
from condobooks.domain.errors import (
    NO_TRANSACTIONS_FOUND,
    UNRECOGNIZED_FORMAT,
    ParseErrorKind,
    StatementParseError,
)
from condobooks.logging_setup import get_logger
from condobooks.utils.amount_parser import parse_amount
from condobooks.utils.date_parser import parse_statement_date

logger = get_logger(__name__)

BANK_NAME = "Popular Dominicano"
METADATA_LINES = 8
ACCOUNT_MARKERS = ("Cuenta:", "Account:")

COL_DATE = "Fecha Posteo"
COL_AMOUNT = "Monto Transacción"
COL_SHORT_DESCRIPTION = "Descripción Corta"
COL_DESCRIPTION = "Descripción"
COL_REFERENCE = "No. Referencia"
COL_SERIAL = "No. Serial"

DEBIT_MARKER = "Débito"
CREDIT_MARKER = "Crédito"
TAX_PHRASE = "PAGO IMPUESTO"

_HEADER_TOKEN = re.compile(r'fecha posteo"?\s*[,;|]', re.IGNORECASE)

StatementSource = Union[bytes, str, IO[bytes], IO[str]]


class ParseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ParsedTransaction:
    """Candidate transaction read from one statement row."""

    type: TransactionType
    amount: Decimal
    date: datetime
    description: Optional[str]
    bank_description: Optional[str]
    reference: Optional[str]
    serial: Optional[str]


@dataclass(frozen=True)
class StatementMetadata:
    bank: str = BANK_NAME
    account: Optional[str] = None
    date_range: Optional[str] = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one statement file."""

    status: ParseStatus
    transactions: tuple[ParsedTransaction, ...] = field(default_factory=tuple)
    metadata: Optional[StatementMetadata] = None
    filename: Optional[str] = None
    original_filename: Optional[str] = None
    message: Optional[str] = None
    error_kind: Optional[ParseErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.status is ParseStatus.SUCCESS


def _normalize(text: str) -> str:
    return unicodedata.normalize("NFC", text).strip().strip('"').strip().casefold()


def stored_filename(original_filename: str, now: Optional[datetime] = None) -> str:
    """Build the stored name ``<epoch millis>-<sanitized original name>``."""
    now = now or datetime.now(UTC)
    timestamp = int(now.timestamp() * 1000)
    safe = re.sub(r"[^a-zA-Z0-9.-]", "_", original_filename or "statement.csv")
    return f"{timestamp}-{safe}"


def _read_text(source: StatementSource) -> str:
    try:
        data = source.read() if hasattr(source, "read") else source
        if isinstance(data, str):
            return data.lstrip("\ufeff")
        return bytes(data).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise StatementParseError(f"Could not decode statement file as UTF-8: {e}", ParseErrorKind.IO) from e
    except OSError as e:
        raise StatementParseError(f"Could not read statement file: {e}", ParseErrorKind.IO) from e


def detect_delimiter(header_line: str) -> str:
    """Pick the delimiter of a header line: pipe, then semicolon, then comma."""
    if "|" in header_line:
        return "|"
    if ";" in header_line:
        return ";"
    return ","


def find_header_index(lines: list[str]) -> int:
    """Return the index of the header row.

    Raises:
        StatementParseError: If no line carries the posting date column token
    """
    for index, line in enumerate(lines):
        if _HEADER_TOKEN.search(line):
            return index
    raise StatementParseError(UNRECOGNIZED_FORMAT, ParseErrorKind.FORMAT)


def extract_metadata(lines: list[str]) -> StatementMetadata:
    """Best-effort account number and period from the metadata lines."""
    head = lines[:METADATA_LINES]
    account = None
    for line in head:
        for marker in ACCOUNT_MARKERS:
            if marker in line:
                value = line.split(marker, 1)[1]
                account = value.strip().strip(",;|\"' ").strip() or None
                break
        if account is not None:
            break
    date_range = None
    if len(head) > 2:
        date_range = head[2].strip().strip(",;|\"").strip() or None
    return StatementMetadata(account=account, date_range=date_range)


def _split_line(line: str, delimiter: str) -> list[str]:
    # One reader per line so an unclosed quote cannot swallow the rows after it
    row = next(csv.reader([line], delimiter=delimiter, quotechar='"'), [])
    return [unicodedata.normalize("NFC", value).strip() for value in row]


def _row_to_transaction(record: dict[str, str]) -> Optional[ParsedTransaction]:
    """Convert one row mapping to a candidate, or None for a noise row."""
    date_text = record.get(COL_DATE, "")
    amount_text = record.get(COL_AMOUNT, "")
    short_description = record.get(COL_SHORT_DESCRIPTION, "")
    description = record.get(COL_DESCRIPTION, "")

    if not date_text or not amount_text:
        return None
    has_marker = (
        DEBIT_MARKER in short_description
        or CREDIT_MARKER in short_description
        or TAX_PHRASE in description
    )
    if not has_marker:
        return None
    try:
        posted = parse_statement_date(date_text)
        amount = parse_amount(amount_text)
    except ValueError:
        logger.debug("Skipping row with unparseable date or amount: %r", record)
        return None

    is_money_out = DEBIT_MARKER in short_description or TAX_PHRASE in description
    bank_description = description or None
    return ParsedTransaction(
        type=TransactionType.MONEY_OUT if is_money_out else TransactionType.MONEY_IN,
        amount=abs(amount),
        date=posted,
        description=bank_description,
        bank_description=bank_description,
        reference=record.get(COL_REFERENCE) or None,
        serial=record.get(COL_SERIAL) or None,
    )


def read_statement(text: str) -> tuple[list[ParsedTransaction], StatementMetadata]:
    """Parse statement text into candidates and metadata.

    Args:
        text: Whole file contents

    Returns:
        Tuple of (candidates in file order, metadata)

    Raises:
        StatementParseError: If the header is missing (FORMAT) or no row
            qualifies as a transaction (NO_TRANSACTIONS)
    """
    lines = text.splitlines()
    header_index = find_header_index(lines)
    metadata = extract_metadata(lines[:header_index])
    delimiter = detect_delimiter(lines[header_index])

    header = _split_line(lines[header_index], delimiter)
    canonical = {
        _normalize(name): name
        for name in (COL_DATE, COL_AMOUNT, COL_SHORT_DESCRIPTION, COL_DESCRIPTION, COL_REFERENCE, COL_SERIAL)
    }
    columns = [canonical.get(_normalize(name), name) for name in header]

    transactions = []
    for line in lines[header_index + 1:]:
        if not line.strip():
            continue
        values = _split_line(line, delimiter)
        record = {column: values[i] if i < len(values) else "" for i, column in enumerate(columns)}
        candidate = _row_to_transaction(record)
        if candidate is not None:
            transactions.append(candidate)

    if not transactions:
        raise StatementParseError(NO_TRANSACTIONS_FOUND, ParseErrorKind.NO_TRANSACTIONS)
    return transactions, metadata


def parse_statement(
    source: StatementSource,
    filename: str,
    now: Optional[datetime] = None,
) -> ParseResult:
    """Parse a statement file into a typed result.

    Never raises for bad input; failures come back as an ERROR result with
    a message and an error kind.

    Args:
        source: Raw bytes, text, or an open file object
        filename: Name of the uploaded file
        now: Clock used for the stored filename timestamp

    Returns:
        ParseResult
    """
    try:
        text = _read_text(source)
        transactions, metadata = read_statement(text)
    except StatementParseError as e:
        logger.info("Statement %s rejected: %s", filename, e)
        return ParseResult(
            status=ParseStatus.ERROR,
            original_filename=filename,
            message=str(e),
            error_kind=e.kind,
        )

    logger.info("Parsed %d transactions from %s", len(transactions), filename)
    return ParseResult(
        status=ParseStatus.SUCCESS,
        transactions=tuple(transactions),
        metadata=metadata,
        filename=stored_filename(filename, now),
        original_filename=filename,
    )
