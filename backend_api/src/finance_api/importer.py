"""Spreadsheet import of bank statement rows.

Expected layout (first worksheet, first row is a header):

    Date | Description | Amount | Reference (optional)

Positive amounts are income, negative amounts are expenses. Rows that cannot be
parsed are skipped and counted, never fatal.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date as Date, datetime
from io import BytesIO
from typing import Any, Iterable, List, Optional, Sequence
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException
from sqlmodel import Session

from .categorizer import categorize_by_description
from .models import EXPENSE, INCOME, Transaction, User

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm")
AMOUNT_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%m/%d/%Y", "%d.%m.%Y")
# ElementTree.ParseError and lxml.etree.XMLSyntaxError both derive from SyntaxError
UNREADABLE_ERRORS = (InvalidFileException, BadZipFile, SyntaxError, KeyError, ValueError, OSError)

SAMPLE_FORMAT = {
    "expected_format": {
        "Column A": "Date (YYYY-MM-DD or Excel date format)",
        "Column B": "Description (Transaction description)",
        "Column C": "Amount (Positive for income, negative for expenses)",
        "Column D": "Reference (Optional - transaction reference)",
    },
    "notes": [
        "First row should contain headers",
        "Date should be in a recognizable format",
        "Amount should be numeric (positive for income, negative for expenses)",
        "Description will be used for automatic categorization",
    ],
}


class SpreadsheetImportError(ValueError):
    """The uploaded file cannot be imported as a whole."""


@dataclass
class ParsedRow:
    date: Date
    description: str
    amount: float
    reference: Optional[str] = None

    @property
    def transaction_type(self) -> str:
        return INCOME if self.amount >= 0 else EXPENSE


@dataclass
class ImportResult:
    transactions: List[Transaction] = field(default_factory=list)
    skipped_rows: int = 0


def parse_date(value: Any) -> Optional[Date]:
    """Convert a date cell (datetime, date, serial number or string) to a date."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, Date):
        return value
    if isinstance(value, (int, float)):
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError):
            return None
        return converted.date() if isinstance(converted, datetime) else None
    if isinstance(value, str):
        text = value.strip()
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    return None


def parse_amount(value: Any) -> Optional[float]:
    """Convert an amount cell to a float; strings may carry thousands separators."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if AMOUNT_PATTERN.match(text):
            return float(text)
        logger.warning("Amount string %r is not a valid number format", value)
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_row(row: Sequence[Any]) -> Optional[ParsedRow]:
    """Parse one data row; returns None when the row must be skipped."""
    if not row or len(row) < 3:
        return None
    parsed_date = parse_date(row[0])
    description = _as_text(row[1])
    amount = parse_amount(row[2])
    if parsed_date is None or description is None or amount is None:
        return None
    reference = _as_text(row[3]) if len(row) > 3 else None
    return ParsedRow(date=parsed_date, description=description[:500], amount=amount, reference=reference)


def read_rows(content: bytes) -> List[tuple]:
    """Return every row of the first worksheet as a tuple of cell values."""
    workbook = None
    rows = None
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
        if workbook.worksheets:
            # read-only sheets parse lazily, so malformed sheet XML surfaces here
            rows = list(workbook.worksheets[0].iter_rows(values_only=True))
    except UNREADABLE_ERRORS as exc:
        raise SpreadsheetImportError(f"Could not read Excel file: {exc}") from exc
    finally:
        if workbook is not None:
            workbook.close()

    if rows is None:
        raise SpreadsheetImportError("Excel file contains no worksheets")
    if len(rows) < 2:
        raise SpreadsheetImportError("Excel file must contain at least a header row and one data row")
    return rows


def check_filename(filename: Optional[str]) -> None:
    name = (filename or "").lower()
    if name.endswith(".xls"):
        raise SpreadsheetImportError("Legacy .xls files are not supported; please save the file as .xlsx")
    if not name.endswith(SUPPORTED_EXTENSIONS):
        raise SpreadsheetImportError("Please upload a valid Excel file (.xlsx)")


def parse_rows(rows: Iterable[Sequence[Any]]) -> ImportResult:
    """Parse data rows (header already removed) without touching the database."""
    result = ImportResult()
    for index, row in enumerate(rows, start=2):
        if not row or all(cell is None or cell == "" for cell in row):
            continue
        parsed = parse_row(row)
        if parsed is None:
            logger.warning("Skipping row %d: missing or invalid date, description or amount", index)
            result.skipped_rows += 1
            continue
        result.transactions.append(
            Transaction(
                date=parsed.date,
                description=parsed.description,
                amount=abs(parsed.amount),
                transaction_type=parsed.transaction_type,
                reference=parsed.reference,
            )
        )
    return result


# PUBLIC_INTERFACE
def import_transactions(session: Session, user: User, filename: Optional[str], content: bytes) -> ImportResult:
    """Parse an uploaded workbook, auto-categorize every row and store the transactions."""
    check_filename(filename)
    if not content:
        raise SpreadsheetImportError("Please select a file to upload")

    rows = read_rows(content)
    result = parse_rows(rows[1:])
    for tr in result.transactions:
        category = categorize_by_description(session, tr.description, user.id)
        tr.category_id = category.id if category else None
        tr.user_id = user.id
        session.add(tr)
    session.commit()
    for tr in result.transactions:
        session.refresh(tr)

    logger.info(
        "Imported %d transactions from %s for user %s (%d rows skipped)",
        len(result.transactions), filename, user.username, result.skipped_rows,
    )
    return result
