from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from models.transaction_candidate import ExtractedCandidate
from parsers.receipt_parser import split_lines
from persistence.models import TransactionType

EXPECTED_FORMAT = "Expected format: date    description    category    amount    type"
FORMAT_EXAMPLE = "2024-01-15    Coffee Shop    Dining    12.50    EXPENSE"
MAX_REPORTED_ERRORS = 10
PREVIEW_LINE_COUNT = 5

_DATE_PATTERN = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")
_NON_AMOUNT_CHARS = re.compile(r"[^0-9.\-]")
_VALID_TYPES = frozenset({"INCOME", "EXPENSE"})


@dataclass(frozen=True, slots=True)
class StatementLine:
    """Raw fields of one `date description category amount type` row."""

    date: str
    description: str
    category: str
    amount: str
    type: str


@dataclass(slots=True)
class StatementParseResult:
    lines: List[str]
    candidates: List[ExtractedCandidate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def skipped(self) -> int:
        return len(self.lines) - len(self.candidates)


def parse_statement_line(line: str) -> Optional[StatementLine]:
    """
    Split a whitespace-separated statement row into its five fields.

    Returns None when the row does not have that shape; calendar validity of
    the date and sign of the amount are checked later by `parse_statement_text`.
    """

    parts = line.split()
    if len(parts) < 5:
        return None

    tx_type = parts[-1].upper()
    if tx_type not in _VALID_TYPES:
        return None

    clean_amount = _NON_AMOUNT_CHARS.sub("", parts[-2])
    if parse_leading_float(clean_amount) is None:
        return None

    date_token = parts[0]
    if not _DATE_PATTERN.search(date_token):
        return None

    description = " ".join(parts[1:-3])
    if not description:
        return None

    return StatementLine(
        date=date_token,
        description=description,
        category=parts[-3],
        amount=clean_amount,
        type=tx_type,
    )


def parse_statement_text(text: str) -> StatementParseResult:
    """Parse every line of an extracted statement, collecting per-line errors."""

    result = StatementParseResult(lines=split_lines(text))
    for line_number, line in enumerate(result.lines, start=1):
        row = parse_statement_line(line)
        if row is None:
            continue

        parsed_date = _parse_statement_date(row.date)
        if parsed_date is None:
            result.errors.append(f"Line {line_number}: Invalid date format")
            continue

        amount = parse_leading_float(row.amount)
        if amount is None or not math.isfinite(amount) or round(amount, 2) <= 0:
            result.errors.append(f"Line {line_number}: Invalid amount")
            continue

        result.candidates.append(
            ExtractedCandidate(
                amount=amount,
                category=row.category,
                description=row.description,
                date=parsed_date,
                type=TransactionType(row.type),
            )
        )
    return result


def _parse_statement_date(token: str) -> Optional[datetime]:
    match = _DATE_PATTERN.search(token)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_leading_float(raw: str) -> Optional[float]:
    # Only the numeric prefix counts: "12.50-" reads as 12.5, "--" is not a number.
    match = re.match(r"[+-]?(\d+\.?\d*|\.\d+)", raw.strip())
    if not match:
        return None
    return float(match.group(0))
