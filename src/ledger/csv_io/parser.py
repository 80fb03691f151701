"""
CSV parser and validator for bulk party import.

Turns untrusted CSV text into validated ParsedPartyInput records plus a list
of row-level error messages. Parsing is best effort: a bad row is reported and
skipped, and only header problems stop the parse.

Expected header (case-insensitive, any order):
    Party Name, Address, Phone, PAN, Due Amount

"Party Name" and "PAN" are required. Quoted fields may contain commas and
doubled quotes (""), but not embedded newlines.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.exceptions import ParseError, ValidationError
from ..core.models import ParsedPartyInput
from ..core.money import parse_amount

logger = logging.getLogger(__name__)

COLUMN_NAME = "Party Name"
COLUMN_ADDRESS = "Address"
COLUMN_PHONE = "Phone"
COLUMN_PAN = "PAN"
COLUMN_DUE_AMOUNT = "Due Amount"

REQUIRED_COLUMNS = (COLUMN_NAME, COLUMN_PAN)
OPTIONAL_COLUMNS = (COLUMN_ADDRESS, COLUMN_PHONE, COLUMN_DUE_AMOUNT)

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class CsvParserOptions:
    """
    Optional validation limits.

    Attributes:
        max_name_length: Reject rows whose party name is longer (None = no limit)
        max_address_length: Reject rows whose address is longer (None = no limit)
    """
    max_name_length: Optional[int] = None
    max_address_length: Optional[int] = None


@dataclass
class CsvParseResult:
    """Usable records plus every error found, from a single pass."""
    records: List[ParsedPartyInput] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas, honouring double-quoted fields.

    Inside quotes a comma is literal and "" is an escaped quote. Each field is
    trimmed of surrounding whitespace.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if in_quotes:
            if char == '"':
                if i + 1 < length and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == '"':
            in_quotes = True
        elif char == ",":
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def _resolve_columns(headers: List[str]) -> Dict[str, int]:
    """Map canonical column names to their first index in the header row."""
    wanted = {name.lower(): name for name in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
    indices: Dict[str, int] = {}
    for idx, header in enumerate(headers):
        canonical = wanted.get(header.strip().lower())
        if canonical is not None and canonical not in indices:
            indices[canonical] = idx
    return indices


def _field(values: List[str], index: Optional[int], default: str = "") -> str:
    if index is None or index >= len(values):
        return default
    return values[index].strip()


def _parse_row(
    row_number: int,
    values: List[str],
    columns: Dict[str, int],
    options: CsvParserOptions,
) -> ParsedPartyInput:
    """Validate one data row, raising ValidationError on the first problem."""
    name = _field(values, columns.get(COLUMN_NAME))
    address = _field(values, columns.get(COLUMN_ADDRESS))
    phone = _field(values, columns.get(COLUMN_PHONE))
    tax_id = _field(values, columns.get(COLUMN_PAN))
    due_text = _field(values, columns.get(COLUMN_DUE_AMOUNT)) or "0"

    if not name:
        raise ValidationError(row_number, f"{COLUMN_NAME} is required")
    if not tax_id:
        raise ValidationError(row_number, f"{COLUMN_PAN} is required")

    if options.max_name_length is not None and len(name) > options.max_name_length:
        raise ValidationError(
            row_number,
            f"{COLUMN_NAME} too long (max {options.max_name_length} characters)",
        )
    if options.max_address_length is not None and len(address) > options.max_address_length:
        raise ValidationError(
            row_number,
            f"{COLUMN_ADDRESS} too long (max {options.max_address_length} characters)",
        )

    due_amount = parse_amount(due_text)
    if due_amount is None:
        raise ValidationError(row_number, f'Invalid due amount "{due_text}"')
    if due_amount < 0:
        raise ValidationError(row_number, "Due amount cannot be negative")

    return ParsedPartyInput(
        name=name,
        address=address,
        phone=phone,
        tax_id=tax_id,
        due_amount=due_amount,
    )


def _split_lines(raw_text: str) -> List[str]:
    """Drop a leading BOM, split on CRLF/LF and discard blank lines."""
    if raw_text.startswith("\ufeff"):
        raw_text = raw_text[1:]
    return [line for line in _LINE_SPLIT.split(raw_text) if line.strip()]


def _parse_header(lines: List[str]) -> Dict[str, int]:
    """Resolve header columns, raising ParseError if the header is unusable."""
    if not lines:
        raise ParseError("File is empty")

    headers = split_csv_line(lines[0])
    logger.debug(f"Headers found: {headers}")

    columns = _resolve_columns(headers)
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise ParseError(
            "; ".join(f"Missing required column: {name}" for name in missing),
            missing_columns=missing,
        )
    return columns


def parse_csv(raw_text: str, options: Optional[CsvParserOptions] = None) -> CsvParseResult:
    """
    Parse CSV text into candidate party records.

    Pure: the same text and options always give the same result.

    Args:
        raw_text: Whole file contents
        options: Optional validation limits

    Returns:
        CsvParseResult with the accepted records and every error message.
        A header problem yields its error(s) and no records.
    """
    options = options or CsvParserOptions()
    result = CsvParseResult()

    lines = _split_lines(raw_text)

    try:
        columns = _parse_header(lines)
    except ParseError as e:
        if e.missing_columns:
            result.errors.extend(f"Missing required column: {name}" for name in e.missing_columns)
        else:
            result.errors.append(str(e))
        return result

    for row_number, line in enumerate(lines[1:], start=1):
        values = split_csv_line(line)
        try:
            record = _parse_row(row_number, values, columns, options)
        except ValidationError as e:
            logger.debug(str(e))
            result.errors.append(str(e))
            continue
        result.records.append(record)

    logger.debug(
        f"Parsing complete. Valid parties: {len(result.records)}, Errors: {len(result.errors)}"
    )
    return result


def parse_csv_strict(raw_text: str, options: Optional[CsvParserOptions] = None) -> CsvParseResult:
    """
    Like parse_csv, but raise ParseError for header-stage failures.

    Row-level errors are still collected in the result.
    """
    lines = _split_lines(raw_text)
    _parse_header(lines)
    return parse_csv(raw_text, options)


def parse_csv_file(
    path: Union[str, Path],
    options: Optional[CsvParserOptions] = None,
) -> CsvParseResult:
    """
    Read a UTF-8 CSV file (BOM tolerant) and parse it.
    """
    path = Path(path)
    logger.info(f"Reading CSV file: {path}")
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        text = f.read()
    return parse_csv(text, options)
