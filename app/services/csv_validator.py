"""Parsing and validation of uploaded product CSV files."""

from __future__ import annotations

import csv
import io
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from app.core.logging import get_logger
from app.errors import TableValidationError
from app.models.request import (
    INPUT_URLS_COLUMN,
    PRODUCT_NAME_COLUMN,
    SERIAL_NUMBER_COLUMN,
    ProductRow,
)

logger = get_logger(__name__)

INVALID_TABLE_MESSAGE = "Invalid CSV format or data"


def parse_csv(content: bytes) -> List[Dict[str, str]]:
    """Read a CSV with a header row into trimmed column -> value mappings."""

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TableValidationError(f"{INVALID_TABLE_MESSAGE}: file is not UTF-8 encoded") from exc

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        header = next(reader, None)
        if header is None:
            return []
        columns = [name.strip() for name in header]

        rows: List[Dict[str, str]] = []
        for record in reader:
            if not record:
                continue
            if len(record) > len(columns):
                raise TableValidationError(
                    f"{INVALID_TABLE_MESSAGE}: line {reader.line_num} has {len(record)} fields, "
                    f"expected {len(columns)}"
                )
            rows.append({column: value.strip() for column, value in zip(columns, record)})
    except csv.Error as exc:
        raise TableValidationError(f"{INVALID_TABLE_MESSAGE}: {exc}") from exc

    return rows


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "row"
    return f"{field}: {first.get('msg', 'invalid value')}"


def _row_payload(row: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
    return {
        "serial_number": row.get(SERIAL_NUMBER_COLUMN),
        "product_name": row.get(PRODUCT_NAME_COLUMN),
        "input_urls": row.get(INPUT_URLS_COLUMN),
    }


def validate_rows(rows: Sequence[Mapping[str, Optional[str]]]) -> List[ProductRow]:
    """Validate every row or reject the whole table.

    An empty table is valid and yields no products.
    """

    validated: List[ProductRow] = []
    for index, row in enumerate(rows, start=1):
        try:
            validated.append(ProductRow.model_validate(_row_payload(row)))
        except ValidationError as exc:
            reason = _describe(exc)
            logger.info("csv_row_rejected", row=index, reason=reason)
            raise TableValidationError(f"{INVALID_TABLE_MESSAGE}: row {index}: {reason}") from exc
    return validated


def validate_csv(content: bytes) -> List[ProductRow]:
    """Parse and validate an uploaded CSV file."""

    return validate_rows(parse_csv(content))
