"""Output CSV generation for completed requests."""

from __future__ import annotations

import csv
import io
import time
from pathlib import Path
from typing import Iterable, List, Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.models.request import (
    INPUT_URLS_COLUMN,
    OUTPUT_URLS_COLUMN,
    PRODUCT_NAME_COLUMN,
    REPORT_COLUMNS,
    SERIAL_NUMBER_COLUMN,
    ProcessedProductRow,
    ReportArtifact,
    split_urls,
)

logger = get_logger(__name__)

URL_SEPARATOR = ", "


def render_report(rows: Iterable[ProcessedProductRow]) -> str:
    """Serialize rows to CSV text with a fixed column order."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_COLUMNS)
    for row in rows:
        writer.writerow(
            [
                row.serial_number,
                row.product_name,
                URL_SEPARATOR.join(row.input_urls),
                URL_SEPARATOR.join(row.output_urls),
            ]
        )
    return buffer.getvalue()


def parse_report(text: str) -> List[ProcessedProductRow]:
    """Read a report produced by :func:`render_report` back into rows."""

    reader = csv.DictReader(io.StringIO(text, newline=""))
    return [
        ProcessedProductRow(
            serial_number=record[SERIAL_NUMBER_COLUMN],
            product_name=record[PRODUCT_NAME_COLUMN],
            input_urls=split_urls(record[INPUT_URLS_COLUMN]) if record[INPUT_URLS_COLUMN] else [],
            output_urls=split_urls(record[OUTPUT_URLS_COLUMN]) if record[OUTPUT_URLS_COLUMN] else [],
        )
        for record in reader
    ]


class ReportGenerator:
    """Writes output CSVs under the media root."""

    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None) -> None:
        self.root = Path(root or settings.media_root) / "reports"
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def generate(self, rows: Iterable[ProcessedProductRow], request_id: Optional[str] = None) -> ReportArtifact:
        """Write the report and return where it can be fetched. ``OSError`` propagates."""

        content = render_report(rows)
        self.root.mkdir(parents=True, exist_ok=True)
        name = f"output_{request_id or 'report'}_{int(time.time() * 1000)}.csv"
        path = self.root / name
        path.write_text(content, encoding="utf-8", newline="")

        logger.info("report_generated", path=str(path), bytes=len(content))
        return ReportArtifact(path=path, url=f"{self.public_base_url}/files/reports/{name}")


report_generator = ReportGenerator()
