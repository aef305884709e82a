"""Pydantic models for CSV ingestion and request status."""

from __future__ import annotations

from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .job import JobStatus

SERIAL_NUMBER_COLUMN = "S. No."
PRODUCT_NAME_COLUMN = "Product Name"
INPUT_URLS_COLUMN = "Input Image Urls"
OUTPUT_URLS_COLUMN = "Output Image Urls"

REQUIRED_COLUMNS = (SERIAL_NUMBER_COLUMN, PRODUCT_NAME_COLUMN, INPUT_URLS_COLUMN)
REPORT_COLUMNS = REQUIRED_COLUMNS + (OUTPUT_URLS_COLUMN,)

ALLOWED_URL_SCHEME = "https://"


def split_urls(value: str) -> List[str]:
    """Split a comma-delimited URL cell into trimmed entries."""

    return [part.strip() for part in value.split(",")]


class ProductRow(BaseModel):
    """One validated row of the uploaded CSV."""

    model_config = ConfigDict(str_strip_whitespace=True)

    serial_number: str = Field(..., min_length=1)
    product_name: str = Field(..., min_length=1)
    input_urls: List[str] = Field(..., min_length=1)

    @field_validator("input_urls", mode="before")
    @classmethod
    def split_url_cell(cls, value: object) -> object:
        """Accept the raw comma-delimited cell as well as a list."""

        if isinstance(value, str):
            if not value.strip():
                raise ValueError("at least one image URL is required")
            return split_urls(value)
        return value

    @field_validator("input_urls")
    @classmethod
    def require_https(cls, value: List[str]) -> List[str]:
        """Every URL must use the https scheme."""

        for url in value:
            if not url.startswith(ALLOWED_URL_SCHEME):
                raise ValueError(f"image URL must start with {ALLOWED_URL_SCHEME}: {url!r}")
        return value


class ProcessedProductRow(BaseModel):
    """Consolidated result for one product once all of its images are done."""

    serial_number: str
    product_name: str
    input_urls: List[str]
    output_urls: List[str]


class ReportArtifact(BaseModel):
    """Location of a generated output CSV."""

    path: Path
    url: str


class UploadAcceptedResponse(BaseModel):
    """Acknowledgement returned once a CSV is accepted."""

    message: str
    requestId: str


class RequestStatusResponse(BaseModel):
    """API response for request status queries."""

    requestId: str
    status: JobStatus


class MessageResponse(BaseModel):
    """Error body shared by every endpoint."""

    message: str
