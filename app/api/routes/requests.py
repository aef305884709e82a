"""Routes for CSV upload and request status."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from app.core.logging import get_logger
from app.models.request import MessageResponse, RequestStatusResponse, UploadAcceptedResponse
from app.services import job_store
from app.services.csv_validator import validate_csv
from app.tasks.request_tasks import process_request

logger = get_logger(__name__)

router = APIRouter(tags=["requests"])


@router.post(
    "/upload",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=UploadAcceptedResponse,
    responses={400: {"model": MessageResponse}, 500: {"model": MessageResponse}},
    summary="Upload a product CSV and start processing its images",
)
def upload_csv(file: Optional[UploadFile] = File(default=None)) -> UploadAcceptedResponse:
    """Validate the CSV, store the request and dispatch processing in the background."""

    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    try:
        content = file.file.read()
    finally:
        file.file.close()

    rows = validate_csv(content)
    request_id = job_store.create_request()
    job_store.create_products(request_id, rows)

    process_request.delay(request_id=request_id, rows=[row.model_dump() for row in rows])
    logger.info("request_accepted", request_id=request_id, products=len(rows), filename=file.filename)
    return UploadAcceptedResponse(message="File uploaded and processing started", requestId=request_id)


@router.get(
    "/status/{request_id}",
    response_model=RequestStatusResponse,
    responses={404: {"model": MessageResponse}, 500: {"model": MessageResponse}},
    summary="Retrieve request processing status",
)
def get_request_status(request_id: str) -> RequestStatusResponse:
    """Return the current status of a request."""

    return RequestStatusResponse(requestId=request_id, status=job_store.get_request_status(request_id))
