"""Durable store for requests, their products and images."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.database import SessionLocal, session_scope
from app.core.logging import get_logger
from app.errors import PersistenceError, RequestNotFoundError
from app.models.db import Image, Product, Request
from app.models.job import ImageRecord, ImageStatus, JobStatus, RequestRecord, ensure_transition
from app.models.request import ProductRow

logger = get_logger(__name__)


class SqlJobStore:
    """SQLAlchemy-backed request registry. Every public call runs in its own transaction."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def create_request(self) -> str:
        request_id = f"req_{uuid.uuid4().hex}"
        try:
            with session_scope(self._session_factory) as session:
                session.add(Request(id=request_id, status=JobStatus.pending.value))
        except SQLAlchemyError as exc:
            logger.error("request_create_failed", error=str(exc))
            raise PersistenceError("Unable to create request") from exc
        return request_id

    def create_products(self, request_id: str, rows: Iterable[ProductRow]) -> None:
        """Insert every product and image for the request, or nothing at all."""

        try:
            with session_scope(self._session_factory) as session:
                if session.get(Request, request_id) is None:
                    raise RequestNotFoundError(request_id)
                for row in rows:
                    product = Product(
                        request_id=request_id,
                        serial_number=row.serial_number,
                        product_name=row.product_name,
                    )
                    product.images = [
                        Image(position=position, input_url=url, processing_status=ImageStatus.pending.value)
                        for position, url in enumerate(row.input_urls)
                    ]
                    session.add(product)
        except SQLAlchemyError as exc:
            logger.error("products_create_failed", request_id=request_id, error=str(exc))
            raise PersistenceError(f"Unable to store products for request {request_id}") from exc

    def set_request_status(self, request_id: str, status: JobStatus) -> None:
        try:
            with session_scope(self._session_factory) as session:
                request = session.get(Request, request_id, with_for_update=True)
                if request is None:
                    raise RequestNotFoundError(request_id)
                ensure_transition(JobStatus(request.status), status)
                request.status = status.value
                request.updated_at = datetime.utcnow()
        except SQLAlchemyError as exc:
            logger.error("request_status_update_failed", request_id=request_id, status=status.value, error=str(exc))
            raise PersistenceError(f"Unable to update request {request_id}") from exc

    def set_image_status(
        self,
        request_id: str,
        input_url: str,
        status: ImageStatus,
        output_url: Optional[str] = None,
    ) -> int:
        """Update every image of the request that references ``input_url``.

        Images are addressed by URL, so a URL listed twice within one request
        updates both rows, and a later call for the same URL overwrites an
        earlier one. A ``failed`` image is never moved back to ``completed``.
        Returns the number of rows changed.
        """

        product_ids = select(Product.id).where(Product.request_id == request_id)
        conditions = [Image.product_id.in_(product_ids), Image.input_url == input_url]
        if status is ImageStatus.completed:
            conditions.append(Image.processing_status != ImageStatus.failed.value)
        statement = (
            update(Image)
            .where(*conditions)
            .values(processing_status=status.value, output_url=output_url, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(statement)
                return result.rowcount
        except SQLAlchemyError as exc:
            logger.error("image_status_update_failed", request_id=request_id, url=input_url, error=str(exc))
            raise PersistenceError(f"Unable to update image status for request {request_id}") from exc

    def get_request(self, request_id: str) -> RequestRecord:
        try:
            with session_scope(self._session_factory) as session:
                request = session.get(Request, request_id)
                if request is None:
                    raise RequestNotFoundError(request_id)
                return RequestRecord.model_validate(request)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Unable to read request {request_id}") from exc

    def get_request_status(self, request_id: str) -> JobStatus:
        return self.get_request(request_id).status

    def list_images(self, request_id: str) -> List[ImageRecord]:
        """Return the request's images in product order, then URL order."""

        statement = (
            select(Image, Product)
            .join(Product, Image.product_id == Product.id)
            .where(Product.request_id == request_id)
            .order_by(Product.id, Image.position)
        )
        try:
            with session_scope(self._session_factory) as session:
                return [
                    ImageRecord(
                        id=image.id,
                        product_id=product.id,
                        serial_number=product.serial_number,
                        product_name=product.product_name,
                        position=image.position,
                        input_url=image.input_url,
                        processing_status=ImageStatus(image.processing_status),
                        output_url=image.output_url,
                    )
                    for image, product in session.execute(statement).all()
                ]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Unable to read images for request {request_id}") from exc

    def fail_orphaned_requests(self, grace_seconds: int) -> List[str]:
        """Fail pending requests that never received products within the grace period."""

        cutoff = datetime.utcnow() - timedelta(seconds=grace_seconds)
        product_count = (
            select(func.count(Product.id)).where(Product.request_id == Request.id).correlate(Request).scalar_subquery()
        )
        statement = select(Request).where(
            Request.status == JobStatus.pending.value,
            Request.created_at < cutoff,
            product_count == 0,
        )
        try:
            with session_scope(self._session_factory) as session:
                orphans = session.execute(statement).scalars().all()
                for request in orphans:
                    request.status = JobStatus.failed.value
                    request.updated_at = datetime.utcnow()
                reaped = [request.id for request in orphans]
        except SQLAlchemyError as exc:
            raise PersistenceError("Unable to reconcile orphaned requests") from exc

        if reaped:
            logger.warning("orphaned_requests_failed", count=len(reaped), request_ids=reaped)
        return reaped


job_store = SqlJobStore()


def create_request() -> str:
    """Register a new request in pending state."""

    return job_store.create_request()


def create_products(request_id: str, rows: Iterable[ProductRow]) -> None:
    """Store validated rows for a request atomically."""

    job_store.create_products(request_id, rows)


def get_request_status(request_id: str) -> JobStatus:
    """Return the current status of a request."""

    return job_store.get_request_status(request_id)
