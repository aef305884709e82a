"""Celery tasks for request processing."""

from __future__ import annotations

from typing import List

from app.core.config import settings
from app.core.logging import bind_request_context, clear_request_context, get_logger
from app.models.request import ProductRow
from app.services import job_store, pipeline
from app.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="requests.process")
def process_request(request_id: str, rows: List[dict]) -> str:
    """Transform every image of a stored request and report the outcome."""

    bind_request_context(request_id)
    logger.info("request_task_started", rows=len(rows))
    try:
        products = [ProductRow.model_validate(row) for row in rows]
        status = pipeline.request_pipeline.run(request_id, products)
        logger.info("request_task_finished", status=status.value)
        return status.value
    finally:
        clear_request_context()


@celery_app.task(name="requests.reap_orphans")
def reap_orphaned_requests() -> List[str]:
    """Fail requests whose products were never stored."""

    return job_store.job_store.fail_orphaned_requests(settings.orphan_grace_seconds)
