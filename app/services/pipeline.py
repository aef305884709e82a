"""Drives one request from validated rows to a completed report."""

from __future__ import annotations

from typing import List, Literal, Sequence

from app.core.config import settings
from app.core.logging import get_logger
from app.errors import EncodeError, FetchError, InvalidTransitionError, PersistenceError
from app.models.job import ImageStatus, JobStatus
from app.models.request import ProcessedProductRow, ProductRow
from app.services.image_transformer import ImageTransformer, image_transformer
from app.services.job_store import SqlJobStore, job_store
from app.services.notifier import WebhookNotifier, webhook_notifier
from app.services.report import ReportGenerator, report_generator

logger = get_logger(__name__)

FailureMode = Literal["fail_fast", "isolate"]


class _AbortRequest(Exception):
    """Internal signal that a fail-fast request must stop."""


class RequestPipeline:
    """Processes the images of a request sequentially, row by row then URL by URL.

    In ``fail_fast`` mode the first image that cannot be transformed fails the
    whole request and nothing after it is attempted. ``isolate`` mode keeps
    going after a failure, marking only that image failed; the request still
    ends ``failed`` and no report is produced.
    """

    def __init__(
        self,
        store: SqlJobStore,
        transformer: ImageTransformer,
        reporter: ReportGenerator,
        notifier: WebhookNotifier,
        failure_mode: FailureMode = "fail_fast",
    ) -> None:
        self.store = store
        self.transformer = transformer
        self.reporter = reporter
        self.notifier = notifier
        self.failure_mode = failure_mode

    def run(self, request_id: str, rows: Sequence[ProductRow]) -> JobStatus:
        """Process every image of the request and return its final status."""

        try:
            self.store.set_request_status(request_id, JobStatus.processing)
        except InvalidTransitionError:
            current = self.store.get_request_status(request_id)
            if current.is_terminal:
                logger.warning("request_already_finished", request_id=request_id, status=current.value)
            else:
                logger.warning("request_already_started", request_id=request_id, status=current.value)
            return current
        except PersistenceError as exc:
            logger.error("request_start_failed", request_id=request_id, error=str(exc))
            return self._fail(request_id)

        logger.info("request_processing_started", request_id=request_id, products=len(rows))

        try:
            processed, failures = self._process_rows(request_id, rows)
            if failures:
                logger.warning("request_has_failed_images", request_id=request_id, failed=failures)
                return self._fail(request_id)

            artifact = self.reporter.generate(processed, request_id=request_id)
            self.store.set_request_status(request_id, JobStatus.completed)
        except _AbortRequest:
            return self._fail(request_id)
        except Exception as exc:
            logger.exception("request_processing_failed", request_id=request_id, error=str(exc))
            return self._fail(request_id)

        logger.info("request_processing_completed", request_id=request_id, report=artifact.url)
        self.notifier.notify(request_id, artifact.url)
        return JobStatus.completed

    def _process_rows(self, request_id: str, rows: Sequence[ProductRow]) -> tuple[List[ProcessedProductRow], int]:
        processed: List[ProcessedProductRow] = []
        failures = 0
        for row in rows:
            output_urls: List[str] = []
            for url in row.input_urls:
                try:
                    output_url = self.transformer.transform(url)
                except (FetchError, EncodeError) as exc:
                    logger.error("image_processing_failed", request_id=request_id, url=url, error=str(exc))
                    self.store.set_image_status(request_id, url, ImageStatus.failed)
                    if self.failure_mode == "fail_fast":
                        raise _AbortRequest() from exc
                    failures += 1
                    continue

                output_urls.append(output_url)
                self.store.set_image_status(request_id, url, ImageStatus.completed, output_url)

            processed.append(
                ProcessedProductRow(
                    serial_number=row.serial_number,
                    product_name=row.product_name,
                    input_urls=list(row.input_urls),
                    output_urls=output_urls,
                )
            )
        return processed, failures

    def _fail(self, request_id: str) -> JobStatus:
        try:
            self.store.set_request_status(request_id, JobStatus.failed)
        except Exception as exc:  # pragma: no cover - store unavailable
            logger.exception("request_fail_status_not_recorded", request_id=request_id, error=str(exc))
        return JobStatus.failed


request_pipeline = RequestPipeline(
    store=job_store,
    transformer=image_transformer,
    reporter=report_generator,
    notifier=webhook_notifier,
    failure_mode=settings.failure_mode,
)
