"""Completion webhook delivery."""

from __future__ import annotations

import httpx

from app.core.config import settings
from app.core.logging import get_logger
from app.errors import NotifyError

logger = get_logger(__name__)


class WebhookNotifier:
    """Posts a single best-effort completion callback. Failures are logged, never raised or retried."""

    def __init__(self, webhook_url: str | None = None, client: httpx.Client | None = None) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else settings.webhook_url
        self._client = client or httpx.Client(timeout=settings.webhook_timeout_seconds)

    def notify(self, request_id: str, output_csv_url: str) -> bool:
        """Deliver the completion payload; return whether the endpoint accepted it."""

        if not self.webhook_url:
            logger.info("webhook_skipped", request_id=request_id, reason="webhook_url not configured")
            return False

        payload = {"requestId": request_id, "status": "completed", "outputCsvUrl": output_csv_url}
        try:
            self._deliver(payload)
        except NotifyError as exc:
            logger.error("webhook_delivery_failed", request_id=request_id, url=self.webhook_url, error=str(exc))
            return False

        logger.info("webhook_delivered", request_id=request_id, url=self.webhook_url)
        return True

    def _deliver(self, payload: dict) -> None:
        try:
            response = self._client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotifyError(str(exc)) from exc


webhook_notifier = WebhookNotifier()
