"""Celery application configuration."""

from celery import Celery
from celery.signals import worker_init

from app.core.config import settings
from app.core.database import init_db
from app.core.logging import configure_logging

celery_app = Celery("image_processor")

broker_url = settings.celery_broker_url or settings.redis_url
result_backend = settings.celery_result_backend or settings.redis_url

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=result_backend,
    task_default_queue="image_processor",
    task_serializer="json",
    accept_content=["json"],
    task_soft_time_limit=settings.task_soft_time_limit_seconds,
    task_time_limit=settings.task_time_limit_seconds,
    worker_max_tasks_per_child=100,
    task_track_started=True,
    task_always_eager=settings.celery_always_eager,
    beat_schedule={
        "reap-orphaned-requests": {
            "task": "requests.reap_orphans",
            "schedule": float(settings.orphan_grace_seconds),
        },
    },
)

celery_app.autodiscover_tasks(["app.tasks"], related_name="request_tasks")


@worker_init.connect
def prepare_worker(**_) -> None:
    """Workers may start before the API, so make sure logging and tables exist."""

    configure_logging()
    init_db()
