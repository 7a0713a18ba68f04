"""Celery app for zone resync and on-demand load balancer checks"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "zone_balancer",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.dns_tasks"],
)

celery_app.conf.update(
    task_routes={"app.tasks.dns.*": {"queue": "dns"}},
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Zone writes are idempotent, so a task lost with its worker may run again
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "resync-zones": {
        "task": "app.tasks.dns.resync_zones",
        "schedule": crontab(minute=f"*/{settings.ZONE_RESYNC_MINUTES}"),
    },
}
