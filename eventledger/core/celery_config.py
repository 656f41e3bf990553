from celery import Celery

from eventledger.core.config import settings
from eventledger.core.redis_config import get_redis_url


def make_celery(app_name: str = "eventledger") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url)
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.timezone = "UTC"
    celery.conf.enable_utc = True
    celery.conf.beat_schedule = {
        "expire-pending-bookings": {
            "task": "eventledger.tasks.expire_pending_bookings_task",
            "schedule": float(settings.RECLAIM_INTERVAL_SECONDS),
        },
    }
    return celery


celery_app = make_celery()
