import logging

from eventledger.core.celery_config import celery_app
from eventledger.core.config import settings
from eventledger.database.db import SessionLocal
from eventledger.services.payments import expire_pending_bookings

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="eventledger.tasks.expire_pending_bookings_task")
def expire_pending_bookings_task(self) -> int:
    """Periodic sweep releasing capacity held by abandoned checkouts."""
    db = SessionLocal()
    try:
        return expire_pending_bookings(db, limit=settings.RECLAIM_BATCH_SIZE)
    finally:
        db.close()
