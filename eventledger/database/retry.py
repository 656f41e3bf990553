import logging
from collections.abc import Callable
from typing import TypeVar

import redis
from sqlalchemy.exc import OperationalError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from eventledger.core.config import settings
from eventledger.services.errors import Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventBusy(Exception):
    """The per-event admission lock could not be acquired in time."""


TRANSIENT_ERRORS = (
    OperationalError,
    redis.exceptions.ConnectionError,
    redis.exceptions.TimeoutError,
    EventBusy,
)


def run_with_retry(fn: Callable[..., T], *args, **kwargs) -> T:
    """Run ``fn`` retrying transient store failures with exponential backoff.

    Domain errors propagate untouched. Once the attempts are exhausted the
    last transient failure is surfaced as ``Unavailable``.
    """
    retrying = Retrying(
        stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.05, max=settings.STORE_RETRY_MAX_WAIT_SECONDS),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    try:
        return retrying(fn, *args, **kwargs)
    except TRANSIENT_ERRORS as exc:
        logger.error("Giving up on %s after %s attempts: %s", fn.__name__, settings.STORE_RETRY_ATTEMPTS, exc)
        raise Unavailable() from exc
