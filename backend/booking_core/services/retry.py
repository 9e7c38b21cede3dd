"""
Bounded retry for transient storage faults.

Only StorageError is retried. Business outcomes (capacity, conflict,
slot not available) and timeouts go straight back to the caller.

When a deadline is given, no attempt starts and no backoff sleeps past it;
a StorageError that runs into the deadline surfaces as OperationTimeoutError.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import OperationTimeoutError, StorageError

# services.slots imports this module; a runtime import would be circular
if TYPE_CHECKING:
    from .slots.config import BookingConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Storage error on attempt %s (%s), retrying",
        retry_state.attempt_number,
        exc,
    )


def _remaining(deadline: float) -> float:
    return max(deadline - time.monotonic(), 0.0)


def storage_retrying(config: "BookingConfig", deadline: Optional[float] = None) -> Retrying:
    stop = stop_after_attempt(config.storage_retry_attempts)
    wait = wait_exponential(multiplier=config.storage_retry_backoff_seconds, max=2.0)

    if deadline is not None:
        stop = stop | (lambda retry_state: _remaining(deadline) <= 0)
        backoff = wait
        wait = lambda retry_state: min(backoff(retry_state), _remaining(deadline))  # noqa: E731

    return Retrying(
        stop=stop,
        wait=wait,
        retry=retry_if_exception_type(StorageError),
        before_sleep=_log_before_sleep,
        reraise=True,
    )


def call_with_storage_retry(
    config: "BookingConfig",
    fn: Callable[..., T],
    *args,
    deadline: Optional[float] = None,
    **kwargs,
) -> T:
    try:
        return storage_retrying(config, deadline)(fn, *args, **kwargs)
    except StorageError as exc:
        if deadline is not None and _remaining(deadline) <= 0:
            raise OperationTimeoutError(
                f"Request timed out while storage was unavailable: {exc.message}"
            ) from exc
        raise
