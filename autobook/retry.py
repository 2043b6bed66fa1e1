"""Retry logic with exponential backoff and failure classification"""

import asyncio
import random
from typing import Callable, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .config import (
    BACKOFF_MULTIPLIER,
    INITIAL_BACKOFF,
    JITTER_RANGE,
    MAX_BACKOFF,
    MAX_RETRIES,
)
from .exceptions import (
    MissingMandatoryDataError,
    PaymentStepError,
    PolicyFailure,
    TransientBookingError,
)
from .models import FailureKind


async def retry_with_backoff(
    func: Callable,
    *args,
    max_retries: int = MAX_RETRIES,
    initial_backoff: float = INITIAL_BACKOFF,
    max_backoff: float = MAX_BACKOFF,
    backoff_multiplier: float = BACKOFF_MULTIPLIER,
    retry_on: tuple = (Exception,),
    on_retry: Optional[Callable] = None,
    **kwargs,
):
    """
    Execute function with exponential backoff retry logic.

    Only used around single idempotent operations (a page load, a status
    poll). Whole booking runs are never retried here.

    Args:
        func: Async function to execute
        max_retries: Maximum number of retry attempts
        initial_backoff: Initial backoff duration in seconds
        max_backoff: Maximum backoff duration
        backoff_multiplier: Multiplier for exponential backoff
        retry_on: Exception types worth another attempt; others propagate at once
        on_retry: Optional callback called on each retry: on_retry(attempt, error)
    """
    last_exception = None
    backoff = initial_backoff

    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)

            if attempt > 0:
                logger.success(f"✓ Recovered after {attempt} retries")

            return result

        except retry_on as e:
            last_exception = e

            if attempt >= max_retries:
                logger.error(f"❌ Failed after {max_retries} retries: {e}")
                break

            jitter = random.uniform(*JITTER_RANGE)
            sleep_time = min(backoff * jitter, max_backoff)

            logger.warning(
                f"⚠️ Attempt {attempt + 1}/{max_retries + 1} failed "
                f"({classify_error(e).value}): {e}"
            )
            logger.info(f"   Retrying in {sleep_time:.1f}s...")

            if on_retry:
                await on_retry(attempt, e)

            await asyncio.sleep(sleep_time)
            backoff *= backoff_multiplier

    raise last_exception


def classify_error(error: Exception) -> FailureKind:
    """Classify an error for the synchronizer"""
    if isinstance(error, PaymentStepError):
        return FailureKind.PAYMENT_STEP
    elif isinstance(error, MissingMandatoryDataError):
        return FailureKind.MISSING_DATA
    elif isinstance(error, PolicyFailure):
        return FailureKind.POLICY
    elif isinstance(error, TransientBookingError):
        return FailureKind.TRANSIENT
    elif isinstance(error, PlaywrightError):
        # Includes Playwright's TimeoutError
        return FailureKind.TRANSIENT
    else:
        # Unknown faults count against the attempt ceiling
        return FailureKind.TRANSIENT
