import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autobook.exceptions import (
    AmbiguousPurchaseError,
    MissingMandatoryDataError,
    NavigationError,
    NoAdmissibleInventoryError,
    SelectorNotFoundError,
)
from autobook.models import FailureKind
from autobook.retry import classify_error, retry_with_backoff


@pytest.mark.asyncio
async def test_recovers_after_transient_failures():
    calls = []
    retries = []

    async def flaky(value):
        calls.append(value)
        if len(calls) < 3:
            raise NavigationError("home page timed out")
        return value * 2

    async def on_retry(attempt, error):
        retries.append(attempt)

    result = await retry_with_backoff(
        flaky, 21, max_retries=3, initial_backoff=0, max_backoff=0, on_retry=on_retry
    )

    assert result == 42
    assert len(calls) == 3
    assert retries == [0, 1]


@pytest.mark.asyncio
async def test_gives_up_with_the_last_error():
    async def always_fails():
        raise NavigationError("down")

    with pytest.raises(NavigationError):
        await retry_with_backoff(always_fails, max_retries=2, initial_backoff=0, max_backoff=0)


@pytest.mark.asyncio
async def test_errors_outside_retry_on_propagate_at_once():
    calls = []

    async def broken():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await retry_with_backoff(
            broken, max_retries=5, initial_backoff=0, max_backoff=0, retry_on=(NavigationError,)
        )
    assert len(calls) == 1


def test_failure_classification():
    assert classify_error(AmbiguousPurchaseError("clicked, no reference")) == FailureKind.PAYMENT_STEP
    assert classify_error(MissingMandatoryDataError("passport")) == FailureKind.MISSING_DATA
    assert classify_error(NoAdmissibleInventoryError("nothing in budget")) == FailureKind.POLICY
    assert classify_error(SelectorNotFoundError("reserve", [])) == FailureKind.TRANSIENT
    assert classify_error(PlaywrightTimeoutError("Timeout 30000ms exceeded.")) == FailureKind.TRANSIENT
    assert classify_error(RuntimeError("surprise")) == FailureKind.TRANSIENT
