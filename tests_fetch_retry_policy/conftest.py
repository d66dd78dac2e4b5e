"""Pytest configuration for fetch_retry_policy executor tests."""
import pytest

from fetch_retry_policy import BackoffStrategy, RetryPolicyBuilder, RetryStatistics


@pytest.fixture
def fast_policy():
    """Three retries with a 1ms fixed delay."""
    return (
        RetryPolicyBuilder()
        .max_retries(3)
        .initial_delay_ms(1)
        .max_delay_ms(50)
        .backoff_strategy(BackoffStrategy.FIXED)
        .retryable_status_codes([429, 503])
        .retryable_error_codes(["CONNECTION_ERROR", "NETWORK_TIMEOUT"])
        .build()
    )


@pytest.fixture
def slow_policy():
    """Retries with a 5s delay, long enough to cancel during the wait."""
    return (
        RetryPolicyBuilder()
        .max_retries(3)
        .initial_delay_ms(5000)
        .max_delay_ms(5000)
        .backoff_strategy(BackoffStrategy.FIXED)
        .retryable_error_codes(["CONNECTION_ERROR"])
        .build()
    )


@pytest.fixture
def statistics():
    return RetryStatistics()
