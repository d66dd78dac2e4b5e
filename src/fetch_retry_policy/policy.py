"""
Retry policy builder and presets
"""
import logging
from typing import Iterable, Optional, Union

from .errors import PolicyConfigurationError
from .types import BackoffStrategy, ErrorCategory, RetryPolicy

logger = logging.getLogger(__name__)


DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

DEFAULT_RETRYABLE_ERROR_CATEGORIES = frozenset({
    ErrorCategory.CONNECTION_ERROR,
    ErrorCategory.NETWORK_TIMEOUT,
    ErrorCategory.DNS_RESOLUTION_ERROR,
    ErrorCategory.CLIENT_THROTTLED,
    ErrorCategory.SERVER_ERROR,
})


def parse_strategy(value: Union[str, BackoffStrategy]) -> BackoffStrategy:
    """
    Resolve a backoff strategy from its enum name.

    Args:
        value: Strategy or strategy name (case-insensitive)

    Returns:
        The matching BackoffStrategy

    Raises:
        PolicyConfigurationError: If the name is unknown
    """
    if isinstance(value, BackoffStrategy):
        return value
    try:
        return BackoffStrategy[str(value).strip().upper()]
    except KeyError:
        raise PolicyConfigurationError(f"Unknown backoff strategy: {value!r}") from None


def parse_category(value: Union[str, ErrorCategory]) -> ErrorCategory:
    """
    Resolve an error category from its enum name.

    Raises:
        PolicyConfigurationError: If the name is unknown
    """
    if isinstance(value, ErrorCategory):
        return value
    try:
        return ErrorCategory[str(value).strip().upper()]
    except KeyError:
        raise PolicyConfigurationError(f"Unknown error category: {value!r}") from None


class RetryPolicyBuilder:
    """
    Builder for immutable RetryPolicy instances.

    Example:
        policy = (
            RetryPolicyBuilder()
            .max_retries(3)
            .initial_delay_ms(500)
            .max_delay_ms(10_000)
            .backoff_strategy("EXPONENTIAL")
            .retryable_status_codes([429, 503])
            .retryable_error_codes(["NETWORK_TIMEOUT"])
            .error_specific_backoff("CLIENT_THROTTLED", "DECORRELATED_JITTER")
            .build()
        )
    """

    def __init__(self, base: Optional[RetryPolicy] = None) -> None:
        base = base or RetryPolicy()
        self._max_retries = base.max_retries
        self._initial_delay_seconds = base.initial_delay_seconds
        self._max_delay_seconds = base.max_delay_seconds
        self._strategy = base.strategy
        self._status_codes = set(base.retryable_status_codes)
        self._categories = set(base.retryable_error_categories)
        self._per_category = dict(base.per_category_strategy)

    def max_retries(self, value: int) -> "RetryPolicyBuilder":
        self._max_retries = value
        return self

    def initial_delay_ms(self, value: float) -> "RetryPolicyBuilder":
        self._initial_delay_seconds = value / 1000.0
        return self

    def initial_delay_seconds(self, value: float) -> "RetryPolicyBuilder":
        self._initial_delay_seconds = value
        return self

    def max_delay_ms(self, value: float) -> "RetryPolicyBuilder":
        self._max_delay_seconds = value / 1000.0
        return self

    def max_delay_seconds(self, value: float) -> "RetryPolicyBuilder":
        self._max_delay_seconds = value
        return self

    def backoff_strategy(self, value: Union[str, BackoffStrategy]) -> "RetryPolicyBuilder":
        self._strategy = parse_strategy(value)
        return self

    def retryable_status_codes(self, codes: Iterable[int]) -> "RetryPolicyBuilder":
        self._status_codes = {int(code) for code in codes}
        return self

    def retryable_error_codes(
        self, categories: Iterable[Union[str, ErrorCategory]]
    ) -> "RetryPolicyBuilder":
        self._categories = {parse_category(c) for c in categories}
        return self

    def error_specific_backoff(
        self,
        category: Union[str, ErrorCategory],
        strategy: Union[str, BackoffStrategy],
    ) -> "RetryPolicyBuilder":
        self._per_category[parse_category(category)] = parse_strategy(strategy)
        return self

    def build(self) -> RetryPolicy:
        """
        Validate and freeze the policy.

        Raises:
            PolicyConfigurationError: If an invariant is violated
        """
        policy = RetryPolicy(
            max_retries=self._max_retries,
            initial_delay_seconds=float(self._initial_delay_seconds),
            max_delay_seconds=float(self._max_delay_seconds),
            strategy=self._strategy,
            retryable_status_codes=self._status_codes,
            retryable_error_categories=self._categories,
            per_category_strategy=self._per_category,
        )
        logger.debug(f"Built retry policy: {policy}")
        return policy


def default_retry_policy() -> RetryPolicy:
    """
    Create default retry policy.

    3 retries, 1s initial delay, exponential backoff, 30s max.
    """
    return (
        RetryPolicyBuilder()
        .retryable_status_codes(DEFAULT_RETRYABLE_STATUS_CODES)
        .retryable_error_codes(DEFAULT_RETRYABLE_ERROR_CATEGORIES)
        .build()
    )


def aggressive_retry_policy() -> RetryPolicy:
    """
    Create aggressive retry policy for flaky connections.

    5 retries, 0.5s initial delay, 10s max, equal jitter, with throttling
    backing off on decorrelated jitter.
    """
    return (
        RetryPolicyBuilder()
        .max_retries(5)
        .initial_delay_ms(500)
        .max_delay_ms(10_000)
        .backoff_strategy(BackoffStrategy.EXPONENTIAL_WITH_EQUAL_JITTER)
        .retryable_status_codes(DEFAULT_RETRYABLE_STATUS_CODES)
        .retryable_error_codes(DEFAULT_RETRYABLE_ERROR_CATEGORIES | {ErrorCategory.SSL_ERROR})
        .error_specific_backoff(ErrorCategory.CLIENT_THROTTLED, BackoffStrategy.DECORRELATED_JITTER)
        .build()
    )


def no_retry_policy() -> RetryPolicy:
    """Create a no-retry policy (fail immediately)."""
    return RetryPolicyBuilder().max_retries(0).build()
