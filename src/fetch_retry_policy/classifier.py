"""
Failure classification and retry decisions
"""
import asyncio
import logging
import socket
import ssl
from typing import Any, Mapping, Optional

from .errors import ApplicationFailure, TransportFailure
from .types import (
    AttemptOutcome,
    BackoffStrategy,
    ErrorCategory,
    Failure,
    RetryPolicy,
    Success,
)

logger = logging.getLogger(__name__)


# Built-in exception types. Lookup walks the MRO, so subclasses listed here
# (gaierror, SSLError) win over their OSError parents.
DEFAULT_EXCEPTION_CATEGORIES: dict[type, ErrorCategory] = {
    socket.gaierror: ErrorCategory.DNS_RESOLUTION_ERROR,
    ssl.SSLError: ErrorCategory.SSL_ERROR,
    ConnectionError: ErrorCategory.CONNECTION_ERROR,
    TimeoutError: ErrorCategory.NETWORK_TIMEOUT,
    asyncio.TimeoutError: ErrorCategory.NETWORK_TIMEOUT,
}

DEFAULT_STATUS_CATEGORIES: dict[int, ErrorCategory] = {
    408: ErrorCategory.NETWORK_TIMEOUT,
    429: ErrorCategory.CLIENT_THROTTLED,
}


def _status_of(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


class ErrorClassifier:
    """
    Maps raised exceptions and returned values to attempt outcomes.

    The exception and status tables are opaque data supplied by the
    transport collaborator; see ``httpx_errors`` for the httpx table.
    """

    def __init__(
        self,
        exception_categories: Optional[Mapping[type, ErrorCategory]] = None,
        status_categories: Optional[Mapping[int, ErrorCategory]] = None,
    ) -> None:
        self._exception_categories = dict(DEFAULT_EXCEPTION_CATEGORIES)
        if exception_categories:
            self._exception_categories.update(exception_categories)
        self._status_categories = dict(DEFAULT_STATUS_CATEGORIES)
        if status_categories:
            self._status_categories.update(status_categories)

    def category_for_status(self, status_code: int) -> ErrorCategory:
        """
        Categorize an HTTP status code.

        Args:
            status_code: The HTTP status code

        Returns:
            Explicit table entry, else SERVER_ERROR for 5xx, CLIENT_ERROR for
            4xx, UNKNOWN otherwise
        """
        if status_code in self._status_categories:
            return self._status_categories[status_code]
        if 500 <= status_code <= 599:
            return ErrorCategory.SERVER_ERROR
        if 400 <= status_code <= 499:
            return ErrorCategory.CLIENT_ERROR
        return ErrorCategory.UNKNOWN

    def _lookup(self, error: BaseException) -> Optional[ErrorCategory]:
        for klass in type(error).__mro__:
            if klass in self._exception_categories:
                return self._exception_categories[klass]
        return None

    def classify_error(self, error: BaseException) -> Failure:
        """
        Turn a raised exception into a Failure outcome.

        Args:
            error: The exception raised by the operation

        Returns:
            Failure carrying the category, the status code when one is
            known, and the exception as cause
        """
        if isinstance(error, TransportFailure):
            return Failure(error.error_category, None, error)
        if isinstance(error, ApplicationFailure):
            return Failure(self.category_for_status(error.status_code), error.status_code, error)

        status = _status_of(error)
        category = self._lookup(error)
        if category is None and status is not None:
            category = self.category_for_status(status)

        # Wrapped errors: classify by the underlying cause
        if category is None:
            cause = error.__cause__
            seen = {id(error)}
            while cause is not None and id(cause) not in seen:
                seen.add(id(cause))
                category = self._lookup(cause)
                if category is not None:
                    break
                cause = cause.__cause__

        if category is None:
            logger.debug(f"Unclassified error {type(error).__name__}, using UNKNOWN")
            category = ErrorCategory.UNKNOWN

        return Failure(category, status, error)

    def classify_result(self, value: Any) -> AttemptOutcome:
        """
        Turn a returned value into an outcome.

        Operations may return a Failure (or Success) directly instead of
        raising; any other value is a Success.
        """
        if isinstance(value, (Success, Failure)):
            return value
        return Success(value)


class RetryClassifier:
    """Decides whether a failed attempt is retried, and with which strategy."""

    def should_retry(self, outcome: AttemptOutcome, attempt: int, policy: RetryPolicy) -> bool:
        """
        Decide whether to retry after ``attempt``.

        Args:
            outcome: Outcome of the attempt
            attempt: 1-based attempt number that produced the outcome
            policy: Retry policy

        Returns:
            Whether another attempt should be made
        """
        # Retries exhausted
        if attempt > policy.max_retries:
            return False

        if isinstance(outcome, Success):
            return False

        if outcome.status_code is not None and outcome.status_code in policy.retryable_status_codes:
            return True

        return outcome.error_category in policy.retryable_error_categories

    def resolve_strategy(self, outcome: AttemptOutcome, policy: RetryPolicy) -> BackoffStrategy:
        """Per-category override if configured, otherwise the policy default."""
        if isinstance(outcome, Failure):
            return policy.strategy_for(outcome.error_category)
        return policy.strategy


def is_retryable_status(status: int, policy: RetryPolicy) -> bool:
    """Whether an HTTP status code is whitelisted for retry."""
    return status in policy.retryable_status_codes


def is_retryable_category(category: ErrorCategory, policy: RetryPolicy) -> bool:
    """Whether an error category is whitelisted for retry."""
    return category in policy.retryable_error_categories
