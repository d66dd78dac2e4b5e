"""
Exception taxonomy for fetch_retry_policy.

TransportFailure and ApplicationFailure are raised by operations (or by the
transport collaborators wrapping them). RetryTerminalError and
ExecutionCancelledError are raised by the executor itself.
"""
from typing import TYPE_CHECKING, Optional

from .types import ErrorCategory

if TYPE_CHECKING:
    from .types import AttemptOutcome, RetryRecord


class RetryPolicyError(Exception):
    """Base exception for fetch_retry_policy."""
    pass


class PolicyConfigurationError(RetryPolicyError):
    """Raised when a policy or its configuration source is invalid."""
    pass


class TransportFailure(RetryPolicyError):
    """Connection-level failure: refused, DNS, TLS or timeout."""

    def __init__(
        self,
        message: str,
        error_category: ErrorCategory = ErrorCategory.CONNECTION_ERROR,
        endpoint: Optional[str] = None,
        request_method: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.error_category = error_category
        self.endpoint = endpoint
        self.request_method = request_method

    @classmethod
    def from_connect_error(
        cls,
        error: BaseException,
        endpoint: Optional[str] = None,
        request_method: Optional[str] = None,
    ) -> "TransportFailure":
        failure = cls(
            f"Failed to connect to endpoint: {endpoint}",
            ErrorCategory.CONNECTION_ERROR,
            endpoint,
            request_method,
        )
        failure.__cause__ = error
        return failure

    @classmethod
    def from_timeout(
        cls,
        error: BaseException,
        endpoint: Optional[str] = None,
        request_method: Optional[str] = None,
    ) -> "TransportFailure":
        failure = cls(
            f"Connection timed out for endpoint: {endpoint}",
            ErrorCategory.NETWORK_TIMEOUT,
            endpoint,
            request_method,
        )
        failure.__cause__ = error
        return failure

    @classmethod
    def from_unknown_host(
        cls,
        error: BaseException,
        endpoint: Optional[str] = None,
        request_method: Optional[str] = None,
    ) -> "TransportFailure":
        failure = cls(
            f"Unknown host when connecting to endpoint: {endpoint}",
            ErrorCategory.DNS_RESOLUTION_ERROR,
            endpoint,
            request_method,
        )
        failure.__cause__ = error
        return failure

    @classmethod
    def from_ssl_error(
        cls,
        error: BaseException,
        endpoint: Optional[str] = None,
        request_method: Optional[str] = None,
    ) -> "TransportFailure":
        failure = cls(
            f"TLS handshake failed for endpoint: {endpoint}",
            ErrorCategory.SSL_ERROR,
            endpoint,
            request_method,
        )
        failure.__cause__ = error
        return failure


class ApplicationFailure(RetryPolicyError):
    """HTTP-level failure: the server answered with a 4xx/5xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RetryTerminalError(RetryPolicyError):
    """
    Terminal failure of an executor invocation.

    Wraps the last attempt's failure; ``__cause__`` is that attempt's
    exception when there was one.
    """

    def __init__(self, message: str, record: "RetryRecord", last_outcome: "AttemptOutcome") -> None:
        super().__init__(message)
        self.record = record
        self.last_outcome = last_outcome

    @property
    def attempts(self) -> int:
        return self.record.attempt_count

    @property
    def elapsed_seconds(self) -> float:
        return self.record.duration_seconds

    @property
    def error_categories(self) -> list[ErrorCategory]:
        return self.record.error_categories

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.last_outcome, "status_code", None)


class RetriesExhaustedError(RetryTerminalError):
    """Every allowed attempt failed."""
    pass


class NonRetryableError(RetryTerminalError):
    """The failure class is not retryable under the policy."""
    pass


class ExecutionCancelledError(RetryPolicyError):
    """The caller cancelled the execution. Never retried, never counted as a failure."""

    def __init__(self, message: str, record: "RetryRecord") -> None:
        super().__init__(message)
        self.record = record

    @property
    def attempts(self) -> int:
        return self.record.attempt_count
