"""
Tests for fetch_retry_policy classification.

Test coverage includes:
- Decision coverage for every RetryClassifier rule, in order
- Strategy resolution with and without per-category overrides
- Exception and status code categorization, including cause chains
"""

import socket
import ssl

import pytest

from fetch_retry_policy.classifier import (
    ErrorClassifier,
    RetryClassifier,
    is_retryable_category,
    is_retryable_status,
)
from fetch_retry_policy.errors import ApplicationFailure, TransportFailure
from fetch_retry_policy.policy import RetryPolicyBuilder
from fetch_retry_policy.types import BackoffStrategy, ErrorCategory, Failure, Success


@pytest.fixture
def policy():
    return (
        RetryPolicyBuilder()
        .max_retries(3)
        .backoff_strategy(BackoffStrategy.EXPONENTIAL)
        .retryable_status_codes([429, 503])
        .retryable_error_codes(["NETWORK_TIMEOUT", "CONNECTION_ERROR"])
        .error_specific_backoff("CLIENT_THROTTLED", "DECORRELATED_JITTER")
        .build()
    )


class TestRetryClassifier:
    """Tests for RetryClassifier.should_retry."""

    def test_stops_when_retries_exhausted(self, policy):
        """Should stop once attempt exceeds max retries, even for retryable failures."""
        classifier = RetryClassifier()
        outcome = Failure(ErrorCategory.NETWORK_TIMEOUT)
        assert classifier.should_retry(outcome, 3, policy) is True
        assert classifier.should_retry(outcome, 4, policy) is False

    def test_never_retries_success(self, policy):
        """Should not retry a success."""
        assert RetryClassifier().should_retry(Success("ok"), 1, policy) is False

    def test_retries_whitelisted_status(self, policy):
        """Should retry a whitelisted status regardless of category."""
        outcome = Failure(ErrorCategory.UNKNOWN, status_code=503)
        assert RetryClassifier().should_retry(outcome, 1, policy) is True

    def test_retries_whitelisted_category(self, policy):
        """Should retry a whitelisted category without a status."""
        outcome = Failure(ErrorCategory.CONNECTION_ERROR)
        assert RetryClassifier().should_retry(outcome, 1, policy) is True

    def test_does_not_retry_non_whitelisted_failure(self, policy):
        """Should not retry a 400 client error."""
        outcome = Failure(ErrorCategory.CLIENT_ERROR, status_code=400)
        assert RetryClassifier().should_retry(outcome, 1, policy) is False

    def test_non_whitelisted_ignores_large_budget(self):
        """Should not retry non-whitelisted failures regardless of max retries."""
        policy = RetryPolicyBuilder().max_retries(100).retryable_status_codes([503]).build()
        outcome = Failure(ErrorCategory.SSL_ERROR, status_code=None)
        for attempt in range(1, 101):
            assert RetryClassifier().should_retry(outcome, attempt, policy) is False

    def test_zero_max_retries_never_retries(self):
        """Should never retry when max retries is 0."""
        policy = (
            RetryPolicyBuilder()
            .max_retries(0)
            .retryable_error_codes(["CONNECTION_ERROR"])
            .build()
        )
        outcome = Failure(ErrorCategory.CONNECTION_ERROR)
        assert RetryClassifier().should_retry(outcome, 1, policy) is False


class TestResolveStrategy:
    """Tests for RetryClassifier.resolve_strategy."""

    def test_uses_per_category_override(self, policy):
        """Should use the per-category override when present."""
        outcome = Failure(ErrorCategory.CLIENT_THROTTLED, status_code=429)
        assert RetryClassifier().resolve_strategy(outcome, policy) == BackoffStrategy.DECORRELATED_JITTER

    def test_falls_back_to_policy_strategy(self, policy):
        """Should fall back to the policy strategy."""
        outcome = Failure(ErrorCategory.NETWORK_TIMEOUT)
        assert RetryClassifier().resolve_strategy(outcome, policy) == BackoffStrategy.EXPONENTIAL


class TestErrorClassifier:
    """Tests for ErrorClassifier."""

    @pytest.mark.parametrize("error, category", [
        (ConnectionRefusedError("refused"), ErrorCategory.CONNECTION_ERROR),
        (ConnectionResetError("reset"), ErrorCategory.CONNECTION_ERROR),
        (TimeoutError("timed out"), ErrorCategory.NETWORK_TIMEOUT),
        (socket.gaierror(-2, "Name or service not known"), ErrorCategory.DNS_RESOLUTION_ERROR),
        (ssl.SSLError("handshake failure"), ErrorCategory.SSL_ERROR),
        (ValueError("bad"), ErrorCategory.UNKNOWN),
    ])
    def test_classifies_builtin_exceptions(self, error, category):
        """Should classify by exception type."""
        failure = ErrorClassifier().classify_error(error)
        assert failure.error_category == category
        assert failure.cause is error
        assert failure.status_code is None

    def test_does_not_guess_from_message(self):
        """Should ignore message text."""
        failure = ErrorClassifier().classify_error(RuntimeError("connection timeout"))
        assert failure.error_category == ErrorCategory.UNKNOWN

    def test_classifies_transport_failure_by_its_category(self):
        """Should use the category carried by TransportFailure."""
        error = TransportFailure.from_unknown_host(OSError("nope"), "/users", "GET")
        failure = ErrorClassifier().classify_error(error)
        assert failure.error_category == ErrorCategory.DNS_RESOLUTION_ERROR
        assert error.endpoint == "/users"
        assert error.request_method == "GET"

    @pytest.mark.parametrize("status, category", [
        (429, ErrorCategory.CLIENT_THROTTLED),
        (408, ErrorCategory.NETWORK_TIMEOUT),
        (500, ErrorCategory.SERVER_ERROR),
        (503, ErrorCategory.SERVER_ERROR),
        (400, ErrorCategory.CLIENT_ERROR),
        (404, ErrorCategory.CLIENT_ERROR),
        (302, ErrorCategory.UNKNOWN),
    ])
    def test_classifies_application_failure_by_status(self, status, category):
        """Should categorize ApplicationFailure by status code."""
        failure = ErrorClassifier().classify_error(ApplicationFailure("boom", status, "{}"))
        assert failure.error_category == category
        assert failure.status_code == status

    def test_reads_status_from_response_attribute(self):
        """Should read status_code from an attached response."""

        class FakeResponse:
            status_code = 502

        class HTTPError(Exception):
            response = FakeResponse()

        failure = ErrorClassifier().classify_error(HTTPError())
        assert failure.status_code == 502
        assert failure.error_category == ErrorCategory.SERVER_ERROR

    def test_follows_cause_chain(self):
        """Should classify wrapped errors by their cause."""
        error = RuntimeError("wrapped")
        error.__cause__ = TimeoutError("inner")
        assert ErrorClassifier().classify_error(error).error_category == ErrorCategory.NETWORK_TIMEOUT

    def test_custom_mapping_extends_defaults(self):
        """Should accept an opaque mapping from the transport layer."""

        class ThrottledError(Exception):
            pass

        classifier = ErrorClassifier(exception_categories={ThrottledError: ErrorCategory.CLIENT_THROTTLED})
        assert classifier.classify_error(ThrottledError()).error_category == ErrorCategory.CLIENT_THROTTLED
        assert classifier.classify_error(TimeoutError()).error_category == ErrorCategory.NETWORK_TIMEOUT

    def test_custom_status_mapping(self):
        """Should apply custom status categories."""
        classifier = ErrorClassifier(status_categories={503: ErrorCategory.CLIENT_THROTTLED})
        assert classifier.category_for_status(503) == ErrorCategory.CLIENT_THROTTLED
        assert classifier.category_for_status(500) == ErrorCategory.SERVER_ERROR

    def test_classify_result(self):
        """Should pass returned outcomes through and wrap plain values."""
        classifier = ErrorClassifier()
        failure = Failure(ErrorCategory.SERVER_ERROR, 503)
        assert classifier.classify_result(failure) is failure
        assert classifier.classify_result("value") == Success("value")


class TestHelpers:
    """Tests for is_retryable_status / is_retryable_category."""

    def test_checks_policy_whitelists(self, policy):
        """Should look up the policy whitelists."""
        assert is_retryable_status(429, policy) is True
        assert is_retryable_status(400, policy) is False
        assert is_retryable_category(ErrorCategory.NETWORK_TIMEOUT, policy) is True
        assert is_retryable_category(ErrorCategory.SSL_ERROR, policy) is False
