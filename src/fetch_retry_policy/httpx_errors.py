"""
Failure classification for httpx

Maps httpx exception types to error categories and turns responses into
attempt outcomes, so httpx-based operations can run under RetryExecutor.
"""
from typing import Optional

import httpx

from .classifier import ErrorClassifier
from .errors import ApplicationFailure
from .types import AttemptOutcome, ErrorCategory, Failure, Success


HTTPX_ERROR_CATEGORIES: dict[type, ErrorCategory] = {
    httpx.TimeoutException: ErrorCategory.NETWORK_TIMEOUT,
    httpx.ConnectError: ErrorCategory.CONNECTION_ERROR,
    httpx.RemoteProtocolError: ErrorCategory.CONNECTION_ERROR,
    httpx.ReadError: ErrorCategory.CONNECTION_ERROR,
    httpx.WriteError: ErrorCategory.CONNECTION_ERROR,
    httpx.ProxyError: ErrorCategory.CONNECTION_ERROR,
}


class HttpxErrorClassifier(ErrorClassifier):
    """
    ErrorClassifier that understands httpx exceptions.

    ``httpx.HTTPStatusError`` is classified by its response status. DNS and
    TLS failures surface as ``ConnectError`` wrapping the socket/ssl error,
    so for ConnectError the cause chain is consulted first.
    """

    def __init__(self) -> None:
        super().__init__(exception_categories=HTTPX_ERROR_CATEGORIES)
        self._builtin = ErrorClassifier()

    def classify_error(self, error: BaseException) -> Failure:
        if isinstance(error, httpx.ConnectError) and error.__cause__ is not None:
            category = self._builtin.classify_error(error.__cause__).error_category
            if category != ErrorCategory.UNKNOWN:
                return Failure(category, None, error)
        return super().classify_error(error)


def httpx_error_classifier() -> ErrorClassifier:
    """
    Create an ErrorClassifier for httpx-based operations.

    Example:
        executor = RetryExecutor(policy, stats, error_classifier=httpx_error_classifier())
    """
    return HttpxErrorClassifier()


def response_outcome(
    response: httpx.Response,
    classifier: Optional[ErrorClassifier] = None,
) -> AttemptOutcome:
    """
    Turn an httpx response into an attempt outcome.

    Args:
        response: The received response
        classifier: Classifier used for status categories

    Returns:
        Success(response) for status < 400, otherwise a Failure carrying an
        ApplicationFailure with the status code and body
    """
    if response.status_code < 400:
        return Success(response)

    classifier = classifier or ErrorClassifier()
    cause = ApplicationFailure(
        f"API returned error status: {response.status_code}",
        response.status_code,
        response.text,
    )
    return Failure(classifier.category_for_status(response.status_code), response.status_code, cause)
