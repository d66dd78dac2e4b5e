"""
Retry policy engine with pluggable backoff strategies and shared statistics.
"""
from .types import (
    AttemptOutcome,
    AttemptRecord,
    BackoffStrategy,
    ErrorCategory,
    ExecutionState,
    Failure,
    RetryEvent,
    RetryEventListener,
    RetryPolicy,
    RetryRecord,
    RetryResult,
    Success,
)
from .errors import (
    ApplicationFailure,
    ExecutionCancelledError,
    NonRetryableError,
    PolicyConfigurationError,
    RetriesExhaustedError,
    RetryPolicyError,
    RetryTerminalError,
    TransportFailure,
)
from .policy import (
    DEFAULT_RETRYABLE_ERROR_CATEGORIES,
    DEFAULT_RETRYABLE_STATUS_CODES,
    RetryPolicyBuilder,
    aggressive_retry_policy,
    default_retry_policy,
    no_retry_policy,
)
from .backoff import BackoffCalculator, calculate_delay
from .classifier import (
    ErrorClassifier,
    RetryClassifier,
    is_retryable_category,
    is_retryable_status,
)
from .statistics import RetryStatistics, RetryStatsSnapshot
from .config import (
    RetrySettings,
    load_retry_policy,
    policy_from_config,
)
from .executor import (
    RetryExecutor,
    create_retry_executor,
    retry,
    retry_sync,
    create_retry_wrapper,
)
from .httpx_errors import (
    HTTPX_ERROR_CATEGORIES,
    HttpxErrorClassifier,
    httpx_error_classifier,
    response_outcome,
)


__all__ = [
    # Types
    "AttemptOutcome",
    "AttemptRecord",
    "BackoffStrategy",
    "ErrorCategory",
    "ExecutionState",
    "Failure",
    "RetryEvent",
    "RetryEventListener",
    "RetryPolicy",
    "RetryRecord",
    "RetryResult",
    "Success",
    # Errors
    "ApplicationFailure",
    "ExecutionCancelledError",
    "NonRetryableError",
    "PolicyConfigurationError",
    "RetriesExhaustedError",
    "RetryPolicyError",
    "RetryTerminalError",
    "TransportFailure",
    # Policy
    "DEFAULT_RETRYABLE_ERROR_CATEGORIES",
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "RetryPolicyBuilder",
    "aggressive_retry_policy",
    "default_retry_policy",
    "no_retry_policy",
    # Backoff
    "BackoffCalculator",
    "calculate_delay",
    # Classification
    "ErrorClassifier",
    "RetryClassifier",
    "is_retryable_category",
    "is_retryable_status",
    # Statistics
    "RetryStatistics",
    "RetryStatsSnapshot",
    # Config
    "RetrySettings",
    "load_retry_policy",
    "policy_from_config",
    # Executor
    "RetryExecutor",
    "create_retry_executor",
    "retry",
    "retry_sync",
    "create_retry_wrapper",
    # httpx
    "HTTPX_ERROR_CATEGORIES",
    "HttpxErrorClassifier",
    "httpx_error_classifier",
    "response_outcome",
]


__version__ = "1.0.0"
