"""
Type definitions for fetch_retry_policy
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Generic, Literal, Mapping, Optional, TypeVar, Union


T = TypeVar("T")


class BackoffStrategy(str, Enum):
    """Backoff strategy type"""
    FIXED = "FIXED"
    LINEAR = "LINEAR"
    EXPONENTIAL = "EXPONENTIAL"
    FIBONACCI = "FIBONACCI"
    EXPONENTIAL_WITH_FULL_JITTER = "EXPONENTIAL_WITH_FULL_JITTER"
    EXPONENTIAL_WITH_EQUAL_JITTER = "EXPONENTIAL_WITH_EQUAL_JITTER"
    DECORRELATED_JITTER = "DECORRELATED_JITTER"


class ErrorCategory(str, Enum):
    """Closed classification of a failure's root cause"""
    CONNECTION_ERROR = "CONNECTION_ERROR"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    DNS_RESOLUTION_ERROR = "DNS_RESOLUTION_ERROR"
    SSL_ERROR = "SSL_ERROR"
    CLIENT_THROTTLED = "CLIENT_THROTTLED"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    UNKNOWN = "UNKNOWN"


class ExecutionState(str, Enum):
    """States of a single executor invocation"""
    ATTEMPTING = "ATTEMPTING"
    SUCCESS = "SUCCESS"
    EVALUATING = "EVALUATING"
    WAITING = "WAITING"
    TERMINATED = "TERMINATED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry policy. Build it with RetryPolicyBuilder."""

    max_retries: int = 3
    """Extra attempts allowed beyond the first. Default: 3"""

    initial_delay_seconds: float = 1.0
    """Base delay for every strategy (seconds). Default: 1.0"""

    max_delay_seconds: float = 30.0
    """Upper bound for any computed delay (seconds). Default: 30.0"""

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    """Backoff strategy used when no per-category override applies"""

    retryable_status_codes: frozenset = frozenset()
    """HTTP status codes that should trigger retry"""

    retryable_error_categories: frozenset = frozenset()
    """Error categories that should trigger retry"""

    per_category_strategy: Mapping[ErrorCategory, BackoffStrategy] = field(
        default_factory=lambda: MappingProxyType({})
    )
    """Backoff strategy overrides keyed by error category"""

    def __post_init__(self) -> None:
        from .errors import PolicyConfigurationError

        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise PolicyConfigurationError(f"max_retries must be an int, got {self.max_retries!r}")
        if self.max_retries < 0:
            raise PolicyConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay_seconds <= 0:
            raise PolicyConfigurationError(
                f"initial delay must be > 0, got {self.initial_delay_seconds}s"
            )
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise PolicyConfigurationError(
                f"max delay ({self.max_delay_seconds}s) must be >= "
                f"initial delay ({self.initial_delay_seconds}s)"
            )

        # Detach from the caller's containers
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))
        object.__setattr__(self, "retryable_error_categories", frozenset(self.retryable_error_categories))
        object.__setattr__(self, "per_category_strategy", MappingProxyType(dict(self.per_category_strategy)))

    def __hash__(self) -> int:
        return hash((
            self.max_retries,
            self.initial_delay_seconds,
            self.max_delay_seconds,
            self.strategy,
            self.retryable_status_codes,
            self.retryable_error_categories,
            frozenset(self.per_category_strategy.items()),
        ))

    def strategy_for(self, category: Optional[ErrorCategory]) -> BackoffStrategy:
        """Backoff strategy for a failure category, falling back to the default."""
        if category is None:
            return self.strategy
        return self.per_category_strategy.get(category, self.strategy)


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful attempt"""

    result: T


@dataclass(frozen=True)
class Failure:
    """Failed attempt"""

    error_category: ErrorCategory
    status_code: Optional[int] = None
    cause: Optional[BaseException] = None

    @property
    def message(self) -> str:
        if self.cause is not None:
            return str(self.cause)
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return self.error_category.value


AttemptOutcome = Union[Success, Failure]


@dataclass
class AttemptRecord:
    """One attempt as seen by the executor"""

    attempt: int
    """1-based attempt number"""

    succeeded: bool
    """Whether the attempt produced a Success outcome"""

    duration_seconds: float
    """Time spent inside the operation (seconds)"""

    error_category: Optional[ErrorCategory] = None
    status_code: Optional[int] = None

    strategy: Optional[BackoffStrategy] = None
    """Strategy used for the wait that followed, None if none followed"""

    delay_seconds: float = 0.0
    """Delay scheduled after this attempt (seconds)"""


@dataclass
class RetryRecord:
    """Attempt history for one executor invocation. Never shared across threads."""

    operation_id: str
    attempts: list[AttemptRecord] = field(default_factory=list)
    final_outcome: Optional[AttemptOutcome] = None
    started_at: float = field(default_factory=time.monotonic)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def delays(self) -> list[float]:
        return [a.delay_seconds for a in self.attempts if a.strategy is not None]

    @property
    def previous_delay(self) -> Optional[float]:
        """Last scheduled delay, the seed for decorrelated jitter."""
        delays = self.delays
        return delays[-1] if delays else None

    @property
    def total_delay_seconds(self) -> float:
        return sum(self.delays)

    @property
    def error_categories(self) -> list[ErrorCategory]:
        return [a.error_category for a in self.attempts if a.error_category is not None]

    def finalize(self, outcome: Optional[AttemptOutcome]) -> None:
        self.final_outcome = outcome
        self.duration_seconds = time.monotonic() - self.started_at


@dataclass
class RetryResult(Generic[T]):
    """Result of a retried operation"""

    result: T
    """The result of the operation"""

    attempts: int
    """Total attempts made, including the first"""

    total_time_seconds: float
    """Total time spent including retries (seconds)"""

    delay_time_seconds: float
    """Time scheduled for backoff delays (seconds)"""

    record: RetryRecord
    """Full attempt history"""

    @property
    def retries(self) -> int:
        """Number of retries attempted (0 if succeeded on first try)"""
        return self.attempts - 1


# Event types
EventType = Literal[
    "attempt:start",
    "attempt:success",
    "attempt:fail",
    "retry:wait",
    "retry:abort",
]


@dataclass
class RetryEvent:
    """Event emitted by the retry executor"""

    type: EventType
    """Event type"""

    attempt: int
    """Current attempt number (1-based)"""

    data: dict[str, Any] = field(default_factory=dict)
    """Event-specific data"""


# Event listener type
RetryEventListener = Callable[[RetryEvent], None]
