"""
Main retry executor implementation
"""
import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .backoff import BackoffCalculator
from .classifier import ErrorClassifier, RetryClassifier
from .errors import (
    ExecutionCancelledError,
    NonRetryableError,
    RetriesExhaustedError,
    RetryTerminalError,
)
from .policy import default_retry_policy
from .statistics import RetryStatistics
from .types import (
    AttemptOutcome,
    AttemptRecord,
    ExecutionState,
    Failure,
    RetryEvent,
    RetryEventListener,
    RetryPolicy,
    RetryRecord,
    RetryResult,
    Success,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _operation_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


class RetryExecutor:
    """
    Retry Executor

    Runs an operation through the attempt state machine:
    ATTEMPTING -> (SUCCESS | EVALUATING) -> (WAITING -> ATTEMPTING) | TERMINATED

    Provides:
    - Per-category backoff strategy resolution
    - Retry classification by status code and error category
    - Cooperative (async) or thread-blocking (sync) waits
    - Cancellation through an Event
    - Statistics and event emission for observability

    The policy and statistics are passed in explicitly; one executor can
    be shared by concurrent callers since each call owns its own record.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        statistics: Optional[RetryStatistics] = None,
        *,
        executor_id: Optional[str] = None,
        error_classifier: Optional[ErrorClassifier] = None,
        retry_classifier: Optional[RetryClassifier] = None,
        calculator: Optional[BackoffCalculator] = None,
    ):
        """
        Create a new RetryExecutor.

        Args:
            policy: Retry policy (default: default_retry_policy())
            statistics: Shared statistics sink (default: a private instance)
            executor_id: Optional unique identifier
            error_classifier: Maps exceptions/results to outcomes
            retry_classifier: Decides retry vs stop
            calculator: Backoff calculator (inject a seeded one in tests)
        """
        self._policy = policy or default_retry_policy()
        self._statistics = statistics if statistics is not None else RetryStatistics()
        self._id = executor_id or f"retry-{int(time.time() * 1000)}"
        self._error_classifier = error_classifier or ErrorClassifier()
        self._retry_classifier = retry_classifier or RetryClassifier()
        self._calculator = calculator or BackoffCalculator()
        self._listeners: list[RetryEventListener] = []

    def _emit(self, event: RetryEvent) -> None:
        """Emit an event to all listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(f"Retry event listener failed on {event.type}", exc_info=True)

    def _start_record(self, fn: Callable[..., Any], operation_id: Optional[str]) -> RetryRecord:
        return RetryRecord(operation_id=operation_id or _operation_name(fn))

    def _cancelled(self, record: RetryRecord, attempt: int) -> ExecutionCancelledError:
        """CANCELLED: finalize the record without touching statistics."""
        record.cancelled = True
        record.finalize(None)
        self._emit(RetryEvent(
            type="retry:abort",
            attempt=attempt,
            data={"operation_id": record.operation_id, "state": ExecutionState.CANCELLED.value},
        ))
        logger.info(
            f"Operation {record.operation_id} cancelled before attempt {attempt} "
            f"after {record.attempt_count} attempt(s)"
        )
        return ExecutionCancelledError(
            f"Operation {record.operation_id} cancelled after {record.attempt_count} attempt(s)",
            record,
        )

    def _terminal_error(self, record: RetryRecord, attempt: int, outcome: Failure) -> RetryTerminalError:
        retryable_class = (
            outcome.status_code in self._policy.retryable_status_codes
            or outcome.error_category in self._policy.retryable_error_categories
        )
        error_class = RetriesExhaustedError if retryable_class else NonRetryableError
        message = (
            f"Operation {record.operation_id} failed after {attempt} attempt(s) "
            f"in {record.duration_seconds:.3f}s "
            f"[{outcome.error_category.value}"
            f"{'' if outcome.status_code is None else f' {outcome.status_code}'}]: "
            f"{outcome.message}"
        )
        return error_class(message, record, outcome)

    def _transition(
        self,
        record: RetryRecord,
        attempt: int,
        outcome: AttemptOutcome,
        duration: float,
    ) -> Optional[float]:
        """
        Apply the outcome of one attempt.

        Appends exactly one AttemptRecord and performs exactly one
        statistics update.

        Returns:
            None on SUCCESS, the delay in seconds on WAITING

        Raises:
            RetryTerminalError: On TERMINATED with a failure
        """
        if isinstance(outcome, Success):
            record.attempts.append(AttemptRecord(attempt=attempt, succeeded=True, duration_seconds=duration))
            record.finalize(outcome)
            self._statistics.record_success(attempt)
            self._emit(RetryEvent(
                type="attempt:success",
                attempt=attempt,
                data={"duration_seconds": duration, "operation_id": record.operation_id},
            ))
            if attempt > 1:
                logger.info(f"Operation {record.operation_id} succeeded on attempt {attempt}")
            return None

        # EVALUATING
        will_retry = self._retry_classifier.should_retry(outcome, attempt, self._policy)
        self._emit(RetryEvent(
            type="attempt:fail",
            attempt=attempt,
            data={
                "error": outcome.message,
                "error_category": outcome.error_category.value,
                "status_code": outcome.status_code,
                "will_retry": will_retry,
                "operation_id": record.operation_id,
            },
        ))

        if not will_retry:
            record.attempts.append(AttemptRecord(
                attempt=attempt,
                succeeded=False,
                duration_seconds=duration,
                error_category=outcome.error_category,
                status_code=outcome.status_code,
            ))
            record.finalize(outcome)
            self._statistics.record_failure(attempt, outcome.status_code, outcome.error_category)
            error = self._terminal_error(record, attempt, outcome)
            logger.warning(str(error))
            raise error from outcome.cause

        # WAITING
        strategy = self._retry_classifier.resolve_strategy(outcome, self._policy)
        delay = self._calculator.delay(attempt, self._policy, strategy, record.previous_delay)
        record.attempts.append(AttemptRecord(
            attempt=attempt,
            succeeded=False,
            duration_seconds=duration,
            error_category=outcome.error_category,
            status_code=outcome.status_code,
            strategy=strategy,
            delay_seconds=delay,
        ))
        self._statistics.record_retry(strategy, outcome.status_code, outcome.error_category)
        self._emit(RetryEvent(
            type="retry:wait",
            attempt=attempt,
            data={
                "delay_seconds": delay,
                "strategy": strategy.value,
                "operation_id": record.operation_id,
            },
        ))
        logger.info(
            f"Operation {record.operation_id} attempt {attempt} failed "
            f"({outcome.error_category.value}), retrying in {delay:.3f}s using {strategy.value}"
        )
        return delay

    def _result(self, record: RetryRecord, outcome: Success) -> RetryResult:
        return RetryResult(
            result=outcome.result,
            attempts=record.attempt_count,
            total_time_seconds=record.duration_seconds,
            delay_time_seconds=record.total_delay_seconds,
            record=record,
        )

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        operation_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RetryResult[T]:
        """
        Execute a coroutine function with retry logic.

        Args:
            fn: Async function to execute
            operation_id: Identifier for logs and the record (default: fn name)
            cancel_event: Set it to cancel; observed before each attempt and
                during waits

        Returns:
            Result with retry metadata

        Raises:
            RetryTerminalError: Terminal failure, carrying the full record
            ExecutionCancelledError: When cancel_event was set

        Example:
            executor = RetryExecutor(policy, statistics)
            result = await executor.execute(async_fetch_data)
        """
        record = self._start_record(fn, operation_id)
        attempt = 1

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(record, attempt)

            # ATTEMPTING
            self._emit(RetryEvent(
                type="attempt:start",
                attempt=attempt,
                data={"operation_id": record.operation_id},
            ))
            attempt_start = time.monotonic()
            try:
                outcome = self._error_classifier.classify_result(await fn())
            except ExecutionCancelledError as error:
                raise self._cancelled(record, attempt) from error
            except Exception as error:
                outcome = self._error_classifier.classify_error(error)

            delay = self._transition(record, attempt, outcome, time.monotonic() - attempt_start)
            if delay is None:
                return self._result(record, outcome)

            if await self._wait_async(delay, cancel_event):
                raise self._cancelled(record, attempt + 1)
            attempt += 1

    def execute_sync(
        self,
        fn: Callable[[], T],
        operation_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RetryResult[T]:
        """
        Execute a synchronous function with retry logic.

        Waits block only the calling thread.

        Args:
            fn: Sync function to execute
            operation_id: Identifier for logs and the record (default: fn name)
            cancel_event: Set it to cancel; observed before each attempt and
                during waits

        Returns:
            Result with retry metadata
        """
        record = self._start_record(fn, operation_id)
        attempt = 1

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(record, attempt)

            # ATTEMPTING
            self._emit(RetryEvent(
                type="attempt:start",
                attempt=attempt,
                data={"operation_id": record.operation_id},
            ))
            attempt_start = time.monotonic()
            try:
                outcome = self._error_classifier.classify_result(fn())
            except ExecutionCancelledError as error:
                raise self._cancelled(record, attempt) from error
            except Exception as error:
                outcome = self._error_classifier.classify_error(error)

            delay = self._transition(record, attempt, outcome, time.monotonic() - attempt_start)
            if delay is None:
                return self._result(record, outcome)

            if self._wait_sync(delay, cancel_event):
                raise self._cancelled(record, attempt + 1)
            attempt += 1

    @staticmethod
    async def _wait_async(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Suspend for ``delay`` seconds. Returns True if cancelled meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(delay)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return cancel_event.is_set()
        return True

    @staticmethod
    def _wait_sync(delay: float, cancel_event: Optional[threading.Event]) -> bool:
        """Block the current thread for ``delay`` seconds. Returns True if cancelled meanwhile."""
        if cancel_event is None:
            time.sleep(delay)
            return False
        return cancel_event.wait(delay)

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """
        Add an event listener.

        Args:
            listener: Event listener function

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self.off(listener)

    def off(self, listener: RetryEventListener) -> None:
        """Remove an event listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def id(self) -> str:
        """Get the executor ID."""
        return self._id

    @property
    def policy(self) -> RetryPolicy:
        """Get the retry policy."""
        return self._policy

    @property
    def statistics(self) -> RetryStatistics:
        """Get the statistics sink."""
        return self._statistics


def create_retry_executor(
    policy: Optional[RetryPolicy] = None,
    statistics: Optional[RetryStatistics] = None,
    executor_id: Optional[str] = None,
) -> RetryExecutor:
    """Create a new retry executor."""
    return RetryExecutor(policy, statistics, executor_id=executor_id)


async def retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    statistics: Optional[RetryStatistics] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RetryResult[T]:
    """
    Execute a function with retry logic (convenience function).

    Example:
        result = await retry(async_fetch_data, default_retry_policy())
    """
    executor = RetryExecutor(policy, statistics)
    return await executor.execute(fn, cancel_event=cancel_event)


def retry_sync(
    fn: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    statistics: Optional[RetryStatistics] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RetryResult[T]:
    """Execute a sync function with retry logic (convenience function)."""
    executor = RetryExecutor(policy, statistics)
    return executor.execute_sync(fn, cancel_event=cancel_event)


def create_retry_wrapper(
    policy: Optional[RetryPolicy] = None,
    statistics: Optional[RetryStatistics] = None,
) -> Callable[..., Awaitable[RetryResult[T]]]:
    """
    Create a retry wrapper function.

    Example:
        with_retry = create_retry_wrapper(policy, statistics)
        result = await with_retry(async_fetch_data)
    """
    executor = RetryExecutor(policy, statistics)

    async def wrapper(
        fn: Callable[[], Awaitable[T]],
        operation_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RetryResult[T]:
        return await executor.execute(fn, operation_id, cancel_event)

    return wrapper
