"""
Thread-safe retry statistics
"""
import logging
import threading
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from .types import BackoffStrategy, ErrorCategory

logger = logging.getLogger(__name__)


def _percentage(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


@dataclass(frozen=True)
class RetryStatsSnapshot:
    """Point-in-time copy of RetryStatistics"""

    total_requests: int
    """Executions that reached a terminal success or failure"""

    requests_with_retries: int
    """Executions that needed at least one retry"""

    total_retry_attempts: int
    """Retries scheduled across all executions"""

    successful_retries: int
    """Executions that succeeded after at least one retry"""

    failed_retries: int
    """Executions that failed after at least one retry"""

    by_status_code: Mapping[int, int]
    by_error_category: Mapping[ErrorCategory, int]
    by_strategy: Mapping[BackoffStrategy, int]

    @property
    def retry_percentage(self) -> float:
        return _percentage(self.requests_with_retries, self.total_requests)

    @property
    def retry_success_rate(self) -> float:
        return _percentage(self.successful_retries, self.total_retry_attempts)


class RetryStatistics:
    """
    Aggregate retry counters shared by any number of executors.

    Every public ``record_*`` method is one atomic update under a single
    lock. Create one per test session and pass it to each RetryExecutor.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._zero()

    def _zero(self) -> None:
        self._total_requests = 0
        self._requests_with_retries = 0
        self._total_retry_attempts = 0
        self._successful_retries = 0
        self._failed_retries = 0
        self._by_status: Counter = Counter()
        self._by_category: Counter = Counter()
        self._by_strategy: Counter = Counter()

    def _count_failure(
        self,
        status_code: Optional[int],
        error_category: Optional[ErrorCategory],
    ) -> None:
        if status_code is not None:
            self._by_status[status_code] += 1
        if error_category is not None:
            self._by_category[error_category] += 1

    def record_retry(
        self,
        strategy: BackoffStrategy,
        status_code: Optional[int] = None,
        error_category: Optional[ErrorCategory] = None,
    ) -> None:
        """Record a failed attempt that is about to be retried."""
        with self._lock:
            self._total_retry_attempts += 1
            self._by_strategy[strategy] += 1
            self._count_failure(status_code, error_category)

    def record_success(self, attempts: int) -> None:
        """Record an execution that ended in success after ``attempts`` attempts."""
        with self._lock:
            self._total_requests += 1
            if attempts > 1:
                self._requests_with_retries += 1
                self._successful_retries += 1

    def record_failure(
        self,
        attempts: int,
        status_code: Optional[int] = None,
        error_category: Optional[ErrorCategory] = None,
    ) -> None:
        """Record an execution that ended in a terminal failure."""
        with self._lock:
            self._total_requests += 1
            if attempts > 1:
                self._requests_with_retries += 1
                self._failed_retries += 1
            self._count_failure(status_code, error_category)

    def reset(self) -> None:
        """Zero every counter. Call only between sessions."""
        with self._lock:
            self._zero()
        logger.info("Retry statistics reset")

    def snapshot(self) -> RetryStatsSnapshot:
        with self._lock:
            return RetryStatsSnapshot(
                total_requests=self._total_requests,
                requests_with_retries=self._requests_with_retries,
                total_retry_attempts=self._total_retry_attempts,
                successful_retries=self._successful_retries,
                failed_retries=self._failed_retries,
                by_status_code=MappingProxyType(dict(self._by_status)),
                by_error_category=MappingProxyType(dict(self._by_category)),
                by_strategy=MappingProxyType(dict(self._by_strategy)),
            )

    def get_aggregate_statistics(self) -> Mapping[str, float]:
        """
        Flat, read-only label -> value view for attaching to reports.

        Returns:
            Scalar counters, derived percentages, and keyed counters as
            ``status_code.<code>``, ``error_category.<name>`` and
            ``strategy.<name>``
        """
        snap = self.snapshot()
        stats: dict[str, float] = {
            "total_requests": snap.total_requests,
            "requests_with_retries": snap.requests_with_retries,
            "total_retry_attempts": snap.total_retry_attempts,
            "successful_retries": snap.successful_retries,
            "failed_retries": snap.failed_retries,
            "retry_percentage": snap.retry_percentage,
            "retry_success_rate": snap.retry_success_rate,
        }
        for code, count in sorted(snap.by_status_code.items()):
            stats[f"status_code.{code}"] = count
        for category, count in snap.by_error_category.items():
            stats[f"error_category.{category.value}"] = count
        for strategy, count in snap.by_strategy.items():
            stats[f"strategy.{strategy.value}"] = count
        return MappingProxyType(stats)

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._total_requests

    @property
    def total_retry_attempts(self) -> int:
        with self._lock:
            return self._total_retry_attempts

    @property
    def successful_retries(self) -> int:
        with self._lock:
            return self._successful_retries

    @property
    def failed_retries(self) -> int:
        with self._lock:
            return self._failed_retries
