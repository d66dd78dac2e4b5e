"""
Backoff delay calculation
"""
import random
from typing import Optional

from .types import BackoffStrategy, RetryPolicy


def fibonacci(n: int) -> int:
    """fib(1) = fib(2) = 1"""
    a, b = 1, 1
    for _ in range(n - 1):
        a, b = b, a + b
    return a


def _exponential(attempt: int, policy: RetryPolicy) -> float:
    # cap the exponent so huge attempt numbers don't overflow the float
    exponent = min(attempt - 1, 1024)
    try:
        return policy.initial_delay_seconds * (2 ** exponent)
    except OverflowError:
        return policy.max_delay_seconds


class BackoffCalculator:
    """
    Computes the delay before a retry.

    Every strategy is a pure function of ``(attempt, policy)`` except the
    jittered ones, which draw from ``rng``. Pass a seeded ``random.Random``
    to get reproducible jitter.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def delay(
        self,
        attempt: int,
        policy: RetryPolicy,
        strategy: Optional[BackoffStrategy] = None,
        previous_delay: Optional[float] = None,
    ) -> float:
        """
        Calculate the delay before retry number ``attempt``.

        Args:
            attempt: 1-based retry number (first retry = 1)
            policy: Retry policy supplying initial and max delay
            strategy: Strategy override, defaults to policy.strategy
            previous_delay: Prior delay in this execution, only used by
                DECORRELATED_JITTER (defaults to the initial delay)

        Returns:
            Delay in seconds, within [0, policy.max_delay_seconds]
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")

        strategy = strategy or policy.strategy
        initial = policy.initial_delay_seconds
        max_delay = policy.max_delay_seconds

        if strategy == BackoffStrategy.FIXED:
            delay = initial
        elif strategy == BackoffStrategy.LINEAR:
            try:
                delay = initial * attempt
            except OverflowError:
                delay = max_delay
        elif strategy == BackoffStrategy.EXPONENTIAL:
            delay = _exponential(attempt, policy)
        elif strategy == BackoffStrategy.FIBONACCI:
            # fib(n) outgrows any sane max delay long before n gets large
            delay = initial * fibonacci(min(attempt, 1400))
        elif strategy == BackoffStrategy.EXPONENTIAL_WITH_FULL_JITTER:
            delay = self._rng.uniform(0, min(_exponential(attempt, policy), max_delay))
        elif strategy == BackoffStrategy.EXPONENTIAL_WITH_EQUAL_JITTER:
            half = min(_exponential(attempt, policy), max_delay) / 2
            delay = half + self._rng.uniform(0, half)
        elif strategy == BackoffStrategy.DECORRELATED_JITTER:
            previous = initial if previous_delay is None else previous_delay
            delay = min(max_delay, self._rng.uniform(initial, previous * 3))
        else:
            raise ValueError(f"Unsupported backoff strategy: {strategy}")

        return min(max(delay, 0.0), max_delay)


_default_calculator = BackoffCalculator()


def calculate_delay(
    attempt: int,
    policy: RetryPolicy,
    strategy: Optional[BackoffStrategy] = None,
    previous_delay: Optional[float] = None,
) -> float:
    """
    Calculate delay with the module-level calculator.

    Args:
        attempt: 1-based retry number
        policy: Retry policy
        strategy: Optional strategy override
        previous_delay: Prior delay for decorrelated jitter

    Returns:
        Delay in seconds
    """
    return _default_calculator.delay(attempt, policy, strategy, previous_delay)
