"""
Tests for fetch_retry_policy backoff calculation.

Test coverage includes:
- Every backoff strategy's formula
- Clamping to the policy's max delay
- Boundary value testing: attempt 1, huge attempts, invalid attempts
- Injected random sources for jittered strategies
"""

import random

import pytest

from fetch_retry_policy.backoff import BackoffCalculator, calculate_delay, fibonacci
from fetch_retry_policy.policy import RetryPolicyBuilder
from fetch_retry_policy.types import BackoffStrategy


def make_policy(strategy, initial_ms=1000, max_ms=60_000):
    return (
        RetryPolicyBuilder()
        .initial_delay_ms(initial_ms)
        .max_delay_ms(max_ms)
        .backoff_strategy(strategy)
        .build()
    )


class TestFibonacci:
    """Tests for fibonacci helper."""

    def test_starts_with_one_one(self):
        """Should start with fib(1) = fib(2) = 1."""
        assert [fibonacci(n) for n in range(1, 9)] == [1, 1, 2, 3, 5, 8, 13, 21]


class TestDeterministicStrategies:
    """Tests for strategies without jitter."""

    def test_fixed_is_constant(self):
        """Should return the initial delay for every attempt."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.FIXED)
        assert {calc.delay(n, policy) for n in range(1, 20)} == {1.0}

    def test_linear_grows_by_initial_delay(self):
        """Should grow linearly with the attempt number."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.LINEAR)
        assert [calc.delay(n, policy) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 4.0]

    def test_exponential_doubles(self):
        """Should give 1s, 2s, 4s for a 1000ms initial delay."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.EXPONENTIAL)
        assert calc.delay(1, policy) == 1.0
        assert calc.delay(2, policy) == 2.0
        assert calc.delay(3, policy) == 4.0
        assert calc.delay(4, policy) == 8.0

    def test_fibonacci_sequence(self):
        """Should multiply the initial delay by fib(attempt)."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.FIBONACCI, initial_ms=500)
        assert [calc.delay(n, policy) for n in range(1, 7)] == [0.5, 0.5, 1.0, 1.5, 2.5, 4.0]

    def test_caps_delay_at_max_delay(self):
        """Should clamp to max delay."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.EXPONENTIAL, max_ms=5000)
        assert calc.delay(3, policy) == 4.0
        assert calc.delay(4, policy) == 5.0
        assert calc.delay(10, policy) == 5.0

    @pytest.mark.parametrize("strategy", [
        BackoffStrategy.EXPONENTIAL,
        BackoffStrategy.FIBONACCI,
        BackoffStrategy.LINEAR,
        BackoffStrategy.EXPONENTIAL_WITH_FULL_JITTER,
        BackoffStrategy.EXPONENTIAL_WITH_EQUAL_JITTER,
    ])
    @pytest.mark.parametrize("attempt", [5000, 10**400])
    def test_handles_huge_attempt_numbers(self, strategy, attempt):
        """Should clamp instead of overflowing for huge attempts."""
        calc = BackoffCalculator(random.Random(1))
        policy = make_policy(strategy, max_ms=30_000)
        assert 0 <= calc.delay(attempt, policy) <= 30.0

    def test_linear_overflow_clamps_to_max(self):
        """Should return max delay when the linear product overflows."""
        policy = make_policy(BackoffStrategy.LINEAR, max_ms=30_000)
        assert BackoffCalculator().delay(10**400, policy) == 30.0

    def test_strategy_argument_overrides_policy(self):
        """Should use the explicit strategy over the policy's."""
        calc = BackoffCalculator()
        policy = make_policy(BackoffStrategy.FIXED)
        assert calc.delay(3, policy, strategy=BackoffStrategy.LINEAR) == 3.0

    @pytest.mark.parametrize("attempt", [0, -1])
    def test_rejects_attempt_below_one(self, attempt):
        """Should reject attempt numbers below 1."""
        with pytest.raises(ValueError):
            BackoffCalculator().delay(attempt, make_policy(BackoffStrategy.FIXED))


class TestJitteredStrategies:
    """Tests for jittered strategies with injected randomness."""

    def test_full_jitter_bounds(self, upper_bound_rng, lower_bound_rng):
        """Should draw between 0 and the exponential delay."""
        policy = make_policy(BackoffStrategy.EXPONENTIAL_WITH_FULL_JITTER)
        assert BackoffCalculator(upper_bound_rng).delay(3, policy) == 4.0
        assert BackoffCalculator(lower_bound_rng).delay(3, policy) == 0.0

    def test_equal_jitter_bounds(self, upper_bound_rng, lower_bound_rng):
        """Should draw between half and all of the exponential delay."""
        policy = make_policy(BackoffStrategy.EXPONENTIAL_WITH_EQUAL_JITTER)
        assert BackoffCalculator(upper_bound_rng).delay(3, policy) == 4.0
        assert BackoffCalculator(lower_bound_rng).delay(3, policy) == 2.0

    def test_decorrelated_defaults_previous_to_initial(self, upper_bound_rng, lower_bound_rng):
        """Should use initial delay as previous delay on attempt 1."""
        policy = make_policy(BackoffStrategy.DECORRELATED_JITTER)
        assert BackoffCalculator(upper_bound_rng).delay(1, policy) == 3.0
        assert BackoffCalculator(lower_bound_rng).delay(1, policy) == 1.0

    def test_decorrelated_uses_previous_delay(self, upper_bound_rng):
        """Should draw up to three times the previous delay."""
        policy = make_policy(BackoffStrategy.DECORRELATED_JITTER)
        calc = BackoffCalculator(upper_bound_rng)
        assert calc.delay(2, policy, previous_delay=5.0) == 15.0

    def test_decorrelated_clamped_to_max(self, upper_bound_rng):
        """Should never exceed max delay."""
        policy = make_policy(BackoffStrategy.DECORRELATED_JITTER, max_ms=10_000)
        calc = BackoffCalculator(upper_bound_rng)
        assert calc.delay(2, policy, previous_delay=9.0) == 10.0

    def test_seeded_random_is_reproducible(self):
        """Should reproduce jitter exactly with the same seed."""
        policy = make_policy(BackoffStrategy.EXPONENTIAL_WITH_FULL_JITTER)
        first = BackoffCalculator(random.Random(42))
        second = BackoffCalculator(random.Random(42))
        assert [first.delay(n, policy) for n in range(1, 10)] == [
            second.delay(n, policy) for n in range(1, 10)
        ]


class TestDelayUpperBound:
    """Tests that no strategy exceeds max delay."""

    @pytest.mark.parametrize("strategy", list(BackoffStrategy))
    def test_never_exceeds_max_delay(self, strategy):
        """Should stay within [0, max delay] for every attempt."""
        policy = make_policy(strategy, initial_ms=250, max_ms=7_000)
        calc = BackoffCalculator(random.Random(7))
        previous = None
        for attempt in range(1, 60):
            delay = calc.delay(attempt, policy, previous_delay=previous)
            assert 0 <= delay <= policy.max_delay_seconds
            previous = delay


class TestCalculateDelay:
    """Tests for module-level calculate_delay."""

    def test_delegates_to_default_calculator(self):
        """Should compute deterministic strategies like a calculator."""
        policy = make_policy(BackoffStrategy.EXPONENTIAL)
        assert calculate_delay(3, policy) == 4.0
        assert calculate_delay(3, policy, BackoffStrategy.FIXED) == 1.0
