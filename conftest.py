"""Shared pytest fixtures for fetch_retry_policy test suites."""
import random

import pytest


class UpperBoundRandom(random.Random):
    """Always draws the upper bound."""

    def uniform(self, a, b):
        return b


class LowerBoundRandom(random.Random):
    """Always draws the lower bound."""

    def uniform(self, a, b):
        return a


@pytest.fixture
def upper_bound_rng():
    return UpperBoundRandom()


@pytest.fixture
def lower_bound_rng():
    return LowerBoundRandom()
