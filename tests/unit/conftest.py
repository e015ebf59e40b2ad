"""
Unit test fixtures. Pure functions only; DB-backed behavior lives in integration/.
"""
import random

import pytest


@pytest.fixture
def rng():
    """Seeded generator so sampling tests are reproducible."""
    return random.Random(1234)
