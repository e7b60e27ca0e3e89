"""Shared fixtures and environment bootstrapping for the test suite."""

from __future__ import annotations

from typing import Iterator

import pytest

from derivatives_engine.config import get_settings
from derivatives_engine.core.models import ExerciseStyle, MarketData, OptionContract, OptionType


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Make every test read the environment afresh."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def market() -> MarketData:
    return MarketData(spot_price=100.0, risk_free_rate=0.05, volatility=0.2, dividend_yield=0.0)


@pytest.fixture
def atm_call() -> OptionContract:
    return OptionContract.vanilla(100.0, 1.0, OptionType.CALL)


@pytest.fixture
def atm_put() -> OptionContract:
    return OptionContract.vanilla(100.0, 1.0, OptionType.PUT)


@pytest.fixture
def american_put() -> OptionContract:
    return OptionContract.vanilla(100.0, 1.0, OptionType.PUT, ExerciseStyle.AMERICAN)
