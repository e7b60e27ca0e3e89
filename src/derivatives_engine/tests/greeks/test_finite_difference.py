import math

import pytest

from derivatives_engine.core.black_scholes import BlackScholesModel, black_scholes_price
from derivatives_engine.core.errors import InvalidInputError
from derivatives_engine.core.heston import HestonModel
from derivatives_engine.core.models import MarketData, OptionContract, OptionType
from derivatives_engine.core.monte_carlo import MonteCarloConfig, MonteCarloModel
from derivatives_engine.greeks import BumpSizes, finite_difference_greeks, finite_difference_theta


def test_bump_and_reprice_matches_closed_form(market, atm_call):
    analytic = BlackScholesModel().greeks(atm_call, market)
    numeric = finite_difference_greeks(black_scholes_price, atm_call, market)

    assert numeric.delta == pytest.approx(analytic.delta, abs=1e-4)
    assert numeric.gamma == pytest.approx(analytic.gamma, rel=1e-3)
    # One-sided bumps carry first-order error.
    assert numeric.vega == pytest.approx(analytic.vega, rel=1e-3)
    assert numeric.rho == pytest.approx(analytic.rho, rel=1e-3)
    assert numeric.theta == pytest.approx(analytic.theta, rel=1e-2)


def test_put_greek_signs(market, atm_put):
    greeks = finite_difference_greeks(black_scholes_price, atm_put, market)

    assert -1.0 < greeks.delta < 0.0
    assert greeks.gamma > 0.0
    assert greeks.vega > 0.0
    assert greeks.rho < 0.0


def test_theta_bump_capped_at_half_life(market):
    short = OptionContract.vanilla(100.0, 1.0 / 730.0, OptionType.CALL)
    seen = []

    def pricer(contract, market_data):
        seen.append(contract.time_to_expiry)
        return black_scholes_price(contract, market_data)

    base = pricer(short, market)
    theta = finite_difference_theta(pricer, short, market, base, BumpSizes(time=1.0 / 365.0))

    assert seen[-1] == pytest.approx(0.5 / 730.0)
    assert math.isfinite(theta)
    assert theta < 0


def test_custom_bumps_validated():
    with pytest.raises(InvalidInputError):
        BumpSizes(spot_relative=0.0)
    with pytest.raises(InvalidInputError):
        BumpSizes(volatility=math.nan)


def test_monte_carlo_delta_with_common_random_numbers(market, atm_call):
    model = MonteCarloModel(MonteCarloConfig(paths=50_000, seed=2024))
    greeks = model.greeks(atm_call, market)

    assert greeks.delta == pytest.approx(BlackScholesModel().greeks(atm_call, market).delta, abs=0.01)
    assert greeks.vega == pytest.approx(37.52, abs=1.5)


def test_heston_vega_is_zero_by_construction():
    market = MarketData(spot_price=100.0, risk_free_rate=0.03, volatility=0.2)
    greeks = HestonModel().greeks(OptionContract.vanilla(100.0, 1.0, OptionType.CALL), market)

    assert greeks.vega == 0.0
    assert 0.0 < greeks.delta < 1.0
