import math

import numpy as np
import pytest

from derivatives_engine.core.black_scholes import black_scholes_price
from derivatives_engine.core.errors import InvalidInputError, UnsupportedStyleError
from derivatives_engine.core.heston import HestonModel, characteristic_function, integrated_variance
from derivatives_engine.core.models import HestonParams, MarketData, OptionContract, OptionType


@pytest.fixture
def heston_market() -> MarketData:
    return MarketData(spot_price=100.0, risk_free_rate=0.03, volatility=0.2, dividend_yield=0.01)


@pytest.mark.parametrize("strike", [80.0, 100.0, 125.0])
def test_zero_vol_of_vol_reduces_to_black_scholes(strike, heston_market):
    params = HestonParams(kappa=1.0, theta=0.04, sigma=0.0, rho=0.0, v0=0.04)
    contract = OptionContract.vanilla(strike, 1.0, OptionType.CALL)

    heston = HestonModel(params).price(contract, heston_market)
    reference = black_scholes_price(contract, heston_market, volatility=0.2)

    assert heston == pytest.approx(reference, abs=1e-4)


@pytest.mark.parametrize(
    "strike, maturity",
    [(90.0, 0.005), (100.0, 0.005), (110.0, 0.005), (100.0, 0.02)],
)
def test_short_maturity_with_small_vol_of_vol_matches_black_scholes(strike, maturity):
    market = MarketData(spot_price=100.0, risk_free_rate=0.05, volatility=0.2)
    params = HestonParams(kappa=2.0, theta=0.04, sigma=1e-4, rho=-0.5, v0=0.04)
    contract = OptionContract.vanilla(strike, maturity, OptionType.CALL)

    heston = HestonModel(params).price(contract, market)
    reference = black_scholes_price(contract, market, volatility=0.2)

    assert heston == pytest.approx(reference, abs=1e-4)


def test_integration_grid_grows_for_short_maturities():
    model = HestonModel(HestonParams(theta=0.04, v0=0.04), integration_limit=100.0, integration_points=2_048)

    assert model.integration_grid(1.0)[-1] == pytest.approx(100.0)
    assert model.integration_grid(1.0).size == 2_048
    short = model.integration_grid(0.005)
    assert short[-1] > 500.0
    assert short[1] - short[0] <= 100.0 / 2_047 + 1e-12


def test_deterministic_variance_uses_integrated_variance():
    params = HestonParams(kappa=2.0, theta=0.04, sigma=0.0, rho=0.0, v0=0.09)
    variance = integrated_variance(params, 1.0)

    assert 0.04 < variance < 0.09
    assert integrated_variance(HestonParams(sigma=0.0, v0=0.04), 2.0) == pytest.approx(0.08)


def test_characteristic_function_normalisation(heston_market):
    params = HestonParams()
    at_zero = characteristic_function(np.array([0.0]), params, 100.0, 1.0, 0.03, 0.01)
    at_minus_i = characteristic_function(np.array([-1j]), params, 100.0, 1.0, 0.03, 0.01)

    assert at_zero[0] == pytest.approx(1.0)
    assert at_minus_i[0].real == pytest.approx(100.0 * math.exp(0.02), rel=1e-10)


def test_put_call_parity(heston_market):
    model = HestonModel(HestonParams(kappa=1.5, theta=0.05, sigma=0.5, rho=-0.6, v0=0.04))
    call = model.price(OptionContract.vanilla(105.0, 0.75, OptionType.CALL), heston_market)
    put = model.price(OptionContract.vanilla(105.0, 0.75, OptionType.PUT), heston_market)

    parity = 100.0 * math.exp(-0.01 * 0.75) - 105.0 * math.exp(-0.03 * 0.75)
    assert call - put == pytest.approx(parity, abs=1e-8)


def test_monte_carlo_agrees_with_semi_analytical(heston_market):
    model = HestonModel(HestonParams(kappa=2.0, theta=0.04, sigma=0.3, rho=-0.7, v0=0.04))
    contract = OptionContract.vanilla(100.0, 1.0, OptionType.CALL)

    analytic = model.price_semi_analytical(contract, heston_market)
    simulated = model.price_monte_carlo(contract, heston_market, paths=80_000, steps=100)

    assert 7.0 < analytic < 11.0
    assert simulated == pytest.approx(analytic, abs=0.3)


def test_negative_correlation_skews_prices(heston_market):
    contract = OptionContract.vanilla(120.0, 1.0, OptionType.CALL)
    negative = HestonModel(HestonParams(rho=-0.7)).price(contract, heston_market)
    positive = HestonModel(HestonParams(rho=0.7)).price(contract, heston_market)

    assert negative < positive


def test_params_can_be_replaced(heston_market):
    model = HestonModel(HestonParams(v0=0.04))
    contract = OptionContract.vanilla(100.0, 1.0, OptionType.CALL)
    low = model.price(contract, heston_market)

    model.params = HestonParams(v0=0.09, theta=0.09)
    assert model.price(contract, heston_market) > low
    with pytest.raises(InvalidInputError):
        model.params = {"kappa": 2.0}


def test_digitals_sum_to_discounted_payout(heston_market):
    model = HestonModel()
    call = OptionContract.digital(100.0, 1.0, OptionType.CALL, payout=5.0)
    put = OptionContract.digital(100.0, 1.0, OptionType.PUT, payout=5.0)

    total = model.price(call, heston_market) + model.price(put, heston_market)
    assert total == pytest.approx(5.0 * math.exp(-0.03), rel=1e-10)


def test_long_maturity_high_vol_of_vol_stays_finite(heston_market):
    params = HestonParams(kappa=0.5, theta=0.09, sigma=1.0, rho=-0.9, v0=0.09)
    contract = OptionContract.vanilla(100.0, 10.0, OptionType.CALL)

    price = HestonModel(params).price(contract, heston_market)

    lower = 100.0 * math.exp(-0.1) - 100.0 * math.exp(-0.3)
    assert math.isfinite(price)
    assert lower <= price <= 100.0 * math.exp(-0.1)


def test_american_contracts_rejected(heston_market, american_put):
    with pytest.raises(UnsupportedStyleError):
        HestonModel().price(american_put, heston_market)


def test_integration_settings_validated():
    with pytest.raises(InvalidInputError):
        HestonModel(integration_limit=0.0)
    with pytest.raises(InvalidInputError):
        HestonModel(integration_points=4)
