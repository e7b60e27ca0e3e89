import math

import numpy as np
import pytest

from derivatives_engine.core.errors import InvalidInputError
from derivatives_engine.core.models import (
    AveragingType,
    BarrierType,
    ExerciseStyle,
    Greeks,
    HestonParams,
    MarketData,
    OptionContract,
    OptionType,
    ProductKind,
)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"spot_price": 0.0},
        {"spot_price": -5.0},
        {"volatility": 0.0},
        {"risk_free_rate": math.inf},
        {"dividend_yield": math.nan},
    ],
)
def test_market_data_rejects_out_of_domain_values(kwargs):
    values = {"spot_price": 100.0, "risk_free_rate": 0.05, "volatility": 0.2, "dividend_yield": 0.0}
    values.update(kwargs)
    with pytest.raises(InvalidInputError):
        MarketData(**values)


def test_invalid_input_is_also_a_value_error():
    with pytest.raises(ValueError):
        MarketData(spot_price=-1.0, risk_free_rate=0.0, volatility=0.2)


def test_bumped_market_is_a_new_validated_copy(market):
    bumped = market.bumped(spot_price=101.0)

    assert bumped.spot_price == 101.0
    assert market.spot_price == 100.0
    with pytest.raises(InvalidInputError):
        market.bumped(volatility=-0.1)


def test_contract_validation():
    with pytest.raises(InvalidInputError):
        OptionContract.vanilla(0.0, 1.0, OptionType.CALL)
    with pytest.raises(InvalidInputError):
        OptionContract.vanilla(100.0, 0.0, OptionType.CALL)
    with pytest.raises(InvalidInputError):
        OptionContract.asian(100.0, 1.0, OptionType.CALL, observations=0)
    with pytest.raises(InvalidInputError):
        OptionContract.barrier(100.0, 1.0, OptionType.CALL, BarrierType.UP_OUT, 0.0)
    with pytest.raises(InvalidInputError):
        OptionContract.barrier(100.0, 1.0, OptionType.CALL, BarrierType.UP_OUT, 120.0, rebate=-1.0)
    with pytest.raises(InvalidInputError):
        OptionContract.digital(100.0, 1.0, OptionType.CALL, payout=0.0)
    with pytest.raises(InvalidInputError):
        OptionContract(100.0, 1.0, OptionType.CALL, ExerciseStyle.AMERICAN, kind=ProductKind.ASIAN)


def test_vanilla_and_digital_payoffs_are_vectorised():
    call = OptionContract.vanilla(100.0, 1.0, OptionType.CALL)
    put = OptionContract.vanilla(100.0, 1.0, OptionType.PUT)
    digital = OptionContract.digital(100.0, 1.0, OptionType.CALL, payout=5.0)
    spots = np.array([80.0, 100.0, 120.0])

    np.testing.assert_allclose(call.payoff(spots), [0.0, 0.0, 20.0])
    np.testing.assert_allclose(put.payoff(spots), [20.0, 0.0, 0.0])
    np.testing.assert_allclose(digital.payoff(spots), [0.0, 0.0, 5.0])
    assert call.payoff(110.0) == pytest.approx(10.0)
    assert isinstance(call.payoff(110.0), float)


def test_geometric_average_not_above_arithmetic():
    observations = np.array([[90.0, 100.0, 110.0, 130.0], [100.0, 100.0, 100.0, 100.0]])
    arithmetic = OptionContract.asian(100.0, 1.0, OptionType.CALL)
    geometric = OptionContract.asian(100.0, 1.0, OptionType.CALL, AveragingType.GEOMETRIC)

    arith = arithmetic.average(observations)
    geo = geometric.average(observations)

    assert arith[0] == pytest.approx(107.5)
    assert np.all(geo <= arith + 1e-12)
    assert geo[1] == pytest.approx(100.0)


def test_barrier_knock_detection_is_inclusive():
    up = OptionContract.barrier(100.0, 1.0, OptionType.CALL, BarrierType.UP_IN, 120.0)
    down = OptionContract.barrier(100.0, 1.0, OptionType.PUT, BarrierType.DOWN_OUT, 80.0)

    assert up.is_knocked(120.0) is True
    assert up.is_knocked(119.99) is False
    assert up.is_knock_in
    assert down.is_knocked(80.0) is True
    assert not down.is_knock_in
    np.testing.assert_array_equal(down.is_knocked(np.array([79.0, 81.0])), [True, False])


def test_with_expiry_returns_copy(atm_call):
    shorter = atm_call.with_expiry(0.5)

    assert shorter.time_to_expiry == 0.5
    assert atm_call.time_to_expiry == 1.0
    assert shorter.contract_id == atm_call.contract_id


def test_heston_params_validation_and_feller():
    assert HestonParams(kappa=2.0, theta=0.04, sigma=0.5).feller_satisfied is False
    assert HestonParams(kappa=2.0, theta=0.04, sigma=0.2).feller_satisfied is True
    for kwargs in ({"kappa": 0.0}, {"theta": -0.01}, {"sigma": -0.1}, {"rho": 1.5}, {"v0": -0.01}):
        with pytest.raises(InvalidInputError):
            HestonParams(**kwargs)


def test_greeks_as_dict():
    greeks = Greeks(delta=0.5, gamma=0.02, vega=37.0, theta=-6.0, rho=50.0)

    assert greeks.as_dict() == {"delta": 0.5, "gamma": 0.02, "vega": 37.0, "theta": -6.0, "rho": 50.0}
