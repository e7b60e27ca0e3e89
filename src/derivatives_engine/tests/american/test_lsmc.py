import logging

import pytest

from derivatives_engine.core.black_scholes import BlackScholesModel
from derivatives_engine.core.errors import InvalidInputError, UnsupportedStyleError
from derivatives_engine.core.lattice import BinomialTreeModel
from derivatives_engine.core.lsmc import LongstaffSchwartzModel, LSMCConfig
from derivatives_engine.core.models import ExerciseStyle, MarketData, OptionContract, OptionType


def test_american_put_not_below_european_or_intrinsic(market, american_put, atm_put):
    price = LongstaffSchwartzModel(LSMCConfig(paths=40_000, steps=50)).price(american_put, market)

    assert price >= BlackScholesModel().price(atm_put, market)
    assert price >= max(american_put.strike_price - market.spot_price, 0.0)


def test_lsmc_close_to_binomial():
    market = MarketData(spot_price=36.0, risk_free_rate=0.06, volatility=0.2)
    contract = OptionContract.vanilla(40.0, 1.0, OptionType.PUT, ExerciseStyle.AMERICAN)

    lsmc = LongstaffSchwartzModel(LSMCConfig(paths=50_000, steps=50)).price(contract, market)
    binomial = BinomialTreeModel(steps=1_000).price(contract, market)

    assert binomial == pytest.approx(4.487, abs=0.01)
    assert lsmc == pytest.approx(binomial, abs=0.05)


def test_same_seed_same_price(market, american_put):
    config = LSMCConfig(paths=5_000, steps=20, seed=7)

    first = LongstaffSchwartzModel(config).price(american_put, market)
    assert LongstaffSchwartzModel(config).price(american_put, market) == first


def test_european_contracts_rejected(market, atm_put):
    with pytest.raises(UnsupportedStyleError):
        LongstaffSchwartzModel(LSMCConfig(paths=1_000, steps=10)).price(atm_put, market)


def test_config_validation():
    with pytest.raises(InvalidInputError):
        LSMCConfig(paths=1)
    with pytest.raises(InvalidInputError):
        LSMCConfig(steps=1)
    with pytest.raises(InvalidInputError):
        LSMCConfig(degree=0)


def test_deep_out_of_the_money_steps_are_skipped(market, caplog):
    contract = OptionContract.vanilla(50.0, 1.0, OptionType.PUT, ExerciseStyle.AMERICAN)
    model = LongstaffSchwartzModel(LSMCConfig(paths=2_000, steps=10))

    with caplog.at_level(logging.WARNING, logger="derivatives_engine.core.lsmc"):
        analysis = model.price_with_diagnostics(contract, market)

    assert analysis.skipped_steps
    assert [step.time_index for step in analysis.policy_steps] == list(range(1, 10))
    skipped = {step.time_index for step in analysis.policy_steps if step.skipped}
    assert skipped == set(analysis.skipped_steps)
    assert all(step.exercised == 0 for step in analysis.policy_steps if step.skipped)
    assert "skipped" in caplog.text
    assert analysis.pricing_result.theoretical_price >= 0.0


def test_price_floored_at_immediate_exercise():
    market = MarketData(spot_price=50.0, risk_free_rate=0.2, volatility=0.1)
    contract = OptionContract.vanilla(100.0, 1.0, OptionType.PUT, ExerciseStyle.AMERICAN)

    analysis = LongstaffSchwartzModel(LSMCConfig(paths=4_000, steps=20)).price_with_diagnostics(contract, market)

    assert analysis.floored_at_intrinsic
    assert analysis.pricing_result.theoretical_price == pytest.approx(50.0)


def test_reference_price_reported(market, american_put):
    config = LSMCConfig(paths=20_000, steps=50, reference_steps=200)
    analysis = LongstaffSchwartzModel(config).price_with_diagnostics(american_put, market)

    assert analysis.reference_model_used == "binomial_200"
    assert analysis.reference_price == pytest.approx(6.09, abs=0.05)
    assert abs(analysis.price_diff_bps) < 300.0


def test_calculate_price_fills_sampling_fields(market, american_put):
    model = LongstaffSchwartzModel(LSMCConfig(paths=10_000, steps=25))
    result = model.calculate_price(american_put, market, with_greeks=False)

    assert result.model_used == "lsmc_10000x25"
    assert result.paths_used == 10_000
    assert result.standard_error > 0
    assert result.delta is None


@pytest.mark.parametrize("degree", [5, 6])
def test_high_degree_regression_keeps_every_exercise_date(market, american_put, atm_put, degree):
    model = LongstaffSchwartzModel(LSMCConfig(paths=20_000, steps=50, degree=degree))

    analysis = model.price_with_diagnostics(american_put, market)

    assert analysis.skipped_steps == []
    assert all(step.coefficients.shape == (degree + 1,) for step in analysis.policy_steps)
    assert analysis.pricing_result.theoretical_price > BlackScholesModel().price(atm_put, market)
