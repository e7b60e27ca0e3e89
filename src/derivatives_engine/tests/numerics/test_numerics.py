import math

import numpy as np
import pytest
from numpy.polynomial.laguerre import lagvander
from prometheus_client import REGISTRY

from derivatives_engine.core.black_scholes import BlackScholesModel
from derivatives_engine.core.errors import UnsupportedStyleError
from derivatives_engine.core.monte_carlo import MonteCarloConfig, MonteCarloModel
from derivatives_engine.greeks import CI_Z_VALUE, confidence_interval, contributions_finite, half_width, standard_error
from derivatives_engine.utils import antithetic_pair_means, laguerre_coefficients, weighted_laguerre_basis


def test_weighted_basis_spans_the_laguerre_space():
    x = np.linspace(0.85, 1.0, 40)
    domain = (0.85, 1.0)
    weight = np.exp(-0.5 * x)
    target = weight * (1.0 - x + 0.3 * x**3)

    basis = weighted_laguerre_basis(x, 4, domain)
    coefficients = np.linalg.lstsq(basis, target, rcond=None)[0]

    assert basis.shape == (40, 5)
    np.testing.assert_allclose(basis[:, 0], weight)
    np.testing.assert_allclose(basis @ coefficients, target, atol=1e-10)
    laguerre = lagvander(x, 4) * weight[:, None]
    np.testing.assert_allclose(laguerre @ laguerre_coefficients(coefficients, domain), target, atol=1e-8)


def test_weighted_basis_on_a_single_point():
    basis = weighted_laguerre_basis(np.full(3, 0.9), 2, (0.9, 0.9))

    np.testing.assert_allclose(basis[:, 1], 0.0)
    with pytest.raises(ValueError):
        weighted_laguerre_basis(np.ones(3), -1, (0.0, 1.0))


def test_antithetic_pair_means():
    samples = np.array([1.0, 2.0, 3.0, 5.0, 6.0, 7.0])

    np.testing.assert_allclose(antithetic_pair_means(samples), [3.0, 4.0, 5.0])
    with pytest.raises(ValueError):
        antithetic_pair_means(np.ones(3))


def test_sampling_error_helpers():
    sample = np.array([1.0, 2.0, 3.0, 4.0])

    assert standard_error(sample) == pytest.approx(np.std(sample, ddof=1) / 2.0)
    assert standard_error(np.array([1.0])) == 0.0
    assert CI_Z_VALUE == pytest.approx(1.959964, abs=1e-6)
    assert half_width(0.5) == pytest.approx(0.5 * CI_Z_VALUE)
    low, high = confidence_interval(10.0, 0.5)
    assert (low + high) / 2.0 == pytest.approx(10.0)
    assert contributions_finite(sample)
    assert not contributions_finite(np.array([1.0, math.inf]))


def test_simulated_paths_are_counted(market, atm_call):
    model = MonteCarloModel(MonteCarloConfig(paths=1_000))
    labels = {"model": model.name}
    before = REGISTRY.get_sample_value("dpe_simulated_paths_total", labels) or 0.0

    model.price(atm_call, market)

    assert REGISTRY.get_sample_value("dpe_simulated_paths_total", labels) == before + 1_000


def test_model_errors_are_counted(market, american_put):
    labels = {"model": "black_scholes"}
    before = REGISTRY.get_sample_value("dpe_model_errors_total", labels) or 0.0

    with pytest.raises(UnsupportedStyleError):
        BlackScholesModel().calculate_price(american_put, market)

    assert REGISTRY.get_sample_value("dpe_model_errors_total", labels) == before + 1
