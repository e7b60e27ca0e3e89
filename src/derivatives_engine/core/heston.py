"""Heston stochastic volatility pricing: Fourier inversion and Monte Carlo."""

from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np
from numpy.random import SeedSequence
from scipy.integrate import trapezoid

from ..config import Settings, get_settings
from ..greeks.stability import standard_error
from ..observability.metrics import SIMULATED_PATHS
from ..utils.validation import require_kind, require_positive_int, require_style
from .errors import InvalidInputError, NumericalInfeasibilityError
from .models import ExerciseStyle, HestonParams, MarketData, OptionContract, OptionType, ProductKind
from .paths import PathSimulator
from .pricing_model import PricingModel
from .random_stream import RandomStream

LOGGER = logging.getLogger(__name__)

# Below this vol-of-vol the variance path is treated as deterministic.
SIGMA_EPSILON = 1e-8
PHI_START = 1e-8
# The integrands decay like exp(-phi**2 * w / 2) in the total variance w, so the
# grid reaches at least CUTOFF_SCALE / sqrt(w).
CUTOFF_SCALE = 10.0
MIN_TOTAL_VARIANCE = 1e-8
MAX_INTEGRATION_POINTS = 65_536


def integrated_variance(params: HestonParams, maturity: float) -> float:
    """Total variance over ``[0, maturity]`` when vol-of-vol is zero."""

    decay = -math.expm1(-params.kappa * maturity) / params.kappa
    return params.theta * maturity + (params.v0 - params.theta) * decay


def characteristic_function(
    u: np.ndarray,
    params: HestonParams,
    spot: float,
    maturity: float,
    rate: float,
    dividend: float,
) -> np.ndarray:
    """Characteristic function of ``ln S_T`` in the "little trap" form.

    ``d`` is the principal square root, so ``Re d >= 0`` and ``|g e^{-dT}|``
    stays below one. The log term is written as ``log(1 - g e^{-dT}) -
    log(1 - g)``; both arguments keep a positive real part on the
    integration contour, so neither principal log crosses its branch cut as
    the maturity or vol-of-vol grows.
    """

    u = np.asarray(u, dtype=complex)
    iu = 1j * u
    log_forward = math.log(spot) + (rate - dividend) * maturity

    if params.sigma < SIGMA_EPSILON:
        variance = integrated_variance(params, maturity)
        return np.exp(iu * log_forward - 0.5 * (iu + u * u) * variance)

    kappa, theta, sigma, rho = params.kappa, params.theta, params.sigma, params.rho
    sigma_sq = sigma * sigma
    b = kappa - rho * sigma * iu
    d = np.sqrt(b * b + sigma_sq * (iu + u * u))
    g = (b - d) / (b + d)
    decay = np.exp(-d * maturity)

    log_term = np.log(1.0 - g * decay) - np.log(1.0 - g)
    c_term = (kappa * theta / sigma_sq) * ((b - d) * maturity - 2.0 * log_term)
    d_term = (b - d) / sigma_sq * (1.0 - decay) / (1.0 - g * decay)
    return np.exp(iu * log_forward + c_term + d_term * params.v0)


class HestonModel(PricingModel):
    """Heston model priced by Fourier inversion, with an Euler Monte Carlo cross-check.

    ``price`` is the semi-analytical price. Market volatility is not an input
    of the model, so bump-and-reprice vega is zero by construction.
    """

    def __init__(
        self,
        params: HestonParams | None = None,
        *,
        integration_limit: float = 100.0,
        integration_points: int = 2_048,
        seed: int | None = 12345,
        stream: RandomStream | None = None,
    ) -> None:
        if not math.isfinite(integration_limit) or integration_limit <= PHI_START:
            raise InvalidInputError("integration_limit must be a finite positive number")
        self.params = params or HestonParams()
        self.integration_limit = float(integration_limit)
        self.integration_points = require_positive_int("integration_points", integration_points, minimum=16)
        self.stream = stream or RandomStream(seed)
        self.simulator = PathSimulator(self.stream)

    @classmethod
    def from_settings(cls, params: HestonParams | None = None, settings: Settings | None = None) -> "HestonModel":
        settings = settings or get_settings()
        return cls(
            params,
            integration_limit=settings.heston_integration_limit,
            integration_points=settings.heston_integration_points,
            seed=settings.seed,
        )

    @property
    def params(self) -> HestonParams:
        return self._params

    @params.setter
    def params(self, value: HestonParams) -> None:
        if not isinstance(value, HestonParams):
            raise InvalidInputError("params must be a HestonParams instance")
        self._params = value

    @property
    def name(self) -> str:
        return "heston"

    def spawn(self, sequence: SeedSequence) -> "HestonModel":
        return HestonModel(
            self.params,
            integration_limit=self.integration_limit,
            integration_points=self.integration_points,
            stream=RandomStream.from_sequence(sequence),
        )

    def price(self, contract: OptionContract, market: MarketData) -> float:
        return self.price_semi_analytical(contract, market)

    def integration_grid(self, maturity: float) -> np.ndarray:
        """Trapezoid nodes for the inversion integrals at ``maturity``.

        ``integration_limit`` is a floor on the cutoff. Short maturities or low
        variance extend the cutoff to ``CUTOFF_SCALE / sqrt(w)`` and add nodes so
        the spacing of the configured grid is kept, up to
        ``MAX_INTEGRATION_POINTS``.
        """

        total_variance = max(integrated_variance(self.params, maturity), MIN_TOTAL_VARIANCE)
        limit = max(self.integration_limit, CUTOFF_SCALE / math.sqrt(total_variance))
        if limit == self.integration_limit:
            return np.linspace(PHI_START, limit, self.integration_points)
        spacing = (self.integration_limit - PHI_START) / (self.integration_points - 1)
        points = min(math.ceil((limit - PHI_START) / spacing) + 1, MAX_INTEGRATION_POINTS)
        LOGGER.debug("Heston cutoff extended to %.1f with %d nodes for maturity %.4g", limit, points, maturity)
        return np.linspace(PHI_START, limit, points)

    def probabilities(self, contract: OptionContract, market: MarketData) -> Tuple[float, float]:
        """Return ``(P1, P2)``: exercise probabilities under the stock and money-market measures."""

        spot = market.spot_price
        maturity = contract.time_to_expiry
        rate = market.risk_free_rate
        dividend = market.dividend_yield
        log_strike = math.log(contract.strike_price)

        phi = self.integration_grid(maturity)
        strike_phase = np.exp(-1j * phi * log_strike)
        forward = spot * math.exp((rate - dividend) * maturity)

        cf_shifted = characteristic_function(phi - 1j, self.params, spot, maturity, rate, dividend)
        cf_plain = characteristic_function(phi, self.params, spot, maturity, rate, dividend)

        integrand_1 = np.real(strike_phase * cf_shifted / (1j * phi * forward))
        integrand_2 = np.real(strike_phase * cf_plain / (1j * phi))
        if not (np.isfinite(integrand_1).all() and np.isfinite(integrand_2).all()):
            raise NumericalInfeasibilityError("Heston characteristic function overflowed on the integration grid")

        p1 = 0.5 + trapezoid(integrand_1, phi) / math.pi
        p2 = 0.5 + trapezoid(integrand_2, phi) / math.pi
        return float(p1), float(p2)

    def price_semi_analytical(self, contract: OptionContract, market: MarketData) -> float:
        """European call from ``S e^{-qT} P1 - K e^{-rT} P2``; puts by parity; digitals from ``P2``."""

        require_style(contract, (ExerciseStyle.EUROPEAN,), self.name)
        require_kind(contract, (ProductKind.VANILLA, ProductKind.DIGITAL), self.name)

        maturity = contract.time_to_expiry
        discounted_spot = market.spot_price * math.exp(-market.dividend_yield * maturity)
        discount = math.exp(-market.risk_free_rate * maturity)
        p1, p2 = self.probabilities(contract, market)

        if contract.kind is ProductKind.DIGITAL:
            probability = p2 if contract.option_type is OptionType.CALL else 1.0 - p2
            return contract.payout * discount * min(1.0, max(0.0, probability))

        call = discounted_spot * p1 - contract.strike_price * discount * p2
        if contract.option_type is OptionType.CALL:
            return max(0.0, call)
        return max(0.0, call - discounted_spot + contract.strike_price * discount)

    def price_monte_carlo(
        self,
        contract: OptionContract,
        market: MarketData,
        paths: int,
        steps: int,
    ) -> float:
        """Discounted mean terminal payoff over full-truncation Euler paths."""

        require_style(contract, (ExerciseStyle.EUROPEAN,), self.name)
        require_kind(contract, (ProductKind.VANILLA, ProductKind.DIGITAL), self.name)

        self.stream.reset()
        asset, _ = self.simulator.simulate_heston_paths(
            market.spot_price,
            market,
            self.params,
            contract.time_to_expiry,
            steps,
            paths,
        )
        discount = math.exp(-market.risk_free_rate * contract.time_to_expiry)
        discounted = discount * np.asarray(contract.payoff(asset[:, -1]), dtype=float)
        price = float(np.mean(discounted))
        SIMULATED_PATHS.labels(model="heston_monte_carlo").inc(discounted.size)
        LOGGER.debug(
            "Heston Monte Carlo: price=%.6f se=%.6f paths=%d steps=%d",
            price,
            standard_error(discounted),
            discounted.size,
            steps,
        )
        return price
