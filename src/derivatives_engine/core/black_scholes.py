"""Closed-form Black-Scholes pricing, Greeks and implied volatility."""

from __future__ import annotations

import logging
import math
from typing import Tuple

from ..utils.validation import require_kind, require_style
from .errors import ConvergenceFailureError, InvalidInputError, NumericalInfeasibilityError
from .models import ExerciseStyle, Greeks, MarketData, OptionContract, OptionType, ProductKind
from .pricing_model import PricingModel

LOGGER = logging.getLogger(__name__)

SQRT_TWO = math.sqrt(2.0)
INV_SQRT_TWO_PI = 1.0 / math.sqrt(2.0 * math.pi)
VEGA_FLOOR = 1e-10


def _norm_pdf(value: float) -> float:
    return INV_SQRT_TWO_PI * math.exp(-0.5 * value * value)


def _norm_cdf(value: float) -> float:
    return 0.5 * math.erfc(-value / SQRT_TWO)


def _d1_d2(contract: OptionContract, market: MarketData, volatility: float) -> Tuple[float, float]:
    sqrt_t = math.sqrt(contract.time_to_expiry)
    numerator = math.log(market.spot_price / contract.strike_price) + (
        market.risk_free_rate - market.dividend_yield + 0.5 * volatility**2
    ) * contract.time_to_expiry
    d1 = numerator / (volatility * sqrt_t)
    return d1, d1 - volatility * sqrt_t


def _vanilla_price_and_greeks(
    contract: OptionContract,
    market: MarketData,
    volatility: float,
) -> Tuple[float, Greeks]:
    """Calculate the Black-Scholes price and Greeks in raw units."""
    spot = market.spot_price
    strike = contract.strike_price
    tau = contract.time_to_expiry
    rate = market.risk_free_rate
    dividend = market.dividend_yield

    sqrt_t = math.sqrt(tau)
    discount_dividend = math.exp(-dividend * tau)
    discount_rate = math.exp(-rate * tau)
    d1, d2 = _d1_d2(contract, market, volatility)
    pdf = _norm_pdf(d1)

    gamma = discount_dividend * pdf / (spot * volatility * sqrt_t)
    vega = spot * discount_dividend * pdf * sqrt_t
    decay = -spot * discount_dividend * pdf * volatility / (2.0 * sqrt_t)

    if contract.option_type is OptionType.CALL:
        cdf_d1 = _norm_cdf(d1)
        cdf_d2 = _norm_cdf(d2)
        price = spot * discount_dividend * cdf_d1 - strike * discount_rate * cdf_d2
        delta = discount_dividend * cdf_d1
        theta = decay - rate * strike * discount_rate * cdf_d2 + dividend * spot * discount_dividend * cdf_d1
        rho = strike * tau * discount_rate * cdf_d2
    else:
        cdf_d1 = _norm_cdf(-d1)
        cdf_d2 = _norm_cdf(-d2)
        price = strike * discount_rate * cdf_d2 - spot * discount_dividend * cdf_d1
        delta = -discount_dividend * cdf_d1
        theta = decay + rate * strike * discount_rate * cdf_d2 - dividend * spot * discount_dividend * cdf_d1
        rho = -strike * tau * discount_rate * cdf_d2

    return max(0.0, price), Greeks(delta=delta, gamma=gamma, vega=vega, theta=theta, rho=rho)


def black_scholes_price(contract: OptionContract, market: MarketData, volatility: float | None = None) -> float:
    """Price a European vanilla or cash-or-nothing digital contract."""

    sigma = market.volatility if volatility is None else volatility
    if contract.kind is ProductKind.DIGITAL:
        _, d2 = _d1_d2(contract, market, sigma)
        discount_rate = math.exp(-market.risk_free_rate * contract.time_to_expiry)
        probability = _norm_cdf(d2) if contract.option_type is OptionType.CALL else _norm_cdf(-d2)
        return contract.payout * discount_rate * probability
    price, _ = _vanilla_price_and_greeks(contract, market, sigma)
    return price


def implied_volatility(
    contract: OptionContract,
    market: MarketData,
    target_price: float,
    *,
    initial_guess: float = 0.2,
    tolerance: float = 1e-8,
    max_iterations: int = 100,
) -> float:
    """Solve for the volatility reproducing ``target_price`` by Newton-Raphson.

    Raises
    ------
    NumericalInfeasibilityError
        When vega collapses below ``VEGA_FLOOR`` so the Newton step is undefined.
    ConvergenceFailureError
        When ``max_iterations`` pass without meeting ``tolerance``.
    """

    if contract.kind is not ProductKind.VANILLA or contract.exercise_style is not ExerciseStyle.EUROPEAN:
        raise InvalidInputError("implied volatility is defined for European vanilla contracts only")
    if not math.isfinite(target_price) or target_price < 0:
        raise InvalidInputError("target_price must be a finite non-negative number")
    if initial_guess <= 0:
        raise InvalidInputError("initial_guess must be strictly positive")

    sigma = initial_guess
    for iteration in range(max_iterations):
        price, greeks = _vanilla_price_and_greeks(contract, market, sigma)
        difference = price - target_price
        if abs(difference) < tolerance:
            LOGGER.debug("Implied volatility %.8f found after %d iterations", sigma, iteration)
            return sigma
        if abs(greeks.vega) < VEGA_FLOOR:
            raise NumericalInfeasibilityError(
                f"vega vanished at volatility {sigma:.6g}; Newton step is undefined"
            )
        candidate = sigma - difference / greeks.vega
        # Newton can overshoot below zero for deep out-of-the-money targets.
        sigma = candidate if candidate > 0.0 else 0.5 * sigma

    raise ConvergenceFailureError(
        f"implied volatility did not converge within {max_iterations} iterations"
    )


class BlackScholesModel(PricingModel):
    """Deterministic Black-Scholes pricing model for European contracts."""

    @property
    def name(self) -> str:
        return "black_scholes"

    def _check(self, contract: OptionContract) -> None:
        require_style(contract, (ExerciseStyle.EUROPEAN,), self.name)
        require_kind(contract, (ProductKind.VANILLA, ProductKind.DIGITAL), self.name)

    def price(self, contract: OptionContract, market: MarketData) -> float:
        self._check(contract)
        return black_scholes_price(contract, market)

    def greeks(self, contract: OptionContract, market: MarketData) -> Greeks:
        self._check(contract)
        if contract.kind is ProductKind.DIGITAL:
            return super().greeks(contract, market)
        _, greeks = _vanilla_price_and_greeks(contract, market, market.volatility)
        return greeks
