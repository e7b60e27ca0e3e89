"""Recombining binomial and trinomial lattice pricers."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from ..config import Settings, get_settings
from ..utils.validation import require_kind, require_positive_int
from .errors import NumericalInfeasibilityError
from .models import ExerciseStyle, MarketData, OptionContract, ProductKind
from .pricing_model import PricingModel

LOGGER = logging.getLogger(__name__)

LATTICE_KINDS = (ProductKind.VANILLA, ProductKind.DIGITAL)


def _check_probability(name: str, value: float, steps: int) -> None:
    if not 0.0 <= value <= 1.0 or math.isnan(value):
        raise NumericalInfeasibilityError(
            f"{name}={value:.6g} lies outside [0, 1] with {steps} steps; "
            "increase the step count or check the volatility"
        )


@dataclass(slots=True)
class BinomialTreeModel(PricingModel):
    """Cox-Ross-Rubinstein binomial tree.

    American contracts take ``max(continuation, exercise)`` at every node of
    every layer, not only at the root.
    """

    steps: int = 500

    def __post_init__(self) -> None:
        self.steps = require_positive_int("steps", self.steps)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BinomialTreeModel":
        settings = settings or get_settings()
        return cls(steps=settings.lattice_steps)

    @property
    def name(self) -> str:
        return f"binomial_{self.steps}"

    def price(self, contract: OptionContract, market: MarketData) -> float:
        require_kind(contract, LATTICE_KINDS, self.name)

        steps = self.steps
        delta_t = contract.time_to_expiry / steps
        up = math.exp(market.volatility * math.sqrt(delta_t))
        down = 1.0 / up

        growth = math.exp((market.risk_free_rate - market.dividend_yield) * delta_t)
        probability = (growth - down) / (up - down)
        _check_probability("p", probability, steps)
        discount = math.exp(-market.risk_free_rate * delta_t)

        # Node j of layer i sits at S * u^(2j - i).
        prices = market.spot_price * up ** (2.0 * np.arange(steps + 1) - steps)
        values = np.asarray(contract.payoff(prices), dtype=float)
        american = contract.exercise_style is ExerciseStyle.AMERICAN

        for _ in range(steps - 1, -1, -1):
            values = discount * (probability * values[1:] + (1.0 - probability) * values[:-1])
            prices = prices[:-1] * up
            if american:
                values = np.maximum(values, contract.payoff(prices))

        return float(values[0])


@dataclass(slots=True)
class TrinomialTreeModel(PricingModel):
    """Log-space trinomial tree matching the first two moments of the diffusion."""

    steps: int = 500

    def __post_init__(self) -> None:
        self.steps = require_positive_int("steps", self.steps)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TrinomialTreeModel":
        settings = settings or get_settings()
        return cls(steps=settings.lattice_steps)

    @property
    def name(self) -> str:
        return f"trinomial_{self.steps}"

    def branch_probabilities(self, contract: OptionContract, market: MarketData) -> tuple[float, float, float]:
        """Return ``(pu, pm, pd)``, raising when any leaves [0, 1]."""

        delta_t = contract.time_to_expiry / self.steps
        sigma = market.volatility
        delta_x = sigma * math.sqrt(3.0 * delta_t)
        drift = market.risk_free_rate - market.dividend_yield - 0.5 * sigma**2

        second_moment = (sigma**2 * delta_t + drift**2 * delta_t**2) / delta_x**2
        first_moment = drift * delta_t / delta_x
        pu = 0.5 * (second_moment + first_moment)
        pm = 1.0 - second_moment
        pd = 0.5 * (second_moment - first_moment)
        for name, value in (("pu", pu), ("pm", pm), ("pd", pd)):
            _check_probability(name, value, self.steps)
        return pu, pm, pd

    def price(self, contract: OptionContract, market: MarketData) -> float:
        require_kind(contract, LATTICE_KINDS, self.name)

        steps = self.steps
        delta_t = contract.time_to_expiry / steps
        delta_x = market.volatility * math.sqrt(3.0 * delta_t)
        pu, pm, pd = self.branch_probabilities(contract, market)
        discount = math.exp(-market.risk_free_rate * delta_t)
        american = contract.exercise_style is ExerciseStyle.AMERICAN

        # Node k of layer i sits at S * exp((k - i) * dx), k = 0..2i.
        offsets = np.arange(-steps, steps + 1, dtype=float)
        values = np.asarray(contract.payoff(market.spot_price * np.exp(offsets * delta_x)), dtype=float)

        for layer in range(steps - 1, -1, -1):
            values = discount * (pu * values[2:] + pm * values[1:-1] + pd * values[:-2])
            if american:
                offsets = np.arange(-layer, layer + 1, dtype=float)
                exercise = contract.payoff(market.spot_price * np.exp(offsets * delta_x))
                values = np.maximum(values, exercise)

        return float(values[0])
