"""Bump-and-reprice Greeks shared by every pricing model."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from ..core.errors import InvalidInputError
from ..core.models import Greeks, MarketData, OptionContract

Pricer = Callable[[OptionContract, MarketData], float]


@dataclass(frozen=True, slots=True)
class BumpSizes:
    """Perturbations applied to the pricing inputs.

    ``spot_relative`` is a fraction of spot and is applied symmetrically.
    The other bumps are absolute and one-sided: volatility and rate upwards,
    time to expiry downwards (one calendar day by default, capped at half
    the remaining life).
    """

    spot_relative: float = 0.01
    volatility: float = 0.001
    rate: float = 0.0001
    time: float = 1.0 / 365.0

    def __post_init__(self) -> None:
        for name in ("spot_relative", "volatility", "rate", "time"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidInputError(f"{name} bump must be strictly positive")


DEFAULT_BUMPS = BumpSizes()


def finite_difference_delta_gamma(
    pricer: Pricer,
    contract: OptionContract,
    market: MarketData,
    base_price: float,
    bumps: BumpSizes = DEFAULT_BUMPS,
) -> tuple[float, float]:
    h = market.spot_price * bumps.spot_relative
    price_up = pricer(contract, market.bumped(spot_price=market.spot_price + h))
    price_down = pricer(contract, market.bumped(spot_price=market.spot_price - h))
    delta = (price_up - price_down) / (2.0 * h)
    gamma = (price_up - 2.0 * base_price + price_down) / (h * h)
    return delta, gamma


def finite_difference_vega(
    pricer: Pricer,
    contract: OptionContract,
    market: MarketData,
    base_price: float,
    bumps: BumpSizes = DEFAULT_BUMPS,
) -> float:
    bumped = market.bumped(volatility=market.volatility + bumps.volatility)
    return (pricer(contract, bumped) - base_price) / bumps.volatility


def finite_difference_rho(
    pricer: Pricer,
    contract: OptionContract,
    market: MarketData,
    base_price: float,
    bumps: BumpSizes = DEFAULT_BUMPS,
) -> float:
    bumped = market.bumped(risk_free_rate=market.risk_free_rate + bumps.rate)
    return (pricer(contract, bumped) - base_price) / bumps.rate


def finite_difference_theta(
    pricer: Pricer,
    contract: OptionContract,
    market: MarketData,
    base_price: float,
    bumps: BumpSizes = DEFAULT_BUMPS,
) -> float:
    """Calendar-time decay per year: ``(V(T - dt) - V(T)) / dt``."""

    dt = min(bumps.time, 0.5 * contract.time_to_expiry)
    shorter = contract.with_expiry(contract.time_to_expiry - dt)
    return (pricer(shorter, market) - base_price) / dt


def finite_difference_greeks(
    pricer: Pricer,
    contract: OptionContract,
    market: MarketData,
    *,
    base_price: float | None = None,
    bumps: BumpSizes = DEFAULT_BUMPS,
) -> Greeks:
    """Differentiate ``pricer`` numerically around ``(contract, market)``."""

    if base_price is None:
        base_price = pricer(contract, market)
    delta, gamma = finite_difference_delta_gamma(pricer, contract, market, base_price, bumps)
    return Greeks(
        delta=delta,
        gamma=gamma,
        vega=finite_difference_vega(pricer, contract, market, base_price, bumps),
        theta=finite_difference_theta(pricer, contract, market, base_price, bumps),
        rho=finite_difference_rho(pricer, contract, market, base_price, bumps),
    )
