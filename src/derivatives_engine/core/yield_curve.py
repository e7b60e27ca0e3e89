"""Zero-rate curves and market snapshots built from them."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import InvalidInputError
from .models import MarketData, OptionContract
from .volatility_surface import VolatilitySurface


class YieldCurve(ABC):
    """Continuously compounded zero-rate curve."""

    @abstractmethod
    def zero_rate(self, maturity: float) -> float:
        ...

    def discount_factor(self, maturity: float) -> float:
        return math.exp(-self.zero_rate(maturity) * maturity)

    def forward_rate(self, start: float, end: float) -> float:
        """Continuously compounded forward rate between ``start`` and ``end``."""

        if end <= start:
            return self.zero_rate(start)
        return -math.log(self.discount_factor(end) / self.discount_factor(start)) / (end - start)


@dataclass(frozen=True)
class FlatYieldCurve(YieldCurve):
    rate: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.rate):
            raise InvalidInputError("rate must be finite")

    def zero_rate(self, maturity: float) -> float:
        return self.rate


class InterpolatedYieldCurve(YieldCurve):
    """Linear interpolation in zero rates, flat beyond the first and last pillars."""

    def __init__(self, maturities: Sequence[float], rates: Sequence[float]) -> None:
        times = np.asarray(maturities, dtype=float)
        values = np.asarray(rates, dtype=float)
        if times.ndim != 1 or times.shape != values.shape or times.size == 0:
            raise InvalidInputError("maturities and rates must be non-empty sequences of equal length")
        if not (np.isfinite(times).all() and np.isfinite(values).all()):
            raise InvalidInputError("maturities and rates must be finite")
        if np.any(np.diff(times) <= 0):
            raise InvalidInputError("maturities must be strictly increasing")
        self.maturities = times
        self.rates = values

    def zero_rate(self, maturity: float) -> float:
        return float(np.interp(maturity, self.maturities, self.rates))


@dataclass(frozen=True)
class NelsonSiegelCurve(YieldCurve):
    """Nelson-Siegel zero curve with decay rate ``lambda_``."""

    beta0: float
    beta1: float
    beta2: float
    lambda_: float

    def __post_init__(self) -> None:
        if not self.lambda_ > 0:
            raise InvalidInputError("lambda_ must be strictly positive")

    def zero_rate(self, maturity: float) -> float:
        if maturity <= 0.0:
            return self.beta0 + self.beta1
        scaled = self.lambda_ * maturity
        factor = -math.expm1(-scaled) / scaled
        return self.beta0 + self.beta1 * factor + self.beta2 * (factor - math.exp(-scaled))


def market_from_curves(
    spot: float,
    contract: OptionContract,
    volatility_surface: VolatilitySurface,
    yield_curve: YieldCurve,
    dividend_yield: float = 0.0,
) -> MarketData:
    """Snapshot the curves at the contract's strike and expiry."""

    return MarketData(
        spot_price=spot,
        risk_free_rate=yield_curve.zero_rate(contract.time_to_expiry),
        volatility=volatility_surface.get_volatility(contract.strike_price, contract.time_to_expiry),
        dividend_yield=dividend_yield,
    )
