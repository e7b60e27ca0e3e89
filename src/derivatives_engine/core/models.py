"""Domain models for the derivatives pricing engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Dict, Optional, Tuple, Union

import numpy as np

from .errors import InvalidInputError

ArrayLike = Union[float, np.ndarray]


class OptionType(str, Enum):
    """Supported option contract types."""

    CALL = "call"
    PUT = "put"


class ExerciseStyle(str, Enum):
    """Available exercise styles for an option contract."""

    EUROPEAN = "european"
    AMERICAN = "american"


class ProductKind(str, Enum):
    """Payoff family of a contract; engines dispatch on this tag."""

    VANILLA = "vanilla"
    ASIAN = "asian"
    BARRIER = "barrier"
    DIGITAL = "digital"


class AveragingType(str, Enum):
    ARITHMETIC = "arithmetic"
    GEOMETRIC = "geometric"


class BarrierType(str, Enum):
    UP_IN = "up_in"
    UP_OUT = "up_out"
    DOWN_IN = "down_in"
    DOWN_OUT = "down_out"

    @property
    def is_up(self) -> bool:
        return self in (BarrierType.UP_IN, BarrierType.UP_OUT)

    @property
    def is_knock_in(self) -> bool:
        return self in (BarrierType.UP_IN, BarrierType.DOWN_IN)


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite")


@dataclass(frozen=True, slots=True)
class MarketData:
    """Market conditions required to price an option."""

    spot_price: float
    risk_free_rate: float
    volatility: float
    dividend_yield: float = 0.0

    def __post_init__(self) -> None:
        for item in fields(self):
            _require_finite(item.name, float(getattr(self, item.name)))
        if self.spot_price <= 0:
            raise InvalidInputError("spot_price must be strictly positive")
        if self.volatility <= 0:
            raise InvalidInputError("volatility must be strictly positive")

    def bumped(self, **changes: float) -> "MarketData":
        """Return a validated copy with the given fields replaced."""

        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class OptionContract:
    """Immutable description of an option contract to be priced.

    The ``kind`` tag selects the payoff family. Fields that only apply to a
    single kind (averaging, barrier settings, digital payout) are validated
    against that kind in ``__post_init__``; use the ``vanilla``, ``asian``,
    ``barrier`` and ``digital`` constructors rather than filling them by hand.
    """

    strike_price: float
    time_to_expiry: float
    option_type: OptionType
    exercise_style: ExerciseStyle = ExerciseStyle.EUROPEAN
    kind: ProductKind = ProductKind.VANILLA
    averaging: AveragingType = AveragingType.ARITHMETIC
    observations: int = 12
    barrier_type: Optional[BarrierType] = None
    barrier_level: Optional[float] = None
    rebate: float = 0.0
    payout: float = 1.0
    contract_id: Optional[str] = None

    def __post_init__(self) -> None:
        _require_finite("strike_price", float(self.strike_price))
        _require_finite("time_to_expiry", float(self.time_to_expiry))
        if self.strike_price <= 0:
            raise InvalidInputError("strike_price must be strictly positive")
        if self.time_to_expiry <= 0:
            raise InvalidInputError("time_to_expiry must be strictly positive")

        if self.kind is not ProductKind.VANILLA and self.exercise_style is not ExerciseStyle.EUROPEAN:
            raise InvalidInputError(f"{self.kind.value} contracts are European-style only")
        if self.kind is ProductKind.ASIAN and self.observations < 1:
            raise InvalidInputError("observations must be at least 1")
        if self.kind is ProductKind.BARRIER:
            if self.barrier_type is None or self.barrier_level is None:
                raise InvalidInputError("barrier contracts need barrier_type and barrier_level")
            _require_finite("barrier_level", float(self.barrier_level))
            if self.barrier_level <= 0:
                raise InvalidInputError("barrier_level must be strictly positive")
            _require_finite("rebate", float(self.rebate))
            if self.rebate < 0:
                raise InvalidInputError("rebate must be non-negative")
        if self.kind is ProductKind.DIGITAL:
            _require_finite("payout", float(self.payout))
            if self.payout <= 0:
                raise InvalidInputError("payout must be strictly positive")

        contract_id = self.contract_id or (
            f"{self.kind.value}_{self.strike_price:.4f}_"
            f"{self.time_to_expiry:.6f}_{self.option_type.value}_{self.exercise_style.value}"
        )
        object.__setattr__(self, "contract_id", contract_id)

    @classmethod
    def vanilla(
        cls,
        strike_price: float,
        time_to_expiry: float,
        option_type: OptionType,
        exercise_style: ExerciseStyle = ExerciseStyle.EUROPEAN,
    ) -> "OptionContract":
        return cls(strike_price, time_to_expiry, option_type, exercise_style)

    @classmethod
    def asian(
        cls,
        strike_price: float,
        time_to_expiry: float,
        option_type: OptionType,
        averaging: AveragingType = AveragingType.ARITHMETIC,
        observations: int = 12,
    ) -> "OptionContract":
        return cls(
            strike_price,
            time_to_expiry,
            option_type,
            kind=ProductKind.ASIAN,
            averaging=averaging,
            observations=observations,
        )

    @classmethod
    def barrier(
        cls,
        strike_price: float,
        time_to_expiry: float,
        option_type: OptionType,
        barrier_type: BarrierType,
        barrier_level: float,
        rebate: float = 0.0,
    ) -> "OptionContract":
        return cls(
            strike_price,
            time_to_expiry,
            option_type,
            kind=ProductKind.BARRIER,
            barrier_type=barrier_type,
            barrier_level=barrier_level,
            rebate=rebate,
        )

    @classmethod
    def digital(
        cls,
        strike_price: float,
        time_to_expiry: float,
        option_type: OptionType,
        payout: float = 1.0,
    ) -> "OptionContract":
        return cls(
            strike_price,
            time_to_expiry,
            option_type,
            kind=ProductKind.DIGITAL,
            payout=payout,
        )

    @property
    def is_knock_in(self) -> bool:
        return self.barrier_type is not None and self.barrier_type.is_knock_in

    def payoff(self, spot: ArrayLike) -> ArrayLike:
        """Return the payoff for a terminal (or averaged) spot, vectorised."""

        values = np.asarray(spot, dtype=float)
        if self.kind is ProductKind.DIGITAL:
            if self.option_type is OptionType.CALL:
                result = np.where(values > self.strike_price, self.payout, 0.0)
            else:
                result = np.where(values < self.strike_price, self.payout, 0.0)
        elif self.option_type is OptionType.CALL:
            result = np.maximum(values - self.strike_price, 0.0)
        else:
            result = np.maximum(self.strike_price - values, 0.0)
        if result.ndim == 0:
            return float(result)
        return result

    def average(self, observations: np.ndarray) -> ArrayLike:
        """Average observed spots along the last axis using the contract's averaging."""

        values = np.asarray(observations, dtype=float)
        if self.averaging is AveragingType.GEOMETRIC:
            result = np.exp(np.mean(np.log(values), axis=-1))
        else:
            result = np.mean(values, axis=-1)
        if np.ndim(result) == 0:
            return float(result)
        return result

    def is_knocked(self, spot: ArrayLike) -> ArrayLike:
        """Return whether ``spot`` breaches the barrier (inclusive)."""

        if self.barrier_type is None or self.barrier_level is None:
            raise InvalidInputError("contract has no barrier")
        values = np.asarray(spot, dtype=float)
        if self.barrier_type.is_up:
            result = values >= self.barrier_level
        else:
            result = values <= self.barrier_level
        if result.ndim == 0:
            return bool(result)
        return result

    def with_expiry(self, time_to_expiry: float) -> "OptionContract":
        return replace(self, time_to_expiry=time_to_expiry)


@dataclass(frozen=True, slots=True)
class HestonParams:
    """Parameters of the Heston stochastic volatility model."""

    kappa: float = 2.0
    theta: float = 0.04
    sigma: float = 0.3
    rho: float = -0.7
    v0: float = 0.04

    def __post_init__(self) -> None:
        for item in fields(self):
            _require_finite(item.name, float(getattr(self, item.name)))
        if self.kappa <= 0:
            raise InvalidInputError("kappa must be strictly positive")
        if self.theta < 0:
            raise InvalidInputError("theta must be non-negative")
        if self.sigma < 0:
            raise InvalidInputError("sigma must be non-negative")
        if not -1.0 <= self.rho <= 1.0:
            raise InvalidInputError("rho must be within [-1, 1]")
        if self.v0 < 0:
            raise InvalidInputError("v0 must be non-negative")

    @property
    def feller_satisfied(self) -> bool:
        """True when 2*kappa*theta >= sigma^2, i.e. variance stays away from zero."""

        return 2.0 * self.kappa * self.theta >= self.sigma**2


@dataclass(frozen=True, slots=True)
class Greeks:
    """Price sensitivities in raw units (per unit of spot, vol, rate and year)."""

    delta: float
    gamma: float
    vega: float
    theta: float
    rho: float

    def as_dict(self) -> Dict[str, float]:
        return {item.name: float(getattr(self, item.name)) for item in fields(self)}


@dataclass(slots=True)
class PricingResult:
    """Container for the outcome of a pricing model evaluation."""

    contract_id: str
    theoretical_price: float
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    rho: Optional[float] = None
    computation_time_ms: float = 0.0
    model_used: str = "unknown"
    standard_error: Optional[float] = None
    confidence_interval: Optional[Tuple[float, float]] = None
    paths_used: Optional[int] = None

    @property
    def greeks(self) -> Optional[Greeks]:
        values = (self.delta, self.gamma, self.vega, self.theta, self.rho)
        if any(value is None for value in values):
            return None
        return Greeks(*values)  # type: ignore[arg-type]
