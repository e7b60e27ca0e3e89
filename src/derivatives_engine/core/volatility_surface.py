"""Volatility surface utilities."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from scipy.interpolate import LinearNDInterpolator, NearestNDInterpolator, RegularGridInterpolator
from scipy.spatial import QhullError

from .errors import InvalidInputError, NumericalInfeasibilityError

LOGGER = logging.getLogger(__name__)

MIN_VOLATILITY = 1e-4
MAX_VOLATILITY = 5.0
INTERPOLATION_METHODS = ("linear", "nearest")

Interpolator = Callable[[np.ndarray], np.ndarray]


class VolatilitySurface(Protocol):
    def get_volatility(self, strike: float, maturity: float) -> float:
        ...


def _check_volatility(volatility: float) -> None:
    if not math.isfinite(volatility) or not MIN_VOLATILITY <= volatility <= MAX_VOLATILITY:
        raise InvalidInputError(
            f"volatility must be within [{MIN_VOLATILITY}, {MAX_VOLATILITY}]"
        )


def volatility_by_moneyness(
    surface: VolatilitySurface, moneyness: float, maturity: float, reference: float
) -> float:
    """Volatility at ``strike = moneyness * reference`` (spot or forward level)."""

    if moneyness <= 0 or reference <= 0:
        raise InvalidInputError("moneyness and reference level must be positive")
    return surface.get_volatility(moneyness * reference, maturity)


@dataclass(frozen=True, slots=True)
class FlatVolatilitySurface:
    volatility: float

    def __post_init__(self) -> None:
        _check_volatility(self.volatility)

    def get_volatility(self, strike: float, maturity: float) -> float:
        return self.volatility


@dataclass(slots=True)
class VolatilityPoint:
    """A single observation on the implied volatility surface."""

    strike: float
    maturity: float
    volatility: float


class InterpolatedVolatilitySurface:
    """Implied volatility surface interpolated from quoted points.

    When every strike is quoted at every maturity the quotes form a
    rectangular grid, read with ``RegularGridInterpolator`` and linear
    extrapolation. Otherwise the quotes are triangulated and queries outside
    the triangulation take the nearest quote. With fewer than four quotes,
    or quotes that cannot be triangulated, the surface answers with the
    inverse-distance weighted quotes, or with ``default_volatility`` when it
    holds none.
    """

    def __init__(self, interpolation_method: str = "linear", default_volatility: float = 0.20) -> None:
        if interpolation_method not in INTERPOLATION_METHODS:
            raise InvalidInputError(f"interpolation_method must be one of {INTERPOLATION_METHODS}")
        _check_volatility(default_volatility)
        self.interpolation_method = interpolation_method
        self.default_volatility = default_volatility
        self._points: List[VolatilityPoint] = []
        self._interpolator: Optional[Interpolator] = None
        self._lock = threading.RLock()

    @classmethod
    def from_grid(
        cls,
        strikes: Sequence[float],
        maturities: Sequence[float],
        volatilities: Sequence[Sequence[float]],
        **kwargs: object,
    ) -> "InterpolatedVolatilitySurface":
        """Build a surface from a ``len(maturities) x len(strikes)`` matrix."""

        matrix = np.asarray(volatilities, dtype=float)
        if matrix.shape != (len(maturities), len(strikes)):
            raise InvalidInputError("volatility matrix size mismatch")
        surface = cls(**kwargs)  # type: ignore[arg-type]
        for maturity_index, maturity in enumerate(maturities):
            for strike_index, strike in enumerate(strikes):
                surface.update_volatility(strike, maturity, float(matrix[maturity_index, strike_index]))
        return surface

    @property
    def points(self) -> Tuple[VolatilityPoint, ...]:
        with self._lock:
            return tuple(self._points)

    def update_volatility(self, strike: float, maturity: float, volatility: float) -> None:
        if strike <= 0 or maturity <= 0:
            raise InvalidInputError("strike and maturity must be positive")
        _check_volatility(volatility)

        with self._lock:
            for index, point in enumerate(self._points):
                if math.isclose(point.strike, strike, abs_tol=1e-9) and math.isclose(
                    point.maturity, maturity, abs_tol=1e-9
                ):
                    self._points[index] = VolatilityPoint(strike, maturity, volatility)
                    break
            else:
                self._points.append(VolatilityPoint(strike, maturity, volatility))

            self._interpolator = self._build_interpolator()

    def _build_interpolator(self) -> Optional[Interpolator]:
        if len(self._points) < 4:
            return None

        nodes = np.array([(point.strike, point.maturity) for point in self._points], dtype=float)
        quotes = np.array([point.volatility for point in self._points], dtype=float)
        strike_axis, strike_slot = np.unique(nodes[:, 0], return_inverse=True)
        maturity_axis, maturity_slot = np.unique(nodes[:, 1], return_inverse=True)
        if strike_axis.size < 2 or maturity_axis.size < 2:
            return None

        if strike_axis.size * maturity_axis.size == quotes.size:
            table = np.empty((strike_axis.size, maturity_axis.size), dtype=float)
            table[strike_slot, maturity_slot] = quotes
            return RegularGridInterpolator(
                (strike_axis, maturity_axis),
                table,
                method=self.interpolation_method,
                bounds_error=False,
                fill_value=None,
            )

        nearest = NearestNDInterpolator(nodes, quotes)
        if self.interpolation_method == "nearest":
            return nearest
        try:
            triangulated = LinearNDInterpolator(nodes, quotes)
        except QhullError:
            LOGGER.debug("Volatility quotes cannot be triangulated; using weighted nearest quotes")
            return None

        def interpolate(query: np.ndarray) -> np.ndarray:
            estimate = triangulated(query)
            return np.where(np.isnan(estimate), nearest(query), estimate)

        return interpolate

    def get_volatility(self, strike: float, maturity: float) -> float:
        with self._lock:
            interpolator = self._interpolator

        if interpolator is None:
            return self._fallback(strike, maturity)

        volatility = float(np.ravel(interpolator(np.array([[strike, maturity]], dtype=float)))[0])
        if math.isnan(volatility) or not MIN_VOLATILITY <= volatility <= MAX_VOLATILITY:
            LOGGER.warning(
                "Interpolated volatility %.6g at strike=%.4f maturity=%.4f is unusable; "
                "falling back to nearest quotes",
                volatility,
                strike,
                maturity,
            )
            volatility = self._fallback(strike, maturity)
        return volatility

    def _fallback(self, strike: float, maturity: float) -> float:
        with self._lock:
            if not self._points:
                return self.default_volatility

            def distance(point: VolatilityPoint) -> float:
                strike_scale = max(strike, 1e-6)
                maturity_scale = max(maturity, 1e-6)
                return ((point.strike - strike) / strike_scale) ** 2 + (
                    (point.maturity - maturity) / maturity_scale
                ) ** 2

            nearest = sorted(self._points, key=distance)[:5]

        weights = np.array([1.0 / (distance(point) + 1e-12) for point in nearest], dtype=float)
        vols = np.array([point.volatility for point in nearest], dtype=float)
        return float(np.average(vols, weights=weights))


@dataclass(frozen=True, slots=True)
class SABRParameters:
    """Initial volatility, CEV exponent, correlation and vol-of-vol of a SABR smile."""

    alpha: float = 0.3
    beta: float = 0.5
    rho: float = -0.3
    nu: float = 0.4

    def __post_init__(self) -> None:
        for name in ("alpha", "beta", "rho", "nu"):
            if not math.isfinite(getattr(self, name)):
                raise InvalidInputError(f"{name} must be finite")
        if self.alpha <= 0:
            raise InvalidInputError("alpha must be strictly positive")
        if not 0.0 <= self.beta <= 1.0:
            raise InvalidInputError("beta must be within [0, 1]")
        if not -1.0 < self.rho < 1.0:
            raise InvalidInputError("rho must be within (-1, 1)")
        if self.nu < 0:
            raise InvalidInputError("nu must be non-negative")


def hagan_implied_volatility(
    forward: float,
    strike: float | np.ndarray,
    expiry: float,
    params: SABRParameters,
) -> np.ndarray:
    """Hagan et al. (2002) lognormal implied volatility of the SABR model.

    ``z / x(z)`` is replaced by its limit of one at the money.
    """

    if forward <= 0 or expiry <= 0:
        raise InvalidInputError("forward and expiry must be positive")
    strikes = np.asarray(strike, dtype=float)
    if np.any(strikes <= 0):
        raise InvalidInputError("strikes must be positive")

    alpha, beta, rho, nu = params.alpha, params.beta, params.rho, params.nu
    skew = 1.0 - beta
    mid_level = (forward * strikes) ** (0.5 * skew)
    log_moneyness = np.log(forward / strikes)
    backbone = mid_level * (
        1.0 + skew**2 * log_moneyness**2 / 24.0 + skew**4 * log_moneyness**4 / 1920.0
    )

    z = (nu / alpha) * mid_level * log_moneyness
    with np.errstate(divide="ignore", invalid="ignore"):
        chi = np.log((np.sqrt(1.0 - 2.0 * rho * z + z * z) + z - rho) / (1.0 - rho))
        smile = np.where(np.abs(z) < 1e-10, 1.0, z / chi)

    drift = 1.0 + expiry * (
        skew**2 * alpha**2 / (24.0 * mid_level**2)
        + rho * beta * nu * alpha / (4.0 * mid_level)
        + (2.0 - 3.0 * rho**2) * nu**2 / 24.0
    )
    return alpha / backbone * smile * drift


@dataclass(frozen=True, slots=True)
class SABRVolatilitySurface:
    """Implied volatility from a single SABR parameter set around ``forward``."""

    forward: float
    params: SABRParameters = field(default_factory=SABRParameters)

    def __post_init__(self) -> None:
        if not math.isfinite(self.forward) or self.forward <= 0:
            raise InvalidInputError("forward must be a positive finite number")

    def get_volatility(self, strike: float, maturity: float) -> float:
        volatility = float(hagan_implied_volatility(self.forward, strike, maturity, self.params))
        if not math.isfinite(volatility) or volatility <= 0.0:
            raise NumericalInfeasibilityError(
                f"SABR volatility is not usable at strike={strike:.4f} maturity={maturity:.4f}"
            )
        return volatility

    def volatility_by_moneyness(self, moneyness: float, maturity: float) -> float:
        """Volatility at ``strike = moneyness * forward``."""

        return volatility_by_moneyness(self, moneyness, maturity, self.forward)


class LocalVolatilitySurface:
    """Dupire local volatility read off an implied volatility surface.

    With total implied variance ``w(y, T) = sigma^2 T`` at log forward
    moneyness ``y = ln(K / F_T)``::

        sigma_loc^2 = w_T / (1 - y w_y / w + w_y^2 (y^2 / w^2 - 1 / w - 1/4) / 4 + w_yy / 2)

    Derivatives are central differences in ``y`` and ``T``. Where ``w_T`` or
    the denominator is not positive the implied volatility is returned.
    """

    def __init__(
        self,
        implied: VolatilitySurface,
        spot: float,
        rate: float = 0.0,
        dividend: float = 0.0,
        *,
        moneyness_step: float = 0.01,
        time_step: float = 1e-3,
    ) -> None:
        if not math.isfinite(spot) or spot <= 0:
            raise InvalidInputError("spot must be a positive finite number")
        if moneyness_step <= 0 or time_step <= 0:
            raise InvalidInputError("finite difference steps must be positive")
        self.implied = implied
        self.spot = float(spot)
        self.rate = float(rate)
        self.dividend = float(dividend)
        self.moneyness_step = float(moneyness_step)
        self.time_step = float(time_step)

    def forward(self, maturity: float) -> float:
        return self.spot * math.exp((self.rate - self.dividend) * maturity)

    def _total_variance(self, log_moneyness: float, maturity: float) -> float:
        strike = self.forward(maturity) * math.exp(log_moneyness)
        volatility = self.implied.get_volatility(strike, maturity)
        return volatility * volatility * maturity

    def get_volatility(self, strike: float, maturity: float) -> float:
        if strike <= 0 or maturity <= 0:
            raise InvalidInputError("strike and maturity must be positive")

        implied = self.implied.get_volatility(strike, maturity)
        y = math.log(strike / self.forward(maturity))
        dy = self.moneyness_step
        dt = min(self.time_step, 0.5 * maturity)

        w = implied * implied * maturity
        w_up = self._total_variance(y + dy, maturity)
        w_down = self._total_variance(y - dy, maturity)
        w_y = (w_up - w_down) / (2.0 * dy)
        w_yy = (w_up - 2.0 * w + w_down) / (dy * dy)
        w_t = (self._total_variance(y, maturity + dt) - self._total_variance(y, maturity - dt)) / (2.0 * dt)

        denominator = (
            1.0
            - y * w_y / w
            + 0.25 * w_y * w_y * (y * y / (w * w) - 1.0 / w - 0.25)
            + 0.5 * w_yy
        )
        if w_t <= 0.0 or denominator <= 0.0:
            LOGGER.debug(
                "Dupire terms not positive at strike=%.4f maturity=%.4f (w_T=%.3g, denominator=%.3g); "
                "using implied volatility",
                strike,
                maturity,
                w_t,
                denominator,
            )
            return implied
        return min(max(math.sqrt(w_t / denominator), MIN_VOLATILITY), MAX_VOLATILITY)

    def volatility_by_moneyness(self, moneyness: float, maturity: float) -> float:
        """Local volatility at ``strike = moneyness * spot``."""

        return volatility_by_moneyness(self, moneyness, maturity, self.spot)
