"""Stability guards and error estimates for Monte Carlo prices."""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np
from scipy.stats import norm

CI_Z_VALUE = float(norm.ppf(0.975))


def contributions_finite(contributions: np.ndarray) -> bool:
    """Return True when all per-path contributions are finite."""

    return bool(np.isfinite(contributions).all())


def standard_error(contributions: np.ndarray) -> float:
    """Compute the standard error of a set of contributions."""

    sample = np.asarray(contributions, dtype=float)
    if sample.size <= 1:
        return 0.0
    sample_std = float(np.std(sample, ddof=1))
    if not math.isfinite(sample_std):
        return math.inf
    return sample_std / math.sqrt(sample.size)


def half_width(se: float, z_value: float = CI_Z_VALUE) -> float:
    """Return the half-width of the two-sided confidence interval."""

    return float(abs(z_value) * se)


def confidence_interval(estimate: float, se: float, z_value: float = CI_Z_VALUE) -> Tuple[float, float]:
    width = half_width(se, z_value)
    return estimate - width, estimate + width
