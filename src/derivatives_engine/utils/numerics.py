"""Numerical utilities for Monte Carlo style pricing algorithms."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.polynomial import Chebyshev, Laguerre
from numpy.polynomial.chebyshev import chebvander

__all__ = [
    "antithetic_pair_means",
    "laguerre_coefficients",
    "weighted_laguerre_basis",
]


def weighted_laguerre_basis(x: np.ndarray, degree: int, domain: Tuple[float, float]) -> np.ndarray:
    """Return a basis of ``exp(-x/2) p(x)`` with ``p`` of degree at most ``degree``.

    The columns span the same space as the weighted Laguerre polynomials
    ``exp(-x/2) L_k(x)`` for ``k = 0..degree``. The polynomial factor is
    written in Chebyshev form on ``domain`` mapped to ``[-1, 1]``, which keeps
    the columns well separated when ``x`` only covers a narrow range. Use
    :func:`laguerre_coefficients` to express fitted coefficients in the
    Laguerre basis.
    """

    if degree < 0:
        raise ValueError("degree must be non-negative")
    x = np.ravel(np.asarray(x, dtype=float))
    low, high = domain
    if high > low:
        z = (2.0 * x - low - high) / (high - low)
    else:
        z = np.zeros_like(x)
    weight = np.exp(-0.5 * x)
    return chebvander(z, degree) * weight[:, None]


def laguerre_coefficients(coefficients: np.ndarray, domain: Tuple[float, float]) -> np.ndarray:
    """Convert coefficients on :func:`weighted_laguerre_basis` to ``L_k(x)`` coefficients."""

    coefficients = np.asarray(coefficients, dtype=float)
    series = Chebyshev(coefficients, domain=list(domain)).convert(kind=Laguerre)
    converted = np.zeros(coefficients.size, dtype=float)
    converted[: series.coef.size] = series.coef[: coefficients.size]
    return converted


def antithetic_pair_means(samples: np.ndarray) -> np.ndarray:
    """Average each base sample with its mirrored partner.

    ``samples`` holds the base draws in the first half and their antithetic
    mirrors in the second half, in the same order.
    """

    sample = np.asarray(samples, dtype=float)
    if sample.size % 2:
        raise ValueError("antithetic samples must come in pairs")
    half = sample.size // 2
    return 0.5 * (sample[:half] + sample[half:])
