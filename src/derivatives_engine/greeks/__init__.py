"""Greek estimation and sampling-error utilities."""

from .finite_difference import (
    DEFAULT_BUMPS,
    BumpSizes,
    finite_difference_delta_gamma,
    finite_difference_greeks,
    finite_difference_rho,
    finite_difference_theta,
    finite_difference_vega,
)
from .stability import (
    CI_Z_VALUE,
    confidence_interval,
    contributions_finite,
    half_width,
    standard_error,
)

__all__ = [
    "DEFAULT_BUMPS",
    "BumpSizes",
    "finite_difference_delta_gamma",
    "finite_difference_greeks",
    "finite_difference_rho",
    "finite_difference_theta",
    "finite_difference_vega",
    "CI_Z_VALUE",
    "confidence_interval",
    "contributions_finite",
    "half_width",
    "standard_error",
]
