"""Utility helpers exposed by :mod:`derivatives_engine`."""

from .numerics import antithetic_pair_means, laguerre_coefficients, weighted_laguerre_basis

__all__ = [
    "antithetic_pair_means",
    "laguerre_coefficients",
    "weighted_laguerre_basis",
]
