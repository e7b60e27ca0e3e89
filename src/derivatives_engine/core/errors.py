"""Error kinds raised by the pricing engines."""

from __future__ import annotations


class PricingError(Exception):
    """Base class for every failure surfaced by the engine."""


class InvalidInputError(PricingError, ValueError):
    """Market data, contract or configuration values are out of domain."""


class UnsupportedStyleError(PricingError, ValueError):
    """An engine was asked to price an exercise style it does not implement."""


class UnsupportedProductError(PricingError, ValueError):
    """An engine was asked to price a product kind it does not implement."""


class NumericalInfeasibilityError(PricingError, ArithmeticError):
    """The numerical scheme cannot produce a meaningful value for the inputs."""


class ConvergenceFailureError(PricingError, RuntimeError):
    """An iterative search exhausted its iteration budget."""
