"""Validation helpers for pricing inputs and engine configuration."""

from __future__ import annotations

from typing import Iterable

from ..core.errors import InvalidInputError, UnsupportedProductError, UnsupportedStyleError
from ..core.models import ExerciseStyle, OptionContract, ProductKind


def require_positive_int(name: str, value: int, *, minimum: int = 1) -> int:
    """Return ``value`` as an int, raising when it is below ``minimum``."""

    if isinstance(value, bool) or int(value) != value or value < minimum:
        raise InvalidInputError(f"{name} must be an integer >= {minimum}")
    return int(value)


def require_style(contract: OptionContract, allowed: Iterable[ExerciseStyle], model: str) -> None:
    allowed = tuple(allowed)
    if contract.exercise_style not in allowed:
        raise UnsupportedStyleError(
            f"{model} does not price {contract.exercise_style.value} options"
        )


def require_kind(contract: OptionContract, allowed: Iterable[ProductKind], model: str) -> None:
    allowed = tuple(allowed)
    if contract.kind not in allowed:
        raise UnsupportedProductError(f"{model} does not price {contract.kind.value} contracts")
