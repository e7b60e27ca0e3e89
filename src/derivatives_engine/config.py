"""Centralised engine configuration derived from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

PACKAGE_LOGGER = "derivatives_engine"


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str | None:
    """Return a trimmed environment variable value.

    Parameters
    ----------
    name:
        Name of the environment variable to read.
    default:
        Optional default returned when the variable is not set.
    required:
        When ``True`` a ``RuntimeError`` is raised if the variable is missing
        or blank.
    """

    value = os.getenv(name)
    if value is None:
        if required:
            raise RuntimeError(f"Environment variable {name} is required")
        return default

    trimmed = value.strip()
    if not trimmed:
        if required:
            raise RuntimeError(f"Environment variable {name} must not be blank")
        return default
    return trimmed


def _as_int(name: str, *, default: int | None = None, minimum: int | None = None) -> int:
    raw = _get_env(name)
    if raw is None:
        if default is None:
            raise RuntimeError(f"Environment variable {name} is required")
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer") from exc
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    return value


def _as_float(
    name: str,
    *,
    default: float | None = None,
    minimum: float | None = None,
) -> float:
    raw = _get_env(name)
    if raw is None:
        if default is None:
            raise RuntimeError(f"Environment variable {name} is required")
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number") from exc
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    return value


def _as_bool(name: str, *, default: bool) -> bool:
    raw = _get_env(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable view over engine configuration."""

    log_level: str
    mc_paths: int
    mc_steps: int
    seed: int | None
    antithetic: bool
    lattice_steps: int
    lsmc_paths: int
    lsmc_steps: int
    lsmc_degree: int
    heston_integration_limit: float
    heston_integration_points: int
    workers: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the current process environment."""

    seed_raw = _get_env("DPE_SEED", default="12345")
    seed: int | None
    if seed_raw is not None and seed_raw.lower() == "none":
        seed = None
    else:
        seed = _as_int("DPE_SEED", default=12345, minimum=0)

    log_level = (_get_env("DPE_LOG_LEVEL", default="WARNING") or "WARNING").upper()
    if log_level not in logging.getLevelNamesMapping():
        raise RuntimeError(f"Environment variable DPE_LOG_LEVEL has unknown level {log_level}")

    return Settings(
        log_level=log_level,
        mc_paths=_as_int("DPE_MC_PATHS", default=100_000, minimum=1),
        mc_steps=_as_int("DPE_MC_STEPS", default=100, minimum=1),
        seed=seed,
        antithetic=_as_bool("DPE_ANTITHETIC", default=True),
        lattice_steps=_as_int("DPE_LATTICE_STEPS", default=500, minimum=1),
        lsmc_paths=_as_int("DPE_LSMC_PATHS", default=50_000, minimum=2),
        lsmc_steps=_as_int("DPE_LSMC_STEPS", default=50, minimum=2),
        lsmc_degree=_as_int("DPE_LSMC_DEGREE", default=3, minimum=1),
        heston_integration_limit=_as_float("DPE_HESTON_INTEGRATION_LIMIT", default=100.0, minimum=1.0),
        heston_integration_points=_as_int("DPE_HESTON_INTEGRATION_POINTS", default=2_048, minimum=16),
        workers=_as_int("DPE_WORKERS", default=4, minimum=1),
    )


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Apply the configured level to the package logger and return it."""

    settings = settings or get_settings()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(settings.log_level)
    return logger
