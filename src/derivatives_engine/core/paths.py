"""Risk-neutral path generation for the simulation engines."""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ..utils.validation import require_positive_int
from .errors import InvalidInputError
from .models import HestonParams, MarketData
from .random_stream import RandomStream


class PathSimulator:
    """Generates spot paths from a caller-owned :class:`RandomStream`.

    Paths are arrays indexed ``0..steps`` along the last axis; index 0 holds
    the initial spot.
    """

    def __init__(self, stream: RandomStream) -> None:
        self.stream = stream

    def simulate_path(self, spot: float, market: MarketData, maturity: float, steps: int) -> np.ndarray:
        """Simulate one geometric Brownian motion path, one fresh normal per step."""

        shocks = self.stream.normals(require_positive_int("steps", steps))
        return _log_normal_paths(spot, market, maturity, shocks[np.newaxis, :])[0]

    def simulate_paths(
        self,
        spot: float,
        market: MarketData,
        maturity: float,
        steps: int,
        paths: int,
        *,
        antithetic: bool = False,
    ) -> np.ndarray:
        """Simulate a ``(paths, steps + 1)`` batch of geometric Brownian motion paths.

        With ``antithetic`` the batch holds ``ceil(paths / 2)`` base paths
        followed by their mirrors driven by the negated shocks, so the row
        count is always even.
        """

        steps = require_positive_int("steps", steps)
        paths = require_positive_int("paths", paths)
        if antithetic:
            base = self.stream.normals((math.ceil(paths / 2), steps))
            shocks = np.concatenate([base, -base], axis=0)
        else:
            shocks = self.stream.normals((paths, steps))
        return _log_normal_paths(spot, market, maturity, shocks)

    def simulate_heston_paths(
        self,
        spot: float,
        market: MarketData,
        params: HestonParams,
        maturity: float,
        steps: int,
        paths: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(asset, variance)`` arrays of shape ``(paths, steps + 1)``.

        Euler scheme with full truncation: the variance enters both drift and
        diffusion as ``max(v, 0)`` while the stored variance itself may dip
        below zero.
        """

        steps = require_positive_int("steps", steps)
        paths = require_positive_int("paths", paths)
        if maturity <= 0:
            raise InvalidInputError("maturity must be strictly positive")

        dt = maturity / steps
        growth = market.risk_free_rate - market.dividend_yield
        asset = np.empty((paths, steps + 1), dtype=float)
        variance = np.empty((paths, steps + 1), dtype=float)
        asset[:, 0] = spot
        variance[:, 0] = params.v0

        for index in range(steps):
            z_asset, z_variance = self.stream.correlated_normals(params.rho, size=paths)
            current = asset[:, index]
            positive = np.maximum(variance[:, index], 0.0)
            diffusion = np.sqrt(positive * dt)
            asset[:, index + 1] = current + growth * current * dt + current * diffusion * z_asset
            variance[:, index + 1] = (
                variance[:, index]
                + params.kappa * (params.theta - positive) * dt
                + params.sigma * diffusion * z_variance
            )

        return asset, variance


def _log_normal_paths(spot: float, market: MarketData, maturity: float, shocks: np.ndarray) -> np.ndarray:
    if maturity <= 0:
        raise InvalidInputError("maturity must be strictly positive")
    steps = shocks.shape[1]
    dt = maturity / steps
    sigma = market.volatility
    drift = (market.risk_free_rate - market.dividend_yield - 0.5 * sigma**2) * dt
    increments = drift + sigma * math.sqrt(dt) * shocks
    log_paths = np.zeros((shocks.shape[0], steps + 1), dtype=float)
    log_paths[:, 1:] = np.cumsum(increments, axis=1)
    return spot * np.exp(log_paths)
