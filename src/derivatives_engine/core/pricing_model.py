"""Shared contract implemented by every pricing engine."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from numpy.random import SeedSequence

from ..greeks.finite_difference import DEFAULT_BUMPS, BumpSizes, finite_difference_greeks
from ..observability.metrics import MODEL_ERRORS, MODEL_LATENCY
from .models import Greeks, MarketData, OptionContract, PricingResult

LOGGER = logging.getLogger(__name__)


class PricingModel(ABC):
    """Base class for pricing engines.

    Subclasses implement :meth:`price`. Greeks default to bump-and-reprice
    finite differences on that same ``price``; engines with closed forms
    override :meth:`greeks`.
    """

    bumps: BumpSizes = DEFAULT_BUMPS

    @property
    @abstractmethod
    def name(self) -> str:
        """Label used in results, logs and metrics."""

    @abstractmethod
    def price(self, contract: OptionContract, market: MarketData) -> float:
        """Return the fair value of ``contract`` under ``market``."""

    def greeks(self, contract: OptionContract, market: MarketData) -> Greeks:
        return finite_difference_greeks(self.price, contract, market, bumps=self.bumps)

    def spawn(self, sequence: SeedSequence) -> "PricingModel":
        """Return an instance safe to use on another thread.

        Deterministic engines hold no mutable state and return themselves;
        simulation engines return a copy driven by ``sequence``.
        """

        return self

    def _evaluate(self, contract: OptionContract, market: MarketData) -> PricingResult:
        return PricingResult(
            contract_id=contract.contract_id or "",
            theoretical_price=self.price(contract, market),
        )

    def calculate_price(
        self,
        contract: OptionContract,
        market: MarketData,
        *,
        with_greeks: bool = True,
    ) -> PricingResult:
        """Price ``contract`` and optionally its Greeks, timing the run.

        Failures are logged and counted, then re-raised to the caller.
        """

        start = time.perf_counter()
        try:
            result = self._evaluate(contract, market)
            if with_greeks:
                greeks = self.greeks(contract, market)
                result.delta = greeks.delta
                result.gamma = greeks.gamma
                result.vega = greeks.vega
                result.theta = greeks.theta
                result.rho = greeks.rho
        except Exception:
            MODEL_ERRORS.labels(model=self.name).inc()
            LOGGER.exception("%s pricing failed for %s", self.name, contract.contract_id)
            raise
        finally:
            MODEL_LATENCY.labels(model=self.name).observe(time.perf_counter() - start)

        result.model_used = self.name
        result.computation_time_ms = (time.perf_counter() - start) * 1000.0
        LOGGER.debug(
            "%s priced %s at %.6f in %.2f ms",
            self.name,
            contract.contract_id,
            result.theoretical_price,
            result.computation_time_ms,
        )
        return result
