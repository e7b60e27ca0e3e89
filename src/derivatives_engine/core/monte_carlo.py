"""Monte Carlo pricer for European vanilla, digital, Asian and barrier contracts."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
from numpy.random import SeedSequence

from ..config import Settings, get_settings
from ..greeks.stability import confidence_interval, contributions_finite, standard_error
from ..observability.metrics import SIMULATED_PATHS
from ..utils.numerics import antithetic_pair_means
from ..utils.validation import require_kind, require_positive_int, require_style
from .errors import NumericalInfeasibilityError
from .models import ExerciseStyle, MarketData, OptionContract, PricingResult, ProductKind
from .paths import PathSimulator
from .pricing_model import PricingModel
from .random_stream import RandomStream

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MonteCarloConfig:
    paths: int = 100_000
    steps: int = 100
    seed: Optional[int] = 12345
    antithetic: bool = True

    def __post_init__(self) -> None:
        require_positive_int("paths", self.paths)
        require_positive_int("steps", self.steps)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MonteCarloConfig":
        settings = settings or get_settings()
        return cls(
            paths=settings.mc_paths,
            steps=settings.mc_steps,
            seed=settings.seed,
            antithetic=settings.antithetic,
        )


@dataclass(frozen=True, slots=True)
class MonteCarloEstimate:
    """Sample mean of discounted payoffs with its sampling error.

    ``paths_used`` is the number of payoffs averaged. With antithetic
    variates the standard error is taken over the pair means, which are the
    independent samples.
    """

    price: float
    standard_error: float
    paths_used: int


Sampler = Callable[[OptionContract, MarketData], np.ndarray]


class MonteCarloModel(PricingModel):
    """Monte Carlo pricer supporting antithetic variates.

    The stream is rewound at the start of every pricing call, so repeated
    calls and bumped Greeks reuse the same random numbers.
    """

    def __init__(self, config: MonteCarloConfig | None = None, stream: RandomStream | None = None) -> None:
        self.config = config or MonteCarloConfig()
        self.stream = stream or RandomStream(self.config.seed)
        self.simulator = PathSimulator(self.stream)
        self._samplers: Dict[ProductKind, Sampler] = {
            ProductKind.VANILLA: self._terminal_payoffs,
            ProductKind.DIGITAL: self._terminal_payoffs,
            ProductKind.ASIAN: self._asian_payoffs,
            ProductKind.BARRIER: self._barrier_payoffs,
        }

    @property
    def name(self) -> str:
        return f"monte_carlo_{self.config.paths}"

    def spawn(self, sequence: SeedSequence) -> "MonteCarloModel":
        return MonteCarloModel(self.config, RandomStream.from_sequence(sequence))

    def estimate(self, contract: OptionContract, market: MarketData) -> MonteCarloEstimate:
        """Dispatch on ``contract.kind`` and return the estimate with its error."""

        require_style(contract, (ExerciseStyle.EUROPEAN,), self.name)
        return self._run(self._samplers[contract.kind], contract, market)

    def price(self, contract: OptionContract, market: MarketData) -> float:
        return self.estimate(contract, market).price

    def price_vanilla(self, contract: OptionContract, market: MarketData) -> float:
        require_style(contract, (ExerciseStyle.EUROPEAN,), self.name)
        require_kind(contract, (ProductKind.VANILLA, ProductKind.DIGITAL), self.name)
        return self._run(self._terminal_payoffs, contract, market).price

    def price_asian(self, contract: OptionContract, market: MarketData) -> float:
        require_kind(contract, (ProductKind.ASIAN,), "price_asian")
        return self._run(self._asian_payoffs, contract, market).price

    def price_barrier(self, contract: OptionContract, market: MarketData) -> float:
        require_kind(contract, (ProductKind.BARRIER,), "price_barrier")
        return self._run(self._barrier_payoffs, contract, market).price

    def simulate_path(self, spot: float, market: MarketData, maturity: float, steps: int) -> np.ndarray:
        return self.simulator.simulate_path(spot, market, maturity, steps)

    def _evaluate(self, contract: OptionContract, market: MarketData) -> PricingResult:
        estimate = self.estimate(contract, market)
        return PricingResult(
            contract_id=contract.contract_id or "",
            theoretical_price=estimate.price,
            standard_error=estimate.standard_error,
            confidence_interval=confidence_interval(estimate.price, estimate.standard_error),
            paths_used=estimate.paths_used,
        )

    def _run(self, sampler: Sampler, contract: OptionContract, market: MarketData) -> MonteCarloEstimate:
        self.stream.reset()
        payoffs = sampler(contract, market)
        discounted = math.exp(-market.risk_free_rate * contract.time_to_expiry) * payoffs
        if not contributions_finite(discounted):
            raise NumericalInfeasibilityError("simulation produced non-finite payoffs")

        independent = antithetic_pair_means(discounted) if self.config.antithetic else discounted
        estimate = MonteCarloEstimate(
            price=float(np.mean(discounted)),
            standard_error=standard_error(independent),
            paths_used=int(discounted.size),
        )
        SIMULATED_PATHS.labels(model=self.name).inc(estimate.paths_used)
        LOGGER.debug(
            "%s %s: price=%.6f se=%.6f paths=%d",
            self.name,
            contract.kind.value,
            estimate.price,
            estimate.standard_error,
            estimate.paths_used,
        )
        return estimate

    def _paths(self, contract: OptionContract, market: MarketData, steps: int) -> np.ndarray:
        return self.simulator.simulate_paths(
            market.spot_price,
            market,
            contract.time_to_expiry,
            steps,
            self.config.paths,
            antithetic=self.config.antithetic,
        )

    def _terminal_payoffs(self, contract: OptionContract, market: MarketData) -> np.ndarray:
        # The log-normal step is exact, so a single step reaches expiry without bias.
        paths = self._paths(contract, market, 1)
        return np.asarray(contract.payoff(paths[:, -1]), dtype=float)

    def _asian_payoffs(self, contract: OptionContract, market: MarketData) -> np.ndarray:
        paths = self._paths(contract, market, contract.observations)
        averages = contract.average(paths[:, 1:])
        return np.asarray(contract.payoff(averages), dtype=float)

    def _barrier_payoffs(self, contract: OptionContract, market: MarketData) -> np.ndarray:
        paths = self._paths(contract, market, self.config.steps)
        knocked = np.asarray(contract.is_knocked(paths), dtype=bool).any(axis=1)
        vanilla = np.asarray(contract.payoff(paths[:, -1]), dtype=float)
        if contract.is_knock_in:
            return np.where(knocked, vanilla, contract.rebate)
        return np.where(knocked, contract.rebate, vanilla)
