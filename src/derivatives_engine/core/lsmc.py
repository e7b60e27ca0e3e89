"""Longstaff-Schwartz least-squares Monte Carlo for American options."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from numpy.random import SeedSequence

from ..config import Settings, get_settings
from ..greeks.stability import confidence_interval, standard_error
from ..observability.metrics import LSMC_SKIPPED_STEPS, SIMULATED_PATHS
from ..utils.numerics import antithetic_pair_means, laguerre_coefficients, weighted_laguerre_basis
from ..utils.validation import require_kind, require_positive_int, require_style
from .errors import NumericalInfeasibilityError
from .lattice import BinomialTreeModel
from .linalg import solve_normal_equations
from .models import ExerciseStyle, MarketData, OptionContract, PricingResult, ProductKind
from .paths import PathSimulator
from .pricing_model import PricingModel
from .random_stream import RandomStream

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LSMCConfig:
    paths: int = 50_000
    steps: int = 50
    seed: Optional[int] = 12345
    degree: int = 3
    antithetic: bool = True
    reference_steps: Optional[int] = None

    def __post_init__(self) -> None:
        require_positive_int("paths", self.paths, minimum=2)
        require_positive_int("steps", self.steps, minimum=2)
        require_positive_int("degree", self.degree)
        if self.reference_steps is not None:
            require_positive_int("reference_steps", self.reference_steps)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LSMCConfig":
        settings = settings or get_settings()
        return cls(
            paths=settings.lsmc_paths,
            steps=settings.lsmc_steps,
            seed=settings.seed,
            degree=settings.lsmc_degree,
            antithetic=settings.antithetic,
        )


@dataclass(slots=True)
class ExercisePolicyStep:
    """Summary of the extracted early exercise policy at a given time step."""

    time_index: int
    time: float
    in_the_money: int
    exercised: int
    exercise_fraction: float
    exercise_spot_mean: Optional[float]
    # Continuation fit as exp(-x/2) * sum(c_k L_k(x)) with x = S / K.
    coefficients: Optional[np.ndarray]
    skipped: bool = False


@dataclass(slots=True)
class LSMCAnalysis:
    """Container for diagnostics returned by the Longstaff-Schwartz model."""

    pricing_result: PricingResult
    policy_steps: List[ExercisePolicyStep]
    skipped_steps: List[int] = field(default_factory=list)
    floored_at_intrinsic: bool = False
    reference_price: Optional[float] = None
    reference_model_used: Optional[str] = None
    price_diff_bps: Optional[float] = None


class LongstaffSchwartzModel(PricingModel):
    """American option pricing using the Longstaff-Schwartz method.

    Continuation values are regressed on weighted Laguerre polynomials of
    moneyness ``S / K`` for in-the-money paths only. A step with fewer
    in-the-money paths than regression coefficients, or with a singular
    normal matrix, records no exercise decisions.
    """

    def __init__(self, config: LSMCConfig | None = None, stream: RandomStream | None = None) -> None:
        self.config = config or LSMCConfig()
        self.stream = stream or RandomStream(self.config.seed)
        self.simulator = PathSimulator(self.stream)

    @property
    def name(self) -> str:
        return f"lsmc_{self.config.paths}x{self.config.steps}"

    def spawn(self, sequence: SeedSequence) -> "LongstaffSchwartzModel":
        return LongstaffSchwartzModel(self.config, RandomStream.from_sequence(sequence))

    def price(self, contract: OptionContract, market: MarketData) -> float:
        return self.price_with_diagnostics(contract, market).pricing_result.theoretical_price

    def _evaluate(self, contract: OptionContract, market: MarketData) -> PricingResult:
        return self.price_with_diagnostics(contract, market).pricing_result

    def price_with_diagnostics(self, contract: OptionContract, market: MarketData) -> LSMCAnalysis:
        """Run the Longstaff-Schwartz algorithm returning diagnostics."""

        require_style(contract, (ExerciseStyle.AMERICAN,), self.name)
        require_kind(contract, (ProductKind.VANILLA,), self.name)

        start = time.perf_counter()
        config = self.config
        self.stream.reset()

        prices = self.simulator.simulate_paths(
            market.spot_price,
            market,
            contract.time_to_expiry,
            config.steps,
            config.paths,
            antithetic=config.antithetic,
        )
        path_count = prices.shape[0]
        dt = contract.time_to_expiry / config.steps
        rate = market.risk_free_rate
        strike = contract.strike_price

        cashflows = np.asarray(contract.payoff(prices[:, -1]), dtype=float)
        exercise_index = np.full(path_count, config.steps, dtype=int)

        policy_steps: List[ExercisePolicyStep] = []
        skipped: List[int] = []
        minimum_sample = config.degree + 1

        for step in range(config.steps - 1, 0, -1):
            spot = prices[:, step]
            intrinsic = np.asarray(contract.payoff(spot), dtype=float)
            in_the_money = np.flatnonzero(intrinsic > 0.0)

            coefficients: Optional[np.ndarray] = None
            exercised_indices = in_the_money[:0]
            if in_the_money.size >= minimum_sample:
                moneyness = spot[in_the_money] / strike
                domain = (float(moneyness.min()), float(moneyness.max()))
                design = weighted_laguerre_basis(moneyness, config.degree, domain)
                # Discount each path's single future cash flow back to this step.
                targets = cashflows[in_the_money] * np.exp(
                    -rate * dt * (exercise_index[in_the_money] - step)
                )
                try:
                    fitted = solve_normal_equations(design, targets)
                except NumericalInfeasibilityError:
                    fitted = None
                if fitted is not None:
                    coefficients = laguerre_coefficients(fitted, domain)
                    continuation = design @ fitted
                    exercised_indices = in_the_money[intrinsic[in_the_money] > continuation]
                    cashflows[exercised_indices] = intrinsic[exercised_indices]
                    exercise_index[exercised_indices] = step

            if coefficients is None:
                skipped.append(step)

            exercised = int(exercised_indices.size)
            policy_steps.append(
                ExercisePolicyStep(
                    time_index=step,
                    time=step * dt,
                    in_the_money=int(in_the_money.size),
                    exercised=exercised,
                    exercise_fraction=exercised / path_count,
                    exercise_spot_mean=float(np.mean(spot[exercised_indices])) if exercised else None,
                    coefficients=coefficients,
                    skipped=coefficients is None,
                )
            )

        if skipped:
            LSMC_SKIPPED_STEPS.inc(len(skipped))
            LOGGER.warning(
                "LSMC skipped %d of %d exercise dates (fewer than %d in-the-money paths "
                "or singular regression); earliest skipped index %d",
                len(skipped),
                config.steps - 1,
                minimum_sample,
                min(skipped),
            )

        discounted = cashflows * np.exp(-rate * dt * exercise_index)
        independent = antithetic_pair_means(discounted) if config.antithetic else discounted
        estimate = float(np.mean(discounted))
        std_err = standard_error(independent)

        intrinsic_now = float(contract.payoff(market.spot_price))
        floored = intrinsic_now > estimate
        price = max(estimate, intrinsic_now)
        SIMULATED_PATHS.labels(model=self.name).inc(path_count)

        reference_price: Optional[float] = None
        reference_model: Optional[str] = None
        price_diff_bps: Optional[float] = None
        if config.reference_steps is not None:
            reference = BinomialTreeModel(steps=config.reference_steps)
            reference_price = reference.price(contract, market)
            reference_model = reference.name
            price_diff_bps = (price - reference_price) / max(reference_price, 1e-12) * 10_000.0

        policy_steps.reverse()
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        pricing_result = PricingResult(
            contract_id=contract.contract_id or "",
            theoretical_price=price,
            computation_time_ms=elapsed_ms,
            model_used=self.name,
            standard_error=std_err,
            confidence_interval=confidence_interval(price, std_err),
            paths_used=path_count,
        )

        return LSMCAnalysis(
            pricing_result=pricing_result,
            policy_steps=policy_steps,
            skipped_steps=sorted(skipped),
            floored_at_intrinsic=floored,
            reference_price=reference_price,
            reference_model_used=reference_model,
            price_diff_bps=price_diff_bps,
        )
