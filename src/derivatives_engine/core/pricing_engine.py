"""Threaded portfolio pricing across independent engine instances."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Mapping, Optional

from numpy.random import SeedSequence

from ..config import get_settings
from ..observability.metrics import THREADPOOL_IN_FLIGHT, THREADPOOL_WORKERS
from .black_scholes import BlackScholesModel
from .errors import InvalidInputError
from .heston import HestonModel
from .lattice import BinomialTreeModel, TrinomialTreeModel
from .lsmc import LongstaffSchwartzModel, LSMCConfig
from .models import MarketData, OptionContract, PricingResult
from .monte_carlo import MonteCarloConfig, MonteCarloModel
from .pricing_model import PricingModel
from .volatility_surface import FlatVolatilitySurface, VolatilitySurface
from .yield_curve import FlatYieldCurve, YieldCurve, market_from_curves

LOGGER = logging.getLogger(__name__)


def default_models() -> Dict[str, PricingModel]:
    """Engines configured from the current settings, keyed by registry name."""

    settings = get_settings()
    return {
        "black_scholes": BlackScholesModel(),
        "binomial": BinomialTreeModel.from_settings(settings),
        "trinomial": TrinomialTreeModel.from_settings(settings),
        "monte_carlo": MonteCarloModel(MonteCarloConfig.from_settings(settings)),
        "lsmc": LongstaffSchwartzModel(LSMCConfig.from_settings(settings)),
        "heston": HestonModel.from_settings(settings=settings),
    }


class PricingEngine:
    """Coordinates pricing model execution across a pool of workers.

    Every task prices with its own model instance obtained from
    :meth:`PricingModel.spawn` and a child ``SeedSequence``, so simulation
    results depend on the contract's position in the batch and never on
    thread scheduling.
    """

    def __init__(
        self,
        models: Optional[Mapping[str, PricingModel]] = None,
        *,
        num_threads: Optional[int] = None,
        name: str = "default",
    ) -> None:
        self.models: Dict[str, PricingModel] = dict(models) if models is not None else default_models()
        self.num_threads = max(1, num_threads if num_threads is not None else get_settings().workers)
        self.name = name
        self._executor_lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=self.num_threads,
            thread_name_prefix="derivatives-engine",
        )
        self._pending_lock = threading.Lock()
        self._pending_tasks = 0
        THREADPOOL_WORKERS.labels(engine=self.name).set(self.num_threads)

    def __enter__(self) -> "PricingEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait, cancel_futures=True)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            executor = self._executor
        if executor is None:
            raise RuntimeError("PricingEngine has been shut down")
        return executor

    def _track(self, change: int) -> None:
        with self._pending_lock:
            self._pending_tasks = max(0, self._pending_tasks + change)
            THREADPOOL_IN_FLIGHT.labels(engine=self.name).set(min(self._pending_tasks, self.num_threads))

    def _resolve_model(self, model_name: str) -> PricingModel:
        try:
            return self.models[model_name]
        except KeyError:
            raise InvalidInputError(f"Unknown model '{model_name}'") from None

    def _run_pricing(
        self,
        model: PricingModel,
        contract: OptionContract,
        market: MarketData,
        with_greeks: bool,
    ) -> PricingResult:
        self._track(+1)
        try:
            return model.calculate_price(contract, market, with_greeks=with_greeks)
        finally:
            self._track(-1)

    def price_option(
        self,
        contract: OptionContract,
        market: MarketData,
        model_name: str = "black_scholes",
        *,
        seed: Optional[int] = None,
        with_greeks: bool = True,
    ) -> PricingResult:
        model = self._resolve_model(model_name)
        if seed is not None:
            model = model.spawn(SeedSequence(seed))
        future = self._get_executor().submit(self._run_pricing, model, contract, market, with_greeks)
        return future.result()

    def price_portfolio(
        self,
        contracts: Iterable[OptionContract],
        market: MarketData,
        model_name: str = "black_scholes",
        *,
        volatility_surface: Optional[VolatilitySurface] = None,
        yield_curve: Optional[YieldCurve] = None,
        seed: Optional[int] = None,
        with_greeks: bool = False,
    ) -> List[PricingResult]:
        """Price every contract on the pool; results follow the input order.

        When a surface or curve is supplied, each contract gets its own market
        snapshot taken at its strike and expiry. The first failing contract's
        exception propagates to the caller.
        """

        contract_list = list(contracts)
        if not contract_list:
            return []

        model = self._resolve_model(model_name)
        base = SeedSequence(seed)
        children = base.spawn(len(contract_list))
        executor = self._get_executor()

        futures: Dict[Future[PricingResult], int] = {}
        for index, contract in enumerate(contract_list):
            contract_market = market
            if volatility_surface is not None or yield_curve is not None:
                contract_market = market_from_curves(
                    market.spot_price,
                    contract,
                    volatility_surface or FlatVolatilitySurface(market.volatility),
                    yield_curve or FlatYieldCurve(market.risk_free_rate),
                    market.dividend_yield,
                )
            task_model = model.spawn(children[index])
            future = executor.submit(self._run_pricing, task_model, contract, contract_market, with_greeks)
            futures[future] = index

        results: List[Optional[PricingResult]] = [None] * len(contract_list)
        try:
            for future in as_completed(futures):
                index = futures[future]
                results[index] = future.result()
        except Exception:
            LOGGER.exception("Portfolio pricing failed on engine %s", self.name)
            for pending in futures:
                pending.cancel()
            raise

        return [result for result in results if result is not None]

    @staticmethod
    def aggregate_greeks(results: Iterable[PricingResult], quantities: Optional[Iterable[float]] = None) -> Dict[str, float]:
        """Sum position values and Greeks, scaling each result by its quantity."""

        totals = {
            "delta": 0.0,
            "gamma": 0.0,
            "theta": 0.0,
            "vega": 0.0,
            "rho": 0.0,
            "total_value": 0.0,
            "position_count": 0.0,
        }
        result_list = list(results)
        quantity_list = list(quantities) if quantities is not None else [1.0] * len(result_list)
        if len(quantity_list) != len(result_list):
            raise InvalidInputError("quantities must match results")

        for result, quantity in zip(result_list, quantity_list):
            for greek in ("delta", "gamma", "theta", "vega", "rho"):
                totals[greek] += float(getattr(result, greek) or 0.0) * quantity
            totals["total_value"] += result.theoretical_price * quantity
            totals["position_count"] += quantity
        return totals
