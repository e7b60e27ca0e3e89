"""Pricing engines and the domain model they share."""

from .black_scholes import BlackScholesModel, black_scholes_price, implied_volatility
from .errors import (
    ConvergenceFailureError,
    InvalidInputError,
    NumericalInfeasibilityError,
    PricingError,
    UnsupportedProductError,
    UnsupportedStyleError,
)
from .heston import HestonModel
from .lattice import BinomialTreeModel, TrinomialTreeModel
from .lsmc import ExercisePolicyStep, LongstaffSchwartzModel, LSMCAnalysis, LSMCConfig
from .models import (
    AveragingType,
    BarrierType,
    ExerciseStyle,
    Greeks,
    HestonParams,
    MarketData,
    OptionContract,
    OptionType,
    PricingResult,
    ProductKind,
)
from .monte_carlo import MonteCarloConfig, MonteCarloEstimate, MonteCarloModel
from .paths import PathSimulator
from .pricing_engine import PricingEngine
from .pricing_model import PricingModel
from .random_stream import RandomStream

__all__ = [
    "AveragingType",
    "BarrierType",
    "BinomialTreeModel",
    "BlackScholesModel",
    "ConvergenceFailureError",
    "ExercisePolicyStep",
    "ExerciseStyle",
    "Greeks",
    "HestonModel",
    "HestonParams",
    "InvalidInputError",
    "LongstaffSchwartzModel",
    "LSMCAnalysis",
    "LSMCConfig",
    "MarketData",
    "MonteCarloConfig",
    "MonteCarloEstimate",
    "MonteCarloModel",
    "NumericalInfeasibilityError",
    "OptionContract",
    "OptionType",
    "PathSimulator",
    "PricingEngine",
    "PricingError",
    "PricingModel",
    "PricingResult",
    "ProductKind",
    "RandomStream",
    "TrinomialTreeModel",
    "UnsupportedProductError",
    "UnsupportedStyleError",
    "black_scholes_price",
    "implied_volatility",
]
