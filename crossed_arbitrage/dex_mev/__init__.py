"""
DEX and MEV module: crossed-market detection, volume search, bundle building
and relay dispatch for two-leg arbitrage between markets sharing a token.
"""

from .bundle import BundleBuilder, ExecutionPlan
from .config_schema import ArbitrageConfig, ExecutionMode
from .executor import ArbitrageExecutor, DispatchResult
from .markets import UniswapV2Market, group_markets_by_token
from .solver import ArbitrageSolver, CrossedMarketDetails

__all__ = [
    "ArbitrageConfig",
    "ArbitrageExecutor",
    "ArbitrageSolver",
    "BundleBuilder",
    "CrossedMarketDetails",
    "DispatchResult",
    "ExecutionMode",
    "ExecutionPlan",
    "UniswapV2Market",
    "group_markets_by_token",
]
