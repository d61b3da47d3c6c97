"""
Crossed-market DEX arbitrage.

Detects price crossings for a token across decentralized-exchange markets,
sizes the trade, and submits the two-leg swap atomically through an
executor contract, preferably as a private relay bundle.
"""

from crossed_arbitrage.version import __version__

PROJECT_NAME = "crossed-arbitrage"
VERSION = __version__

from crossed_arbitrage.dex_mev import (
    ArbitrageConfig,
    ArbitrageExecutor,
    ArbitrageSolver,
    BundleBuilder,
    CrossedMarketDetails,
    DispatchResult,
    ExecutionMode,
    ExecutionPlan,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ArbitrageConfig",
    "ArbitrageExecutor",
    "ArbitrageSolver",
    "BundleBuilder",
    "CrossedMarketDetails",
    "DispatchResult",
    "ExecutionMode",
    "ExecutionPlan",
]
