"""
Volume search and ranking of crossed-market arbitrage opportunities.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..exceptions import MarketError
from ..interfaces import Market
from ..utils import format_wei, get_logger
from .config_schema import ArbitrageConfig
from .detector import CrossedMarketCandidate, find_crossed_markets

logger = get_logger(__name__)

MarketsByToken = Dict[str, List[Market]]


@dataclass(frozen=True)
class CrossedMarketDetails:
    """A sized two-leg opportunity: buy on ``buy_from_market``, sell on ``sell_to_market``.

    ``profit`` is the sell-leg proceeds minus ``volume``, both in base-asset wei,
    computed at exactly the recorded volume.
    """

    profit: int
    volume: int
    token_address: str
    buy_from_market: Market
    sell_to_market: Market

    def describe(self) -> str:
        buy_tokens = self.buy_from_market.tokens
        sell_tokens = self.sell_to_market.tokens
        return (
            f"Profit: {format_wei(self.profit)} Volume: {format_wei(self.volume)}\n"
            f"{self.buy_from_market.protocol} ({self.buy_from_market.market_address})\n"
            f"  {buy_tokens[0]} => {buy_tokens[1]}\n"
            f"{self.sell_to_market.protocol} ({self.sell_to_market.market_address})\n"
            f"  {sell_tokens[0]} => {sell_tokens[1]}"
        )


@dataclass
class EvaluationReport:
    """Diagnostic counts for one evaluation pass; independent of the ranking."""

    tokens: int = 0
    tokens_with_crossed: int = 0
    tokens_with_positive_profit: int = 0
    min_profit_wei: int = 0
    top_candidates: List[CrossedMarketDetails] = field(default_factory=list)


async def _profit_at(
    buy_from_market: Market,
    sell_to_market: Market,
    token_address: str,
    base_token: str,
    size: int,
) -> int:
    tokens_out = await buy_from_market.quote_out(base_token, token_address, size)
    proceeds = await sell_to_market.quote_out(token_address, base_token, tokens_out)
    return proceeds - size


async def optimize_volume(
    crossed_market: CrossedMarketCandidate,
    token_address: str,
    base_token: str,
    test_volumes: Sequence[int],
) -> Optional[CrossedMarketDetails]:
    """
    Approximate the profit-maximizing volume for one market pair.

    Scans ``test_volumes`` in ascending order assuming profit rises then
    falls. On the first trial that does worse than the running best, the
    midpoint between the two sizes is tried once and adopted only if it
    beats the running best; the scan then stops. This single "meet
    halfway" step is an approximation, not a full bisection.
    """
    sell_to_market, buy_from_market = crossed_market
    best: Optional[CrossedMarketDetails] = None

    for size in test_volumes:
        profit = await _profit_at(
            buy_from_market, sell_to_market, token_address, base_token, size
        )
        if best is not None and profit < best.profit:
            try_size = (size + best.volume) // 2
            try_profit = await _profit_at(
                buy_from_market, sell_to_market, token_address, base_token, try_size
            )
            if try_profit > best.profit:
                best = CrossedMarketDetails(
                    profit=try_profit,
                    volume=try_size,
                    token_address=token_address,
                    buy_from_market=buy_from_market,
                    sell_to_market=sell_to_market,
                )
            break
        best = CrossedMarketDetails(
            profit=profit,
            volume=size,
            token_address=token_address,
            buy_from_market=buy_from_market,
            sell_to_market=sell_to_market,
        )
    return best


async def get_best_crossed_market(
    crossed_markets: Sequence[CrossedMarketCandidate],
    token_address: str,
    base_token: str,
    test_volumes: Sequence[int],
) -> Optional[CrossedMarketDetails]:
    """Size every candidate pair and return the most profitable one, or None.

    A pair whose markets cannot quote a trial size is skipped.
    """
    best_crossed_market: Optional[CrossedMarketDetails] = None
    for crossed_market in crossed_markets:
        sell_to_market, buy_from_market = crossed_market
        try:
            details = await optimize_volume(
                crossed_market, token_address, base_token, test_volumes
            )
        except MarketError as e:
            logger.debug(
                f"Sizing failed for token={token_address} "
                f"buyMarket={buy_from_market.market_address} "
                f"sellMarket={sell_to_market.market_address}: {e}"
            )
            continue
        if details is None:
            continue
        if best_crossed_market is None or details.profit > best_crossed_market.profit:
            best_crossed_market = details
    return best_crossed_market


class ArbitrageSolver:
    """Ranks the best crossed-market opportunity per token across a market snapshot."""

    def __init__(self, config: ArbitrageConfig):
        self.config = config
        self.last_report: Optional[EvaluationReport] = None

    async def evaluate_markets(
        self, markets_by_token: MarketsByToken
    ) -> List[CrossedMarketDetails]:
        """
        Find the best opportunity for each token and rank them.

        Args:
            markets_by_token: Markets trading each token against the base asset

        Returns:
            Opportunities with profit strictly above ``min_profit_wei``,
            sorted by profit descending
        """
        config = self.config
        best_crossed_markets: List[CrossedMarketDetails] = []
        report = EvaluationReport(min_profit_wei=config.min_profit_wei)
        candidates: List[CrossedMarketDetails] = []

        for token_address, markets in markets_by_token.items():
            report.tokens += 1
            crossed_markets = await find_crossed_markets(
                markets,
                token_address,
                config.base_token,
                config.probe_size,
                verbose=config.log_enabled and config.log_verbose,
            )
            if crossed_markets:
                report.tokens_with_crossed += 1

            best_crossed_market = await get_best_crossed_market(
                crossed_markets, token_address, config.base_token, config.test_volumes
            )
            if best_crossed_market is None:
                continue

            candidates.append(best_crossed_market)
            if best_crossed_market.profit > 0:
                report.tokens_with_positive_profit += 1
            if best_crossed_market.profit > config.min_profit_wei:
                best_crossed_markets.append(best_crossed_market)

        candidates.sort(key=lambda c: c.profit, reverse=True)
        report.top_candidates = candidates[: max(0, config.log_top_n)]
        self.last_report = report
        if config.log_enabled:
            self._log_report(report)

        best_crossed_markets.sort(key=lambda c: c.profit, reverse=True)
        return best_crossed_markets

    @staticmethod
    def _log_report(report: EvaluationReport) -> None:
        logger.info(
            f"Arbitrage Debug: tokens={report.tokens} "
            f"tokensWithCrossedCandidates={report.tokens_with_crossed} "
            f"tokensWithPositiveBestProfit={report.tokens_with_positive_profit} "
            f"minProfitWei={report.min_profit_wei} "
            f"topN={len(report.top_candidates)}"
        )
        for c in report.top_candidates:
            logger.info(
                f"Candidate: profitWei={c.profit} "
                f"profitEth={format_wei(c.profit)} "
                f"volumeEth={format_wei(c.volume)} "
                f"token={c.token_address} "
                f"buyMarket={c.buy_from_market.market_address} "
                f"sellMarket={c.sell_to_market.market_address}"
            )
