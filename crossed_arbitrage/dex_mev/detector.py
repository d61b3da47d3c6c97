"""
Crossed-market detection for a single token.

Every market is probed once at a small fixed size; ordered pairs whose
probe prices cross become candidates for the volume optimizer.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..exceptions import MarketError
from ..interfaces import Market
from ..utils import get_logger

logger = get_logger(__name__)

# (sell_to_market, buy_from_market)
CrossedMarketCandidate = Tuple[Market, Market]


@dataclass
class PricedMarket:
    """Probe quotes for one market.

    Attributes:
        market: The quoted market
        token_in_for_probe: Tokens that must be sold here to receive one probe
            of base asset (the price at which the market buys the token)
        token_out_for_probe: Tokens received here for one probe of base asset
            (the price at which the market sells the token)
    """

    market: Market
    token_in_for_probe: int
    token_out_for_probe: int


async def price_markets(
    markets: Sequence[Market],
    token_address: str,
    base_token: str,
    probe_size: int,
) -> List[PricedMarket]:
    """Probe each market; markets that cannot quote the probe are left out."""
    priced = []
    for market in markets:
        try:
            token_in = await market.quote_in(token_address, base_token, probe_size)
            token_out = await market.quote_out(base_token, token_address, probe_size)
        except MarketError as e:
            logger.debug(
                f"Probe failed for market={market.market_address} token={token_address}: {e}"
            )
            continue
        priced.append(PricedMarket(market, token_in, token_out))
    return priced


async def find_crossed_markets(
    markets: Sequence[Market],
    token_address: str,
    base_token: str,
    probe_size: int,
    verbose: bool = False,
) -> List[CrossedMarketCandidate]:
    """
    Find every ordered market pair whose probe prices cross.

    A pair (sell_to, buy_from) is emitted when buying the token on
    ``buy_from`` with one probe of base asset yields strictly more tokens
    than ``sell_to`` needs to pay out that same probe. This is only a
    necessary condition at small size; the optimizer decides profitability.

    Args:
        markets: Markets trading ``token_address`` against ``base_token``
        token_address: Token being arbitraged
        base_token: Settlement asset
        probe_size: Base-asset amount used for the probe quotes
        verbose: Log each market's probe quotes

    Returns:
        Candidate pairs in market order (outer loop over the sell market)
    """
    priced_markets = await price_markets(markets, token_address, base_token, probe_size)

    if verbose:
        logger.info(f"Token Debug: token={token_address} markets={len(priced_markets)}")
        for pm in priced_markets:
            logger.info(
                f"Market: addr={pm.market.market_address} "
                f"buyTokenPrice={pm.token_in_for_probe} "
                f"sellTokenPrice={pm.token_out_for_probe}"
            )

    crossed_markets: List[CrossedMarketCandidate] = []
    for sell_side in priced_markets:
        for buy_side in priced_markets:
            if buy_side.market is sell_side.market:
                continue
            if buy_side.token_out_for_probe > sell_side.token_in_for_probe:
                crossed_markets.append((sell_side.market, buy_side.market))
    return crossed_markets
