"""
Constant-product (Uniswap V2 style) market implementing the ``Market`` protocol.

Quotes use the pair's integer x*y=k formula with the 0.3% fee embedded,
and call data targets the pair's low-level ``swap`` entry point.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from eth_abi import encode
from web3 import Web3

from ..exceptions import MarketError
from ..interfaces import CallBundle, Market
from ..utils import get_logger

logger = get_logger(__name__)

UNISWAP_V2_PROTOCOL = "UniswapV2"

# Uniswap V2 Pair ABI (minimal)
UNISWAP_V2_PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
        "type": "function",
    },
]

SWAP_SELECTOR = bytes(Web3.keccak(text="swap(uint256,uint256,address,bytes)")[:4])


def get_amount_out(reserve_in: int, reserve_out: int, amount_in: int) -> int:
    """
    Uniswap V2 output amount for an exact input.

    Formula: amountOut = amountIn*997*reserveOut / (reserveIn*1000 + amountIn*997)
    """
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * 997
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * 1000 + amount_in_with_fee
    return numerator // denominator


def get_amount_in(reserve_in: int, reserve_out: int, amount_out: int) -> int:
    """
    Uniswap V2 input amount required for an exact output, rounded up.

    Formula: amountIn = reserveIn*amountOut*1000 / ((reserveOut - amountOut)*997) + 1
    """
    if amount_out <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    if amount_out >= reserve_out:
        raise MarketError(
            f"Requested output {amount_out} exceeds reserve {reserve_out}"
        )
    numerator = reserve_in * amount_out * 1000
    denominator = (reserve_out - amount_out) * 997
    return numerator // denominator + 1


class UniswapV2Market:
    """A Uniswap V2 style pair holding an in-memory reserve snapshot."""

    def __init__(
        self,
        market_address: str,
        tokens: Sequence[str],
        reserves: Optional[Sequence[int]] = None,
        protocol: str = UNISWAP_V2_PROTOCOL,
    ):
        if len(tokens) != 2:
            raise ValueError(f"A pair trades exactly two tokens, got {list(tokens)}")
        self.market_address = market_address
        self.protocol = protocol
        self.tokens: List[str] = list(tokens)
        self._reserves: Dict[str, int] = {}
        if reserves is not None:
            self.set_reserves(reserves[0], reserves[1])

    def __repr__(self) -> str:
        return f"UniswapV2Market({self.market_address})"

    def set_reserves(self, reserve0: int, reserve1: int) -> None:
        """Replace the reserve snapshot (token0, token1 order)."""
        self._reserves = {
            self.tokens[0]: int(reserve0),
            self.tokens[1]: int(reserve1),
        }

    def get_balance(self, token: str) -> int:
        try:
            return self._reserves[token]
        except KeyError:
            raise MarketError(
                "Bad token", market_address=self.market_address, token=token
            ) from None

    async def refresh_reserves(self, w3) -> None:
        """Read ``getReserves()`` from chain through an AsyncWeb3 instance."""
        pair = w3.eth.contract(
            address=Web3.to_checksum_address(self.market_address),
            abi=UNISWAP_V2_PAIR_ABI,
        )
        reserves = await pair.functions.getReserves().call()
        self.set_reserves(reserves[0], reserves[1])
        logger.debug(
            f"Reserves for {self.market_address}: {reserves[0]} / {reserves[1]}"
        )

    def receive_directly(self, token: str) -> bool:
        return token in self.tokens

    async def quote_out(self, token_in: str, token_out: str, amount_in: int) -> int:
        reserve_in = self.get_balance(token_in)
        reserve_out = self.get_balance(token_out)
        return get_amount_out(reserve_in, reserve_out, amount_in)

    async def quote_in(self, token_in: str, token_out: str, amount_out: int) -> int:
        reserve_in = self.get_balance(token_in)
        reserve_out = self.get_balance(token_out)
        try:
            return get_amount_in(reserve_in, reserve_out, amount_out)
        except MarketError as e:
            raise MarketError(
                str(e), market_address=self.market_address, token=token_out
            ) from e

    async def build_sell_calls_to_next_market(
        self, token_in: str, amount_in: int, next_market: Market
    ) -> CallBundle:
        if next_market.receive_directly(token_in):
            exchange_call = await self.build_sell_call_data(
                token_in, amount_in, next_market.market_address
            )
            return CallBundle(targets=[self.market_address], payloads=[exchange_call])
        raise MarketError(
            f"Routing into {next_market.market_address} without direct receipt is not supported",
            market_address=self.market_address,
            token=token_in,
        )

    async def build_sell_call_data(
        self, token_in: str, amount_in: int, recipient: str
    ) -> bytes:
        amount0_out = 0
        amount1_out = 0
        if token_in == self.tokens[0]:
            amount1_out = await self.quote_out(token_in, self.tokens[1], amount_in)
        elif token_in == self.tokens[1]:
            amount0_out = await self.quote_out(token_in, self.tokens[0], amount_in)
        else:
            raise MarketError(
                "Bad token input address",
                market_address=self.market_address,
                token=token_in,
            )
        return SWAP_SELECTOR + encode(
            ["uint256", "uint256", "address", "bytes"],
            [amount0_out, amount1_out, Web3.to_checksum_address(recipient), b""],
        )


def group_markets_by_token(
    markets: Iterable[Market], base_token: str
) -> Dict[str, List[Market]]:
    """
    Build a MarketsByToken mapping from markets that pair ``base_token``.

    Markets that do not trade the base asset are ignored. Tokens with a single
    market are kept; the ranker simply finds no crossing for them.
    """
    markets_by_token: Dict[str, List[Market]] = {}
    for market in markets:
        tokens = list(market.tokens)
        if base_token not in tokens:
            continue
        token = tokens[1] if tokens[0] == base_token else tokens[0]
        markets_by_token.setdefault(token, []).append(market)
    return markets_by_token
