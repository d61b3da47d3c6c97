"""Shared fixtures for the crossed-market arbitrage tests."""

from typing import Callable, List, Optional
from unittest.mock import AsyncMock

import pytest

from crossed_arbitrage.dex_mev.config_schema import ETHER, WETH_ADDRESS
from crossed_arbitrage.dex_mev.markets import UniswapV2Market
from crossed_arbitrage.interfaces import BundleSimulation, CallBundle, FeeData

TOKEN = "0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984"
OTHER_TOKEN = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
EXECUTOR = "0x" + "ee" * 20


def make_address(n: int) -> str:
    return "0x" + f"{n:040x}"


def v2_market(n: int, weth_reserve: int, token_reserve: int, token: str = TOKEN):
    """A WETH/token pair with reserves given in (weth, token) order."""
    return UniswapV2Market(
        make_address(n), [WETH_ADDRESS, token], [weth_reserve, token_reserve]
    )


class CountingMarket:
    """Market whose quote_out is an arbitrary function; records every call."""

    protocol = "Fake"

    def __init__(
        self,
        address: str,
        token: str = TOKEN,
        buy_fn: Optional[Callable[[int], int]] = None,
        sell_fn: Optional[Callable[[int], int]] = None,
        quote_in_value: int = ETHER,
    ):
        self.market_address = address
        self.tokens = [WETH_ADDRESS, token]
        self.token = token
        self.buy_fn = buy_fn or (lambda amount: amount)
        self.sell_fn = sell_fn or (lambda amount: amount)
        self.quote_in_value = quote_in_value
        self.quote_out_calls: List[tuple] = []

    async def quote_out(self, token_in, token_out, amount_in):
        self.quote_out_calls.append((token_in, token_out, amount_in))
        if token_in == WETH_ADDRESS:
            return self.buy_fn(amount_in)
        return self.sell_fn(amount_in)

    async def quote_in(self, token_in, token_out, amount_out):
        return self.quote_in_value

    async def build_sell_calls_to_next_market(self, token_in, amount_in, next_market):
        return CallBundle(
            targets=[self.market_address], payloads=[b"buy:" + str(amount_in).encode()]
        )

    async def build_sell_call_data(self, token_in, amount_in, recipient):
        return b"sell:" + str(amount_in).encode()

    def receive_directly(self, token):
        return token in self.tokens


@pytest.fixture
def crossed_pair_markets():
    """Two constant-product pairs, (1000, 1000) and (1000, 1100), in units of ETHER/7."""
    unit = ETHER // 7
    sell_market = v2_market(1, 1000 * unit, 1000 * unit)
    buy_market = v2_market(2, 1000 * unit, 1100 * unit)
    return sell_market, buy_market


@pytest.fixture
def chain_client():
    client = AsyncMock()
    client.estimate_gas = AsyncMock(return_value=300_000)
    client.call = AsyncMock(return_value=b"\x01")
    client.get_fee_data = AsyncMock(
        return_value=FeeData(
            gas_price=30 * 10**9,
            max_fee_per_gas=50 * 10**9,
            max_priority_fee_per_gas=2 * 10**9,
        )
    )
    client.get_token_balance = AsyncMock(side_effect=[10 * ETHER, 10 * ETHER + 5])
    client.send_transaction = AsyncMock(return_value="0x" + "ab" * 32)
    client.wait_for_receipt = AsyncMock(return_value={"status": 1})
    return client


@pytest.fixture
def relay():
    bundle_relay = AsyncMock()
    bundle_relay.sign_bundle = AsyncMock(return_value=["0xsigned"])
    bundle_relay.simulate = AsyncMock(
        return_value=BundleSimulation(
            results=[{"txHash": "0x01", "gasUsed": 150_000}],
            coinbase_diff=3 * 10**15,
            total_gas_used=150_000,
        )
    )
    bundle_relay.send_raw_bundle = AsyncMock(return_value={"bundleHash": "0xbundle"})
    return bundle_relay
