"""
Translation of a sized opportunity into executor-contract calls.

The executor contract custodies the base asset for the duration of the
transaction: it sends ``volume`` to the first buy-leg target, runs every
payload in order, checks that it ended with more than it started and pays
the incentive to the block producer.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from eth_abi import encode
from web3 import Web3

from ..exceptions import BundleBuildError, ValidationError
from ..utils import format_wei, get_logger
from .solver import CrossedMarketDetails

logger = get_logger(__name__)

TRADE_ENTRY_POINT = "uniswapWeth(uint256,uint256,address[],bytes[])"
TRADE_SELECTOR = bytes(Web3.keccak(text=TRADE_ENTRY_POINT)[:4])

DRAFT_GAS_LIMIT = 1_000_000


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered buy-leg calls followed by exactly one sell-leg call."""

    targets: List[str]
    payloads: List[bytes]
    incentive: int
    opportunity: CrossedMarketDetails

    @property
    def volume(self) -> int:
        return self.opportunity.volume


def encode_trade_call(
    volume: int, incentive: int, targets: List[str], payloads: List[bytes]
) -> bytes:
    """ABI-encode the executor contract's trade entry point."""
    return TRADE_SELECTOR + encode(
        ["uint256", "uint256", "address[]", "bytes[]"],
        [
            volume,
            incentive,
            [Web3.to_checksum_address(t) for t in targets],
            [bytes(p) for p in payloads],
        ],
    )


class BundleBuilder:
    """Builds execution plans against a fixed executor contract."""

    def __init__(self, executor_address: str, base_token: str):
        self.executor_address = executor_address
        self.base_token = base_token

    async def build(
        self, opportunity: CrossedMarketDetails, reward_percentage: int
    ) -> ExecutionPlan:
        """
        Produce the call sequence and incentive for one opportunity.

        Args:
            opportunity: Sized opportunity from the solver
            reward_percentage: Share of profit (0-100) paid to the block producer

        Returns:
            ExecutionPlan with buy-leg calls first and the sell-leg call last

        Raises:
            ValidationError: If reward_percentage is outside 0-100
            BundleBuildError: If the profit is not positive or either market
                cannot build its call data
        """
        if not 0 <= reward_percentage <= 100:
            raise ValidationError(
                f"reward_percentage must be within 0-100, got {reward_percentage}"
            )

        buy_market = opportunity.buy_from_market
        sell_market = opportunity.sell_to_market
        token = opportunity.token_address
        details = {
            "buy_market": buy_market.market_address,
            "sell_market": sell_market.market_address,
            "volume": opportunity.volume,
            "profit": opportunity.profit,
        }

        if opportunity.profit <= 0:
            raise BundleBuildError(
                f"Refusing to build unprofitable trade for token {token} "
                f"(buy={buy_market.market_address}, sell={sell_market.market_address}, "
                f"volume={opportunity.volume}, profit={opportunity.profit})",
                token=token,
                details=details,
            )

        try:
            buy_calls = await buy_market.build_sell_calls_to_next_market(
                self.base_token, opportunity.volume, sell_market
            )
            # Recomputed at the chosen volume; this is the amount the sell leg receives
            inter = await buy_market.quote_out(self.base_token, token, opportunity.volume)
            sell_call_data = await sell_market.build_sell_call_data(
                token, inter, self.executor_address
            )
        except Exception as e:
            raise BundleBuildError(
                f"Failed to build calls for token {token} "
                f"(buy={buy_market.market_address}, sell={sell_market.market_address}, "
                f"volume={opportunity.volume}, profit={opportunity.profit}): {e}",
                token=token,
                details=details,
            ) from e

        targets = [*buy_calls.targets, sell_market.market_address]
        payloads = [*buy_calls.payloads, sell_call_data]
        incentive = opportunity.profit * reward_percentage // 100

        logger.info(
            f"Send this much WETH {format_wei(opportunity.volume)} "
            f"get this much profit {format_wei(opportunity.profit)} "
            f"(incentive {format_wei(incentive)}, {len(targets)} calls)"
        )
        return ExecutionPlan(
            targets=targets,
            payloads=payloads,
            incentive=incentive,
            opportunity=opportunity,
        )

    def draft_transaction(self, plan: ExecutionPlan) -> Dict[str, Any]:
        """Zero-priced transaction invoking the executor's trade entry point."""
        return {
            "to": self.executor_address,
            "data": encode_trade_call(
                plan.volume, plan.incentive, plan.targets, plan.payloads
            ),
            "value": 0,
            "gasPrice": 0,
            "gas": DRAFT_GAS_LIMIT,
        }
