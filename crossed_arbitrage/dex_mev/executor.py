"""
Dispatcher that turns ranked opportunities into a submitted trade.

Three mutually exclusive modes, chosen once by configuration:

- LOCAL_EXECUTION: sign and broadcast against a local (fork) node, stopping
  after the first send attempt;
- LOCAL_SIMULATION: estimate and eth_call every candidate, never submit;
- PRODUCTION: simulate a one-transaction bundle on the relay and submit the
  first candidate that simulates cleanly for the next two blocks.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..exceptions import (
    BundleBuildError,
    ConfigurationError,
    NoSubmissionError,
    SubmissionError,
)
from ..interfaces import BundleRelay, ChainClient
from ..utils import describe_error, extract_revert_data, format_wei, get_logger, to_hex
from .bundle import BundleBuilder, ExecutionPlan
from .config_schema import ArbitrageConfig, ExecutionMode
from .solver import CrossedMarketDetails

logger = get_logger(__name__)


@dataclass
class DispatchResult:
    """Outcome of one dispatch call."""

    mode: ExecutionMode
    submitted: bool = False
    opportunity: Optional[CrossedMarketDetails] = None
    tx_hash: Optional[str] = None
    receipt_status: Optional[int] = None
    target_blocks: List[int] = field(default_factory=list)
    balance_delta: Optional[int] = None
    candidates_tried: int = 0
    skipped_reason: Optional[str] = None


ModeHandler = Callable[
    [ExecutionPlan, Dict[str, Any], int], Awaitable[Optional[DispatchResult]]
]


class ArbitrageExecutor:
    """Dispatches ranked opportunities according to the configured mode."""

    def __init__(
        self,
        config: ArbitrageConfig,
        builder: BundleBuilder,
        chain_client: ChainClient,
        relay: Optional[BundleRelay] = None,
    ):
        if config.mode is ExecutionMode.PRODUCTION and relay is None:
            raise ConfigurationError("Production mode requires a bundle relay")
        self.config = config
        self.builder = builder
        self.chain_client = chain_client
        self.relay = relay
        self._handlers: Dict[ExecutionMode, ModeHandler] = {
            ExecutionMode.LOCAL_EXECUTION: self._execute_locally,
            ExecutionMode.LOCAL_SIMULATION: self._simulate_locally,
            ExecutionMode.PRODUCTION: self._submit_to_relay,
        }

    async def dispatch(
        self,
        opportunities: Sequence[CrossedMarketDetails],
        block_number: int,
        reward_percentage: int,
    ) -> DispatchResult:
        """
        Try candidates in ranked order until the mode's stop condition.

        Args:
            opportunities: Opportunities sorted by profit descending
            block_number: Current block number
            reward_percentage: Share of profit paid to the block producer

        Returns:
            DispatchResult describing the submission, or a non-submitted
            result for local simulation and skipped blocks

        Raises:
            SubmissionError: Local execution broadcast was rejected
            NoSubmissionError: No candidate was submitted in an execution mode
        """
        mode = self.config.mode
        every_n = self.config.execute_every_n_blocks
        if mode is ExecutionMode.LOCAL_EXECUTION and every_n > 1 and block_number % every_n != 0:
            logger.info(
                f"Local execution: skipping block={block_number}, executeEveryN={every_n}"
            )
            return DispatchResult(
                mode=mode, skipped_reason=f"block {block_number} not a multiple of {every_n}"
            )

        handler = self._handlers[mode]
        tried = 0
        for opportunity in opportunities:
            tried += 1
            logger.info(f"Candidate {tried} in block {block_number}:\n{opportunity.describe()}")
            try:
                plan = await self.builder.build(opportunity, reward_percentage)
            except BundleBuildError as e:
                logger.warning(f"Build failure, skipping: {e}")
                continue

            transaction = self.builder.draft_transaction(plan)
            result = await handler(plan, transaction, block_number)
            if result is not None:
                result.candidates_tried = tried
                return result

        if mode is ExecutionMode.LOCAL_SIMULATION:
            logger.warning("Local simulation enabled: no bundle submitted to relay")
            return DispatchResult(
                mode=mode, candidates_tried=tried, skipped_reason="simulation only"
            )
        raise NoSubmissionError(
            f"No arbitrage submitted ({tried} candidates tried)", candidates=tried
        )

    async def _executor_balance(self) -> int:
        return await self.chain_client.get_token_balance(
            self.builder.base_token, self.builder.executor_address
        )

    async def _execute_locally(
        self, plan: ExecutionPlan, transaction: Dict[str, Any], block_number: int
    ) -> Optional[DispatchResult]:
        opportunity = plan.opportunity
        before = await self._executor_balance()
        logger.info(f"BundleExecutor WETH before: {before}")

        try:
            gas_estimate = await self.chain_client.estimate_gas(transaction)
        except Exception as e:
            logger.error(
                f"Local execution estimateGas failed for token {opportunity.token_address}: "
                f"{describe_error(e)}"
            )
            return None

        fee_data = await self.chain_client.get_fee_data()
        tx_request = dict(transaction, gas=gas_estimate * 2)
        if fee_data.max_fee_per_gas and fee_data.max_priority_fee_per_gas:
            tx_request["maxFeePerGas"] = fee_data.max_fee_per_gas
            tx_request["maxPriorityFeePerGas"] = fee_data.max_priority_fee_per_gas
            tx_request.pop("gasPrice", None)
        elif fee_data.gas_price:
            tx_request["gasPrice"] = fee_data.gas_price
            tx_request.pop("maxFeePerGas", None)
            tx_request.pop("maxPriorityFeePerGas", None)

        try:
            tx_hash = await self.chain_client.send_transaction(tx_request)
        except Exception as e:
            revert_data = extract_revert_data(e)
            logger.error(f"Local execution sendTransaction failed: {describe_error(e)}")
            if revert_data:
                logger.error(f"Local execution error data: {revert_data}")
            raise SubmissionError(
                f"Local execution send failed for token {opportunity.token_address} "
                f"(buy={opportunity.buy_from_market.market_address}, "
                f"sell={opportunity.sell_to_market.market_address}, "
                f"volume={opportunity.volume}, profit={opportunity.profit}): {describe_error(e)}",
                token=opportunity.token_address,
                revert_data=revert_data,
            ) from e

        logger.info(f"Local execution txHash: {tx_hash}")
        receipt = await self.chain_client.wait_for_receipt(tx_hash)
        status = receipt.get("status")
        logger.info(f"Local execution receipt status: {status}")

        after = await self._executor_balance()
        logger.info(f"BundleExecutor WETH after: {after}")
        logger.info(f"BundleExecutor WETH diff: {after - before}")
        return DispatchResult(
            mode=ExecutionMode.LOCAL_EXECUTION,
            submitted=True,
            opportunity=opportunity,
            tx_hash=tx_hash,
            receipt_status=status,
            balance_delta=after - before,
        )

    async def _simulate_locally(
        self, plan: ExecutionPlan, transaction: Dict[str, Any], block_number: int
    ) -> Optional[DispatchResult]:
        try:
            gas_estimate = await self.chain_client.estimate_gas(transaction)
            logger.info(f"Local estimateGas: {gas_estimate}")
        except Exception as e:
            logger.error(f"Local estimateGas failed: {describe_error(e)}")

        try:
            return_data = await self.chain_client.call(transaction)
            logger.info(f"Local call (success), returnData: {to_hex(return_data)}")
        except Exception as e:
            logger.error(
                f"Local call failed for token {plan.opportunity.token_address}: "
                f"{describe_error(e)}"
            )
            revert_data = extract_revert_data(e)
            if revert_data:
                logger.error(f"Local call error data: {revert_data}")
        return None

    async def _submit_to_relay(
        self, plan: ExecutionPlan, transaction: Dict[str, Any], block_number: int
    ) -> Optional[DispatchResult]:
        opportunity = plan.opportunity
        try:
            gas_estimate = await self.chain_client.estimate_gas(transaction)
        except Exception as e:
            logger.warning(
                f"Estimate gas failure for token {opportunity.token_address} "
                f"(buy={opportunity.buy_from_market.market_address}, "
                f"sell={opportunity.sell_to_market.market_address}, "
                f"volume={opportunity.volume}, profit={opportunity.profit}): {describe_error(e)}"
            )
            return None

        if gas_estimate > self.config.gas_anomaly_ceiling:
            logger.warning(
                f"EstimateGas succeeded, but suspiciously large: {gas_estimate} "
                f"(token {opportunity.token_address})"
            )
            return None

        bundle_tx = dict(transaction, gas=gas_estimate * 2)
        signed_bundle = await self.relay.sign_bundle([bundle_tx])
        simulation = await self.relay.simulate(signed_bundle, block_number + 1)
        if simulation.error is not None or simulation.first_revert is not None:
            reason = simulation.error or simulation.first_revert
            logger.warning(
                f"Simulation Error on token {opportunity.token_address}, skipping: {reason}"
            )
            return None

        effective_gas_price = (
            simulation.coinbase_diff // simulation.total_gas_used
            if simulation.total_gas_used
            else 0
        )
        logger.info(
            f"Submitting bundle, profit sent to miner: {format_wei(simulation.coinbase_diff)}, "
            f"effective gas price: {format_wei(effective_gas_price, 9)} GWEI"
        )
        target_blocks = [block_number + 1, block_number + 2]
        await asyncio.gather(
            *(self.relay.send_raw_bundle(signed_bundle, target) for target in target_blocks)
        )
        return DispatchResult(
            mode=ExecutionMode.PRODUCTION,
            submitted=True,
            opportunity=opportunity,
            target_blocks=target_blocks,
        )
