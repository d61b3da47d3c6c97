"""
Node client used by the dispatcher, built on web3's async API.

Implements the ``ChainClient`` protocol: gas estimation, eth_call
simulation, fee lookup, ERC20 balances and signed broadcast.
"""

from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3

from ..interfaces import FeeData
from ..utils import get_logger, to_hex

logger = get_logger(__name__)

# ERC20 ABI (minimal)
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
]

DEFAULT_PRIORITY_FEE_WEI = 1_500_000_000  # 1.5 gwei
RECEIPT_TIMEOUT_SEC = 120


class Web3ChainClient:
    """Client for a JSON-RPC node acting on behalf of one executor wallet."""

    def __init__(
        self,
        w3: AsyncWeb3,
        account: LocalAccount,
        default_priority_fee_wei: int = DEFAULT_PRIORITY_FEE_WEI,
        receipt_timeout: float = RECEIPT_TIMEOUT_SEC,
    ):
        self.w3 = w3
        self.account = account
        self.default_priority_fee_wei = default_priority_fee_wei
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_rpc_url(cls, rpc_url: str, private_key: str, **kwargs) -> "Web3ChainClient":
        """Connect to ``rpc_url`` with the executor wallet's private key."""
        if not rpc_url:
            raise ValueError("RPC URL is required")
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        account = Account.from_key(private_key)
        logger.info(f"Loaded account: {account.address}")
        return cls(w3, account, **kwargs)

    @property
    def address(self) -> str:
        return self.account.address

    def _prepare(self, transaction: Dict[str, Any], with_sender: bool = True) -> Dict[str, Any]:
        tx = dict(transaction)
        if "to" in tx:
            tx["to"] = Web3.to_checksum_address(tx["to"])
        if isinstance(tx.get("data"), (bytes, bytearray)):
            tx["data"] = to_hex(tx["data"])
        if with_sender:
            tx["from"] = self.account.address
        else:
            tx.pop("from", None)
        return tx

    async def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        return int(await self.w3.eth.estimate_gas(self._prepare(transaction)))

    async def call(self, transaction: Dict[str, Any]) -> bytes:
        return bytes(await self.w3.eth.call(self._prepare(transaction)))

    async def get_fee_data(self) -> FeeData:
        """
        Current fee parameters.

        Mirrors the usual provider convention: on fee-market chains
        ``max_fee = 2 * baseFee + priority``; otherwise only ``gas_price``.
        """
        block = await self.w3.eth.get_block("latest")
        gas_price = int(await self.w3.eth.gas_price)
        base_fee: Optional[int] = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeData(gas_price=gas_price)

        try:
            priority_fee = int(await self.w3.eth.max_priority_fee)
        except Exception as e:
            logger.warning(
                f"Failed to get max priority fee: {e}, using {self.default_priority_fee_wei} wei"
            )
            priority_fee = self.default_priority_fee_wei

        return FeeData(
            gas_price=gas_price,
            max_fee_per_gas=int(base_fee) * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    async def get_token_balance(self, token_address: str, owner: str) -> int:
        token_contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_ABI
        )
        balance = await token_contract.functions.balanceOf(
            Web3.to_checksum_address(owner)
        ).call()
        return int(balance)

    async def fill_transaction(
        self, transaction: Dict[str, Any], nonce_offset: int = 0
    ) -> Dict[str, Any]:
        """Add nonce and chain id so the transaction can be signed offline."""
        tx = self._prepare(transaction, with_sender=False)
        if "nonce" not in tx:
            nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
            tx["nonce"] = nonce + nonce_offset
        if "chainId" not in tx:
            tx["chainId"] = await self.w3.eth.chain_id
        return tx

    def sign(self, transaction: Dict[str, Any]) -> str:
        """Sign a filled transaction and return the raw hex."""
        signed = self.account.sign_transaction(transaction)
        return to_hex(signed.raw_transaction)

    async def send_transaction(self, transaction: Dict[str, Any]) -> str:
        tx = await self.fill_transaction(transaction)
        raw = self.sign(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(raw)
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction submitted: {tx_hash_hex}")
        return tx_hash_hex

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout
        )
        return dict(receipt)
