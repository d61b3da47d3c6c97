"""
Private bundle relay client (Flashbots-compatible JSON-RPC over aiohttp).

Requests are authenticated with ``X-Flashbots-Signature``: the reputation
key signs the keccak hash of the request body as an EIP-191 message.
"""

import json
from typing import Any, Dict, List, Optional

import aiohttp
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..exceptions import RelayError
from ..interfaces import BundleSimulation
from ..utils import get_logger
from .dex_client import Web3ChainClient

logger = get_logger(__name__)

FLASHBOTS_RELAY_URL = "https://relay.flashbots.net"


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


class FlashbotsRelayClient:
    """Signs, simulates and submits bundles of executor-wallet transactions."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        chain_client: Web3ChainClient,
        reputation_signer: Optional[LocalAccount] = None,
        relay_url: str = FLASHBOTS_RELAY_URL,
    ):
        self.session = session
        self.chain_client = chain_client
        # A throwaway key is enough when no reputation is needed
        self.reputation_signer = reputation_signer or Account.create()
        self.relay_url = relay_url
        self._request_id = 0

    def _signature_header(self, body: str) -> str:
        message = encode_defunct(text=Web3.to_hex(Web3.keccak(text=body)))
        signed = self.reputation_signer.sign_message(message)
        return f"{self.reputation_signer.address}:{Web3.to_hex(signed.signature)}"

    async def _request(self, method: str, params: List[Any]) -> Any:
        self._request_id += 1
        body = json.dumps(
            {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        )
        headers = {
            "Content-Type": "application/json",
            "X-Flashbots-Signature": self._signature_header(body),
        }
        try:
            async with self.session.post(
                self.relay_url, data=body, headers=headers
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise RelayError(
                        f"{method} failed with HTTP {response.status}: {text}",
                        endpoint=self.relay_url,
                        status_code=response.status,
                    )
                payload = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise RelayError(f"{method} request failed: {e}", endpoint=self.relay_url) from e

        if "error" in payload:
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RelayError(
                f"{method} returned error: {message}",
                endpoint=self.relay_url,
                details={"error": error},
            )
        return payload.get("result")

    async def sign_bundle(self, transactions: List[Dict[str, Any]]) -> List[str]:
        """Sign each transaction with consecutive nonces; returns raw hex strings."""
        signed_bundle = []
        for offset, transaction in enumerate(transactions):
            tx = await self.chain_client.fill_transaction(transaction, nonce_offset=offset)
            signed_bundle.append(self.chain_client.sign(tx))
        return signed_bundle

    async def simulate(
        self, signed_bundle: List[str], block_number: int
    ) -> BundleSimulation:
        """Simulate against ``block_number``; relay errors are reported, not raised."""
        params = [
            {
                "txs": signed_bundle,
                "blockNumber": hex(block_number),
                "stateBlockNumber": "latest",
            }
        ]
        try:
            result = await self._request("eth_callBundle", params)
        except RelayError as e:
            logger.warning(f"Bundle simulation failed for block {block_number}: {e}")
            return BundleSimulation(error=str(e))

        result = result or {}
        return BundleSimulation(
            results=list(result.get("results", [])),
            coinbase_diff=_to_int(result.get("coinbaseDiff")),
            total_gas_used=_to_int(result.get("totalGasUsed")),
        )

    async def send_raw_bundle(
        self, signed_bundle: List[str], block_number: int
    ) -> Dict[str, Any]:
        params = [{"txs": signed_bundle, "blockNumber": hex(block_number)}]
        result = await self._request("eth_sendBundle", params)
        logger.info(f"Bundle submitted for block {block_number}: {result}")
        return result or {}
