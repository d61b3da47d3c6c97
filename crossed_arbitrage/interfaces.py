"""
Capability interfaces consumed by the arbitrage core.

The core depends only on these protocols: any exchange variant
(constant-product, stable-swap, order-book, ...) that implements
``Market`` can be ranked and traded, and any node/relay client that
implements ``ChainClient`` / ``BundleRelay`` can execute the result.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass
class CallBundle:
    """Ordered call targets with their payloads."""

    targets: List[str] = field(default_factory=list)
    payloads: List[bytes] = field(default_factory=list)

    def __post_init__(self):
        if len(self.targets) != len(self.payloads):
            raise ValueError(
                f"targets/payloads length mismatch: {len(self.targets)} != {len(self.payloads)}"
            )


@runtime_checkable
class Market(Protocol):
    """Protocol every tradable market must expose."""

    market_address: str
    protocol: str
    tokens: Sequence[str]

    async def quote_out(self, token_in: str, token_out: str, amount_in: int) -> int:
        """Amount of ``token_out`` received for ``amount_in`` of ``token_in``."""
        ...

    async def quote_in(self, token_in: str, token_out: str, amount_out: int) -> int:
        """Amount of ``token_in`` required to receive ``amount_out`` of ``token_out``."""
        ...

    async def build_sell_calls_to_next_market(
        self, token_in: str, amount_in: int, next_market: "Market"
    ) -> CallBundle:
        """Calls that sell ``token_in`` here and deliver the output to ``next_market``."""
        ...

    async def build_sell_call_data(
        self, token_in: str, amount_in: int, recipient: str
    ) -> bytes:
        """Payload that sells ``amount_in`` of ``token_in`` crediting ``recipient``."""
        ...

    def receive_directly(self, token: str) -> bool:
        """Whether ``token`` can be transferred straight to this market."""
        ...


@dataclass
class FeeData:
    """Current fee parameters reported by a node."""

    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


@dataclass
class BundleSimulation:
    """Outcome of simulating a signed bundle against a future block."""

    results: List[Dict[str, Any]] = field(default_factory=list)
    coinbase_diff: int = 0
    total_gas_used: int = 0
    error: Optional[str] = None

    @property
    def first_revert(self) -> Optional[Dict[str, Any]]:
        """The first transaction result that reverted, if any."""
        for result in self.results:
            if result.get("error") or result.get("revert"):
                return result
        return None


@runtime_checkable
class ChainClient(Protocol):
    """Node operations used by the dispatcher."""

    async def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        ...

    async def call(self, transaction: Dict[str, Any]) -> bytes:
        ...

    async def get_fee_data(self) -> FeeData:
        ...

    async def get_token_balance(self, token_address: str, owner: str) -> int:
        ...

    async def send_transaction(self, transaction: Dict[str, Any]) -> str:
        ...

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        ...


@runtime_checkable
class BundleRelay(Protocol):
    """Private relay operations used in production mode."""

    async def sign_bundle(self, transactions: List[Dict[str, Any]]) -> List[str]:
        ...

    async def simulate(
        self, signed_bundle: List[str], block_number: int
    ) -> BundleSimulation:
        ...

    async def send_raw_bundle(
        self, signed_bundle: List[str], block_number: int
    ) -> Dict[str, Any]:
        ...
