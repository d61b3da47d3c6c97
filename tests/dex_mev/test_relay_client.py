"""
Test the Flashbots-compatible bundle relay client against a fake aiohttp session.
"""

import json
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from crossed_arbitrage.dex_mev.relay_client import FlashbotsRelayClient
from crossed_arbitrage.exceptions import RelayError

RELAY_URL = "https://relay.example"


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def text(self):
        return self._text

    async def json(self, content_type="application/json"):
        return self._payload


class FakeSession:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.requests = []

    def post(self, url, data=None, headers=None):
        self.requests.append({"url": url, "data": data, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


@pytest.fixture
def signer():
    return Account.create()


@pytest.fixture
def node_client():
    client = Mock()
    client.fill_transaction = AsyncMock(
        side_effect=lambda tx, nonce_offset=0: dict(tx, nonce=7 + nonce_offset)
    )
    client.sign = Mock(side_effect=lambda tx: f"0xraw{tx['nonce']}")
    return client


def relay_with(session, node_client, signer):
    return FlashbotsRelayClient(session, node_client, signer, relay_url=RELAY_URL)


class TestRequests:
    @pytest.mark.asyncio
    async def test_signature_header_recovers_signer(self, node_client, signer):
        session = FakeSession(FakeResponse(payload={"jsonrpc": "2.0", "id": 1, "result": {}}))
        relay = relay_with(session, node_client, signer)

        await relay.send_raw_bundle(["0xraw7"], 101)

        request = session.requests[0]
        assert request["url"] == RELAY_URL
        address, signature = request["headers"]["X-Flashbots-Signature"].split(":")
        assert address == signer.address
        message = encode_defunct(text=Web3.to_hex(Web3.keccak(text=request["data"])))
        assert Account.recover_message(message, signature=signature) == signer.address

    @pytest.mark.asyncio
    async def test_send_bundle_params(self, node_client, signer):
        session = FakeSession(
            FakeResponse(payload={"result": {"bundleHash": "0xabc"}})
        )
        relay = relay_with(session, node_client, signer)

        result = await relay.send_raw_bundle(["0xraw7"], 101)

        body = json.loads(session.requests[0]["data"])
        assert body["method"] == "eth_sendBundle"
        assert body["params"] == [{"txs": ["0xraw7"], "blockNumber": "0x65"}]
        assert result == {"bundleHash": "0xabc"}

    @pytest.mark.asyncio
    async def test_http_error(self, node_client, signer):
        session = FakeSession(FakeResponse(status=403, text="forbidden"))
        relay = relay_with(session, node_client, signer)

        with pytest.raises(RelayError) as exc_info:
            await relay.send_raw_bundle(["0xraw7"], 101)

        assert exc_info.value.status_code == 403
        assert exc_info.value.endpoint == RELAY_URL

    @pytest.mark.asyncio
    async def test_rpc_error(self, node_client, signer):
        session = FakeSession(
            FakeResponse(payload={"error": {"code": -32000, "message": "bundle too old"}})
        )
        relay = relay_with(session, node_client, signer)

        with pytest.raises(RelayError, match="bundle too old"):
            await relay.send_raw_bundle(["0xraw7"], 101)

    @pytest.mark.asyncio
    async def test_connection_error(self, node_client, signer):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        relay = relay_with(session, node_client, signer)

        with pytest.raises(RelayError, match="request failed"):
            await relay.send_raw_bundle(["0xraw7"], 101)

    def test_throwaway_reputation_key(self, node_client):
        relay = FlashbotsRelayClient(FakeSession(), node_client)
        assert Web3.is_checksum_address(relay.reputation_signer.address)


class TestBundles:
    @pytest.mark.asyncio
    async def test_sign_bundle_consecutive_nonces(self, node_client, signer):
        relay = relay_with(FakeSession(), node_client, signer)

        signed = await relay.sign_bundle([{"to": "0x01"}, {"to": "0x02"}])

        assert signed == ["0xraw7", "0xraw8"]

    @pytest.mark.asyncio
    async def test_simulate_parses_result(self, node_client, signer):
        session = FakeSession(
            FakeResponse(
                payload={
                    "result": {
                        "results": [{"txHash": "0x01", "gasUsed": 150000}],
                        "coinbaseDiff": "3000000000000000",
                        "totalGasUsed": 150000,
                    }
                }
            )
        )
        relay = relay_with(session, node_client, signer)

        simulation = await relay.simulate(["0xraw7"], 101)

        body = json.loads(session.requests[0]["data"])
        assert body["method"] == "eth_callBundle"
        assert body["params"][0]["blockNumber"] == "0x65"
        assert body["params"][0]["stateBlockNumber"] == "latest"
        assert simulation.error is None
        assert simulation.first_revert is None
        assert simulation.coinbase_diff == 3 * 10**15
        assert simulation.total_gas_used == 150000

    @pytest.mark.asyncio
    async def test_simulate_reports_revert(self, node_client, signer):
        session = FakeSession(
            FakeResponse(
                payload={
                    "result": {
                        "results": [{"txHash": "0x01", "revert": "0x08c379a0"}],
                        "coinbaseDiff": "0x0",
                        "totalGasUsed": "0x5208",
                    }
                }
            )
        )
        relay = relay_with(session, node_client, signer)

        simulation = await relay.simulate(["0xraw7"], 101)

        assert simulation.first_revert == {"txHash": "0x01", "revert": "0x08c379a0"}
        assert simulation.total_gas_used == 21000

    @pytest.mark.asyncio
    async def test_simulate_relay_error_not_raised(self, node_client, signer):
        session = FakeSession(FakeResponse(status=500, text="boom"))
        relay = relay_with(session, node_client, signer)

        simulation = await relay.simulate(["0xraw7"], 101)

        assert simulation.error is not None
        assert "HTTP 500" in simulation.error
