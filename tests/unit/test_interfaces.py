"""Tests for the capability interfaces and their value types."""

import pytest
from crossed_arbitrage import PROJECT_NAME, VERSION
from crossed_arbitrage.interfaces import (
    BundleRelay,
    BundleSimulation,
    CallBundle,
    ChainClient,
    FeeData,
    Market,
)
from crossed_arbitrage.version import __version_info__, get_version


def test_call_bundle_lengths_must_match():
    """Test that targets and payloads stay aligned."""
    bundle = CallBundle(targets=["0x01"], payloads=[b"\x00"])
    assert bundle.targets == ["0x01"]

    with pytest.raises(ValueError, match="length mismatch"):
        CallBundle(targets=["0x01", "0x02"], payloads=[b"\x00"])


def test_call_bundle_empty_by_default():
    bundle = CallBundle()
    assert bundle.targets == []
    assert bundle.payloads == []


def test_fee_data_defaults():
    fee_data = FeeData(gas_price=1)
    assert fee_data.max_fee_per_gas is None
    assert fee_data.max_priority_fee_per_gas is None


def test_bundle_simulation_first_revert():
    """Test locating the first reverted transaction."""
    clean = BundleSimulation(results=[{"txHash": "0x01"}, {"txHash": "0x02"}])
    assert clean.first_revert is None

    reverted = BundleSimulation(
        results=[
            {"txHash": "0x01"},
            {"txHash": "0x02", "revert": "0x08c379a0"},
            {"txHash": "0x03", "error": "execution reverted"},
        ]
    )
    assert reverted.first_revert == {"txHash": "0x02", "revert": "0x08c379a0"}


def test_bundle_simulation_error_has_no_results():
    simulation = BundleSimulation(error="relay unavailable")
    assert simulation.results == []
    assert simulation.first_revert is None


def test_protocols_reject_plain_objects():
    assert not isinstance(object(), Market)
    assert not isinstance(object(), ChainClient)
    assert not isinstance(object(), BundleRelay)


def test_version():
    assert PROJECT_NAME == "crossed-arbitrage"
    assert VERSION == get_version()
    assert __version_info__ == tuple(int(part) for part in VERSION.split("."))
