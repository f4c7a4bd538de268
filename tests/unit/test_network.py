"""Unit tests for network context resolution."""

import pytest

from atxia_deployments.exceptions import ConfigurationError, NetworkMismatchError
from atxia_deployments.network import NetworkContextProvider, get_network_config, signer_address
from atxia_deployments.types import FeeEstimate

DEPLOYER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestGetNetworkConfig:
    """Test static network lookup."""

    def test_known_network(self):
        assert get_network_config("sepolia")["chain_id"] == 11155111

    def test_unknown_network(self):
        with pytest.raises(ConfigurationError, match="Unknown network"):
            get_network_config("goerli")


class TestSignerAddress:
    """Test deriving the signer from a key."""

    def test_derives_checksummed_address(self):
        assert signer_address(DEPLOYER_KEY) == DEPLOYER_ADDRESS

    def test_invalid_key_does_not_leak(self):
        """Test that a malformed key is rejected without echoing it."""
        with pytest.raises(ConfigurationError) as excinfo:
            signer_address("0x1234")
        assert "0x1234" not in str(excinfo.value)


class TestResolve:
    """Test NetworkContextProvider.resolve."""

    def test_resolves_sepolia(self, rpc, node):
        context = NetworkContextProvider(rpc, DEPLOYER_KEY).resolve("sepolia")

        assert context.chain_id == 11155111
        assert context.name == "sepolia"
        assert context.signer_address == DEPLOYER_ADDRESS
        assert context.local is False
        assert context.block_explorer_url == "https://sepolia.etherscan.io"
        assert context.fee_estimate == FeeEstimate(base_fee=node.base_fee, priority_fee=node.priority_fee)

    def test_legacy_chain_has_no_fee_estimate(self, rpc, node):
        """Test that chains without a base fee fall back to legacy pricing."""
        node.base_fee = None
        context = NetworkContextProvider(rpc, DEPLOYER_KEY).resolve("sepolia")
        assert context.fee_estimate is None

    def test_chain_id_mismatch(self, rpc, node):
        """Test that a mainnet endpoint configured for sepolia is refused."""
        node.chain_id = 1

        with pytest.raises(NetworkMismatchError) as excinfo:
            NetworkContextProvider(rpc, DEPLOYER_KEY).resolve("sepolia")

        assert excinfo.value.expected_chain_id == 11155111
        assert excinfo.value.actual_chain_id == 1
        assert "eth_sendRawTransaction" not in node.calls

    def test_local_network(self, rpc, node):
        node.chain_id = 31337
        context = NetworkContextProvider(rpc, DEPLOYER_KEY).resolve("hardhat")
        assert context.local is True

    def test_missing_rpc(self):
        with pytest.raises(ConfigurationError, match="SEPOLIA_RPC_URL"):
            NetworkContextProvider(None, DEPLOYER_KEY).resolve("sepolia")

    def test_missing_key(self, rpc):
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            NetworkContextProvider(rpc, None).resolve("sepolia")

    def test_unreachable_endpoint(self, http):
        """Test that an unreachable endpoint is a configuration problem."""
        from atxia_deployments.rpc import JsonRpcClient

        http.add(http.POST, "http://down.example.com", status=503)
        provider = NetworkContextProvider(JsonRpcClient("http://down.example.com"), DEPLOYER_KEY)

        with pytest.raises(ConfigurationError, match="chain id"):
            provider.resolve("sepolia")
