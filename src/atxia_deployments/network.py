"""Network context resolution."""

import logging
from typing import Optional

from eth_account import Account

from .constants import NETWORK_CONFIG
from .exceptions import ConfigurationError, NetworkMismatchError, RpcError
from .rpc import JsonRpcClient, to_int
from .types import FeeEstimate, NetworkContext

logger = logging.getLogger(__name__)


def get_network_config(network: str) -> dict:
    """
    Look up static configuration for a network name.

    Raises:
        ConfigurationError: If the network is unknown
    """
    try:
        return NETWORK_CONFIG[network]
    except KeyError:
        known = ", ".join(sorted(NETWORK_CONFIG))
        raise ConfigurationError(f"Unknown network '{network}' (known: {known})") from None


def signer_address(private_key: str) -> str:
    """
    Derive the checksummed signer address from a private key.

    Raises:
        ConfigurationError: If the key is malformed
    """
    try:
        return Account.from_key(private_key).address
    except (ValueError, TypeError) as e:
        # Never echo the key itself
        raise ConfigurationError("PRIVATE_KEY is not a valid secp256k1 private key") from e


class NetworkContextProvider:
    """Resolves chain identity, signer and fee levels for the active network."""

    def __init__(self, rpc: Optional[JsonRpcClient], private_key: Optional[str]):
        self.rpc = rpc
        self.private_key = private_key

    def resolve(self, network: str) -> NetworkContext:
        """
        Resolve and validate the context for a run.

        Args:
            network: Target network name

        Returns:
            NetworkContext for the run

        Raises:
            ConfigurationError: If the RPC endpoint or signer key is missing
            NetworkMismatchError: If the endpoint serves a different chain
        """
        network_config = get_network_config(network)

        if self.rpc is None:
            raise ConfigurationError(
                f"RPC URL required for network '{network}': "
                f"set ${network_config['default_rpc_env']} or RPC_URL"
            )
        if not self.private_key:
            raise ConfigurationError("Signer key required: set $PRIVATE_KEY")

        address = signer_address(self.private_key)

        try:
            chain_id = self.rpc.chain_id()
        except RpcError as e:
            raise ConfigurationError(f"Cannot query chain id from {self.rpc.url}: {e}") from e

        expected_chain_id = network_config["chain_id"]
        if chain_id != expected_chain_id:
            raise NetworkMismatchError(network, expected_chain_id, chain_id)

        fee_estimate = self._fee_estimate()

        logger.info(
            "Resolved network %s (chain %s) for signer %s", network, chain_id, address
        )
        return NetworkContext(
            chain_id=chain_id,
            name=network,
            signer_address=address,
            fee_estimate=fee_estimate,
            local=network_config["local"],
            block_explorer_url=network_config["block_explorer_url"],
        )

    def _fee_estimate(self) -> Optional[FeeEstimate]:
        """EIP-1559 fee levels, or None for chains without a base fee."""
        latest = self.rpc.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is None:
            logger.debug("Latest block has no base fee; using legacy gas pricing")
            return None

        priority_fee = self.rpc.max_priority_fee()
        if priority_fee is None:
            return None

        return FeeEstimate(
            base_fee=to_int(base_fee, "baseFeePerGas"),
            priority_fee=priority_fee,
        )
