"""Configuration constants for atxia-deployments library."""

from decimal import Decimal

# Network configuration mirrors hardhat.config networks
# Local networks are ephemeral: nothing is verified on them
NETWORK_CONFIG = {
    "mainnet": {
        "chain_id": 1,
        "chain_name": "Ethereum Mainnet",
        "block_explorer_url": "https://etherscan.io",
        "default_rpc_env": "MAINNET_RPC_URL",
        "default_rpc_url": None,
        "confirmations": 6,
        "local": False,
    },
    "sepolia": {
        "chain_id": 11155111,
        "chain_name": "Sepolia",
        "block_explorer_url": "https://sepolia.etherscan.io",
        "default_rpc_env": "SEPOLIA_RPC_URL",
        "default_rpc_url": None,
        "confirmations": 5,
        "local": False,
    },
    "hardhat": {
        "chain_id": 31337,
        "chain_name": "Hardhat Network",
        "block_explorer_url": None,
        "default_rpc_env": "HARDHAT_RPC_URL",
        "default_rpc_url": "http://127.0.0.1:8545",
        "confirmations": 1,
        "local": True,
    },
    "localhost": {
        "chain_id": 31337,
        "chain_name": "Localhost",
        "block_explorer_url": None,
        "default_rpc_env": "LOCALHOST_RPC_URL",
        "default_rpc_url": "http://127.0.0.1:8545",
        "confirmations": 1,
        "local": True,
    },
}

DEFAULT_NETWORK = "sepolia"
DEFAULT_CONTRACT = "ATXIA"

# Passed as the initial owner, resolved to the signer address at deploy time
DEPLOYER_PLACEHOLDER = "$deployer"
DEFAULT_CONSTRUCTOR_ARGS = [DEPLOYER_PLACEHOLDER]

# Gas
DEFAULT_GAS_MULTIPLIER = Decimal("1.2")

# Confirmation polling (seconds)
DEFAULT_POLL_INTERVAL = 4.0
DEFAULT_CONFIRMATION_TIMEOUT = 600.0
DEFAULT_DROPPED_AFTER = 3

# Funding transfers only need to be mined
FUNDING_CONFIRMATIONS = 1
NATIVE_DECIMALS = 18

# Etherscan-compatible verification endpoint (v2 multichain API)
VERIFICATION_API_URL = "https://api.etherscan.io/v2/api"

# RPC
RPC_TIMEOUT = 30
