"""Configuration constants for contract-deployments library."""

# Networks whose chains are throwaway local nodes; never verified on an explorer
DEVELOPMENT_CHAINS = ["hardhat", "localhost"]

# Development chains that start empty on every run; their deployments are not saved
EPHEMERAL_CHAINS = ["hardhat"]

# 50 tokens with 18 decimals
INITIAL_SUPPLY = 50 * 10**18

DEFAULT_CONTRACT = {
    "name": "TokenContract",
    "artifact": "OurToken",
}

DEFAULT_BLOCK_CONFIRMATIONS = 1

# Confirmation wait (seconds)
DEFAULT_CONFIRMATION_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLL_INTERVAL = 15.0

# Explorer verification retries
VERIFY_MAX_ATTEMPTS = 3
VERIFY_INITIAL_DELAY = 5.0
VERIFY_BACKOFF = 2.0

CONFIG_FILENAME = "deploy-config.json"
DEPLOYMENTS_DIRNAME = "deployments"
ARTIFACTS_DIRNAME = "artifacts"

# Network configuration based on ethereum-lists/chains
# rpc_url is filled from $<NETWORK>_RPC_URL for public networks
NETWORK_CONFIG = {
    "hardhat": {
        "chain_id": 31337,
        "rpc_url": "http://127.0.0.1:8545",
        "block_confirmations": 1,
    },
    "localhost": {
        "chain_id": 31337,
        "rpc_url": "http://127.0.0.1:8545",
        "block_confirmations": 1,
    },
    "sepolia": {
        "chain_id": 11155111,
        "block_confirmations": 6,
        "explorer_url": "https://sepolia.etherscan.io",
        "explorer_api_url": "https://api-sepolia.etherscan.io/api",
    },
    "mainnet": {
        "chain_id": 1,
        "block_confirmations": 6,
        "explorer_url": "https://etherscan.io",
        "explorer_api_url": "https://api.etherscan.io/api",
    },
}
