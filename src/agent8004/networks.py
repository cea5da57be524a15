"""
Supported networks and their registry deployments.

Every network shares the same identity/reputation registry addresses; what
differs is the RPC endpoint, the explorer and the block the registries were
deployed at (the lower bound for event-log queries).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .exceptions import UnsupportedNetworkError

IDENTITY_REGISTRY_ADDRESS = "0x7177a6867296406881E20d6647232314736Dd09A"
REPUTATION_REGISTRY_ADDRESS = "0xB5048e3ef1DA4E04deB6f7d0423D06F63869e322"


@dataclass(frozen=True)
class NetworkConfig:
    """Immutable per-chain configuration."""

    id: int
    name: str
    rpc_url: str
    identity_registry: str
    reputation_registry: str
    block_explorer: Optional[str] = None
    deployment_block: int = 0


NETWORKS: Dict[int, NetworkConfig] = {
    11155111: NetworkConfig(
        id=11155111,
        name="Ethereum Sepolia",
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        block_explorer="https://sepolia.etherscan.io",
        identity_registry=IDENTITY_REGISTRY_ADDRESS,
        reputation_registry=REPUTATION_REGISTRY_ADDRESS,
        deployment_block=6_500_000,
    ),
    84532: NetworkConfig(
        id=84532,
        name="Base Sepolia",
        rpc_url="https://base-sepolia-rpc.publicnode.com",
        block_explorer="https://sepolia.basescan.org",
        identity_registry=IDENTITY_REGISTRY_ADDRESS,
        reputation_registry=REPUTATION_REGISTRY_ADDRESS,
        deployment_block=16_000_000,
    ),
    11155420: NetworkConfig(
        id=11155420,
        name="OP Sepolia",
        rpc_url="https://optimism-sepolia-rpc.publicnode.com",
        block_explorer="https://sepolia-optimism.etherscan.io",
        identity_registry=IDENTITY_REGISTRY_ADDRESS,
        reputation_registry=REPUTATION_REGISTRY_ADDRESS,
        deployment_block=17_000_000,
    ),
    919: NetworkConfig(
        id=919,
        name="Mode Testnet",
        rpc_url="https://sepolia.mode.network",
        block_explorer="https://sepolia.explorer.mode.network",
        identity_registry=IDENTITY_REGISTRY_ADDRESS,
        reputation_registry=REPUTATION_REGISTRY_ADDRESS,
        deployment_block=15_000_000,
    ),
    16602: NetworkConfig(
        id=16602,
        name="0G Testnet",
        rpc_url="https://evmrpc-testnet.0g.ai",
        block_explorer="https://testnet.0g.ai",
        identity_registry=IDENTITY_REGISTRY_ADDRESS,
        reputation_registry=REPUTATION_REGISTRY_ADDRESS,
        deployment_block=1,
    ),
}

DEFAULT_NETWORK_ID = 11155111


def get_network(chain_id: int) -> NetworkConfig:
    """
    Look up a network by chain ID.

    Raises:
        UnsupportedNetworkError: chain_id is not in NETWORKS
    """
    try:
        return NETWORKS[int(chain_id)]
    except (KeyError, TypeError, ValueError):
        raise UnsupportedNetworkError(chain_id) from None


def is_supported(chain_id: int) -> bool:
    try:
        return int(chain_id) in NETWORKS
    except (TypeError, ValueError):
        return False


def get_network_name(chain_id: int) -> str:
    """Display name, falling back to "Chain <id>" for unknown ids."""
    network = NETWORKS.get(chain_id)
    return network.name if network else f"Chain {chain_id}"


def list_networks() -> List[NetworkConfig]:
    return list(NETWORKS.values())


def explorer_tx_url(chain_id: int, tx_hash: str) -> Optional[str]:
    network = NETWORKS.get(chain_id)
    if network is None or not network.block_explorer or not tx_hash:
        return None
    return f"{network.block_explorer}/tx/{tx_hash}"


def explorer_token_url(chain_id: int, agent_id: int) -> Optional[str]:
    network = NETWORKS.get(chain_id)
    if network is None or not network.block_explorer:
        return None
    return f"{network.block_explorer}/token/{network.identity_registry}?a={agent_id}"
