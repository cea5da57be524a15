"""
Agent8004 Explorer

Discovery and reputation client for ERC-8004 agent registries:
- Agent enumeration and hydration (IdentityRegistry + off-chain metadata)
- Feedback history (ReputationRegistry events)
- Feedback submission (ReputationRegistry.giveFeedback)

Quick Start:
    >>> import asyncio
    >>> from agent8004 import AgentRegistryClient
    >>> async def main():
    ...     async with AgentRegistryClient() as client:
    ...         result = await client.discover_agents(11155111)
    ...         print([agent.name for agent in result.agents])
    >>> asyncio.run(main())
"""

from .client import AgentRegistryClient, ClientConfig, validate_feedback
from .contract_adapter import (
    IDENTITY_REGISTRY_ABI,
    REPUTATION_REGISTRY_ABI,
    ContractAdapter,
    Web3ContractAdapter,
)
from .discovery import MAX_SEQUENTIAL_PROBES, AgentDiscoverer
from .exceptions import (
    SDKError,
    ConfigurationError,
    UnsupportedNetworkError,
    MissingContractAddressError,
    NetworkError,
    RPCError,
    TimeoutError,
    RetryExhaustedError,
    ContractError,
    ContractCallError,
    ContractFunctionNotFoundError,
    EntityNotFoundError,
    TransactionFailedError,
    SignatureError,
    SignerNotAvailableError,
    UserRejectedError,
    DataError,
    InvalidHashError,
    MetadataLoadError,
    InvalidFeedbackError,
)
from .feedback import (
    FeedbackAggregator,
    FeedbackEvent,
    FeedbackSchema,
    decode_feedback_log,
    decode_tag,
)
from .hydrator import MetadataHydrator, failed_metadata, parse_metadata
from .models import (
    Agent,
    AgentMetadata,
    DiscoveryResult,
    FeedbackResult,
    HydrationResult,
    HydrationStatus,
    Review,
    SubmitResult,
)
from .networks import (
    DEFAULT_NETWORK_ID,
    NETWORKS,
    NetworkConfig,
    explorer_token_url,
    explorer_tx_url,
    get_network,
    get_network_name,
    list_networks,
)
from .resolver import (
    DEFAULT_IPFS_GATEWAYS,
    ContentResolver,
    ResolveResult,
    UriKind,
    classify_uri,
    gateway_url,
)
from .retry import (
    CHAIN_READ_RETRY_CONFIG,
    NO_RETRY_CONFIG,
    RetryConfig,
    calculate_delay,
    is_nonexistent_token_error,
    retry_async,
    with_retry,
)
from .session import STORAGE_KEY, JsonFileStore, KeyValueStore, MemoryStore, NetworkSession
from .signer import LocalAccountSigner, Signer, is_user_rejection
from .utils import canonical_json, compute_feedback_hash, keccak256_hex, normalize_bytes32

__version__ = "0.1.0"

__all__ = [
    # Client
    "AgentRegistryClient",
    "ClientConfig",
    "validate_feedback",
    # Pipeline
    "AgentDiscoverer",
    "MAX_SEQUENTIAL_PROBES",
    "MetadataHydrator",
    "parse_metadata",
    "failed_metadata",
    "FeedbackAggregator",
    "FeedbackEvent",
    "FeedbackSchema",
    "decode_feedback_log",
    "decode_tag",
    # Chain
    "ContractAdapter",
    "Web3ContractAdapter",
    "IDENTITY_REGISTRY_ABI",
    "REPUTATION_REGISTRY_ABI",
    "Signer",
    "LocalAccountSigner",
    "is_user_rejection",
    # Models
    "Agent",
    "AgentMetadata",
    "Review",
    "HydrationStatus",
    "HydrationResult",
    "DiscoveryResult",
    "FeedbackResult",
    "SubmitResult",
    # Networks
    "NetworkConfig",
    "NETWORKS",
    "DEFAULT_NETWORK_ID",
    "get_network",
    "get_network_name",
    "list_networks",
    "explorer_tx_url",
    "explorer_token_url",
    # Resolver
    "UriKind",
    "classify_uri",
    "gateway_url",
    "ResolveResult",
    "ContentResolver",
    "DEFAULT_IPFS_GATEWAYS",
    # Session
    "STORAGE_KEY",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "NetworkSession",
    # Retry
    "RetryConfig",
    "CHAIN_READ_RETRY_CONFIG",
    "NO_RETRY_CONFIG",
    "calculate_delay",
    "is_nonexistent_token_error",
    "with_retry",
    "retry_async",
    # Utils
    "canonical_json",
    "keccak256_hex",
    "normalize_bytes32",
    "compute_feedback_hash",
    # Exceptions
    "SDKError",
    "ConfigurationError",
    "UnsupportedNetworkError",
    "MissingContractAddressError",
    "NetworkError",
    "RPCError",
    "TimeoutError",
    "RetryExhaustedError",
    "ContractError",
    "ContractCallError",
    "ContractFunctionNotFoundError",
    "EntityNotFoundError",
    "TransactionFailedError",
    "SignatureError",
    "SignerNotAvailableError",
    "UserRejectedError",
    "DataError",
    "InvalidHashError",
    "MetadataLoadError",
    "InvalidFeedbackError",
]
