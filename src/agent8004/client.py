"""
Agent8004 Registry Client

Produced interface of the package: agent discovery, feedback history and
feedback submission for the currently selected network.

None of the three operations raises for chain or gateway failures; each
returns a result object whose ``error`` field carries a user-facing message.

Example:
    >>> from agent8004 import AgentRegistryClient
    >>> async with AgentRegistryClient() as client:
    ...     result = await client.discover_agents()
    ...     for agent in result.agents:
    ...         print(agent.id, agent.name, agent.reputation)
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import httpx

from .contract_adapter import ContractAdapter, Web3ContractAdapter
from .discovery import MAX_SEQUENTIAL_PROBES, AgentDiscoverer
from .exceptions import (
    InvalidFeedbackError,
    RPCError,
    SDKError,
    UnsupportedNetworkError,
    UserRejectedError,
)
from .feedback import FeedbackAggregator
from .hydrator import MetadataHydrator
from .models import DiscoveryResult, FeedbackResult, SubmitResult
from .networks import NetworkConfig, explorer_tx_url, get_network
from .resolver import DEFAULT_GATEWAY_TIMEOUT, DEFAULT_IPFS_GATEWAYS, ContentResolver
from .retry import CHAIN_READ_RETRY_CONFIG, RetryConfig, with_retry
from .session import JsonFileStore, MemoryStore, NetworkSession
from .signer import Signer, is_user_rejection
from .utils import normalize_bytes32

logger = logging.getLogger("agent8004.client")

RPC_URL_ENV_PREFIX = "AGENT8004_RPC_URL_"

AdapterFactory = Callable[[NetworkConfig, str], ContractAdapter]


@dataclass
class ClientConfig:
    """
    Client configuration.

    Attributes:
        ipfs_gateways: Ordered IPFS gateway prefixes
        gateway_timeout: Per-gateway timeout (seconds)
        retry_config: Policy for every chain read
        max_sequential_probes: Ceiling of the sequential discovery path
        receipt_timeout: Wait for a transaction receipt (seconds)
        rpc_overrides: Chain ID -> RPC URL replacing the built-in endpoint
        state_path: JSON file persisting the selected network (in-memory when None)
    """

    ipfs_gateways: Tuple[str, ...] = DEFAULT_IPFS_GATEWAYS
    gateway_timeout: float = DEFAULT_GATEWAY_TIMEOUT
    retry_config: RetryConfig = field(default_factory=lambda: CHAIN_READ_RETRY_CONFIG)
    max_sequential_probes: int = MAX_SEQUENTIAL_PROBES
    receipt_timeout: float = 120.0
    rpc_overrides: Dict[int, str] = field(default_factory=dict)
    state_path: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Build a config from environment variables.

        Variables:
            AGENT8004_IPFS_GATEWAYS: comma-separated gateway prefixes
            AGENT8004_GATEWAY_TIMEOUT: per-gateway timeout in seconds
            AGENT8004_STATE_FILE: selected-network state file
            AGENT8004_RPC_URL_<chainId>: RPC endpoint override
        """
        env = os.environ if environ is None else environ
        config = cls()

        gateways = env.get("AGENT8004_IPFS_GATEWAYS")
        if gateways:
            parsed = tuple(item.strip() for item in gateways.split(",") if item.strip())
            if parsed:
                config.ipfs_gateways = tuple(g if g.endswith("/") else g + "/" for g in parsed)

        timeout = env.get("AGENT8004_GATEWAY_TIMEOUT")
        if timeout:
            try:
                config.gateway_timeout = float(timeout)
            except ValueError:
                logger.warning("Ignoring invalid AGENT8004_GATEWAY_TIMEOUT=%r", timeout)

        state_path = env.get("AGENT8004_STATE_FILE")
        if state_path:
            config.state_path = state_path

        for key, value in env.items():
            if not key.startswith(RPC_URL_ENV_PREFIX) or not value:
                continue
            suffix = key[len(RPC_URL_ENV_PREFIX):]
            try:
                config.rpc_overrides[int(suffix)] = value
            except ValueError:
                logger.warning("Ignoring %s: %r is not a chain id", key, suffix)

        return config

    def rpc_url_for(self, network: NetworkConfig) -> str:
        return self.rpc_overrides.get(network.id, network.rpc_url)


def _error_message(error: BaseException) -> str:
    if isinstance(error, SDKError):
        return error.message
    return str(error) or type(error).__name__


def _receipt_status(receipt: Mapping[str, Any]) -> int:
    status = receipt.get("status")
    if status is None:
        return 1
    if isinstance(status, (bytes, bytearray)):
        return int.from_bytes(status, "big")
    if isinstance(status, str):
        return int(status, 16) if status.startswith("0x") else int(status)
    return int(status)


def validate_feedback(agent_id: Union[int, str], score: float) -> Tuple[int, int]:
    """
    Validate submission inputs.

    Returns:
        (agent_id, score rounded half-up to an integer)

    Raises:
        InvalidFeedbackError: score outside 0..100 or invalid agent id
    """
    try:
        score_value = float(score)
    except (TypeError, ValueError):
        raise InvalidFeedbackError("Score must be a number") from None
    if math.isnan(score_value) or score_value < 0 or score_value > 100:
        raise InvalidFeedbackError("Score must be between 0 and 100")

    try:
        agent_id_value = int(agent_id)
    except (TypeError, ValueError):
        raise InvalidFeedbackError("Invalid agent ID") from None
    if agent_id_value < 0:
        raise InvalidFeedbackError("Invalid agent ID")

    return agent_id_value, int(math.floor(score_value + 0.5))


class AgentRegistryClient:
    """
    Entry point for discovery, feedback history and feedback submission.

    Args:
        config: Client configuration, defaults to ClientConfig()
        session: Selected-network state; built from config.state_path when omitted
        signer: Signer for submit_feedback
        http: Shared httpx.AsyncClient for gateway fetches
        adapter_factory: Builds a ContractAdapter for (network, rpc_url)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[NetworkSession] = None,
        signer: Optional[Signer] = None,
        http: Optional[httpx.AsyncClient] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> None:
        self.config = config or ClientConfig()
        if session is None:
            store = JsonFileStore(self.config.state_path) if self.config.state_path else MemoryStore()
            session = NetworkSession(store)
        self.session = session
        self.signer = signer
        self._http = http
        self._owns_http = http is None
        self._adapter_factory = adapter_factory or self._create_contract_adapter
        self._adapters: Dict[Tuple[int, str], ContractAdapter] = {}

        logger.debug(
            "Client initialized: chain=%d, gateways=%d, signer=%s",
            self.session.chain_id,
            len(self.config.ipfs_gateways),
            type(self.signer).__name__ if self.signer else None,
        )

    async def __aenter__(self) -> "AgentRegistryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()
        self._adapters.clear()
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    @property
    def chain_id(self) -> int:
        return self.session.chain_id

    def switch_network(self, chain_id: int) -> NetworkConfig:
        return self.session.switch_network(chain_id)

    @staticmethod
    def _create_contract_adapter(network: NetworkConfig, rpc_url: str) -> ContractAdapter:
        return Web3ContractAdapter(
            rpc_url=rpc_url,
            identity_registry=network.identity_registry,
            reputation_registry=network.reputation_registry,
        )

    def get_adapter(self, network: NetworkConfig) -> ContractAdapter:
        rpc_url = self.config.rpc_url_for(network)
        key = (network.id, rpc_url)
        if key not in self._adapters:
            self._adapters[key] = self._adapter_factory(network, rpc_url)
        return self._adapters[key]

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.gateway_timeout)
            self._owns_http = True
        return self._http

    def _resolve_network(self, chain_id: Optional[int]) -> NetworkConfig:
        return get_network(self.chain_id if chain_id is None else chain_id)

    async def verify_provider(self, adapter: ContractAdapter, network: NetworkConfig) -> int:
        """
        Confirm the RPC endpoint answers before discovery.

        Returns:
            Chain ID reported by the node

        Raises:
            RPCError: The endpoint could not be reached after retries
        """
        rpc_url = self.config.rpc_url_for(network)
        try:
            reported = await with_retry(
                adapter.get_chain_id, self.config.retry_config, "eth_chainId"
            )
        except SDKError as e:
            raise RPCError(
                f"Could not connect to {network.name} RPC at {rpc_url}",
                rpc_url=rpc_url,
                method="eth_chainId",
            ) from e

        if int(reported) != network.id:
            logger.warning(
                "Provider chain id %s does not match selected network %d",
                reported,
                network.id,
            )
        return int(reported)

    async def discover_agents(self, chain_id: Optional[int] = None) -> DiscoveryResult:
        """
        Discover and hydrate every agent of a network.

        Args:
            chain_id: Network to scan, defaults to the selected one
        """
        try:
            network = self._resolve_network(chain_id)
        except UnsupportedNetworkError as e:
            logger.error("%s", e.message)
            return DiscoveryResult(error=e.message, chain_id=chain_id)

        logger.info("Starting agent discovery on %s (chain %d)", network.name, network.id)
        adapter = self.get_adapter(network)

        try:
            await self.verify_provider(adapter, network)
        except RPCError as e:
            logger.error("%s: %s", e.message, e.__cause__)
            return DiscoveryResult(error=e.message, chain_id=network.id)

        resolver = ContentResolver(
            self._get_http(),
            gateways=self.config.ipfs_gateways,
            timeout=self.config.gateway_timeout,
        )
        hydrator = MetadataHydrator(adapter, resolver, self.config.retry_config)
        discoverer = AgentDiscoverer(
            adapter,
            hydrator,
            self.config.retry_config,
            self.config.max_sequential_probes,
        )

        try:
            agents = await discoverer.discover()
        except Exception as e:
            logger.error("Agent discovery failed on %s: %s", network.name, e)
            return DiscoveryResult(error=_error_message(e), chain_id=network.id)

        logger.info("Discovered %d agents on %s", len(agents), network.name)
        return DiscoveryResult(agents=agents, chain_id=network.id)

    async def get_feedback(
        self, agent_id: Union[int, str], chain_id: Optional[int] = None
    ) -> FeedbackResult:
        """Feedback history of one agent, most recent first."""
        try:
            network = self._resolve_network(chain_id)
        except UnsupportedNetworkError as e:
            return FeedbackResult(error=e.message)

        try:
            agent_id_value = int(agent_id)
        except (TypeError, ValueError):
            return FeedbackResult(error="Invalid agent ID")
        if agent_id_value < 0:
            return FeedbackResult(error="Invalid agent ID")

        aggregator = FeedbackAggregator(self.get_adapter(network), network)
        try:
            reviews = await aggregator.get_reviews(agent_id_value)
        except Exception as e:
            logger.error("Fetching feedback for agent #%d failed: %s", agent_id_value, e)
            return FeedbackResult(error=_error_message(e))
        return FeedbackResult(reviews=reviews)

    async def submit_feedback(
        self,
        agent_id: Union[int, str],
        score: float,
        tag1: Optional[str] = None,
        tag2: Optional[str] = None,
        endpoint: Optional[str] = None,
        feedback_uri: Optional[str] = None,
        feedback_hash: Optional[Union[str, bytes]] = None,
        chain_id: Optional[int] = None,
    ) -> SubmitResult:
        """
        Submit one feedback transaction to the reputation registry.

        Inputs are validated before anything is sent. The transaction is
        sent once (never retried) and its receipt awaited.

        Args:
            agent_id: Agent token ID
            score: Score 0..100, rounded to an integer
            tag1: First tag
            tag2: Second tag
            endpoint: Endpoint the feedback refers to
            feedback_uri: URI of an off-chain feedback document
            feedback_hash: 32-byte hash of that document (zero hash when omitted)
            chain_id: Network, defaults to the selected one

        Example:
            >>> result = await client.submit_feedback(7, 90, tag1="fast")
            >>> result.success, result.transaction_hash
            (True, '0x...')
        """
        try:
            network = self._resolve_network(chain_id)
            agent_id_value, score_value = validate_feedback(agent_id, score)
            hash_bytes = normalize_bytes32(feedback_hash)
        except SDKError as e:
            logger.warning("Feedback rejected: %s", e.message)
            return SubmitResult(error=e.message)

        if self.signer is None:
            return SubmitResult(error="Signer not configured")

        params = [
            agent_id_value,
            score_value,
            tag1 or "",
            tag2 or "",
            endpoint or "",
            feedback_uri or "",
            hash_bytes,
        ]
        logger.info(
            "Submitting rating for agent #%d: score=%d, tag1=%r, tag2=%r, endpoint=%r",
            agent_id_value,
            score_value,
            params[2],
            params[3],
            params[4],
        )

        adapter = self.get_adapter(network)
        try:
            tx_hash = await adapter.send("reputation", "giveFeedback", params, self.signer)
        except Exception as e:
            if is_user_rejection(e):
                reason = e.reason if isinstance(e, UserRejectedError) else str(e)
                logger.warning("User rejected feedback transaction: %s", reason)
                return SubmitResult(error=f"User rejected: {reason}")
            logger.error("Feedback transaction failed: %s", e)
            return SubmitResult(error=_error_message(e))

        explorer_url = explorer_tx_url(network.id, tx_hash)
        try:
            receipt = await adapter.wait_for_receipt(tx_hash, self.config.receipt_timeout)
        except Exception as e:
            logger.error("Waiting for receipt of %s failed: %s", tx_hash, e)
            return SubmitResult(
                transaction_hash=tx_hash,
                error=_error_message(e),
                explorer_url=explorer_url,
            )

        if _receipt_status(receipt) == 0:
            return SubmitResult(
                transaction_hash=tx_hash,
                error="Transaction failed or receipt status is 0",
                explorer_url=explorer_url,
            )

        logger.info("Feedback confirmed: %s", tx_hash)
        return SubmitResult(transaction_hash=tx_hash, success=True, explorer_url=explorer_url)

