"""
Record types produced by the discovery and feedback pipelines.

All records are plain dataclasses built fresh on every run. ``to_dict()``
renders the camelCase shape consumed by UI layers and the CLI.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class AgentMetadata:
    """
    Off-chain descriptive document of an agent.

    Attributes:
        name: Display name (placeholder text when metadata_failed)
        description: Free-text description
        image: Image URL, already rewritten to a gateway URL
        image_url: Alias of image
        endpoints: Service locations
        capabilities: Free-text labels (taken from "capabilities", else "tags")
        metadata_failed: True iff the document could not be fetched or parsed
        metadata_error: Diagnostic for the failure
        extra: Unrecognised document fields, preserved verbatim
    """

    name: str = "Unknown"
    description: str = ""
    image: Optional[str] = None
    image_url: Optional[str] = None
    endpoints: List[str] = field(default_factory=list)
    capabilities: Optional[List[str]] = None
    metadata_failed: bool = False
    metadata_error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def tags(self) -> Optional[List[str]]:
        return self.capabilities

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data["name"] = self.name
        data["description"] = self.description
        data["endpoints"] = list(self.endpoints)
        if self.image is not None:
            data["image"] = self.image
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        if self.capabilities is not None:
            data["capabilities"] = list(self.capabilities)
        if self.metadata_failed:
            data["metadataFailed"] = True
        if self.metadata_error is not None:
            data["metadataError"] = self.metadata_error
        return data


@dataclass
class Agent:
    """
    Unified record for an agent whose token exists on-chain.

    Top-level name/description/image_url/endpoints mirror the metadata
    document; the full document stays available under ``metadata``.
    """

    id: int
    owner: str
    metadata: AgentMetadata
    metadata_uri: str = ""
    reputation: int = 0
    reputation_count: int = 0

    @property
    def token_id(self) -> str:
        return str(self.id)

    @property
    def reputation_score(self) -> int:
        return self.reputation

    @property
    def name(self) -> str:
        return self.metadata.name or f"Agent #{self.id}"

    @property
    def description(self) -> str:
        return self.metadata.description or ""

    @property
    def image_url(self) -> Optional[str]:
        return self.metadata.image or self.metadata.image_url

    @property
    def endpoints(self) -> List[str]:
        return list(self.metadata.endpoints)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tokenId": self.token_id,
            "owner": self.owner,
            "reputation": self.reputation,
            "reputationScore": self.reputation_score,
            "reputationCount": self.reputation_count,
            "name": self.name,
            "description": self.description,
            "imageUrl": self.image_url,
            "endpoints": self.endpoints,
            "metadataURI": self.metadata_uri,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class Review:
    """One decoded feedback event."""

    client: str
    score: int
    tag: str = ""
    tag1: Optional[str] = None
    tag2: Optional[str] = None
    fileuri: str = ""
    filehash: Optional[str] = None
    endpoint: Optional[str] = None
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    event: Optional[str] = None

    @property
    def sort_key(self) -> int:
        return self.block_number or 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "client": self.client,
            "score": self.score,
            "tag": self.tag,
            "tag1": self.tag1,
            "tag2": self.tag2,
            "fileuri": self.fileuri,
            "blockNumber": self.block_number,
            "transactionHash": self.transaction_hash,
        }
        if self.filehash is not None:
            data["filehash"] = self.filehash
        if self.endpoint is not None:
            data["endpoint"] = self.endpoint
        return data


class HydrationStatus(str, enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass
class HydrationResult:
    """
    Per-ID outcome of a hydration attempt.

    FOUND carries the agent; NOT_FOUND means the registry proved the token
    does not exist; UNAVAILABLE means existence could not be established.
    """

    agent_id: int
    status: HydrationStatus
    agent: Optional[Agent] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, agent: Agent) -> "HydrationResult":
        return cls(agent_id=agent.id, status=HydrationStatus.FOUND, agent=agent)

    @classmethod
    def not_found(cls, agent_id: int, error: Optional[str] = None) -> "HydrationResult":
        return cls(agent_id=agent_id, status=HydrationStatus.NOT_FOUND, error=error)

    @classmethod
    def unavailable(cls, agent_id: int, error: Optional[str] = None) -> "HydrationResult":
        return cls(agent_id=agent_id, status=HydrationStatus.UNAVAILABLE, error=error)


@dataclass
class DiscoveryResult:
    agents: List[Agent] = field(default_factory=list)
    error: Optional[str] = None
    chain_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "agents": [agent.to_dict() for agent in self.agents],
            "error": self.error,
        }


@dataclass
class FeedbackResult:
    reviews: List[Review] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reviews": [review.to_dict() for review in self.reviews],
            "error": self.error,
        }


@dataclass
class SubmitResult:
    transaction_hash: str = ""
    success: bool = False
    error: Optional[str] = None
    explorer_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "transactionHash": self.transaction_hash,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.explorer_url is not None:
            data["explorerUrl"] = self.explorer_url
        return data
