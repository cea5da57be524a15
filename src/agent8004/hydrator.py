"""
Per-agent hydration: on-chain reads plus the off-chain metadata document.

Only the owner read decides whether an agent exists. The token URI, the
reputation summary and the metadata document each degrade to a default
when they fail, so a proven agent is always returned.
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

from .contract_adapter import ContractAdapter
from .exceptions import EntityNotFoundError, MetadataLoadError, RetryExhaustedError
from .models import Agent, AgentMetadata, HydrationResult
from .resolver import DEFAULT_IPFS_GATEWAYS, ContentResolver, UriKind, classify_uri, gateway_url
from .retry import RetryConfig, with_retry

logger = logging.getLogger("agent8004.hydrator")

METADATA_ERROR_DESCRIPTION = "Could not load metadata from IPFS."

_ENDPOINT_FIELDS = ("endpoint", "api_url", "url")
_KNOWN_FIELDS = frozenset(
    ("name", "description", "image", "capabilities", "tags", "endpoints") + _ENDPOINT_FIELDS
)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def parse_metadata(
    data: Mapping[str, Any],
    gateways: Sequence[str] = DEFAULT_IPFS_GATEWAYS,
) -> AgentMetadata:
    """
    Build AgentMetadata from a fetched JSON object.

    - name defaults to "Unknown", description to ""
    - image is rewritten to a gateway URL and mirrored as image_url
    - endpoints come from "endpoints" (list), else the first of
      "endpoint", "api_url", "url"
    - capabilities come from "capabilities", else "tags"
    - all other fields are kept in ``extra``
    """
    metadata = AgentMetadata()

    if _present(data.get("name")):
        metadata.name = str(data["name"])
    if _present(data.get("description")):
        metadata.description = str(data["description"])
    if _present(data.get("image")):
        metadata.image = gateway_url(str(data["image"]), gateways)
        metadata.image_url = metadata.image

    endpoints = data.get("endpoints")
    if isinstance(endpoints, list):
        metadata.endpoints = [str(item) for item in endpoints]
    else:
        for key in _ENDPOINT_FIELDS:
            if data.get(key) is not None:
                metadata.endpoints = [str(data[key])]
                break

    capabilities = data.get("capabilities")
    tags = data.get("tags")
    if isinstance(capabilities, list):
        metadata.capabilities = [str(item) for item in capabilities]
    elif isinstance(tags, list):
        metadata.capabilities = [str(item) for item in tags]

    metadata.extra = {key: value for key, value in data.items() if key not in _KNOWN_FIELDS}
    return metadata


def failed_metadata(agent_id: int, reason: str) -> AgentMetadata:
    """Placeholder metadata for an agent whose document could not be loaded."""
    return AgentMetadata(
        name=f"Agent #{agent_id} (Metadata Error)",
        description=METADATA_ERROR_DESCRIPTION,
        metadata_failed=True,
        metadata_error=reason,
    )


def empty_uri_metadata() -> AgentMetadata:
    return AgentMetadata(
        name="Unknown",
        description="",
        metadata_failed=True,
        metadata_error="Empty URI",
    )


class MetadataHydrator:
    """
    Turns a candidate agent ID into an Agent record.

    Args:
        adapter: Chain connection
        resolver: Content resolver for metadata URIs
        retry_config: Policy applied to each chain read
        gateways: Gateway list used to rewrite image URIs
    """

    def __init__(
        self,
        adapter: ContractAdapter,
        resolver: ContentResolver,
        retry_config: Optional[RetryConfig] = None,
        gateways: Optional[Sequence[str]] = None,
    ) -> None:
        self.adapter = adapter
        self.resolver = resolver
        self.retry_config = retry_config
        self.gateways = tuple(gateways) if gateways is not None else resolver.gateways

    async def _read(self, contract: str, method: str, params: list, label: str) -> Any:
        return await with_retry(
            lambda: self.adapter.call(contract, method, params),
            self.retry_config,
            label,
        )

    async def hydrate(self, agent_id: int) -> Optional[Agent]:
        """Return the Agent, or None when its existence is not proven."""
        outcome = await self.hydrate_outcome(agent_id)
        return outcome.agent

    async def hydrate_outcome(self, agent_id: int) -> HydrationResult:
        try:
            owner = await self._read("identity", "ownerOf", [agent_id], f"ownerOf({agent_id})")
        except EntityNotFoundError as e:
            logger.debug("Agent #%d does not exist: %s", agent_id, e.last_error)
            return HydrationResult.not_found(agent_id, str(e.last_error))
        except RetryExhaustedError as e:
            logger.error("Agent #%d owner read failed after retries: %s", agent_id, e.last_error)
            return HydrationResult.unavailable(agent_id, str(e.last_error))
        except Exception as e:
            logger.error("Agent #%d owner read failed: %s", agent_id, e)
            return HydrationResult.unavailable(agent_id, str(e))

        try:
            uri = await self._read("identity", "tokenURI", [agent_id], f"tokenURI({agent_id})")
        except Exception as e:
            logger.warning("Agent #%d tokenURI unavailable, using empty URI: %s", agent_id, e)
            uri = ""
        uri = "" if uri is None else str(uri)

        reputation, reputation_count = await self._read_reputation(agent_id)
        metadata = await self.load_metadata(agent_id, uri)

        agent = Agent(
            id=agent_id,
            owner=str(owner),
            metadata=metadata,
            metadata_uri=uri,
            reputation=reputation,
            reputation_count=reputation_count,
        )
        return HydrationResult.found(agent)

    async def _read_reputation(self, agent_id: int) -> Tuple[int, int]:
        """Returns (average score, count); (0, 0) on any failure."""
        try:
            summary = await self._read(
                "reputation",
                "getSummary",
                [agent_id, [], "", ""],
                f"getSummary({agent_id})",
            )
            count, average = summary[0], summary[1]
            return int(average), int(count)
        except Exception as e:
            logger.warning("Agent #%d reputation unavailable, defaulting to 0: %s", agent_id, e)
            return 0, 0

    async def load_metadata(self, agent_id: int, uri: str) -> AgentMetadata:
        """Resolve and parse the metadata document; never raises."""
        if classify_uri(uri) is UriKind.EMPTY:
            logger.warning("Agent #%d has an empty URI, using default metadata", agent_id)
            return empty_uri_metadata()

        try:
            data = await self.resolver.fetch(uri)
            if not isinstance(data, Mapping):
                logger.warning("Agent #%d metadata is not a JSON object", agent_id)
                return failed_metadata(agent_id, "Metadata is not a JSON object")
            return parse_metadata(data, self.gateways)
        except MetadataLoadError as e:
            logger.warning("Agent #%d metadata unavailable: %s", agent_id, e.reason)
            return failed_metadata(agent_id, e.reason or "Metadata fetch failed")
        except Exception as e:
            logger.error("Agent #%d metadata processing failed: %s", agent_id, e)
            return failed_metadata(agent_id, str(e))
