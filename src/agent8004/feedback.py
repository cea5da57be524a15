"""
Agent8004 Feedback Aggregator

Reads reputation-feedback events for one agent and decodes them into
Review records, most recent first.

Two event schemas are understood:

    NewFeedback(uint256 indexed agentId, address indexed clientAddress,
                uint8 score, bytes32 indexed tag1, bytes32 tag2,
                string fileuri, bytes32 filehash)
    FeedbackGiven(uint256 indexed agentId, address indexed rater,
                  uint8 score, bytes32 tag1, bytes32 tag2, string fileuri)

The schema of each log is fixed once at decode time (FeedbackEvent); the
argument container may be named or positional.

Example:
    >>> aggregator = FeedbackAggregator(adapter, get_network(11155111))
    >>> reviews = await aggregator.get_reviews(7)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .contract_adapter import ContractAdapter
from .models import Review
from .networks import NetworkConfig
from .utils import ZERO_BYTES32, to_hex

logger = logging.getLogger("agent8004.feedback")


class FeedbackSchema(str, enum.Enum):
    CURRENT = "NewFeedback"
    LEGACY = "FeedbackGiven"


_FIELD_ORDER: Dict[FeedbackSchema, Tuple[str, ...]] = {
    FeedbackSchema.CURRENT: (
        "agentId", "clientAddress", "score", "tag1", "tag2", "fileuri", "filehash",
    ),
    FeedbackSchema.LEGACY: (
        "agentId", "rater", "score", "tag1", "tag2", "fileuri",
    ),
}

_CLIENT_FIELD = {
    FeedbackSchema.CURRENT: "clientAddress",
    FeedbackSchema.LEGACY: "rater",
}


@dataclass(frozen=True)
class FeedbackEvent:
    """A raw feedback log with its schema decided and its arguments named."""

    schema: FeedbackSchema
    fields: Mapping[str, Any]
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None


def _named_fields(schema: FeedbackSchema, args: Any) -> Dict[str, Any]:
    if isinstance(args, Mapping):
        return dict(args)
    if isinstance(args, Sequence) and not isinstance(args, (str, bytes)):
        return dict(zip(_FIELD_ORDER[schema], args))
    raise TypeError(f"Unsupported event argument container: {type(args).__name__}")


def decode_feedback_log(
    log: Mapping[str, Any],
    default_schema: FeedbackSchema = FeedbackSchema.CURRENT,
) -> FeedbackEvent:
    """
    Fix the schema of a log entry and name its arguments.

    The schema comes from the entry's ``event`` name when recognised,
    otherwise ``default_schema`` (the event that was queried).

    Raises:
        ValueError: The entry carries no arguments
        TypeError: The arguments are neither named nor positional
    """
    try:
        schema = FeedbackSchema(log.get("event"))
    except ValueError:
        schema = default_schema

    args = log.get("args")
    if not args:
        raise ValueError("Log entry has no decoded arguments")

    block_number = log.get("blockNumber")
    tx_hash = log.get("transactionHash")
    return FeedbackEvent(
        schema=schema,
        fields=_named_fields(schema, args),
        block_number=int(block_number) if block_number is not None else None,
        transaction_hash=to_hex(tx_hash) if tx_hash is not None else None,
    )


def _as_bytes32(value: Any) -> Optional[bytes]:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value.startswith("0x") and len(value) == 66:
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            return None
    return None


def decode_tag(value: Any) -> str:
    """
    Decode a bytes32 tag to text.

    Zero hashes and None decode to "". Plain strings are returned unchanged.
    Bytes that are not UTF-8 become the first ten characters of their hex
    form followed by "...".

    Example:
        >>> decode_tag(b"quality".ljust(32, b"\\x00"))
        'quality'
        >>> decode_tag(b"\\xff" * 32)
        '0xffffffff...'
    """
    if value is None:
        return ""
    raw = _as_bytes32(value)
    if raw is None:
        return value if isinstance(value, str) else str(value)
    if raw == ZERO_BYTES32 or not raw.strip(b"\x00"):
        return ""
    try:
        return raw.rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError:
        return to_hex(raw)[:10] + "..."


def _raw_tag(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    return str(value)


def to_review(event: FeedbackEvent) -> Review:
    """Map a FeedbackEvent to a Review."""
    fields = event.fields
    client = fields.get(_CLIENT_FIELD[event.schema])
    tag1 = fields.get("tag1")
    tag2 = fields.get("tag2")
    filehash = fields.get("filehash") if event.schema is FeedbackSchema.CURRENT else None
    endpoint = fields.get("endpoint")

    return Review(
        client=str(client) if client is not None else "",
        score=int(fields.get("score") or 0),
        tag=decode_tag(tag1) or decode_tag(tag2),
        tag1=_raw_tag(tag1),
        tag2=_raw_tag(tag2),
        fileuri=str(fields.get("fileuri") or ""),
        filehash=to_hex(filehash) if filehash is not None else None,
        endpoint=str(endpoint) if endpoint is not None else None,
        block_number=event.block_number,
        transaction_hash=event.transaction_hash,
        event=event.schema.value,
    )


class FeedbackAggregator:
    """
    Feedback history reader for one network.

    Args:
        adapter: Chain connection
        network: Network whose deployment block bounds the log query
    """

    def __init__(self, adapter: ContractAdapter, network: NetworkConfig) -> None:
        self.adapter = adapter
        self.network = network

    async def _query(self, schema: FeedbackSchema, agent_id: int) -> List[Mapping[str, Any]]:
        return await self.adapter.get_logs(
            "reputation",
            schema.value,
            argument_filters={"agentId": agent_id},
            from_block=self.network.deployment_block,
            to_block="latest",
        )

    async def fetch_logs(self, agent_id: int) -> Tuple[Optional[FeedbackSchema], List[Mapping[str, Any]]]:
        """
        Query the current event, falling back to the legacy one on error.

        Returns:
            (schema that answered, log entries); (None, []) when both fail
        """
        logger.debug(
            "Querying feedback for agent #%d on chain %d from block %d",
            agent_id,
            self.network.id,
            self.network.deployment_block,
        )
        try:
            logs = await self._query(FeedbackSchema.CURRENT, agent_id)
            logger.debug("Found %d NewFeedback events", len(logs))
            return FeedbackSchema.CURRENT, logs
        except Exception as e:
            logger.warning("NewFeedback query failed, trying FeedbackGiven: %s", e)

        try:
            logs = await self._query(FeedbackSchema.LEGACY, agent_id)
            logger.debug("Found %d FeedbackGiven events", len(logs))
            return FeedbackSchema.LEGACY, logs
        except Exception as e:
            logger.warning("Neither feedback event could be queried: %s", e)
            return None, []

    async def get_reviews(self, agent_id: int) -> List[Review]:
        schema, logs = await self.fetch_logs(agent_id)
        if schema is None:
            return []

        reviews: List[Review] = []
        for log in logs:
            try:
                reviews.append(to_review(decode_feedback_log(log, schema)))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning("Skipping undecodable feedback event: %s", e)

        reviews.sort(key=lambda review: review.sort_key, reverse=True)
        logger.info("Loaded %d reviews for agent #%d", len(reviews), agent_id)
        return reviews
