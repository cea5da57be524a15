"""Tests for feedback event decoding and aggregation"""

import pytest

from agent8004.feedback import (
    FeedbackAggregator,
    FeedbackSchema,
    decode_feedback_log,
    decode_tag,
    to_review,
)
from agent8004.networks import get_network

from fakes import FakeAdapter

SEPOLIA = get_network(11155111)
CLIENT = "0x" + "cc" * 20


def bytes32(text: str) -> bytes:
    return text.encode("utf-8").ljust(32, b"\x00")


def new_feedback_log(block, score=90, tag1="fast", tag2="", filehash=b"\x01" * 32):
    return {
        "event": "NewFeedback",
        "args": {
            "agentId": 7,
            "clientAddress": CLIENT,
            "score": score,
            "tag1": bytes32(tag1),
            "tag2": bytes32(tag2),
            "fileuri": "ipfs://QmFeedback",
            "filehash": filehash,
        },
        "blockNumber": block,
        "transactionHash": bytes([block % 256]) * 32 if block is not None else None,
    }


def legacy_log(block, score=75, tag1="", tag2="slow"):
    return {
        "event": "FeedbackGiven",
        "args": {
            "agentId": 7,
            "rater": CLIENT,
            "score": score,
            "tag1": bytes32(tag1),
            "tag2": bytes32(tag2),
            "fileuri": "",
        },
        "blockNumber": block,
        "transactionHash": "0x" + "ab" * 32,
    }


class TestDecodeTag:
    """decode_tag"""

    def test_utf8_bytes(self):
        assert decode_tag(bytes32("quality")) == "quality"

    def test_zero_hash(self):
        assert decode_tag(b"\x00" * 32) == ""
        assert decode_tag("0x" + "00" * 32) == ""

    def test_hex_string(self):
        assert decode_tag("0x" + bytes32("fast").hex()) == "fast"

    def test_non_utf8_bytes_are_abbreviated(self):
        assert decode_tag(b"\xff" * 32) == "0xffffffff..."

    def test_plain_string_passthrough(self):
        assert decode_tag("reliable") == "reliable"

    def test_none(self):
        assert decode_tag(None) == ""


class TestDecodeFeedbackLog:
    """Schema selection and argument naming"""

    def test_named_current_schema(self):
        event = decode_feedback_log(new_feedback_log(120))
        assert event.schema is FeedbackSchema.CURRENT
        assert event.fields["clientAddress"] == CLIENT
        assert event.block_number == 120
        assert event.transaction_hash == "0x" + "78" * 32

    def test_positional_current_schema(self):
        args = [7, CLIENT, 88, bytes32("fast"), bytes32(""), "ipfs://Qm", b"\x02" * 32]
        event = decode_feedback_log({"args": args, "blockNumber": 9}, FeedbackSchema.CURRENT)
        assert event.fields["score"] == 88
        assert event.fields["filehash"] == b"\x02" * 32

    def test_positional_legacy_schema(self):
        args = (7, CLIENT, 60, bytes32(""), bytes32("slow"), "")
        event = decode_feedback_log({"args": args}, FeedbackSchema.LEGACY)
        assert event.schema is FeedbackSchema.LEGACY
        assert event.fields["rater"] == CLIENT
        assert event.block_number is None

    def test_event_name_overrides_default(self):
        event = decode_feedback_log(legacy_log(3), FeedbackSchema.CURRENT)
        assert event.schema is FeedbackSchema.LEGACY

    def test_missing_args(self):
        with pytest.raises(ValueError):
            decode_feedback_log({"event": "NewFeedback", "blockNumber": 1})

    def test_unsupported_container(self):
        with pytest.raises(TypeError):
            decode_feedback_log({"event": "NewFeedback", "args": 42})


class TestToReview:
    """FeedbackEvent -> Review"""

    def test_current_event(self):
        review = to_review(decode_feedback_log(new_feedback_log(10, score=95, tag1="fast")))
        assert review.client == CLIENT
        assert review.score == 95
        assert review.tag == "fast"
        assert review.tag1 == "0x" + bytes32("fast").hex()
        assert review.fileuri == "ipfs://QmFeedback"
        assert review.filehash == "0x" + "01" * 32
        assert review.block_number == 10
        assert review.event == "NewFeedback"

    def test_legacy_event_uses_rater_and_has_no_filehash(self):
        review = to_review(decode_feedback_log(legacy_log(4)))
        assert review.client == CLIENT
        assert review.score == 75
        assert review.filehash is None
        assert review.event == "FeedbackGiven"

    def test_tag_falls_back_to_tag2(self):
        review = to_review(decode_feedback_log(legacy_log(4, tag1="", tag2="slow")))
        assert review.tag == "slow"

    def test_endpoint_is_carried_when_present(self):
        log = new_feedback_log(10)
        log["args"]["endpoint"] = "https://alpha.test/api"
        review = to_review(decode_feedback_log(log))
        assert review.endpoint == "https://alpha.test/api"
        assert review.to_dict()["endpoint"] == "https://alpha.test/api"


class TestFeedbackAggregator:
    """FeedbackAggregator.get_reviews"""

    @pytest.mark.asyncio
    async def test_current_event_queried_from_deployment_block(self):
        adapter = FakeAdapter(logs={"NewFeedback": [new_feedback_log(10)]})
        reviews = await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7)
        assert len(reviews) == 1
        assert adapter.calls == [
            ("reputation", "NewFeedback", {"agentId": 7}, SEPOLIA.deployment_block, "latest")
        ]

    @pytest.mark.asyncio
    async def test_legacy_fallback_sorted_newest_first(self):
        adapter = FakeAdapter(
            log_errors={"NewFeedback": Exception("no such event")},
            logs={"FeedbackGiven": [legacy_log(50), legacy_log(100)]},
        )
        reviews = await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7)
        assert [review.block_number for review in reviews] == [100, 50]
        assert all(review.event == "FeedbackGiven" for review in reviews)

    @pytest.mark.asyncio
    async def test_legacy_not_queried_when_current_succeeds(self):
        adapter = FakeAdapter(logs={"FeedbackGiven": [legacy_log(50)]})
        reviews = await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7)
        assert reviews == []
        assert [call[1] for call in adapter.calls] == ["NewFeedback"]

    @pytest.mark.asyncio
    async def test_both_queries_failing_returns_empty(self):
        adapter = FakeAdapter(
            log_errors={
                "NewFeedback": Exception("rpc down"),
                "FeedbackGiven": Exception("rpc down"),
            }
        )
        assert await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7) == []

    @pytest.mark.asyncio
    async def test_ordering_is_non_increasing(self):
        adapter = FakeAdapter(
            logs={
                "NewFeedback": [
                    new_feedback_log(5),
                    new_feedback_log(None),
                    new_feedback_log(20),
                    new_feedback_log(10),
                    new_feedback_log(20, score=10),
                ]
            }
        )
        reviews = await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7)
        blocks = [review.sort_key for review in reviews]
        assert blocks == sorted(blocks, reverse=True)
        assert reviews[-1].block_number is None

    @pytest.mark.asyncio
    async def test_undecodable_logs_are_skipped(self):
        adapter = FakeAdapter(
            logs={
                "NewFeedback": [
                    new_feedback_log(8),
                    {"event": "NewFeedback", "blockNumber": 9},
                    {"event": "NewFeedback", "args": 42, "blockNumber": 10},
                ]
            }
        )
        reviews = await FeedbackAggregator(adapter, SEPOLIA).get_reviews(7)
        assert [review.block_number for review in reviews] == [8]
