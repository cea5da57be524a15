"""Tests for URI classification and multi-gateway fetching"""

import asyncio
import time

import httpx
import pytest

from agent8004.exceptions import MetadataLoadError
from agent8004.resolver import (
    DEFAULT_IPFS_GATEWAYS,
    ContentResolver,
    UriKind,
    classify_uri,
    gateway_url,
)

from fakes import GatewayStub

GATEWAYS = ("https://gw-one.test/ipfs/", "https://gw-two.test/ipfs/", "https://gw-three.test/ipfs/")
CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


class TestClassifyUri:
    @pytest.mark.parametrize(
        "uri, kind",
        [
            ("", UriKind.EMPTY),
            ("   ", UriKind.EMPTY),
            (None, UriKind.EMPTY),
            ("https://example.com/agent.json", UriKind.HTTP),
            ("http://example.com/agent.json", UriKind.HTTP),
            (f"ipfs://{CID}", UriKind.IPFS),
            (CID, UriKind.CID),
            ("bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi", UriKind.CID),
            ("ar://abcdef", UriKind.UNSUPPORTED),
            ("data:application/json;base64,e30=", UriKind.UNSUPPORTED),
        ],
    )
    def test_kinds(self, uri, kind):
        assert classify_uri(uri) is kind


class TestGatewayUrl:
    def test_ipfs_uri_uses_first_gateway(self):
        assert gateway_url(f"ipfs://{CID}") == f"{DEFAULT_IPFS_GATEWAYS[0]}{CID}"

    def test_bare_cid(self):
        assert gateway_url(CID, GATEWAYS, 1) == f"https://gw-two.test/ipfs/{CID}"

    def test_index_wraps_around(self):
        assert gateway_url(CID, GATEWAYS, 4) == f"https://gw-two.test/ipfs/{CID}"

    def test_http_unchanged(self):
        assert gateway_url("https://cdn.test/a.png", GATEWAYS) == "https://cdn.test/a.png"

    def test_empty_and_unknown(self):
        assert gateway_url("", GATEWAYS) == ""
        assert gateway_url("ar://abc", GATEWAYS) == "ar://abc"


class TestContentResolver:
    """ContentResolver.resolve / fetch"""

    @pytest.mark.asyncio
    async def test_http_uri_fetched_once(self):
        stub = GatewayStub(documents={"https://agents.test/1.json": {"name": "Alpha"}})
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve("https://agents.test/1.json")
        assert result.ok
        assert result.data == {"name": "Alpha"}
        assert stub.urls == ["https://agents.test/1.json"]
        assert stub.requests[0].headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_http_failure_is_not_retried(self):
        stub = GatewayStub()
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve("https://agents.test/missing.json")
        assert not result.ok
        assert result.error.startswith("HTTP fetch failed")
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_gateways_tried_in_order_until_success(self):
        stub = GatewayStub(
            documents={f"https://gw-three.test/ipfs/{CID}": {"name": "Gamma"}},
            timeout_hosts={"gw-one.test"},
        )
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve(f"ipfs://{CID}")
        assert result.ok
        assert result.data == {"name": "Gamma"}
        assert result.url == f"https://gw-three.test/ipfs/{CID}"
        assert stub.urls == [
            f"https://gw-one.test/ipfs/{CID}",
            f"https://gw-two.test/ipfs/{CID}",
            f"https://gw-three.test/ipfs/{CID}",
        ]

    @pytest.mark.asyncio
    async def test_stops_at_first_success(self):
        stub = GatewayStub(documents={f"https://gw-one.test/ipfs/{CID}": {"name": "Alpha"}})
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve(CID)
        assert result.ok
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_invalid_json_moves_to_next_gateway(self):
        stub = GatewayStub(
            raw={f"https://gw-one.test/ipfs/{CID}": b"<html>not json</html>"},
            documents={f"https://gw-two.test/ipfs/{CID}": {"name": "Beta"}},
        )
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve(CID)
        assert result.data == {"name": "Beta"}

    @pytest.mark.asyncio
    async def test_all_gateways_failing(self):
        stub = GatewayStub(timeout_hosts={"gw-one.test", "gw-two.test", "gw-three.test"})
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve(CID)
        assert not result.ok
        assert result.error == "All IPFS gateways failed"
        assert len(stub.requests) == 3

    @pytest.mark.asyncio
    async def test_unsupported_scheme_makes_no_request(self):
        stub = GatewayStub()
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve("ar://abcdef")
        assert result.error == "Unsupported URI scheme"
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_empty_uri(self):
        stub = GatewayStub()
        async with stub.client() as http:
            result = await ContentResolver(http, GATEWAYS).resolve("")
        assert result.error == "Empty URI"
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_no_gateways_configured(self):
        stub = GatewayStub()
        async with stub.client() as http:
            result = await ContentResolver(http, ()).resolve(CID)
        assert result.error == "No IPFS gateways configured"

    @pytest.mark.asyncio
    async def test_fetch_raises_metadata_load_error(self):
        stub = GatewayStub(timeout_hosts={"gw-one.test", "gw-two.test", "gw-three.test"})
        async with stub.client() as http:
            with pytest.raises(MetadataLoadError) as exc_info:
                await ContentResolver(http, GATEWAYS).fetch(f"ipfs://{CID}")
        assert exc_info.value.reason == "All IPFS gateways failed"

    @pytest.mark.asyncio
    async def test_fetch_returns_document(self):
        stub = GatewayStub(documents={"https://agents.test/1.json": {"name": "Alpha"}})
        async with stub.client() as http:
            data = await ContentResolver(http, GATEWAYS).fetch("https://agents.test/1.json")
        assert data == {"name": "Alpha"}


class TrickleGateway:
    """Serves gw-one a few bytes at a time and gw-two immediately."""

    def __init__(self, chunk_delay):
        self.chunk_delay = chunk_delay
        self.urls = []

    async def _trickle(self):
        for byte in b'{"name": "Slow"}':
            await asyncio.sleep(self.chunk_delay)
            yield bytes([byte])

    async def handler(self, request):
        self.urls.append(str(request.url))
        if request.url.host == "gw-one.test":
            return httpx.Response(200, content=self._trickle())
        return httpx.Response(200, json={"name": "Beta"})


class TestAttemptTimeout:
    """The per-attempt timeout bounds the whole request, body included"""

    @pytest.mark.asyncio
    async def test_slow_body_moves_to_next_gateway(self):
        gateway = TrickleGateway(chunk_delay=0.05)
        started = time.monotonic()
        async with httpx.AsyncClient(transport=httpx.MockTransport(gateway.handler)) as http:
            result = await ContentResolver(http, GATEWAYS, timeout=0.2).resolve(CID)
        elapsed = time.monotonic() - started

        assert result.data == {"name": "Beta"}
        assert result.url == f"https://gw-two.test/ipfs/{CID}"
        assert elapsed < 0.7

    @pytest.mark.asyncio
    async def test_slow_http_uri_fails(self):
        gateway = TrickleGateway(chunk_delay=0.05)
        async with httpx.AsyncClient(transport=httpx.MockTransport(gateway.handler)) as http:
            result = await ContentResolver(http, GATEWAYS, timeout=0.2).resolve(
                "https://gw-one.test/agent.json"
            )
        assert not result.ok
        assert result.error == "HTTP fetch failed: attempt exceeded 0.2s"
