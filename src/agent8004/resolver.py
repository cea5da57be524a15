"""
Agent8004 Content Resolver

Turns an agent metadata URI into a parsed JSON document.

Supported URI forms:
    - http://, https://: fetched directly, once
    - ipfs://<cid>: fetched through each gateway in turn
    - bare CID (Qm... / baf...): treated like ipfs://<cid>

Each gateway attempt gets its own timeout; a timeout, non-2xx status or
invalid JSON moves on to the next gateway. resolve() never raises for I/O
failures, it returns a ResolveResult with ``ok=False`` and a reason;
fetch() raises MetadataLoadError instead.

Example:
    >>> async with httpx.AsyncClient() as http:
    ...     resolver = ContentResolver(http)
    ...     result = await resolver.resolve("ipfs://QmExample")
    ...     if result.ok:
    ...         print(result.data["name"])
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

from .exceptions import MetadataLoadError

logger = logging.getLogger("agent8004.resolver")

DEFAULT_IPFS_GATEWAYS = (
    "https://dweb.link/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://ipfs.io/ipfs/",
)

DEFAULT_GATEWAY_TIMEOUT = 8.0

_IPFS_SCHEME = "ipfs://"
_CID_PREFIXES = ("Qm", "baf")


class UriKind(str, enum.Enum):
    EMPTY = "empty"
    HTTP = "http"
    IPFS = "ipfs"
    CID = "cid"
    UNSUPPORTED = "unsupported"


def classify_uri(uri: Optional[str]) -> UriKind:
    """
    Classify a metadata URI.

    Example:
        >>> classify_uri("ipfs://QmX")
        <UriKind.IPFS: 'ipfs'>
        >>> classify_uri("bafybeigdyr")
        <UriKind.CID: 'cid'>
        >>> classify_uri("ar://abc")
        <UriKind.UNSUPPORTED: 'unsupported'>
    """
    if uri is None or not uri.strip():
        return UriKind.EMPTY
    cleaned = uri.strip()
    if cleaned.startswith(("http://", "https://")):
        return UriKind.HTTP
    if cleaned.startswith(_IPFS_SCHEME):
        return UriKind.IPFS
    if cleaned.startswith(_CID_PREFIXES):
        return UriKind.CID
    return UriKind.UNSUPPORTED


def _content_hash(uri: str) -> str:
    cleaned = uri.strip()
    if cleaned.startswith(_IPFS_SCHEME):
        return cleaned[len(_IPFS_SCHEME):].strip()
    return cleaned


def gateway_url(
    uri: Optional[str],
    gateways: Sequence[str] = DEFAULT_IPFS_GATEWAYS,
    index: int = 0,
) -> str:
    """
    Build a fetchable URL for ``uri``.

    HTTP(S) URIs are returned unchanged; content-addressed URIs are joined to
    the gateway at ``index`` (wrapping around the list). Anything else,
    including the empty string, is returned as-is.
    """
    if not uri or not uri.strip():
        return ""
    kind = classify_uri(uri)
    if kind is UriKind.HTTP:
        return uri
    if kind in (UriKind.IPFS, UriKind.CID) and gateways:
        gateway = gateways[index % len(gateways)]
        return f"{gateway}{_content_hash(uri)}"
    return uri


@dataclass
class ResolveResult:
    """Outcome of one resolve() call."""

    uri: str
    data: Any = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, uri: str, url: str, data: Any) -> "ResolveResult":
        return cls(uri=uri, data=data, url=url)

    @classmethod
    def failure(cls, uri: str, error: str) -> "ResolveResult":
        return cls(uri=uri, error=error)


class ContentResolver:
    """
    Multi-gateway JSON fetcher.

    Args:
        http: Shared httpx.AsyncClient
        gateways: Ordered gateway prefixes, each ending in "/"
        timeout: Per-attempt timeout in seconds
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        gateways: Sequence[str] = DEFAULT_IPFS_GATEWAYS,
        timeout: float = DEFAULT_GATEWAY_TIMEOUT,
    ) -> None:
        self.http = http
        self.gateways = tuple(gateways)
        self.timeout = timeout

    async def resolve(self, uri: str) -> ResolveResult:
        kind = classify_uri(uri)
        if kind is UriKind.EMPTY:
            return ResolveResult.failure(uri, "Empty URI")
        if kind is UriKind.UNSUPPORTED:
            logger.warning("Unsupported URI scheme: %s", uri)
            return ResolveResult.failure(uri, "Unsupported URI scheme")

        if kind is UriKind.HTTP:
            try:
                data = await self._fetch_json(uri)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Failed to fetch %s: %s", uri, e)
                return ResolveResult.failure(uri, f"HTTP fetch failed: {e}")
            return ResolveResult.success(uri, uri, data)

        if not self.gateways:
            return ResolveResult.failure(uri, "No IPFS gateways configured")

        total = len(self.gateways)
        for index in range(total):
            url = gateway_url(uri, self.gateways, index)
            logger.debug("Fetching %s via gateway %d/%d: %s", uri, index + 1, total, url)
            try:
                data = await self._fetch_json(url)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Gateway %d/%d failed for %s: %s", index + 1, total, url, e)
                continue
            return ResolveResult.success(uri, url, data)

        logger.warning("All IPFS gateways failed for %s", uri)
        return ResolveResult.failure(uri, "All IPFS gateways failed")

    async def fetch(self, uri: str) -> Any:
        """
        Resolve ``uri`` and return the parsed document.

        Raises:
            MetadataLoadError: Every fetch attempt failed
        """
        result = await self.resolve(uri)
        if not result.ok:
            raise MetadataLoadError(uri, result.error)
        return result.data

    async def _fetch_json(self, url: str) -> Any:
        try:
            return await asyncio.wait_for(self._get_json(url), self.timeout)
        except asyncio.TimeoutError as e:
            raise httpx.TimeoutException(f"attempt exceeded {self.timeout}s") from e

    async def _get_json(self, url: str) -> Any:
        response = await self.http.get(
            url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
        response.raise_for_status()
        return response.json()
