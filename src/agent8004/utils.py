"""
Agent8004 Utility Module

Provides hashing and byte-normalisation helpers shared by the feedback write
path and the feedback decoder.

Functions:
    canonical_json: Canonical JSON serialization (bytes)
    keccak256_hex: Keccak-256 hash (hexadecimal)
    normalize_bytes32: Normalise a hex string or bytes to exactly 32 bytes
    compute_feedback_hash: Keccak-256 of a feedback document
    to_hex: Render bytes as a 0x-prefixed hex string

Example:
    >>> from agent8004.utils import compute_feedback_hash
    >>> compute_feedback_hash({"score": 90, "comment": "fast"})
    '0x...'

Note:
    - Canonical JSON uses key sorting and compact format so identical data
      always produces identical hashes
    - Keccak-256 is the Ethereum hash, slightly different from NIST SHA3-256
"""

import json
from typing import Any, Dict, Optional, Union

from Crypto.Hash import keccak

from .exceptions import InvalidHashError

ZERO_BYTES32 = b"\x00" * 32


def canonical_json(payload: Dict[str, Any]) -> bytes:
    """
    Serialize dictionary to canonical JSON bytes.

    Canonicalization rules:
    - Sort keys alphabetically
    - Use compact format (no whitespace)
    - Use UTF-8 encoding

    Example:
        >>> canonical_json({"b": 2, "a": 1})
        b'{"a":1,"b":2}'
    """
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def keccak256_hex(payload: bytes) -> str:
    """
    Calculate Keccak-256 hash value (hexadecimal format).

    Returns:
        Hexadecimal hash string with 0x prefix (64 chars + prefix)

    Example:
        >>> keccak256_hex(b"hello")
        '0x1c8aff950685c2ed4bc3174f3472287b56d9517b9c948127319a09a7a36deac8'
    """
    hasher = keccak.new(digest_bits=256)
    hasher.update(payload)
    return "0x" + hasher.hexdigest()


def normalize_bytes32(value: Optional[Union[str, bytes]]) -> bytes:
    """
    Normalise a value to exactly 32 bytes.

    None and empty strings become the zero hash; shorter values are
    left-padded with zero bytes, so "0x1234" ends in 0x1234.

    Raises:
        InvalidHashError: value is not valid hex or is longer than 32 bytes

    Example:
        >>> normalize_bytes32(None) == b"\\x00" * 32
        True
        >>> normalize_bytes32("0x1234").hex()[-6:]
        '001234'
    """
    if value is None:
        return ZERO_BYTES32
    if isinstance(value, bytes):
        raw = value
    else:
        cleaned = value[2:] if value.startswith(("0x", "0X")) else value
        if not cleaned:
            return ZERO_BYTES32
        try:
            raw = bytes.fromhex(cleaned)
        except ValueError as exc:
            raise InvalidHashError(value) from exc
    if len(raw) > 32:
        raise InvalidHashError(to_hex(raw))
    return raw.rjust(32, b"\x00")


def compute_feedback_hash(payload: Union[Dict[str, Any], bytes, str]) -> str:
    """
    Hash a feedback document for use as feedbackHash.

    Args:
        payload: Feedback document (dict, hashed in canonical JSON form),
                 raw bytes, or text (hashed as UTF-8)

    Returns:
        0x-prefixed keccak-256 hex digest
    """
    if isinstance(payload, dict):
        data = canonical_json(payload)
    elif isinstance(payload, bytes):
        data = payload
    else:
        data = str(payload).encode("utf-8")
    return keccak256_hex(data)


def to_hex(value: Any) -> str:
    """Render bytes-like values as 0x-prefixed hex; other values via str()."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if hasattr(value, "hex") and callable(value.hex) and not isinstance(value, (int, float)):
        rendered = value.hex()
        return rendered if rendered.startswith("0x") else "0x" + rendered
    return str(value)
