"""
FedMCP Content Hashing

All digests are SHA-256 with lowercase hexadecimal output, computed over
the canonical JSON form so they are reproducible across implementations.
"""

import hashlib
import hmac
from typing import Any, Union

from .canonicalization import canonicalize


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as lowercase hex string."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def sha256_bytes(data: Union[bytes, str]) -> bytes:
    """Compute SHA-256 hash and return the raw 32-byte digest."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).digest()


def content_hash(obj: Any) -> str:
    """
    Compute the content hash of a JSON-compatible value.

    content_hash = SHA-256(canonicalize(obj))
    """
    return sha256_hex(canonicalize(obj))


def artifact_hash(artifact) -> str:
    """
    Compute the integrity reference of an artifact.

    artifact_hash = SHA-256(artifact.canonicalize())
    """
    return sha256_hex(artifact.canonicalize())


def verify_hash(expected: str, data: Union[bytes, str]) -> bool:
    """
    Check that data hashes to an expected hex digest.

    The comparison runs in constant time; case of the expected digest is
    ignored.
    """
    computed = sha256_hex(data)
    return hmac.compare_digest(computed.encode("ascii"), expected.lower().encode("ascii", "replace"))
