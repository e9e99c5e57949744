"""
FedMCP Signature Envelope Codec

Byte-level structure of the compact envelope:

    base64url(header) "." base64url(claims) "." base64url(r || s)

The header pins ES256. Claims bind the workspace (iss), artifact id (sub),
issue time (iat) and the canonical artifact string. The signature is the
two ECDSA P-256 integers, each zero-padded to 32 bytes big-endian.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from .canonicalization import canonicalize
from .errors import EnvelopeFormatError, FailureReason

# The only accepted algorithm; checked by equality, never looked up
ALGORITHM = "ES256"
TOKEN_TYPE = "JWT"

# Width of each P-256 signature component in bytes
COORDINATE_SIZE = 32
SIGNATURE_SIZE = 2 * COORDINATE_SIZE

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


@dataclass(frozen=True)
class JWSHeader:
    """Protected header."""
    kid: str
    alg: str = ALGORITHM
    typ: str = TOKEN_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {"alg": self.alg, "typ": self.typ, "kid": self.kid}

    @classmethod
    def from_dict(cls, data: Any) -> "JWSHeader":
        if not isinstance(data, dict):
            raise EnvelopeFormatError(FailureReason.INVALID_HEADER, "header must be a JSON object")
        alg = data.get("alg")
        kid = data.get("kid")
        typ = data.get("typ", TOKEN_TYPE)
        if not isinstance(alg, str):
            raise EnvelopeFormatError(FailureReason.INVALID_HEADER, "header 'alg' must be a string")
        if not isinstance(kid, str):
            raise EnvelopeFormatError(FailureReason.INVALID_HEADER, "header 'kid' must be a string")
        if not isinstance(typ, str):
            raise EnvelopeFormatError(FailureReason.INVALID_HEADER, "header 'typ' must be a string")
        return cls(kid=kid, alg=alg, typ=typ)


@dataclass(frozen=True)
class JWSClaims:
    """
    Signed claims.

    iss: workspace UUID
    sub: artifact UUID
    iat: issued-at, Unix seconds
    artifact: canonical JSON string of the artifact
    """
    iss: str
    sub: str
    iat: int
    artifact: str

    def to_dict(self) -> Dict[str, Any]:
        return {"iss": self.iss, "sub": self.sub, "iat": self.iat, "artifact": self.artifact}

    @classmethod
    def from_dict(cls, data: Any) -> "JWSClaims":
        if not isinstance(data, dict):
            raise EnvelopeFormatError(FailureReason.INVALID_CLAIMS, "claims must be a JSON object")
        for name in ("iss", "sub", "artifact"):
            if not isinstance(data.get(name), str):
                raise EnvelopeFormatError(
                    FailureReason.INVALID_CLAIMS, f"claim '{name}' must be a string"
                )
        iat = data.get("iat")
        if isinstance(iat, bool) or not isinstance(iat, int):
            raise EnvelopeFormatError(FailureReason.INVALID_CLAIMS, "claim 'iat' must be an integer")
        return cls(iss=data["iss"], sub=data["sub"], iat=iat, artifact=data["artifact"])


# ============================================================
# base64url
# ============================================================

def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """
    URL-safe base64 decode a string without padding.

    Raises:
        EnvelopeFormatError: on characters outside the base64url alphabet,
            padding, or an impossible length
    """
    if not _B64URL_RE.fullmatch(s) or len(s) % 4 == 1:
        raise EnvelopeFormatError(FailureReason.INVALID_ENCODING, "segment is not valid base64url")
    try:
        return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))
    except (binascii.Error, ValueError) as e:
        raise EnvelopeFormatError(FailureReason.INVALID_ENCODING, f"segment is not valid base64url: {e}") from e


def is_canonical_b64url(s: str, decoded: bytes) -> bool:
    """True when s is the unique unpadded encoding of decoded (no stray trailing bits)."""
    return b64url_encode(decoded) == s


# ============================================================
# Segments
# ============================================================

def encode_segment(obj: Dict[str, Any]) -> str:
    """Canonical JSON, base64url encoded."""
    return b64url_encode(canonicalize(obj))


def decode_segment(segment: str, reason: FailureReason) -> Any:
    """base64url-decode and JSON-parse a segment, rejecting duplicate keys."""
    raw = b64url_decode(segment)
    try:
        return json.loads(raw.decode("utf-8"), object_pairs_hook=_reject_duplicates)
    except (UnicodeDecodeError, ValueError) as e:
        raise EnvelopeFormatError(reason, f"segment is not valid JSON: {e}") from e
    except RecursionError as e:
        raise EnvelopeFormatError(reason, "segment JSON nests too deeply") from e


def _reject_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise ValueError(f"duplicate key '{key}'")
        obj[key] = value
    return obj


def signing_input(header_b64: str, claims_b64: str) -> bytes:
    """ASCII bytes of "<header-b64>.<claims-b64>"."""
    return f"{header_b64}.{claims_b64}".encode("ascii")


def split_envelope(envelope: str) -> Tuple[str, str, str]:
    """
    Split an envelope into its three segments.

    Raises:
        EnvelopeFormatError: unless there are exactly three segments
    """
    if not isinstance(envelope, str):
        raise EnvelopeFormatError(FailureReason.MALFORMED_ENVELOPE, "envelope must be a string")
    parts = envelope.split(".")
    if len(parts) != 3:
        raise EnvelopeFormatError(
            FailureReason.MALFORMED_ENVELOPE,
            f"invalid JWS format: expected 3 segments, got {len(parts)}",
        )
    return parts[0], parts[1], parts[2]


# ============================================================
# Fixed-width signature packing
# ============================================================

def pack_signature(der_signature: bytes) -> bytes:
    """Convert a DER ECDSA signature to fixed-width r || s (64 bytes)."""
    r, s = decode_dss_signature(der_signature)
    return r.to_bytes(COORDINATE_SIZE, "big") + s.to_bytes(COORDINATE_SIZE, "big")


def unpack_signature(raw: bytes) -> bytes:
    """
    Convert fixed-width r || s back to a DER ECDSA signature.

    Raises:
        ValueError: unless raw is exactly 64 bytes
    """
    if len(raw) != SIGNATURE_SIZE:
        raise ValueError(f"signature must be {SIGNATURE_SIZE} bytes, got {len(raw)}")
    r = int.from_bytes(raw[:COORDINATE_SIZE], "big")
    s = int.from_bytes(raw[COORDINATE_SIZE:], "big")
    return encode_dss_signature(r, s)
