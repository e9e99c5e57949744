"""
FedMCP Envelope Verification

Lets any party holding the signer's public key confirm authorship and
integrity of an artifact without a central authority.

Every check fails closed. Decoding problems surface as format reasons,
trust problems (algorithm, key, claims, signature) as distinct trust
reasons; nothing short of all checks passing yields a valid result.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from .artifact import Artifact
from .errors import CanonicalizationError, EnvelopeFormatError, FailureReason, VerificationError
from .hashing import sha256_bytes, sha256_hex, verify_hash
from .jws import (
    ALGORITHM,
    JWSClaims,
    JWSHeader,
    b64url_decode,
    decode_segment,
    is_canonical_b64url,
    signing_input,
    split_envelope,
    unpack_signature,
)
from .keys import is_p256, load_public_key_der, load_public_key_pem
from .logging_config import security_log


@dataclass
class VerificationResult:
    """Result of verifying an envelope against a candidate artifact."""
    valid: bool
    reason: Optional[FailureReason] = None
    message: str = ""
    details: Optional[Dict[str, Any]] = None
    claims: Optional[JWSClaims] = None
    kid: Optional[str] = None

    def is_valid(self) -> bool:
        return self.valid

    def raise_for_failure(self) -> None:
        """Raise VerificationError unless the result is valid."""
        if not self.valid:
            raise VerificationError(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "details": self.details,
            "kid": self.kid,
        }

    @classmethod
    def success(cls, claims: JWSClaims, kid: str) -> "VerificationResult":
        return cls(valid=True, message="signature verified", claims=claims, kid=kid)

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "VerificationResult":
        return cls(valid=False, reason=reason, message=message, details=details)


class Verifier:
    """
    Verifies envelopes against registered public keys.

    The key registry maps key identifiers to P-256 public keys and is safe
    for concurrent registration and lookup. Re-registering a key identifier
    replaces the previous key; callers own kid uniqueness.
    """

    def __init__(self, keys: Optional[Mapping[str, EllipticCurvePublicKey]] = None):
        self._lock = threading.RLock()
        self._keys: Dict[str, EllipticCurvePublicKey] = {}
        for kid, key in (keys or {}).items():
            self.add_public_key(kid, key)

    # ============================================================
    # Key registry
    # ============================================================

    def add_public_key(self, kid: str, public_key: EllipticCurvePublicKey) -> None:
        """Register a trust entry. Last write wins."""
        if not kid:
            raise ValueError("key ID cannot be empty")
        if not isinstance(public_key, EllipticCurvePublicKey) or not is_p256(public_key):
            raise ValueError(
                f"Unsupported key type: expected P-256 public key, got {type(public_key).__name__}"
            )
        with self._lock:
            replaced = kid in self._keys
            self._keys[kid] = public_key
        security_log.key_registered(kid, replaced=replaced)

    def add_public_key_pem(self, kid: str, pem) -> None:
        self.add_public_key(kid, load_public_key_pem(pem))

    def add_public_key_der(self, kid: str, der: bytes) -> None:
        self.add_public_key(kid, load_public_key_der(der))

    def add_signer(self, signer) -> str:
        """Register a signer's public key under its own key identifier."""
        kid = signer.get_key_id()
        self.add_public_key(kid, signer.get_public_key())
        return kid

    def get_public_key(self, kid: str) -> Optional[EllipticCurvePublicKey]:
        with self._lock:
            return self._keys.get(kid)

    def key_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    # ============================================================
    # Verification
    # ============================================================

    def verify(self, envelope: str, artifact: Artifact) -> VerificationResult:
        """
        Verify an envelope against the caller's copy of the artifact.

        Steps:
        1. Split into exactly three segments
        2. Decode the header; only ES256 is accepted
        3. Look up the public key by kid; unknown kid fails
        4. Decode the claims; iss/sub must match the artifact's
           workspace/id, and the embedded canonical artifact must hash to
           artifact.hash()
        5. Recompute SHA-256 over the first two segments and verify the
           fixed-width r || s signature

        Never raises for malformed input; the reason is in the result.
        """
        result = self._verify(envelope, artifact)
        if result.valid:
            security_log.verification_succeeded(kid=result.kid or "", artifact_id=str(artifact.id))
        else:
            security_log.verification_failed(
                reason=result.reason.value,
                artifact_id=str(getattr(artifact, "id", "")),
                kid=result.kid,
                detail=result.message,
            )
        return result

    def verify_or_raise(self, envelope: str, artifact: Artifact) -> JWSClaims:
        """Verify and return the claims, raising VerificationError on failure."""
        result = self.verify(envelope, artifact)
        result.raise_for_failure()
        return result.claims

    def _verify(self, envelope: str, artifact: Artifact) -> VerificationResult:
        try:
            header_b64, claims_b64, signature_b64 = split_envelope(envelope)
            header = JWSHeader.from_dict(decode_segment(header_b64, FailureReason.INVALID_HEADER))
        except EnvelopeFormatError as e:
            return VerificationResult.failure(e.reason, str(e))

        if header.alg != ALGORITHM:
            return VerificationResult.failure(
                FailureReason.UNSUPPORTED_ALGORITHM,
                f"unsupported algorithm: {header.alg}",
                {"alg": header.alg},
            )

        public_key = self.get_public_key(header.kid)
        if public_key is None:
            return VerificationResult.failure(
                FailureReason.UNKNOWN_KEY,
                f"unknown key ID: {header.kid}",
                {"kid": header.kid},
            )

        try:
            claims = JWSClaims.from_dict(decode_segment(claims_b64, FailureReason.INVALID_CLAIMS))
        except EnvelopeFormatError as e:
            return _with_kid(VerificationResult.failure(e.reason, str(e)), header.kid)

        mismatch = _check_claims(claims, artifact)
        if mismatch is not None:
            return _with_kid(mismatch, header.kid)

        try:
            raw_signature = b64url_decode(signature_b64)
        except EnvelopeFormatError as e:
            return _with_kid(VerificationResult.failure(e.reason, str(e)), header.kid)

        if not _signature_matches(public_key, signing_input(header_b64, claims_b64), signature_b64, raw_signature):
            return _with_kid(
                VerificationResult.failure(FailureReason.SIGNATURE_MISMATCH, "invalid signature"),
                header.kid,
            )

        return VerificationResult.success(claims, header.kid)


def _check_claims(claims: JWSClaims, artifact: Artifact) -> Optional[VerificationResult]:
    if claims.iss != str(artifact.workspace_id):
        return VerificationResult.failure(
            FailureReason.ISSUER_MISMATCH,
            "issuer mismatch",
            {"claimed": claims.iss, "expected": str(artifact.workspace_id)},
        )
    if claims.sub != str(artifact.id):
        return VerificationResult.failure(
            FailureReason.SUBJECT_MISMATCH,
            "subject mismatch",
            {"claimed": claims.sub, "expected": str(artifact.id)},
        )

    try:
        expected = artifact.hash()
    except CanonicalizationError as e:
        return VerificationResult.failure(
            FailureReason.ARTIFACT_MISMATCH, f"candidate artifact cannot be canonicalized: {e}"
        )
    if not verify_hash(expected, claims.artifact):
        return VerificationResult.failure(
            FailureReason.ARTIFACT_MISMATCH,
            "embedded artifact does not match candidate artifact",
            {"claimed": sha256_hex(claims.artifact), "expected": expected},
        )
    return None


def _signature_matches(
    public_key: EllipticCurvePublicKey,
    message: bytes,
    signature_b64: str,
    raw_signature: bytes,
) -> bool:
    # Stray trailing bits would let two encodings share one signature
    if not is_canonical_b64url(signature_b64, raw_signature):
        return False
    try:
        der = unpack_signature(raw_signature)
    except ValueError:
        return False
    try:
        public_key.verify(der, sha256_bytes(message), ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        return False
    return True


def _with_kid(result: VerificationResult, kid: str) -> VerificationResult:
    result.kid = kid
    return result


def verify_envelope(
    envelope: str,
    artifact: Artifact,
    keys: Iterable[Tuple[str, EllipticCurvePublicKey]],
) -> VerificationResult:
    """
    Convenience function to verify an envelope against an ad-hoc key set.

    Args:
        envelope: Three-segment envelope string
        artifact: Candidate artifact
        keys: (kid, public_key) pairs to trust

    Returns:
        VerificationResult
    """
    verifier = Verifier(dict(keys))
    return verifier.verify(envelope, artifact)
