"""
FedMCP Artifact Signing

Produces the compact ES256 envelope binding a private key to an artifact.
Signer is an abstract capability so hardware-backed or remote signing
services can stand behind the same contract; LocalSigner holds a P-256 key
in process.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from cryptography.exceptions import InternalError, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from .artifact import Artifact
from .errors import ArtifactValidationError, InvalidArtifactError, SigningError
from .hashing import sha256_bytes
from .jws import (
    SIGNATURE_SIZE,
    JWSClaims,
    JWSHeader,
    b64url_encode,
    encode_segment,
    pack_signature,
    signing_input,
)
from .keys import (
    generate_private_key,
    is_p256,
    key_id_for,
    load_private_key_pem,
    private_key_to_pem,
)
from .logging_config import security_log


class Signer(ABC):
    """Abstract interface for artifact signing."""

    @abstractmethod
    def sign(self, artifact: Artifact) -> str:
        """
        Sign an artifact and return the three-segment envelope.

        Raises:
            InvalidArtifactError: if the artifact fails validation
            CanonicalizationError: if the artifact cannot be canonicalized
            SigningError: if the signature primitive fails
        """

    @abstractmethod
    def get_key_id(self) -> str:
        """Get the key identifier placed in the envelope header."""

    @abstractmethod
    def get_public_key(self) -> EllipticCurvePublicKey:
        """Get the public half of the signing key."""


def build_envelope(
    artifact: Artifact,
    kid: str,
    sign_digest: Callable[[bytes], bytes],
    iat: int,
) -> str:
    """
    Assemble an envelope for an artifact.

    Steps:
    1. Validate the artifact
    2. Canonicalize it and build the claims
    3. base64url-encode header and claims
    4. SHA-256 over "<header-b64>.<claims-b64>"
    5. sign_digest(digest) -> fixed-width r || s
    6. Join the three segments

    Nothing is returned unless every step succeeds.

    Args:
        artifact: Artifact to sign
        kid: Key identifier for the header
        sign_digest: Backend callable turning a 32-byte digest into 64 raw
            signature bytes
        iat: Issued-at, Unix seconds
    """
    try:
        artifact.validate()
    except ArtifactValidationError as e:
        security_log.signing_refused(str(artifact.id), e.code.value)
        raise InvalidArtifactError(f"invalid artifact: {e}", code=e.code) from e

    canonical = artifact.canonicalize()

    header = JWSHeader(kid=kid)
    claims = JWSClaims(
        iss=str(artifact.workspace_id),
        sub=str(artifact.id),
        iat=iat,
        artifact=canonical.decode("utf-8"),
    )

    header_b64 = encode_segment(header.to_dict())
    claims_b64 = encode_segment(claims.to_dict())
    digest = sha256_bytes(signing_input(header_b64, claims_b64))

    signature = sign_digest(digest)
    if len(signature) != SIGNATURE_SIZE:
        raise SigningError(f"signer produced {len(signature)} signature bytes, expected {SIGNATURE_SIZE}")

    return f"{header_b64}.{claims_b64}.{b64url_encode(signature)}"


class LocalSigner(Signer):
    """
    Signer backed by an in-process P-256 private key.

    Stateless apart from the key and its derived identifier; safe to share
    across threads.
    """

    def __init__(
        self,
        private_key: EllipticCurvePrivateKey,
        clock: Callable[[], float] = time.time,
    ):
        if not isinstance(private_key, EllipticCurvePrivateKey) or not is_p256(private_key):
            raise ValueError(
                f"Unsupported key type: expected P-256 private key, got {type(private_key).__name__}"
            )
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._kid = key_id_for(self._public_key)
        self._clock = clock

    @classmethod
    def generate(cls, clock: Callable[[], float] = time.time) -> "LocalSigner":
        """Create a signer with a freshly generated P-256 key pair."""
        return cls(generate_private_key(), clock=clock)

    @classmethod
    def from_pem(cls, data, password: Optional[bytes] = None) -> "LocalSigner":
        """Create a signer from a PEM-encoded private key."""
        return cls(load_private_key_pem(data, password=password))

    def private_key_pem(self, password: Optional[bytes] = None) -> str:
        """Export the private key as PKCS#8 PEM."""
        return private_key_to_pem(self._private_key, password=password)

    def sign(self, artifact: Artifact) -> str:
        envelope = build_envelope(
            artifact,
            kid=self._kid,
            sign_digest=self._sign_digest,
            iat=int(self._clock()),
        )
        security_log.artifact_signed(
            kid=self._kid,
            artifact_id=str(artifact.id),
            artifact_hash=artifact.hash(),
            version=artifact.version,
        )
        return envelope

    def _sign_digest(self, digest: bytes) -> bytes:
        try:
            der = self._private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        except (InternalError, UnsupportedAlgorithm, ValueError) as e:
            raise SigningError(f"ECDSA signing failed: {e}") from e
        return pack_signature(der)

    def get_key_id(self) -> str:
        return self._kid

    def get_public_key(self) -> EllipticCurvePublicKey:
        return self._public_key
