"""
FedMCP Artifact Signing

Version: 0.2.0
License: Apache 2.0

Tamper-evident artifacts for federated metadata sharing.

Artifacts (SSP fragments, POA&M templates, agent recipes, baseline modules,
audit scripts) are canonically serialized, hashed, and signed into a
compact ES256 envelope that any recipient holding the public key can verify
without a central authority.

Usage:
    from fedmcp import create_artifact, LocalSigner, Verifier

    artifact = create_artifact("agent_recipe", workspace_id, {"name": "test-agent"})

    signer = LocalSigner.generate()
    envelope = signer.sign(artifact)

    verifier = Verifier()
    verifier.add_public_key(signer.get_key_id(), signer.get_public_key())

    result = verifier.verify(envelope, artifact)
    if not result.is_valid():
        print(result.reason, result.message)
"""

import logging

__version__ = "0.2.0"
__license__ = "Apache-2.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Errors
from .errors import (
    FedMCPError,
    ArtifactValidationError,
    CanonicalizationError,
    InvalidArtifactError,
    SigningError,
    EnvelopeFormatError,
    VerificationError,
    ValidationCode,
    FailureReason,
)

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    sha256_hex,
    content_hash,
    artifact_hash,
    verify_hash,
)

# Artifact model
from .artifact import (
    Artifact,
    ArtifactType,
    ARTIFACT_TYPES,
    MAX_BODY_BYTES,
    create_artifact,
)

# Keys
from .keys import (
    generate_private_key,
    key_id_for,
    public_key_to_der,
    public_key_to_pem,
    load_public_key_der,
    load_public_key_pem,
)

# Envelope
from .jws import ALGORITHM, JWSHeader, JWSClaims

# Signing
from .signer import Signer, LocalSigner, build_envelope

# Verification
from .verifier import Verifier, VerificationResult, verify_envelope

# Audit
from .audit import (
    AuditAction,
    AuditEvent,
    create_audit_event,
    signed_audit_event,
)


__all__ = [
    # Version
    "__version__",

    # Errors
    "FedMCPError",
    "ArtifactValidationError",
    "CanonicalizationError",
    "InvalidArtifactError",
    "SigningError",
    "EnvelopeFormatError",
    "VerificationError",
    "ValidationCode",
    "FailureReason",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Hashing
    "sha256_hex",
    "content_hash",
    "artifact_hash",
    "verify_hash",

    # Artifact
    "Artifact",
    "ArtifactType",
    "ARTIFACT_TYPES",
    "MAX_BODY_BYTES",
    "create_artifact",

    # Keys
    "generate_private_key",
    "key_id_for",
    "public_key_to_der",
    "public_key_to_pem",
    "load_public_key_der",
    "load_public_key_pem",

    # Envelope
    "ALGORITHM",
    "JWSHeader",
    "JWSClaims",

    # Signing
    "Signer",
    "LocalSigner",
    "build_envelope",

    # Verification
    "Verifier",
    "VerificationResult",
    "verify_envelope",

    # Audit
    "AuditAction",
    "AuditEvent",
    "create_audit_event",
    "signed_audit_event",
]
