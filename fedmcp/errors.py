"""
FedMCP Error Taxonomy

Validation errors are raised before any cryptographic work is attempted.
Envelope format errors are raised by the wire codec and converted into
typed verification results at the verifier boundary.
"""

from enum import Enum
from typing import Any, Optional


class ValidationCode(str, Enum):
    """Reasons an artifact fails validation."""
    EMPTY_IDENTIFIER = "EMPTY_IDENTIFIER"
    EMPTY_WORKSPACE = "EMPTY_WORKSPACE"
    INVALID_VERSION = "INVALID_VERSION"
    EMPTY_TYPE = "EMPTY_TYPE"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    EMPTY_BODY = "EMPTY_BODY"
    BODY_TOO_LARGE = "BODY_TOO_LARGE"
    MALFORMED = "MALFORMED"


class FailureReason(str, Enum):
    """
    Reasons an envelope fails verification.

    Format errors: MALFORMED_ENVELOPE, INVALID_ENCODING, INVALID_HEADER,
    INVALID_CLAIMS.

    Trust errors: UNSUPPORTED_ALGORITHM, UNKNOWN_KEY, ISSUER_MISMATCH,
    SUBJECT_MISMATCH, ARTIFACT_MISMATCH, SIGNATURE_MISMATCH.
    """
    MALFORMED_ENVELOPE = "MALFORMED_ENVELOPE"
    INVALID_ENCODING = "INVALID_ENCODING"
    INVALID_HEADER = "INVALID_HEADER"
    INVALID_CLAIMS = "INVALID_CLAIMS"
    UNSUPPORTED_ALGORITHM = "UNSUPPORTED_ALGORITHM"
    UNKNOWN_KEY = "UNKNOWN_KEY"
    ISSUER_MISMATCH = "ISSUER_MISMATCH"
    SUBJECT_MISMATCH = "SUBJECT_MISMATCH"
    ARTIFACT_MISMATCH = "ARTIFACT_MISMATCH"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"


class FedMCPError(Exception):
    """Base class for all FedMCP errors."""


class ArtifactValidationError(FedMCPError, ValueError):
    """An artifact violates one of the model invariants."""

    def __init__(self, code: ValidationCode, message: str):
        super().__init__(message)
        self.code = code


class CanonicalizationError(FedMCPError, ValueError):
    """A value cannot be represented in canonical JSON."""


class InvalidArtifactError(FedMCPError):
    """Signing was refused because the artifact is invalid."""

    def __init__(self, message: str, code: Optional[ValidationCode] = None):
        super().__init__(message)
        self.code = code


class SigningError(FedMCPError):
    """
    The signing primitive failed.

    Not retryable in place: callers may retry the whole operation but must
    not assume any partial progress.
    """


class EnvelopeFormatError(FedMCPError):
    """An envelope segment cannot be decoded or parsed."""

    def __init__(self, reason: FailureReason, message: str):
        super().__init__(message)
        self.reason = reason


class VerificationError(FedMCPError):
    """Raised by VerificationResult.raise_for_failure()."""

    def __init__(self, result: Any):
        super().__init__(f"{result.reason.value}: {result.message}")
        self.result = result
        self.reason = result.reason
