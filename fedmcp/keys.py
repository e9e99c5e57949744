"""
FedMCP Key Material

P-256 key generation, key identifier derivation, and DER/PEM interchange.
Public keys travel as SubjectPublicKeyInfo so key identifiers are
reproducible across implementations.
"""

import hashlib
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)

# Hex characters of the SPKI digest kept as the key identifier
KEY_ID_LENGTH = 16


def generate_private_key() -> EllipticCurvePrivateKey:
    """Generate a P-256 (secp256r1) private key from the OS CSPRNG."""
    return ec.generate_private_key(ec.SECP256R1())


def is_p256(key) -> bool:
    return isinstance(key, (EllipticCurvePrivateKey, EllipticCurvePublicKey)) and isinstance(
        key.curve, ec.SECP256R1
    )


def public_key_to_der(public_key: EllipticCurvePublicKey) -> bytes:
    """DER-encoded SubjectPublicKeyInfo."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_to_pem(public_key: EllipticCurvePublicKey) -> str:
    """PEM-encoded SubjectPublicKeyInfo."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def key_id_for(public_key: EllipticCurvePublicKey) -> str:
    """
    Derive the key identifier of a public key.

    kid = first 16 hex characters of SHA-256(DER SubjectPublicKeyInfo)

    The identifier is a lookup tag, not a trust anchor.
    """
    return hashlib.sha256(public_key_to_der(public_key)).hexdigest()[:KEY_ID_LENGTH]


def load_public_key_der(data: bytes) -> EllipticCurvePublicKey:
    """Load a P-256 public key from DER SubjectPublicKeyInfo."""
    return _require_p256_public(serialization.load_der_public_key(data))


def load_public_key_pem(data) -> EllipticCurvePublicKey:
    """Load a P-256 public key from PEM SubjectPublicKeyInfo."""
    if isinstance(data, str):
        data = data.encode("ascii")
    return _require_p256_public(serialization.load_pem_public_key(data))


def private_key_to_pem(
    private_key: EllipticCurvePrivateKey,
    password: Optional[bytes] = None,
) -> str:
    """PKCS#8 PEM, encrypted when a password is given."""
    encryption = serialization.NoEncryption()
    if password is not None:
        encryption = serialization.BestAvailableEncryption(password)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("ascii")


def load_private_key_pem(data, password: Optional[bytes] = None) -> EllipticCurvePrivateKey:
    """Load a P-256 private key from PEM."""
    if isinstance(data, str):
        data = data.encode("ascii")
    key = serialization.load_pem_private_key(data, password=password)
    if not is_p256(key):
        raise ValueError(f"Unsupported key type: expected P-256 private key, got {type(key).__name__}")
    return key


def _require_p256_public(key) -> EllipticCurvePublicKey:
    if not isinstance(key, EllipticCurvePublicKey) or not is_p256(key):
        raise ValueError(f"Unsupported key type: expected P-256 public key, got {type(key).__name__}")
    return key
