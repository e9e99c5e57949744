"""
Signing and Verification Test Suite

Round trips, the envelope layout, claims content, signer contract and the
verifier's key registry.
"""

import json
import threading
import unittest
import uuid

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from fedmcp import (
    ALGORITHM,
    Artifact,
    FailureReason,
    InvalidArtifactError,
    LocalSigner,
    Signer,
    SigningError,
    ValidationCode,
    VerificationError,
    Verifier,
    build_envelope,
    create_artifact,
    generate_private_key,
    key_id_for,
    public_key_to_der,
    public_key_to_pem,
    verify_envelope,
)
from fedmcp.hashing import sha256_bytes
from fedmcp.jws import b64url_decode, unpack_signature

FIXED_TIME = 1768478400.9


def new_artifact(body=None, artifact_type="agent_recipe", workspace_id=None) -> Artifact:
    return create_artifact(
        artifact_type,
        workspace_id or uuid.uuid4(),
        body or {"name": "test-agent", "description": "Test agent recipe"},
    )


class TestRoundTrip(unittest.TestCase):
    """Verify(Sign(artifact), artifact) succeeds."""

    def setUp(self):
        self.signer = LocalSigner.generate()
        self.verifier = Verifier()
        self.verifier.add_public_key(self.signer.get_key_id(), self.signer.get_public_key())

    def test_sign_and_verify(self):
        artifact = new_artifact()
        envelope = self.signer.sign(artifact)

        result = self.verifier.verify(envelope, artifact)

        self.assertTrue(result.is_valid(), result.message)
        self.assertIsNone(result.reason)
        self.assertEqual(result.kid, self.signer.get_key_id())

    def test_concrete_agent_recipe_scenario(self):
        workspace_id = uuid.uuid4()
        artifact = create_artifact("agent_recipe", workspace_id, {"name": "test-agent"})
        envelope = self.signer.sign(artifact)

        self.assertTrue(self.verifier.verify(envelope, artifact).is_valid())

        last = envelope[-1]
        tampered = envelope[:-1] + ("A" if last != "A" else "B")
        result = self.verifier.verify(tampered, artifact)

        self.assertFalse(result.is_valid())
        self.assertEqual(result.reason, FailureReason.SIGNATURE_MISMATCH)

    def test_every_artifact_type(self):
        workspace_id = uuid.uuid4()
        for artifact_type in ("ssp_fragment", "poam_template", "agent_recipe", "baseline_module", "audit_script"):
            with self.subTest(type=artifact_type):
                artifact = new_artifact(artifact_type=artifact_type, workspace_id=workspace_id)
                self.assertTrue(self.verifier.verify(self.signer.sign(artifact), artifact).is_valid())

    def test_reconstructed_artifact_verifies(self):
        """A recipient's independently parsed copy verifies."""
        artifact = new_artifact({"nested": {"b": [1, 2.5, None], "a": "é"}})
        envelope = self.signer.sign(artifact)

        received = Artifact.from_dict(json.loads(json.dumps(artifact.to_dict())))
        self.assertTrue(self.verifier.verify(envelope, received).is_valid())

    def test_signatures_are_randomized(self):
        artifact = new_artifact()
        signer = LocalSigner(generate_private_key(), clock=lambda: FIXED_TIME)
        a = signer.sign(artifact)
        b = signer.sign(artifact)

        self.assertEqual(a.rsplit(".", 1)[0], b.rsplit(".", 1)[0])
        self.assertNotEqual(a, b)

    def test_verify_or_raise(self):
        artifact = new_artifact()
        claims = self.verifier.verify_or_raise(self.signer.sign(artifact), artifact)
        self.assertEqual(claims.sub, str(artifact.id))

        with self.assertRaises(VerificationError) as ctx:
            self.verifier.verify_or_raise("a.b", artifact)
        self.assertEqual(ctx.exception.reason, FailureReason.MALFORMED_ENVELOPE)

    def test_verify_envelope_helper(self):
        artifact = new_artifact()
        envelope = self.signer.sign(artifact)
        keys = [(self.signer.get_key_id(), self.signer.get_public_key())]
        self.assertTrue(verify_envelope(envelope, artifact, keys).is_valid())
        self.assertFalse(verify_envelope(envelope, artifact, []).is_valid())


class TestEnvelopeLayout(unittest.TestCase):
    """Header, claims and signature segments as produced by Sign."""

    def setUp(self):
        self.signer = LocalSigner(generate_private_key(), clock=lambda: FIXED_TIME)
        self.artifact = new_artifact()
        self.envelope = self.signer.sign(self.artifact)
        self.segments = self.envelope.split(".")

    def test_three_unpadded_segments(self):
        self.assertEqual(len(self.segments), 3)
        for segment in self.segments:
            self.assertNotIn("=", segment)
            self.assertRegex(segment, r"^[A-Za-z0-9_-]+$")

    def test_header(self):
        header = json.loads(b64url_decode(self.segments[0]))
        self.assertEqual(header, {"alg": ALGORITHM, "typ": "JWT", "kid": self.signer.get_key_id()})

    def test_claims(self):
        claims = json.loads(b64url_decode(self.segments[1]))
        self.assertEqual(claims["iss"], str(self.artifact.workspace_id))
        self.assertEqual(claims["sub"], str(self.artifact.id))
        self.assertEqual(claims["iat"], int(FIXED_TIME))
        self.assertEqual(claims["artifact"], self.artifact.canonicalize().decode("utf-8"))

    def test_signature_is_fixed_width_over_signing_input(self):
        raw = b64url_decode(self.segments[2])
        self.assertEqual(len(raw), 64)

        message = f"{self.segments[0]}.{self.segments[1]}".encode("ascii")
        # Raises InvalidSignature if the layout is wrong
        self.signer.get_public_key().verify(
            unpack_signature(raw),
            sha256_bytes(message),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )


class TestSignerContract(unittest.TestCase):
    """Signer capability and LocalSigner construction."""

    def test_local_signer_is_signer(self):
        self.assertIsInstance(LocalSigner.generate(), Signer)

    def test_key_id_matches_public_key(self):
        signer = LocalSigner.generate()
        self.assertEqual(signer.get_key_id(), key_id_for(signer.get_public_key()))

    def test_pem_round_trip_keeps_identity(self):
        signer = LocalSigner.generate()
        restored = LocalSigner.from_pem(signer.private_key_pem())
        self.assertEqual(restored.get_key_id(), signer.get_key_id())

        artifact = new_artifact()
        verifier = Verifier()
        verifier.add_signer(signer)
        self.assertTrue(verifier.verify(restored.sign(artifact), artifact).is_valid())

    def test_rejects_non_p256_key(self):
        with self.assertRaises(ValueError):
            LocalSigner(ec.generate_private_key(ec.SECP384R1()))

    def test_invalid_artifact_refused(self):
        signer = LocalSigner.generate()
        artifact = Artifact(
            id=uuid.uuid4(),
            type="agent_recipe",
            version=0,
            workspace_id=uuid.uuid4(),
            created_at="2026-01-15T12:00:00Z",
            json_body={"name": "x"},
        )
        with self.assertRaises(InvalidArtifactError) as ctx:
            signer.sign(artifact)
        self.assertEqual(ctx.exception.code, ValidationCode.INVALID_VERSION)

    def test_free_form_type_refused(self):
        signer = LocalSigner.generate()
        with self.assertRaises(InvalidArtifactError) as ctx:
            signer.sign(new_artifact(artifact_type="whatever"))
        self.assertEqual(ctx.exception.code, ValidationCode.UNKNOWN_TYPE)

    def test_alternate_backend_via_build_envelope(self):
        """A backend that only signs digests plugs into the same envelope."""
        key = generate_private_key()
        kid = key_id_for(key.public_key())

        class DigestOnlySigner(Signer):
            def sign(self, artifact):
                from fedmcp.jws import pack_signature

                def sign_digest(digest):
                    return pack_signature(key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256()))))

                return build_envelope(artifact, kid, sign_digest, iat=1)

            def get_key_id(self):
                return kid

            def get_public_key(self):
                return key.public_key()

        artifact = new_artifact()
        signer = DigestOnlySigner()
        verifier = Verifier()
        verifier.add_signer(signer)
        self.assertTrue(verifier.verify(signer.sign(artifact), artifact).is_valid())

    def test_backend_failure_is_signing_error(self):
        def broken(digest):
            raise SigningError("entropy source unavailable")

        with self.assertRaises(SigningError):
            build_envelope(new_artifact(), "kid", broken, iat=1)

    def test_short_signature_rejected(self):
        with self.assertRaises(SigningError):
            build_envelope(new_artifact(), "kid", lambda digest: b"\x00" * 63, iat=1)


class TestKeyRegistry(unittest.TestCase):
    """Verifier key registry."""

    def test_add_pem_and_der(self):
        signer = LocalSigner.generate()
        public_key = signer.get_public_key()

        verifier = Verifier()
        verifier.add_public_key_pem("pem", public_key_to_pem(public_key))
        verifier.add_public_key_der("der", public_key_to_der(public_key))

        self.assertEqual(verifier.key_ids(), ["der", "pem"])
        self.assertEqual(len(verifier), 2)

    def test_last_write_wins(self):
        first = LocalSigner.generate()
        second = LocalSigner.generate()
        artifact = new_artifact()
        envelope = first.sign(artifact)

        verifier = Verifier()
        verifier.add_public_key(first.get_key_id(), first.get_public_key())
        self.assertTrue(verifier.verify(envelope, artifact).is_valid())

        verifier.add_public_key(first.get_key_id(), second.get_public_key())
        result = verifier.verify(envelope, artifact)
        self.assertEqual(result.reason, FailureReason.SIGNATURE_MISMATCH)

    def test_rejects_bad_entries(self):
        verifier = Verifier()
        with self.assertRaises(ValueError):
            verifier.add_public_key("", LocalSigner.generate().get_public_key())
        with self.assertRaises(ValueError):
            verifier.add_public_key("k", ec.generate_private_key(ec.SECP384R1()).public_key())
        with self.assertRaises(ValueError):
            verifier.add_public_key("k", "not a key")

    def test_initial_keys(self):
        signer = LocalSigner.generate()
        verifier = Verifier({signer.get_key_id(): signer.get_public_key()})
        artifact = new_artifact()
        self.assertTrue(verifier.verify(signer.sign(artifact), artifact).is_valid())

    def test_concurrent_registration_and_verification(self):
        signers = [LocalSigner.generate() for _ in range(8)]
        signed = []
        for signer in signers:
            artifact = new_artifact()
            signed.append((signer, artifact, signer.sign(artifact)))

        verifier = Verifier()
        failures = []

        def register(signer):
            verifier.add_signer(signer)

        def verify(signer, artifact, envelope):
            verifier.add_signer(signer)
            for _ in range(5):
                result = verifier.verify(envelope, artifact)
                if not result.is_valid():
                    failures.append(result.reason)

        threads = [threading.Thread(target=register, args=(s,)) for s in signers]
        threads += [threading.Thread(target=verify, args=item) for item in signed]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(failures, [])
        self.assertEqual(len(verifier), len(signers))


if __name__ == "__main__":
    unittest.main()
