"""
signature/tests/test_signing_identity.py
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from pyhanko.sign import signers

from core.tests.pdf_fixtures import identity_pem
from signature.models.signing_identity import SigningIdentity


class TestSigningIdentity(unittest.TestCase):
    def test_from_pem_bytes(self) -> None:
        key_pem, cert_pem = identity_pem()
        identity = SigningIdentity.from_pem_bytes(key_pem, cert_pem)
        self.assertIn("PDF Forms Test Platform", identity.subject_name)
        self.assertIsInstance(identity.signer(), signers.SimpleSigner)

    def test_from_files_with_passphrase(self) -> None:
        key_pem, cert_pem = identity_pem()
        key = serialization.load_pem_private_key(key_pem, password=None)
        encrypted = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(b"s3cret"),
        )
        with tempfile.TemporaryDirectory() as tmp:
            key_file = Path(tmp) / "platform.key.pem"
            cert_file = Path(tmp) / "platform.cert.pem"
            key_file.write_bytes(encrypted)
            cert_file.write_bytes(cert_pem)

            identity = SigningIdentity.from_files(key_file, cert_file, "s3cret")
            self.assertEqual(
                identity.signing_cert.dump(),
                SigningIdentity.from_pem_bytes(key_pem, cert_pem).signing_cert.dump(),
            )

    def test_wrong_passphrase(self) -> None:
        key_pem, cert_pem = identity_pem()
        key = serialization.load_pem_private_key(key_pem, password=None)
        encrypted = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(b"right"),
        )
        with self.assertRaises((ValueError, TypeError)):
            SigningIdentity.from_pem_bytes(encrypted, cert_pem, b"wrong")


if __name__ == "__main__":
    unittest.main()
