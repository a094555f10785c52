# signature/models/signing_identity.py
"""
Platform signing identity.

The key pair and certificate are parsed with ``cryptography`` and handed to
pyHanko as asn1crypto structures. Instances are immutable and passed to every
signing call; nothing in the process holds a global signer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from asn1crypto import keys as asn1_keys
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from pyhanko.sign import signers
from pyhanko_certvalidator.registry import SimpleCertificateStore

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class SigningIdentity:
    signing_key: asn1_keys.PrivateKeyInfo
    signing_cert: asn1_x509.Certificate

    # ---- factories ----
    @classmethod
    def from_pem_bytes(
        cls,
        key_data: bytes,
        cert_data: bytes,
        passphrase: Optional[bytes] = None,
    ) -> "SigningIdentity":
        """Build from PEM (or DER) encoded private key and certificate."""
        private_key = _load_private_key(key_data, passphrase)
        certificate = _load_certificate(cert_data)

        key_der = private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        cert_der = certificate.public_bytes(serialization.Encoding.DER)
        return cls(
            signing_key=asn1_keys.PrivateKeyInfo.load(key_der),
            signing_cert=asn1_x509.Certificate.load(cert_der),
        )

    @classmethod
    def from_files(
        cls,
        key_file: PathLike,
        cert_file: PathLike,
        passphrase: Optional[str] = None,
    ) -> "SigningIdentity":
        key_path, cert_path = Path(key_file), Path(cert_file)
        log.info("Loading platform signing identity from %s / %s", key_path, cert_path)
        return cls.from_pem_bytes(
            key_path.read_bytes(),
            cert_path.read_bytes(),
            passphrase.encode("utf-8") if passphrase else None,
        )

    # ---- accessors ----
    @property
    def subject_name(self) -> str:
        return self.signing_cert.subject.human_friendly

    def signer(self) -> signers.SimpleSigner:
        """Fresh pyHanko signer bound to this identity."""
        return signers.SimpleSigner(
            signing_cert=self.signing_cert,
            signing_key=self.signing_key,
            cert_registry=SimpleCertificateStore.from_certs([self.signing_cert]),
        )


def _load_private_key(data: bytes, passphrase: Optional[bytes]):
    if b"-----BEGIN" in data:
        return serialization.load_pem_private_key(data, password=passphrase)
    return serialization.load_der_private_key(data, password=passphrase)


def _load_certificate(data: bytes) -> x509.Certificate:
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)
