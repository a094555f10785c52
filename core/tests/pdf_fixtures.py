"""
core/tests/pdf_fixtures.py

Test data builders shared by the feature test suites: small PDFs drawn with
reportlab, an AcroForm template and a throw-away platform identity.
"""

from __future__ import annotations

import datetime as _dt
from functools import lru_cache
from io import BytesIO

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from core.config.config_service import ConfigService
from signature.models.signing_identity import SigningIdentity

PAGE_W, PAGE_H = A4


def make_pdf(pages: int = 1) -> bytes:
    """Plain document without any form."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    for i in range(pages):
        c.setFont("Helvetica", 14)
        c.drawString(72, PAGE_H - 72, f"Contract page {i + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_form_template() -> bytes:
    """
    Two pages with an existing AcroForm:
      page 0: text field "full_name"
      page 1: check box "agree" and radio group "plan" (two buttons)
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    form = c.acroForm

    c.drawString(72, 720, "Name:")
    form.textfield(name="full_name", tooltip="Full name", x=150, y=700, width=200, height=24)
    c.showPage()

    c.drawString(72, 720, "I agree")
    form.checkbox(name="agree", tooltip="Agree", x=150, y=700, size=16, buttonStyle="check")
    c.drawString(72, 650, "Plan")
    form.radio(name="plan", tooltip="Plan", value="basic", selected=False, x=150, y=640, size=16)
    form.radio(name="plan", tooltip="Plan", value="pro", selected=False, x=200, y=640, size=16)
    c.showPage()

    c.save()
    return buf.getvalue()


@lru_cache(maxsize=1)
def _key_and_cert_pem() -> tuple[bytes, bytes]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, "PDF Forms Test Platform"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "FormSign Tests"),
    ])
    now = _dt.datetime.now(_dt.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - _dt.timedelta(days=1))
        .not_valid_after(now + _dt.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=True, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return key_pem, cert.public_bytes(serialization.Encoding.PEM)


def make_identity() -> SigningIdentity:
    key_pem, cert_pem = _key_and_cert_pem()
    return SigningIdentity.from_pem_bytes(key_pem, cert_pem)


def identity_pem() -> tuple[bytes, bytes]:
    """(key PEM, certificate PEM) of the shared test identity."""
    return _key_and_cert_pem()


def make_config(**sections) -> ConfigService:
    """Config isolated from files and the environment; in-memory storage."""
    overrides = {"Storage": {"backend": "memory"}, "Logging": {"audit_db": ":memory:"}}
    for section, values in sections.items():
        overrides.setdefault(section, {}).update(values)
    return ConfigService(overrides=overrides, environ={}, use_files=False)
