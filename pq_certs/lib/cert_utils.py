"""Key, certificate and CSR helpers for the local signing engine."""

import uuid

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


def generate_private_key(key_size: int = 4096) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> RSAPrivateKey:
    """Deserialize private key from PEM bytes."""
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Load the first certificate of a PEM file (chain files hold several)."""
    return x509.load_pem_x509_certificate(pem_data)


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    return csr.public_bytes(serialization.Encoding.PEM)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    return x509.load_pem_x509_csr(pem_data)


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4 (128 bits, ~122 random)."""
    return uuid.uuid4().int


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def _describe_extensions(extensions: x509.Extensions) -> list[str]:
    lines = []
    for ext in extensions:
        critical = " (critical)" if ext.critical else ""
        lines.append(f"    {ext.oid._name}{critical}: {ext.value}")
    return lines


def describe_certificate(cert: x509.Certificate) -> str:
    """Render the fields of a certificate as indented text."""
    public_key = cert.public_key()
    if isinstance(public_key, rsa.RSAPublicKey):
        key_desc = f"RSA {public_key.key_size} bit"
    else:
        key_desc = type(public_key).__name__
    lines = [
        "Certificate:",
        f"  Serial Number: {get_certificate_serial_hex(cert)}",
        f"  Signature Algorithm: {cert.signature_algorithm_oid._name}",
        f"  Issuer: {cert.issuer.rfc4514_string()}",
        f"  Not Before: {cert.not_valid_before_utc.isoformat()}",
        f"  Not After: {cert.not_valid_after_utc.isoformat()}",
        f"  Subject: {cert.subject.rfc4514_string()}",
        f"  Public Key: {key_desc}",
        "  Extensions:",
        *_describe_extensions(cert.extensions),
    ]
    return "\n".join(lines) + "\n"


def describe_csr(csr: x509.CertificateSigningRequest) -> str:
    """Render the fields of a CSR as indented text."""
    lines = [
        "Certificate Request:",
        f"  Subject: {csr.subject.rfc4514_string()}",
        f"  Signature Algorithm: {csr.signature_algorithm_oid._name}",
        f"  Signature Valid: {csr.is_signature_valid}",
    ]
    return "\n".join(lines) + "\n"
