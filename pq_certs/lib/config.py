"""Store configuration dataclasses."""

from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

DEFAULT_IMAGE = "docker.io/openquantumsafe/oqs-ossl3"
DEFAULT_ALGORITHM = "mldsa65"  # ML-DSA-65 (Dilithium 3)


@dataclass
class StoreConfig:
    """Process-wide settings, fixed at start-up."""

    workdir: Path = field(default_factory=lambda: Path.cwd() / "pq_certs_menu")
    image: str = DEFAULT_IMAGE
    algorithm: str = DEFAULT_ALGORITHM
    providers: tuple[str, ...] = ("default", "oqsprovider")
    root_validity_days: int = 3650
    intermediate_validity_days: int = 1825
    client_validity_days: int = 365
    key_size: int = 4096


@dataclass
class DistinguishedName:
    """Subject fields collected for a new entity."""

    common_name: str
    organization: str = ""

    def to_openssl_subject(self) -> str:
        """Render as an OpenSSL ``-subj`` argument, e.g. ``/CN=svc1/O=Acme``.

        Empty organization is left out rather than passed as an empty RDN.
        """
        parts = [f"/CN={_escape_subject_value(self.common_name)}"]
        if self.organization:
            parts.append(f"/O={_escape_subject_value(self.organization)}")
        return "".join(parts)

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        attributes = [x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name)]
        if self.organization:
            attributes.append(x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization))
        return x509.Name(attributes)


def _escape_subject_value(value: str) -> str:
    # OpenSSL treats a backslash-prefixed character literally inside -subj
    return "".join("\\" + ch if ch in "\\/+=" else ch for ch in value)
