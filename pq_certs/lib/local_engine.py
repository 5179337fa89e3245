"""Signing engine backed by the cryptography library.

Uses classical RSA keys, so it does not produce quantum-resistant
certificates. It needs no container runtime, which makes it useful offline
and in tests.
"""

from pathlib import Path, PurePosixPath

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from .cert_utils import (
    deserialize_certificate,
    deserialize_csr,
    deserialize_private_key,
    describe_certificate,
    describe_csr,
    generate_private_key,
    serialize_certificate,
    serialize_csr,
    serialize_private_key,
)
from .certificate_builder import CertificateBuilder
from .config import DistinguishedName
from .engine import SigningEngine
from .exceptions import EngineExecutionError
from .models import ArtifactType, CertProfile


class LocalCryptographyEngine(SigningEngine):
    """Generates and signs in-process, reading and writing under workdir."""

    def __init__(self, workdir: Path, key_size: int = 4096) -> None:
        self.workdir = workdir
        self.key_size = key_size
        self.algorithm = f"rsa{key_size}"

    def issue_self_signed(
        self,
        key_out: PurePosixPath,
        cert_out: PurePosixPath,
        subject: DistinguishedName,
        validity_days: int,
    ) -> None:
        key = generate_private_key(self.key_size)
        cert = CertificateBuilder.build_root_ca(
            subject_dn=subject,
            private_key=key,
            validity_days=validity_days,
        )
        self._path(key_out).write_bytes(serialize_private_key(key))
        self._path(cert_out).write_bytes(serialize_certificate(cert))

    def generate_csr(
        self, key_out: PurePosixPath, csr_out: PurePosixPath, subject: DistinguishedName
    ) -> None:
        key = generate_private_key(self.key_size)
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject.to_x509_name())
            .sign(key, hashes.SHA256())
        )
        self._path(key_out).write_bytes(serialize_private_key(key))
        self._path(csr_out).write_bytes(serialize_csr(csr))

    def sign_csr(
        self,
        csr: PurePosixPath,
        ca_cert: PurePosixPath,
        ca_key: PurePosixPath,
        cert_out: PurePosixPath,
        validity_days: int,
        profile: CertProfile,
    ) -> None:
        request_pem, cert_pem, key_pem = self._read(csr), self._read(ca_cert), self._read(ca_key)
        try:
            request = deserialize_csr(request_pem)
            issuer_cert = deserialize_certificate(cert_pem)
            issuer_key = deserialize_private_key(key_pem)
            cert = CertificateBuilder.build_from_csr(
                csr=request,
                issuer_cert=issuer_cert,
                issuer_key=issuer_key,
                validity_days=validity_days,
                profile=profile,
            )
        except ValueError as e:
            raise EngineExecutionError(f"CSR signing failed: {e}") from e
        self._path(cert_out).write_bytes(serialize_certificate(cert))

    def decode(self, path: PurePosixPath, artifact: ArtifactType) -> str:
        data = self._read(path)
        try:
            if artifact is ArtifactType.CSR:
                return describe_csr(deserialize_csr(data))
            return describe_certificate(deserialize_certificate(data))
        except ValueError as e:
            raise EngineExecutionError(f"decode failed: {e}") from e

    def _path(self, rel_path: PurePosixPath) -> Path:
        return self.workdir / Path(*rel_path.parts)

    def _read(self, rel_path: PurePosixPath) -> bytes:
        path = self._path(rel_path)
        if not path.is_file():
            raise EngineExecutionError(f"cannot open {rel_path}: file not found")
        return path.read_bytes()
