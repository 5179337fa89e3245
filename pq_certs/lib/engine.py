"""Signing engine interface and the container-hosted OpenSSL implementation."""

import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import PurePosixPath

from .config import DistinguishedName, StoreConfig
from .exceptions import ContainerRuntimeNotFoundError, EngineExecutionError
from .logging_config import LOGGER
from .models import ArtifactType, CertProfile

CONTAINER_WORKDIR = "/work"
RUNTIME_CANDIDATES = ("docker", "podman")

PROFILE_EXTENSIONS = {
    CertProfile.CA: (
        "basicConstraints = critical, CA:TRUE, pathlen:0\n"
        "keyUsage = critical, keyCertSign, cRLSign\n"
        "subjectKeyIdentifier = hash\n"
        "authorityKeyIdentifier = keyid:always\n"
    ),
    CertProfile.LEAF: (
        "basicConstraints = critical, CA:FALSE\n"
        "keyUsage = critical, digitalSignature\n"
        "extendedKeyUsage = clientAuth\n"
        "subjectKeyIdentifier = hash\n"
        "authorityKeyIdentifier = keyid:always\n"
    ),
}
EXTENSIONS_SECTION = "pq_certs_ext"


class SigningEngine(ABC):
    """Cryptographic backend used by the hierarchy workflows.

    Every path argument is relative to the store's working root, in POSIX form.
    """

    algorithm: str

    @abstractmethod
    def issue_self_signed(
        self,
        key_out: PurePosixPath,
        cert_out: PurePosixPath,
        subject: DistinguishedName,
        validity_days: int,
    ) -> None:
        """Generate a key and a self-signed CA certificate for it."""

    @abstractmethod
    def generate_csr(
        self,
        key_out: PurePosixPath,
        csr_out: PurePosixPath,
        subject: DistinguishedName,
    ) -> None:
        """Generate a key and a CSR for it."""

    @abstractmethod
    def sign_csr(
        self,
        csr: PurePosixPath,
        ca_cert: PurePosixPath,
        ca_key: PurePosixPath,
        cert_out: PurePosixPath,
        validity_days: int,
        profile: CertProfile,
    ) -> None:
        """Issue a certificate for csr signed by the given authority."""

    @abstractmethod
    def decode(self, path: PurePosixPath, artifact: ArtifactType) -> str:
        """Return a human-readable dump of a CSR or certificate."""


def discover_runtime() -> str:
    """Return the path of the first container runtime found on PATH.

    Raises:
        ContainerRuntimeNotFoundError: If neither docker nor podman is installed
    """
    for name in RUNTIME_CANDIDATES:
        runtime = shutil.which(name)
        if runtime:
            return runtime
    raise ContainerRuntimeNotFoundError(
        "neither docker nor podman was found in PATH. Please install one of them."
    )


class ContainerOpenSSLEngine(SigningEngine):
    """Runs OpenSSL with the OQS provider inside a throwaway container.

    The store's working root is mounted at /work, which is also the
    container's working directory, so store-relative paths work unchanged.
    """

    def __init__(self, runtime: str, config: StoreConfig) -> None:
        """Initialize engine.

        Args:
            runtime: Path to the docker or podman binary
            config: Store configuration (workdir, image, algorithm, providers)
        """
        self.runtime = runtime
        self.image = config.image
        self.algorithm = config.algorithm
        self.providers = config.providers
        self.workdir = config.workdir.resolve()

    def ensure_image(self) -> None:
        """Pull the engine image if it is not already present."""
        LOGGER.info("Pulling image %s (if not already present)", self.image)
        self._execute([self.runtime, "pull", self.image], "image pull")

    def issue_self_signed(
        self,
        key_out: PurePosixPath,
        cert_out: PurePosixPath,
        subject: DistinguishedName,
        validity_days: int,
    ) -> None:
        self._run_openssl(
            "req",
            ["-x509", "-new", "-newkey", self.algorithm, "-nodes"]
            + ["-keyout", str(key_out), "-out", str(cert_out)]
            + ["-subj", subject.to_openssl_subject(), "-days", str(validity_days)],
            "self-signed certificate generation",
        )

    def generate_csr(
        self, key_out: PurePosixPath, csr_out: PurePosixPath, subject: DistinguishedName
    ) -> None:
        self._run_openssl(
            "req",
            ["-new", "-newkey", self.algorithm, "-nodes"]
            + ["-keyout", str(key_out), "-out", str(csr_out)]
            + ["-subj", subject.to_openssl_subject()],
            "key and CSR generation",
        )

    def sign_csr(
        self,
        csr: PurePosixPath,
        ca_cert: PurePosixPath,
        ca_key: PurePosixPath,
        cert_out: PurePosixPath,
        validity_days: int,
        profile: CertProfile,
    ) -> None:
        ext_rel = cert_out.with_suffix(".ext")
        ext_host = self.workdir / ext_rel
        ext_host.write_text(f"[{EXTENSIONS_SECTION}]\n{PROFILE_EXTENSIONS[profile]}")
        try:
            self._run_openssl(
                "x509",
                ["-req", "-in", str(csr), "-CA", str(ca_cert), "-CAkey", str(ca_key)]
                + ["-CAcreateserial", "-out", str(cert_out), "-days", str(validity_days)]
                + ["-extfile", str(ext_rel), "-extensions", EXTENSIONS_SECTION],
                "CSR signing",
            )
        finally:
            ext_host.unlink(missing_ok=True)

    def decode(self, path: PurePosixPath, artifact: ArtifactType) -> str:
        command = "req" if artifact is ArtifactType.CSR else "x509"
        return self._run_openssl(command, ["-in", str(path), "-text", "-noout"], "decode")

    def _run_openssl(self, command: str, args: list[str], description: str) -> str:
        provider_args: list[str] = []
        for provider in self.providers:
            provider_args += ["-provider", provider]

        argv = [
            self.runtime,
            "run",
            "--rm",
            "-v",
            f"{self.workdir}:{CONTAINER_WORKDIR}",
            "-w",
            CONTAINER_WORKDIR,
            self.image,
            "openssl",
            command,
            *provider_args,
            *args,
        ]
        return self._execute(argv, description)

    @staticmethod
    def _execute(argv: list[str], description: str) -> str:
        LOGGER.debug("Executing: %s", shlex.join(argv))
        try:
            result = subprocess.run(argv, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise EngineExecutionError(f"{description} failed: {e}", command=argv) from e
        except subprocess.CalledProcessError as e:
            raise EngineExecutionError(
                f"{description} failed with exit code {e.returncode}",
                command=argv,
                stderr=e.stderr or "",
            ) from e
        return result.stdout
