"""Entity handles and result models for hierarchy operations."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TypedDict


class EntityKind(Enum):
    """Hierarchy tiers with their on-disk file names."""

    ROOT = ("root", "root_ca", False)
    INTERMEDIATE = ("intermediates", "intermediate", True)
    CLIENT = ("clients", "client", True)

    def __init__(self, parent_dir: str, stem: str, has_csr: bool) -> None:
        self.parent_dir = parent_dir
        self.stem = stem
        self.has_csr = has_csr

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def required_files(self) -> tuple[str, ...]:
        """Files that must all exist for an entity of this kind to be usable."""
        if self is EntityKind.ROOT:
            return (f"{self.stem}.key", f"{self.stem}.crt")
        return (
            f"{self.stem}.key",
            f"{self.stem}.csr",
            f"{self.stem}.crt",
            f"{self.stem}_chain.crt",
        )


class ArtifactType(Enum):
    """Kinds of PKI object the engine can decode."""

    CSR = "csr"
    CERTIFICATE = "crt"


@dataclass(frozen=True)
class EntityHandle:
    """Reference to one stored entity.

    ``rel_dir`` is relative to the store's working root and always in POSIX
    form, because the container engine sees the store mounted at ``/work``.
    """

    kind: EntityKind
    rel_dir: PurePosixPath
    name: str

    def _file(self, suffix: str) -> PurePosixPath:
        return self.rel_dir / f"{self.kind.stem}{suffix}"

    @property
    def key(self) -> PurePosixPath:
        return self._file(".key")

    @property
    def csr(self) -> PurePosixPath | None:
        return self._file(".csr") if self.kind.has_csr else None

    @property
    def certificate(self) -> PurePosixPath:
        return self._file(".crt")

    @property
    def chain(self) -> PurePosixPath | None:
        return self._file("_chain.crt") if self.kind is not EntityKind.ROOT else None

    @property
    def metadata(self) -> PurePosixPath:
        return self.rel_dir / "metadata.json"


class EntityMetadata(TypedDict):
    """Contents of an entity's metadata.json."""

    name: str
    kind: str
    commonName: str
    organization: str
    validityDays: int
    algorithm: str
    createdAt: str
    issuer: str | None


@dataclass
class RootResult:
    """Result from root CA creation."""

    key_path: Path
    cert_path: Path
    metadata_path: Path


@dataclass
class EntityResult:
    """Result from intermediate or client creation.

    Contains the new identifier and the file paths of its artifacts.
    """

    handle: EntityHandle
    key_path: Path
    csr_path: Path
    cert_path: Path
    chain_path: Path
    metadata_path: Path


class CertProfile(Enum):
    """Extension set applied when an authority signs a CSR."""

    CA = "ca"
    LEAF = "leaf"
