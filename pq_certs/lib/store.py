"""Filesystem-backed certificate store."""

import json
import os
import tempfile
from pathlib import Path, PurePosixPath

from .exceptions import MissingComponentError
from .logging_config import LOGGER
from .models import ArtifactType, EntityHandle, EntityKind, EntityMetadata

STAGING_DIR = ".staging"


def _default_file_mode() -> int:
    """Return the mode open() would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class CertStore:
    """Layout, readiness predicates and listings for a working root directory.

    Layout::

        root/root_ca.{key,crt}
        intermediates/<id>/intermediate.{key,csr,crt}, intermediate_chain.crt
        clients/<id>/client.{key,csr,crt}, client_chain.crt
    """

    def __init__(self, workdir: Path) -> None:
        """Initialize store rooted at workdir.

        Args:
            workdir: Working root; every entity path is relative to it
        """
        self.workdir = workdir

    def ensure_layout(self) -> None:
        """Create the root, intermediates and clients directories if missing."""
        for kind in EntityKind:
            (self.workdir / kind.parent_dir).mkdir(parents=True, exist_ok=True)

    def resolve(self, rel_path: PurePosixPath | str) -> Path:
        """Map a store-relative path to a path on the host."""
        return self.workdir / Path(*PurePosixPath(rel_path).parts)

    @property
    def root(self) -> EntityHandle:
        return EntityHandle(EntityKind.ROOT, PurePosixPath(EntityKind.ROOT.parent_dir), "root")

    def entity(self, kind: EntityKind, name: str) -> EntityHandle:
        """Build a handle for the entity called name (its directory identifier)."""
        if kind is EntityKind.ROOT:
            return self.root
        return EntityHandle(kind, PurePosixPath(kind.parent_dir) / name, name)

    def has_root(self) -> bool:
        return all(self.resolve(self.root.rel_dir / f).is_file() for f in EntityKind.ROOT.required_files)

    def has_any_intermediate(self) -> bool:
        return any(True for _ in self._entity_dirs(EntityKind.INTERMEDIATE))

    def is_complete(self, handle: EntityHandle) -> bool:
        """Return True if every file the entity's kind requires is present."""
        return all(self.resolve(handle.rel_dir / f).is_file() for f in handle.kind.required_files)

    def list_entities(self, kind: EntityKind) -> list[EntityHandle]:
        """List complete entities of kind, sorted by identifier.

        Directories missing part of their file set are left out and logged.
        """
        if kind is EntityKind.ROOT:
            return [self.root] if self.has_root() else []

        handles = []
        for entity_dir in self._entity_dirs(kind):
            handle = self.entity(kind, entity_dir.name)
            if not self.is_complete(handle):
                LOGGER.warning("Skipping incomplete %s: %s", kind.label, handle.rel_dir)
                continue
            handles.append(handle)
        return handles

    def list_intermediates(self) -> list[EntityHandle]:
        return self.list_entities(EntityKind.INTERMEDIATE)

    def list_clients(self) -> list[EntityHandle]:
        return self.list_entities(EntityKind.CLIENT)

    def artifact_files(self, artifact: ArtifactType) -> list[PurePosixPath]:
        """Enumerate inspectable files of one type across the whole store.

        Certificates are listed root first, then each intermediate's
        certificate and chain, then each client's. The root has no CSR.
        """
        found: list[PurePosixPath] = []
        if artifact is ArtifactType.CERTIFICATE and self.resolve(self.root.certificate).is_file():
            found.append(self.root.certificate)

        for kind in (EntityKind.INTERMEDIATE, EntityKind.CLIENT):
            for entity_dir in self._entity_dirs(kind):
                handle = self.entity(kind, entity_dir.name)
                if artifact is ArtifactType.CSR:
                    candidates = [handle.csr]
                else:
                    candidates = [handle.certificate, handle.chain]
                found.extend(c for c in candidates if c is not None and self.resolve(c).is_file())
        return found

    def write_metadata(self, handle: EntityHandle, metadata: EntityMetadata) -> Path:
        path = self.resolve(handle.metadata)
        self.write_atomic(path, json.dumps(metadata, indent=2).encode("utf-8"))
        return path

    def read_metadata(self, handle: EntityHandle) -> EntityMetadata:
        """Load an entity's metadata.json.

        Raises:
            MissingComponentError: If the entity has no metadata file
        """
        path = self.resolve(handle.metadata)
        if not path.is_file():
            raise MissingComponentError(f"metadata not found: {path}")
        return json.loads(path.read_text())

    def issuer_of(self, handle: EntityHandle) -> EntityHandle:
        """Return the handle of the entity that signed handle.

        Intermediates are always issued by the root. Clients record their
        issuing intermediate in metadata.json at creation time.

        Raises:
            MissingComponentError: If a client's issuer reference is absent
        """
        if handle.kind is EntityKind.INTERMEDIATE:
            return self.root
        if handle.kind is EntityKind.ROOT:
            raise ValueError("root CA has no issuer")

        issuer = self.read_metadata(handle).get("issuer")
        if not issuer:
            raise MissingComponentError(f"no issuer recorded for {handle.rel_dir}")
        return self.entity(EntityKind.INTERMEDIATE, PurePosixPath(issuer).name)

    @staticmethod
    def write_atomic(path: Path, data: bytes) -> None:
        """Write data to path through a temporary sibling file and a rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
            os.chmod(tmp_name, _default_file_mode())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def staging_dir(self) -> Path:
        return self.workdir / STAGING_DIR

    def _entity_dirs(self, kind: EntityKind) -> list[Path]:
        parent = self.workdir / kind.parent_dir
        if not parent.is_dir():
            return []
        return sorted(
            (p for p in parent.iterdir() if p.is_dir() and not p.name.startswith(".")),
            key=lambda p: p.name,
        )
