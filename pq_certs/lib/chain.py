"""Trust chain assembly."""

from pathlib import Path, PurePosixPath

from .exceptions import MissingComponentError
from .models import EntityHandle, EntityKind
from .store import CertStore


class ChainBuilder:
    """Builds chain files by concatenating a certificate with its issuer's chain."""

    def __init__(self, store: CertStore) -> None:
        self.store = store

    def components(self, handle: EntityHandle) -> list[PurePosixPath]:
        """Return the store-relative files whose contents make up handle's chain.

        Intermediate: own certificate + root certificate.
        Client: own certificate + issuing intermediate's chain file, which
        already ends with the root.
        """
        if handle.kind is EntityKind.ROOT:
            raise ValueError("root CA has no chain beyond its own certificate")

        issuer = self.store.issuer_of(handle)
        if handle.kind is EntityKind.INTERMEDIATE:
            return [handle.certificate, issuer.certificate]

        issuer_chain = issuer.chain
        if issuer_chain is None:
            raise ValueError(f"issuer {issuer.rel_dir} has no chain file")
        return [handle.certificate, issuer_chain]

    def build_chain(self, handle: EntityHandle) -> bytes:
        """Concatenate the chain components of handle.

        Raises:
            MissingComponentError: If any component file is absent
        """
        paths = [self.store.resolve(p) for p in self.components(handle)]
        missing = [str(p) for p in paths if not p.is_file()]
        if missing:
            raise MissingComponentError(f"chain component not found: {', '.join(missing)}")
        return b"".join(p.read_bytes() for p in paths)

    def write_chain(self, handle: EntityHandle, destination: Path) -> Path:
        """Build handle's chain and write it to destination atomically.

        Nothing is written if a component is missing.
        """
        data = self.build_chain(handle)
        self.store.write_atomic(destination, data)
        return destination
