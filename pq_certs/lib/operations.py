"""Create, chain and inspect workflows over the certificate hierarchy."""

import os
import shutil
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path, PurePosixPath

from .chain import ChainBuilder
from .config import DistinguishedName
from .engine import SigningEngine
from .exceptions import NameCollisionError, PrerequisiteMissingError
from .logging_config import LOGGER
from .models import (
    ArtifactType,
    CertProfile,
    EntityHandle,
    EntityKind,
    EntityMetadata,
    EntityResult,
    RootResult,
)
from .naming import make_entity_id
from .store import STAGING_DIR, CertStore

MAX_ALLOCATION_ATTEMPTS = 3


def validate_request(subject: DistinguishedName, validity_days: int) -> None:
    """Reject subject fields and validity periods the engine cannot use.

    Raises:
        ValueError: If the common name is blank or validity_days is not positive
    """
    if not subject.common_name.strip():
        raise ValueError("common name must not be empty")
    if isinstance(validity_days, bool) or not isinstance(validity_days, int) or validity_days < 1:
        raise ValueError(f"validity period must be a positive number of days, got {validity_days!r}")


class HierarchyOperations:
    """Workflows that combine the store with the signing engine."""

    def __init__(
        self,
        store: CertStore,
        engine: SigningEngine,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize workflows.

        Args:
            store: Certificate store to read and populate
            engine: Backend doing all key generation, signing and decoding
            clock: Source of creation instants for identifiers and metadata
            sleep: Used to wait out a same-second identifier clash
        """
        self.store = store
        self.engine = engine
        self.chain_builder = ChainBuilder(store)
        self.clock = clock
        self.sleep = sleep

    def require_root(self) -> None:
        if not self.store.has_root():
            raise PrerequisiteMissingError(
                f"root CA not found in {self.store.resolve(self.store.root.rel_dir)}. "
                "Create the root CA first."
            )

    def require_intermediate(self) -> None:
        if not self.store.has_any_intermediate():
            raise PrerequisiteMissingError(
                "no intermediate CAs available. Create an intermediate CA first."
            )

    def create_root(self, subject: DistinguishedName, validity_days: int) -> RootResult:
        """Generate a self-signed root CA, replacing any existing one in place.

        Certificates issued by a previous root stay on disk but no longer
        chain to the new root.
        """
        validate_request(subject, validity_days)
        root = self.store.root
        if self.store.has_root():
            LOGGER.warning("Overwriting existing root CA in %s", root.rel_dir)

        now = self.clock()
        with self._staged(f"root_{now.strftime('%Y%m%d_%H%M%S_%f')}") as staged:
            staged_root = EntityHandle(EntityKind.ROOT, staged, root.name)
            self.engine.issue_self_signed(
                key_out=staged_root.key,
                cert_out=staged_root.certificate,
                subject=subject,
                validity_days=validity_days,
            )
            self.store.write_metadata(
                staged_root, self._metadata(staged_root, subject, validity_days, now, issuer=None)
            )

            self._swap_root_dir(staged)

        LOGGER.info("Root CA generated in %s", self.store.resolve(root.rel_dir))
        return RootResult(
            key_path=self.store.resolve(root.key),
            cert_path=self.store.resolve(root.certificate),
            metadata_path=self.store.resolve(root.metadata),
        )

    def create_intermediate(self, subject: DistinguishedName, validity_days: int) -> EntityResult:
        """Create an intermediate CA signed by the root, with its chain file.

        Raises:
            PrerequisiteMissingError: If there is no root CA
        """
        self.require_root()
        validate_request(subject, validity_days)
        result = self._create_signed_entity(
            EntityKind.INTERMEDIATE, self.store.root, subject, validity_days, CertProfile.CA
        )
        LOGGER.info("Intermediate CA generated in %s", result.handle.rel_dir)
        return result

    def create_client(
        self, issuer: EntityHandle, subject: DistinguishedName, validity_days: int
    ) -> EntityResult:
        """Create a client certificate signed by issuer, with its full chain.

        Args:
            issuer: Intermediate CA picked by the operator
            subject: Client subject fields
            validity_days: Certificate validity period in days

        Raises:
            PrerequisiteMissingError: If no intermediate exists or issuer is incomplete
        """
        self.require_intermediate()
        if issuer.kind is not EntityKind.INTERMEDIATE:
            raise ValueError(f"clients must be issued by an intermediate CA, not {issuer.kind.label}")
        if not self.store.is_complete(issuer):
            raise PrerequisiteMissingError(f"intermediate CA {issuer.name} is incomplete")
        validate_request(subject, validity_days)

        result = self._create_signed_entity(
            EntityKind.CLIENT, issuer, subject, validity_days, CertProfile.LEAF
        )
        LOGGER.info(
            "Client certificate generated in %s. Full chain: %s",
            result.handle.rel_dir,
            result.handle.chain,
        )
        return result

    def regenerate_chain(self, handle: EntityHandle, output_name: str) -> Path:
        """Recompute handle's chain into output_name without touching the store.

        Args:
            handle: Intermediate or client to build the chain for
            output_name: Destination, relative to the working root unless absolute

        Returns:
            Path of the written chain file

        Raises:
            ValueError: If the destination is empty or inside an entity directory
        """
        if not output_name.strip():
            raise ValueError("output filename must not be empty")

        destination = Path(output_name)
        if not destination.is_absolute():
            destination = self.store.workdir / destination
        destination = destination.resolve()

        for kind in EntityKind:
            protected = (self.store.workdir / kind.parent_dir).resolve()
            if destination == protected or destination.is_relative_to(protected):
                raise ValueError(f"refusing to write inside {kind.parent_dir}/: {output_name}")

        self.chain_builder.write_chain(handle, destination)
        LOGGER.info("Chain file created at %s", destination)
        return destination

    def inspectable_files(self, artifact: ArtifactType) -> list[PurePosixPath]:
        return self.store.artifact_files(artifact)

    def inspect(self, rel_path: PurePosixPath, artifact: ArtifactType) -> str:
        """Decode a stored CSR or certificate; the store is not modified."""
        LOGGER.info("Inspecting %s", rel_path)
        return self.engine.decode(rel_path, artifact)

    def _create_signed_entity(
        self,
        kind: EntityKind,
        issuer: EntityHandle,
        subject: DistinguishedName,
        validity_days: int,
        profile: CertProfile,
    ) -> EntityResult:
        entity_id, now = self._allocate(kind, subject.common_name)
        final = self.store.entity(kind, entity_id)

        with self._staged(entity_id) as staged:
            staged_handle = EntityHandle(kind, staged, entity_id)
            self.store.write_metadata(
                staged_handle,
                self._metadata(final, subject, validity_days, now, issuer=issuer),
            )
            self.engine.generate_csr(
                key_out=staged_handle.key,
                csr_out=staged_handle.csr,
                subject=subject,
            )
            self.engine.sign_csr(
                csr=staged_handle.csr,
                ca_cert=issuer.certificate,
                ca_key=issuer.key,
                cert_out=staged_handle.certificate,
                validity_days=validity_days,
                profile=profile,
            )
            self.chain_builder.write_chain(
                staged_handle, self.store.resolve(staged_handle.chain)
            )
            os.replace(self.store.resolve(staged), self.store.resolve(final.rel_dir))

        return EntityResult(
            handle=final,
            key_path=self.store.resolve(final.key),
            csr_path=self.store.resolve(final.csr),
            cert_path=self.store.resolve(final.certificate),
            chain_path=self.store.resolve(final.chain),
            metadata_path=self.store.resolve(final.metadata),
        )

    def _allocate(self, kind: EntityKind, label: str) -> tuple[str, datetime]:
        """Pick an identifier whose directory does not exist yet.

        Identifiers have one-second resolution, so a clash is resolved by
        waiting for the next second.
        """
        for attempt in range(MAX_ALLOCATION_ATTEMPTS):
            now = self.clock()
            entity_id = make_entity_id(label, now)
            final_dir = self.store.resolve(self.store.entity(kind, entity_id).rel_dir)
            if not final_dir.exists() and not (self.store.staging_dir() / entity_id).exists():
                return entity_id, now
            LOGGER.warning("Identifier %s already in use (attempt %d)", entity_id, attempt + 1)
            self.sleep(1)
        raise NameCollisionError(f"could not allocate a free {kind.label} identifier for {label!r}")

    def _swap_root_dir(self, staged: PurePosixPath) -> None:
        """Replace root/ with the staged directory as a unit.

        The previous root is parked under the staging area first, so key and
        certificate always come from the same run. If the swap fails the
        previous root is put back.
        """
        root_dir = self.store.resolve(self.store.root.rel_dir)
        retired = self.store.resolve(staged.with_name(f"{staged.name}.retired"))
        if root_dir.exists():
            os.replace(root_dir, retired)
        try:
            os.replace(self.store.resolve(staged), root_dir)
        except OSError:
            if retired.exists():
                os.replace(retired, root_dir)
            raise
        if retired.exists():
            shutil.rmtree(retired)

    @contextmanager
    def _staged(self, name: str) -> Iterator[PurePosixPath]:
        """Yield a fresh staging directory; remove it on failure or once emptied."""
        staged = PurePosixPath(STAGING_DIR) / name
        staged_dir = self.store.resolve(staged)
        staged_dir.mkdir(parents=True)
        try:
            yield staged
        except BaseException:
            LOGGER.error("Discarding partial output in %s", staged)
            shutil.rmtree(staged_dir, ignore_errors=True)
            raise
        if staged_dir.exists():
            shutil.rmtree(staged_dir)

    def _metadata(
        self,
        handle: EntityHandle,
        subject: DistinguishedName,
        validity_days: int,
        created_at: datetime,
        issuer: EntityHandle | None,
    ) -> EntityMetadata:
        return EntityMetadata(
            name=handle.name,
            kind=handle.kind.label,
            commonName=subject.common_name,
            organization=subject.organization,
            validityDays=validity_days,
            algorithm=self.engine.algorithm,
            createdAt=created_at.isoformat(),
            issuer=str(issuer.rel_dir) if issuer is not None else None,
        )
