"""Test fixtures for pq_certs tests."""

from datetime import datetime, timedelta
from collections.abc import Callable
from pathlib import Path

import pytest

from pq_certs.lib.config import DistinguishedName, StoreConfig
from pq_certs.lib.local_engine import LocalCryptographyEngine
from pq_certs.lib.models import EntityHandle, EntityKind
from pq_certs.lib.operations import HierarchyOperations
from pq_certs.lib.store import CertStore


class SteppingClock:
    """Clock that moves one second forward on every call."""

    def __init__(self, start: datetime) -> None:
        self.current = start - timedelta(seconds=1)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Return store working root inside pytest's temporary directory."""
    return tmp_path / "pq_certs_menu"


@pytest.fixture
def store_config(workdir: Path) -> StoreConfig:
    """Return test configuration with a small local key size."""
    return StoreConfig(workdir=workdir, key_size=2048)


@pytest.fixture
def store(workdir: Path) -> CertStore:
    """Return store with root/, intermediates/ and clients/ created."""
    cert_store = CertStore(workdir)
    cert_store.ensure_layout()
    return cert_store


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2025, 7, 23, 9, 30, 0))


@pytest.fixture
def local_engine(workdir: Path) -> LocalCryptographyEngine:
    """Return local engine with 2048-bit keys (faster for tests)."""
    return LocalCryptographyEngine(workdir, key_size=2048)


@pytest.fixture
def operations(
    store: CertStore, local_engine: LocalCryptographyEngine, clock: SteppingClock
) -> HierarchyOperations:
    return HierarchyOperations(store, local_engine, clock=clock, sleep=lambda _: None)


@pytest.fixture
def root_subject() -> DistinguishedName:
    return DistinguishedName(common_name="Test Root CA", organization="Acme")


@pytest.fixture
def intermediate_subject() -> DistinguishedName:
    return DistinguishedName(common_name="Issuing CA 1", organization="Acme")


@pytest.fixture
def issued_intermediate(
    operations: HierarchyOperations,
    root_subject: DistinguishedName,
    intermediate_subject: DistinguishedName,
) -> EntityHandle:
    """Create a root and one intermediate signed by it; return the intermediate."""
    operations.create_root(root_subject, 3650)
    return operations.create_intermediate(intermediate_subject, 1825).handle


@pytest.fixture
def fake_entity(store: CertStore) -> Callable[..., EntityHandle]:
    """Return a factory writing placeholder files for an entity without running any engine.

    File contents are ``<rel path>\\n`` so concatenations are easy to assert.
    Chain files are written by hand and are not real chains.
    """

    def write(
        kind: EntityKind,
        name: str,
        issuer: EntityHandle | None = None,
        skip: tuple[str, ...] = (),
    ) -> EntityHandle:
        handle = store.entity(kind, name)
        entity_dir = store.resolve(handle.rel_dir)
        entity_dir.mkdir(parents=True, exist_ok=True)
        for file_name in kind.required_files:
            if file_name in skip:
                continue
            (entity_dir / file_name).write_bytes(f"{handle.rel_dir / file_name}\n".encode())
        if kind is not EntityKind.ROOT:
            store.write_metadata(
                handle,
                {
                    "name": name,
                    "kind": kind.label,
                    "commonName": name,
                    "organization": "Acme",
                    "validityDays": 30,
                    "algorithm": "mldsa65",
                    "createdAt": "2025-07-23T09:30:00",
                    "issuer": str(issuer.rel_dir) if issuer else None,
                },
            )
        return handle

    return write
