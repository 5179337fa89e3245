"""Tests for the container-hosted OpenSSL engine."""

import subprocess
from collections.abc import Iterator
from pathlib import Path, PurePosixPath
from unittest.mock import MagicMock, patch

import pytest

from pq_certs.lib.config import DistinguishedName, StoreConfig
from pq_certs.lib.engine import ContainerOpenSSLEngine, discover_runtime
from pq_certs.lib.exceptions import ContainerRuntimeNotFoundError, EngineExecutionError
from pq_certs.lib.models import ArtifactType, CertProfile

RUNTIME = "/usr/bin/docker"


@pytest.fixture
def mock_run() -> Iterator[MagicMock]:
    with patch("pq_certs.lib.engine.subprocess.run") as mock:
        mock.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        yield mock


@pytest.fixture
def engine(store_config: StoreConfig) -> ContainerOpenSSLEngine:
    store_config.workdir.mkdir(parents=True)
    return ContainerOpenSSLEngine(RUNTIME, store_config)


def _openssl_args(mock_run: MagicMock) -> list[str]:
    argv = mock_run.call_args.args[0]
    return argv[argv.index("openssl") + 1 :]


class TestDiscoverRuntime:
    """Tests for discover_runtime."""

    def test_prefers_docker(self) -> None:
        with patch("pq_certs.lib.engine.shutil.which", side_effect=lambda n: f"/bin/{n}"):
            assert discover_runtime() == "/bin/docker"

    def test_falls_back_to_podman(self) -> None:
        with patch(
            "pq_certs.lib.engine.shutil.which",
            side_effect=lambda n: "/bin/podman" if n == "podman" else None,
        ):
            assert discover_runtime() == "/bin/podman"

    def test_raises_when_no_runtime(self) -> None:
        with patch("pq_certs.lib.engine.shutil.which", return_value=None):
            with pytest.raises(ContainerRuntimeNotFoundError, match="neither docker nor podman"):
                discover_runtime()


class TestContainerInvocation:
    """Tests for how commands are wrapped in the container runtime."""

    def test_mounts_workdir_and_runs_without_shell(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock, store_config: StoreConfig
    ) -> None:
        engine.generate_csr(
            PurePosixPath("a/k.key"), PurePosixPath("a/r.csr"), DistinguishedName("svc1", "Acme")
        )

        argv = mock_run.call_args.args[0]
        assert argv[:8] == [
            RUNTIME,
            "run",
            "--rm",
            "-v",
            f"{store_config.workdir.resolve()}:/work",
            "-w",
            "/work",
            "docker.io/openquantumsafe/oqs-ossl3",
        ]
        assert "shell" not in mock_run.call_args.kwargs
        assert mock_run.call_args.kwargs["check"] is True
        assert mock_run.call_args.kwargs["capture_output"] is True

    def test_loads_providers_after_subcommand(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock
    ) -> None:
        engine.decode(PurePosixPath("root/root_ca.crt"), ArtifactType.CERTIFICATE)

        assert _openssl_args(mock_run)[:5] == [
            "x509",
            "-provider",
            "default",
            "-provider",
            "oqsprovider",
        ]

    def test_ensure_image_pulls(self, engine: ContainerOpenSSLEngine, mock_run: MagicMock) -> None:
        engine.ensure_image()
        assert mock_run.call_args.args[0] == [
            RUNTIME,
            "pull",
            "docker.io/openquantumsafe/oqs-ossl3",
        ]


class TestOpenSSLCommands:
    """Tests for the OpenSSL arguments of each operation."""

    def test_issue_self_signed(self, engine: ContainerOpenSSLEngine, mock_run: MagicMock) -> None:
        engine.issue_self_signed(
            PurePosixPath(".staging/r/root_ca.key"),
            PurePosixPath(".staging/r/root_ca.crt"),
            DistinguishedName("My Root", "Acme"),
            3650,
        )

        args = _openssl_args(mock_run)
        assert args[0] == "req"
        assert args[5:] == [
            "-x509",
            "-new",
            "-newkey",
            "mldsa65",
            "-nodes",
            "-keyout",
            ".staging/r/root_ca.key",
            "-out",
            ".staging/r/root_ca.crt",
            "-subj",
            "/CN=My Root/O=Acme",
            "-days",
            "3650",
        ]

    def test_generate_csr_uses_configured_algorithm(
        self, store_config: StoreConfig, mock_run: MagicMock
    ) -> None:
        store_config.algorithm = "falcon512"
        engine = ContainerOpenSSLEngine(RUNTIME, store_config)

        engine.generate_csr(
            PurePosixPath("k.key"), PurePosixPath("r.csr"), DistinguishedName("svc1")
        )

        args = _openssl_args(mock_run)
        assert args[5:9] == ["-new", "-newkey", "falcon512", "-nodes"]
        assert args[-2:] == ["-subj", "/CN=svc1"]

    def test_subject_values_are_escaped(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock
    ) -> None:
        engine.generate_csr(
            PurePosixPath("k.key"), PurePosixPath("r.csr"), DistinguishedName("a/b", "x+y=z")
        )
        assert _openssl_args(mock_run)[-1] == "/CN=a\\/b/O=x\\+y\\=z"

    def test_sign_csr_writes_and_removes_extension_file(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock, store_config: StoreConfig
    ) -> None:
        ext_path = store_config.workdir / "staged" / "intermediate.ext"
        ext_path.parent.mkdir()
        seen: dict[str, str] = {}

        def capture(argv: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
            seen["ext"] = ext_path.read_text()
            return subprocess.CompletedProcess(argv, 0, "", "")

        mock_run.side_effect = capture

        engine.sign_csr(
            csr=PurePosixPath("staged/intermediate.csr"),
            ca_cert=PurePosixPath("root/root_ca.crt"),
            ca_key=PurePosixPath("root/root_ca.key"),
            cert_out=PurePosixPath("staged/intermediate.crt"),
            validity_days=1825,
            profile=CertProfile.CA,
        )

        args = _openssl_args(mock_run)
        assert args[0] == "x509"
        assert args[5:] == [
            "-req",
            "-in",
            "staged/intermediate.csr",
            "-CA",
            "root/root_ca.crt",
            "-CAkey",
            "root/root_ca.key",
            "-CAcreateserial",
            "-out",
            "staged/intermediate.crt",
            "-days",
            "1825",
            "-extfile",
            "staged/intermediate.ext",
            "-extensions",
            "pq_certs_ext",
        ]
        assert "CA:TRUE, pathlen:0" in seen["ext"]
        assert not ext_path.exists()

    def test_leaf_profile_extensions(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock, store_config: StoreConfig
    ) -> None:
        ext_path = store_config.workdir / "client.ext"
        seen: dict[str, str] = {}

        def capture(argv: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
            seen["ext"] = ext_path.read_text()
            return subprocess.CompletedProcess(argv, 0, "", "")

        mock_run.side_effect = capture

        engine.sign_csr(
            PurePosixPath("client.csr"),
            PurePosixPath("i/intermediate.crt"),
            PurePosixPath("i/intermediate.key"),
            PurePosixPath("client.crt"),
            365,
            CertProfile.LEAF,
        )

        assert "CA:FALSE" in seen["ext"]
        assert "extendedKeyUsage = clientAuth" in seen["ext"]

    def test_decode_csr_returns_stdout(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock
    ) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0, "Certificate Request:\n", "")

        text = engine.decode(PurePosixPath("clients/c/client.csr"), ArtifactType.CSR)

        assert text == "Certificate Request:\n"
        args = _openssl_args(mock_run)
        assert args[0] == "req"
        assert args[5:] == ["-in", "clients/c/client.csr", "-text", "-noout"]


class TestFailures:
    """Tests for engine error reporting."""

    def test_non_zero_exit_raises_with_stderr(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock
    ) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            1, ["docker"], output="", stderr="unknown algorithm mldsa65\n"
        )

        with pytest.raises(EngineExecutionError, match="unknown algorithm mldsa65") as exc_info:
            engine.generate_csr(PurePosixPath("k.key"), PurePosixPath("r.csr"), DistinguishedName("x"))

        assert "exit code 1" in str(exc_info.value)
        assert exc_info.value.command[0] == RUNTIME

    def test_missing_runtime_binary_raises(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock
    ) -> None:
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory")

        with pytest.raises(EngineExecutionError, match="image pull failed"):
            engine.ensure_image()

    def test_extension_file_removed_on_failure(
        self, engine: ContainerOpenSSLEngine, mock_run: MagicMock, store_config: StoreConfig
    ) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(1, ["docker"], stderr="sign error")

        with pytest.raises(EngineExecutionError):
            engine.sign_csr(
                PurePosixPath("c.csr"),
                PurePosixPath("ca.crt"),
                PurePosixPath("ca.key"),
                PurePosixPath("c.crt"),
                30,
                CertProfile.LEAF,
            )

        assert not (store_config.workdir / "c.ext").exists()


def test_workdir_is_made_absolute(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    engine = ContainerOpenSSLEngine(RUNTIME, StoreConfig(workdir=Path("store")))
    assert engine.workdir == (tmp_path / "store").resolve()
