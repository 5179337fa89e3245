#!/usr/bin/env python3
"""Interactive menu for managing a quantum-safe root/intermediate/client hierarchy."""

import argparse
import sys
from pathlib import Path

from pq_certs.lib.config import DEFAULT_ALGORITHM, DEFAULT_IMAGE, StoreConfig
from pq_certs.lib.engine import ContainerOpenSSLEngine, SigningEngine, discover_runtime
from pq_certs.lib.exceptions import HierarchyError
from pq_certs.lib.local_engine import LocalCryptographyEngine
from pq_certs.lib.logging_config import LOGGER, set_level
from pq_certs.lib.menu import MenuController
from pq_certs.lib.operations import HierarchyOperations
from pq_certs.lib.store import CertStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create and inspect a quantum-safe certificate hierarchy"
    )
    parser.add_argument(
        "--workdir",
        type=Path,
        default=Path.cwd() / "pq_certs_menu",
        help="Store directory for keys and certificates (default: ./pq_certs_menu)",
    )
    parser.add_argument(
        "--image",
        default=DEFAULT_IMAGE,
        help=f"Container image providing OpenSSL with oqsprovider (default: {DEFAULT_IMAGE})",
    )
    parser.add_argument(
        "--algorithm",
        default=DEFAULT_ALGORITHM,
        help=f"Signature algorithm for every key (default: {DEFAULT_ALGORITHM})",
    )
    parser.add_argument(
        "--engine",
        choices=["container", "local"],
        default="container",
        help="Signing backend: OpenSSL in a container, or local classical RSA (default: container)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override, e.g. DEBUG to see engine commands",
    )
    return parser.parse_args(argv)


def build_engine(args: argparse.Namespace, config: StoreConfig) -> SigningEngine:
    """Create the signing engine; for containers, find a runtime and pull the image.

    Raises:
        ContainerRuntimeNotFoundError: If neither docker nor podman is installed
        EngineExecutionError: If the image cannot be pulled
    """
    if args.engine == "local":
        LOGGER.warning("Local engine issues classical RSA certificates, not %s", config.algorithm)
        return LocalCryptographyEngine(config.workdir, key_size=config.key_size)

    runtime = discover_runtime()
    LOGGER.info("Using container runtime: %s", runtime)
    engine = ContainerOpenSSLEngine(runtime, config)
    engine.ensure_image()
    return engine


def main(argv: list[str] | None = None) -> int:
    """Run the interactive menu.

    Returns:
        Exit code (0 on normal exit, 1 if the signing engine is unavailable)
    """
    args = parse_args(argv)
    if args.log_level:
        set_level(args.log_level)

    config = StoreConfig(workdir=args.workdir, image=args.image, algorithm=args.algorithm)

    try:
        engine = build_engine(args, config)
    except HierarchyError as e:
        LOGGER.error("Signing engine unavailable: %s", e)
        return 1

    store = CertStore(config.workdir)
    store.ensure_layout()

    operations = HierarchyOperations(store, engine)
    return MenuController(operations, config).run()


if __name__ == "__main__":
    sys.exit(main())
