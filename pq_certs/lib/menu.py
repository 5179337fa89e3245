"""Interactive top-level menu."""

from collections.abc import Callable

from .config import DistinguishedName, StoreConfig
from .exceptions import HierarchyError
from .logging_config import LOGGER
from .models import ArtifactType, EntityKind
from .operations import HierarchyOperations
from .selector import Selector

MAIN_MENU = """
=== Quantum-Safe Certificate Generator Menu ===
1) Create or overwrite root CA
2) Create intermediate CA signed by root
3) Create client certificate signed by intermediate
4) Exit
5) Additional operations (regenerate chain or inspect CSR/certificate)"""

ADDITIONAL_MENU = """Additional operations:
 1) Regenerate concatenated certificate chain
 2) Inspect CSR or certificate details
 3) Return to main menu"""


class MenuController:
    """Reads menu choices and dispatches them to HierarchyOperations.

    Every failure is reported and the loop goes back to the main menu.
    """

    def __init__(
        self,
        operations: HierarchyOperations,
        config: StoreConfig,
        read: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ) -> None:
        self.operations = operations
        self.config = config
        self.read = read
        self.write = write
        self.selector = Selector(read=read, write=write)

    def run(self) -> int:
        """Loop until the operator exits or input ends.

        Returns:
            Exit code (always 0; failures inside an operation do not end the loop)
        """
        actions = {
            "1": self.create_root,
            "2": self.create_intermediate,
            "3": self.create_client,
            "5": self.additional_operations,
        }
        while True:
            self.write(MAIN_MENU)
            try:
                choice = self.read("Choose an option: ").strip()
            except EOFError:
                break

            if choice == "4":
                break
            action = actions.get(choice)
            if action is None:
                self.write("Invalid option. Please choose 1-5.")
                continue

            try:
                action()
            except EOFError:
                break
            except HierarchyError as e:
                LOGGER.error("%s: %s", type(e).__name__, e)
            except (ValueError, OSError) as e:
                LOGGER.error("Operation failed: %s", e)

        LOGGER.info("Exiting. Certificates are stored in %s", self.operations.store.workdir)
        return 0

    def create_root(self) -> None:
        self.write("Creating a new root CA")
        subject, days = self._ask_subject("the root CA", self.config.root_validity_days)
        self.operations.create_root(subject, days)

    def create_intermediate(self) -> None:
        self.operations.require_root()
        self.write("Creating a new intermediate CA signed by the root")
        subject, days = self._ask_subject(
            "the intermediate CA", self.config.intermediate_validity_days
        )
        self.operations.create_intermediate(subject, days)

    def create_client(self) -> None:
        self.operations.require_intermediate()
        issuer = self.selector.choose_entity(self.operations.store, EntityKind.INTERMEDIATE)
        self.write(f"Creating a new client certificate signed by the intermediate {issuer.name}")
        subject, days = self._ask_subject("the client", self.config.client_validity_days)
        self.operations.create_client(issuer, subject, days)

    def additional_operations(self) -> None:
        self.write(ADDITIONAL_MENU)
        choice = self.read("Choose an option: ").strip()
        if choice == "1":
            self.regenerate_chain()
        elif choice == "2":
            self.inspect_object()

    def regenerate_chain(self) -> None:
        self.write("Regenerate chain for:\n 1) Intermediate CA\n 2) Client certificate")
        kind = {"1": EntityKind.INTERMEDIATE, "2": EntityKind.CLIENT}.get(
            self.read("Choose 1 or 2: ").strip()
        )
        if kind is None:
            self.write("Invalid selection.")
            return

        handle = self.selector.choose_entity(self.operations.store, kind)
        output_name = self.read(
            f"Enter output filename for chain (relative to working dir, e.g., {kind.stem}_chain.crt): "
        )
        self.operations.regenerate_chain(handle, output_name.strip())

    def inspect_object(self) -> None:
        self.write("Inspect which type of file?\n 1) CSR (*.csr)\n 2) Certificate (*.crt)")
        artifact = {"1": ArtifactType.CSR, "2": ArtifactType.CERTIFICATE}.get(
            self.read("Choose 1 or 2: ").strip()
        )
        if artifact is None:
            self.write("Invalid selection.")
            return

        noun = "CSR file" if artifact is ArtifactType.CSR else "certificate file"
        rel_path = self.selector.choose(self.operations.inspectable_files(artifact), noun)
        self.write(self.operations.inspect(rel_path, artifact))

    def _ask_subject(self, target: str, default_days: int) -> tuple[DistinguishedName, int]:
        common_name = self.read(f"  Common Name (CN) for {target}: ").strip()
        organization = self.read(f"  Organisation (O) for {target}: ").strip()
        raw_days = self.read(f"  Validity period (days) for {target} [{default_days}]: ").strip()
        try:
            days = int(raw_days) if raw_days else default_days
        except ValueError:
            raise ValueError(f"validity period must be a whole number of days, got {raw_days!r}") from None
        return DistinguishedName(common_name=common_name, organization=organization), days
