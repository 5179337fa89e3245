"""Errors raised by hierarchy workflows.

Everything derives from HierarchyError so the menu loop can report a failed
operation and carry on.
"""


class HierarchyError(Exception):
    """Base class for store and workflow failures."""


class PrerequisiteMissingError(HierarchyError):
    """A required parent entity (root or intermediate) does not exist."""


class ContainerRuntimeNotFoundError(PrerequisiteMissingError):
    """Neither docker nor podman is available on PATH."""


class SelectionError(HierarchyError):
    """The operator's numeric choice is not a valid entry of the listing."""


class EmptyCandidateSetError(SelectionError):
    """There is nothing to choose from."""


class EngineExecutionError(HierarchyError):
    """The signing engine reported a failure."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            return f"{message}: {self.stderr.strip()}"
        return message


class MissingComponentError(HierarchyError):
    """An input file needed to assemble a chain is absent."""


class NameCollisionError(HierarchyError):
    """No free entity identifier could be allocated."""
