from typing import Sequence


class DeploymentConfigError(ValueError):
    """Base class for errors detected before any deployment starts."""


class ManifestError(DeploymentConfigError):
    """Raised when a deployment manifest is malformed."""


class DuplicateUnitName(DeploymentConfigError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Deployment unit '{name}' is declared more than once.")


class UnknownReference(DeploymentConfigError):
    def __init__(self, unit_name: str, reference: str):
        self.unit_name = unit_name
        self.reference = reference
        super().__init__(
            f"Deployment unit '{unit_name}' references '{reference}', "
            "which is not declared in the manifest."
        )


class CyclicDependency(DeploymentConfigError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        path = " -> ".join([*self.cycle, self.cycle[0]])
        super().__init__(f"Cyclic dependency between deployment units: {path}")


class DeployFailure(Exception):
    """Raised (and recorded in the ledger) when a unit's deployment fails."""

    def __init__(self, unit_name: str, cause: BaseException):
        self.unit_name = unit_name
        self.cause = cause
        super().__init__(f"Deployment of '{unit_name}' failed: {cause}")


class UnresolvedReference(RuntimeError):
    """
    Raised when a reference has no succeeded ledger record at execution time.
    The resolved order guarantees this cannot happen, so it is always fatal.
    """

    def __init__(self, unit_name: str, reference: str):
        self.unit_name = unit_name
        self.reference = reference
        super().__init__(
            f"Reference '${reference}' of deployment unit '{unit_name}' is not resolvable."
        )


class LedgerError(ValueError):
    """Raised for illegal ledger transitions or unreadable ledger snapshots."""
