"""Exception hierarchy for auto-ingress."""

from typing import Optional


class AutoIngressError(Exception):
    """Base class for all auto-ingress errors."""


class ConfigError(AutoIngressError):
    """Raised when the controller configuration is missing or invalid."""


class RegistryError(AutoIngressError):
    """A call against the Kubernetes control plane failed.

    Attributes:
        operation: Registry operation that failed (e.g. ``create_derived``)
        name: Name of the affected resource, if any
        status: HTTP status returned by the API server, if any
    """

    def __init__(self, operation: str, message: str, name: Optional[str] = None,
                 status: Optional[int] = None) -> None:
        self.operation = operation
        self.name = name
        self.status = status
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"{self.operation} failed"]
        if self.name:
            parts.append(f"for {self.name}")
        if self.status is not None:
            parts.append(f"(status {self.status})")
        return " ".join(parts) + f": {self.args[0]}"


class WatchExpiredError(RegistryError):
    """The watch resource version is too old (HTTP 410) and a re-list is needed."""


class BootstrapError(AutoIngressError):
    """Fatal failure while seeding the index from cluster state."""


class IndexConflictError(AutoIngressError):
    """A second ingress was about to be tracked for the same service."""
