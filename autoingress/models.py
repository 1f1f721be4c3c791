"""Data models for auto-ingress."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

AUTO_INGRESS_LABEL = "auto-ingress/enabled"
LABEL_ENABLED = "enabled"
LABEL_DISABLED = "disabled"

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "auto-ingress"


class ServicePort(BaseModel):
    """A port declared by a Service."""

    port: int = Field(..., description="Port number exposed by the service")
    name: Optional[str] = Field(None, description="Port name")
    protocol: Optional[str] = Field(None, description="Port protocol (TCP, UDP, SCTP)")


class ServiceInfo(BaseModel):
    """Snapshot of a watched Service."""

    name: str = Field(..., description="Service name, unique within the namespace")
    namespace: str = Field("default", description="Kubernetes namespace")
    labels: Dict[str, str] = Field(default_factory=dict, description="Service labels")
    ports: List[ServicePort] = Field(default_factory=list, description="Declared ports, in order")
    resource_version: Optional[str] = Field(None, description="Kubernetes resourceVersion")

    @property
    def auto_ingress_state(self) -> Optional[str]:
        """Normalized value of the enabling label.

        Returns "enabled" or "disabled"; any other value, or no label at all,
        yields None.
        """
        value = self.labels.get(AUTO_INGRESS_LABEL)
        if value in (LABEL_ENABLED, LABEL_DISABLED):
            return value
        return None

    @property
    def eligible(self) -> bool:
        return self.auto_ingress_state == LABEL_ENABLED


class IngressBackend(BaseModel):
    """Service backend of an ingress path."""

    service_name: Optional[str] = Field(None, description="Backend service name")
    port: Optional[int] = Field(None, description="Backend service port number")


class IngressPath(BaseModel):
    """HTTP path routed to a backend."""

    path: str = Field("/", description="URL path")
    path_type: str = Field("Prefix", description="Path matching type")
    backend: IngressBackend = Field(default_factory=IngressBackend, description="Path backend")


class IngressRule(BaseModel):
    """Host rule of an ingress."""

    host: Optional[str] = Field(None, description="Host the rule applies to")
    paths: List[IngressPath] = Field(default_factory=list, description="HTTP paths")


class IngressTLS(BaseModel):
    """TLS block of an ingress."""

    hosts: List[str] = Field(default_factory=list, description="Hosts covered by the certificate")
    secret_name: Optional[str] = Field(None, description="Secret holding the certificate")


class IngressInfo(BaseModel):
    """An Ingress derived from (or associated with) a Service."""

    name: str = Field(..., description="Ingress name")
    namespace: str = Field("default", description="Kubernetes namespace")
    labels: Dict[str, str] = Field(default_factory=dict, description="Ingress labels")
    rules: List[IngressRule] = Field(default_factory=list, description="Host rules")
    tls: List[IngressTLS] = Field(default_factory=list, description="TLS configuration")

    @property
    def hostname(self) -> Optional[str]:
        for rule in self.rules:
            if rule.host:
                return rule.host
        return None

    def backend_service_names(self) -> List[str]:
        """Service names referenced by the HTTP paths, first occurrence first."""
        names: List[str] = []
        for rule in self.rules:
            for path in rule.paths:
                name = path.backend.service_name
                if name and name not in names:
                    names.append(name)
        return names


class EventType(str, Enum):
    """Kind of change observed on a Service."""

    OBSERVED = "observed"
    CHANGED = "changed"
    REMOVED = "removed"


class ServiceEvent(BaseModel):
    """A single change notification for a Service."""

    type: EventType = Field(..., description="Kind of change")
    service: ServiceInfo = Field(..., description="New snapshot, or the removed one")
    old: Optional[ServiceInfo] = Field(None, description="Previous snapshot for changes")

    @classmethod
    def observed(cls, service: ServiceInfo) -> "ServiceEvent":
        return cls(type=EventType.OBSERVED, service=service)

    @classmethod
    def changed(cls, old: Optional[ServiceInfo], new: ServiceInfo) -> "ServiceEvent":
        return cls(type=EventType.CHANGED, service=new, old=old)

    @classmethod
    def removed(cls, service: ServiceInfo) -> "ServiceEvent":
        return cls(type=EventType.REMOVED, service=service)


class Action(str, Enum):
    """Outcome of the dispatcher's decision for one event."""

    CREATE = "create"
    DELETE = "delete"
    NONE = "none"


class BootstrapResult(BaseModel):
    """Summary of the startup reconciliation pass."""

    adopted: List[str] = Field(default_factory=list, description="Services indexed from existing ingresses")
    created: List[str] = Field(default_factory=list, description="Services an ingress was created for")
    services: List[ServiceInfo] = Field(default_factory=list, description="Services listed during bootstrap")


class ControllerConfig(BaseModel):
    """Configuration for the auto-ingress controller."""

    namespace: str = Field("default", description="Namespace watched and written to")
    dns_suffix: str = Field(..., description="DNS suffix appended to every generated hostname")
    tls_secret_name: str = Field(..., description="TLS secret referenced by every ingress")
    kubeconfig_path: Optional[str] = Field(None, description="Path to kubeconfig file")
    context: Optional[str] = Field(None, description="Kubernetes context name")
    watch_timeout_seconds: int = Field(300, ge=1, description="Server-side timeout of a single watch")
    request_timeout_seconds: int = Field(30, ge=1, description="Client-side timeout of API requests")

    @field_validator("namespace", "dns_suffix", "tls_secret_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("dns_suffix")
    @classmethod
    def _strip_leading_dot(cls, value: str) -> str:
        stripped = value.lstrip(".")
        if not stripped:
            raise ValueError("must contain a domain")
        return stripped


class IndexEntryInfo(BaseModel):
    """Public view of one tracked service/ingress pair."""

    service_name: str = Field(..., description="Tracked service name")
    ingress_name: str = Field(..., description="Associated ingress name")
    hostname: Optional[str] = Field(None, description="Ingress hostname")


class ControllerStatus(BaseModel):
    """Readiness summary exposed by the diagnostics API."""

    ready: bool = Field(False, description="Whether bootstrap has completed")
    namespace: str = Field(..., description="Watched namespace")
    tracked: int = Field(0, description="Number of tracked services")
