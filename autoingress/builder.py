"""Build the Ingress that exposes a Service."""

from .models import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    ControllerConfig,
    IngressBackend,
    IngressInfo,
    IngressPath,
    IngressRule,
    IngressTLS,
    ServiceInfo,
)


def hostname_for(service_name: str, dns_suffix: str) -> str:
    return f"{service_name}.{dns_suffix}"


def build_backend(service: ServiceInfo) -> IngressBackend:
    """Route to the service's first declared port.

    A service without ports yields a backend without a port, which the API
    server rejects on create.
    """
    port = service.ports[0].port if service.ports else None
    return IngressBackend(service_name=service.name, port=port)


def build_ingress(service: ServiceInfo, config: ControllerConfig) -> IngressInfo:
    """Build the ingress specification for a service.

    The ingress carries the service's name, a single rule for
    ``<service>.<dns_suffix>`` routing ``/`` to the service, and a TLS block
    for that host using the configured secret.

    Args:
        service: Service snapshot to expose
        config: Controller configuration (namespace, DNS suffix, TLS secret)

    Returns:
        The ingress to create. Building has no side effects.
    """
    host = hostname_for(service.name, config.dns_suffix)
    return IngressInfo(
        name=service.name,
        namespace=config.namespace,
        labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
        rules=[
            IngressRule(
                host=host,
                paths=[IngressPath(path="/", path_type="Prefix", backend=build_backend(service))],
            )
        ],
        tls=[IngressTLS(hosts=[host], secret_name=config.tls_secret_name)],
    )
