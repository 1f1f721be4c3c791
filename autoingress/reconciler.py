"""Startup reconciliation of the ingress index against the cluster."""

from .builder import build_ingress
from .exceptions import BootstrapError, RegistryError
from .index import IngressIndex
from .logging_config import get_logger, log_function_entry, log_function_exit, log_reconcile_event
from .models import BootstrapResult, ControllerConfig
from .registry import ResourceRegistry

logger = get_logger(__name__)


def bootstrap(registry: ResourceRegistry, index: IngressIndex, config: ControllerConfig) -> BootstrapResult:
    """Seed the index from existing ingresses and expose services still missing one.

    Existing ingresses are adopted first: every service referenced by an
    ingress's HTTP paths is indexed against that ingress, the first ingress
    seen winning. Then every eligible service that is still untracked gets a
    new ingress.

    Must complete before live events are dispatched.

    Args:
        registry: Source of services and ingresses
        index: Index to populate, normally empty
        config: Controller configuration

    Returns:
        Which services were adopted and created, plus the listed services.

    Raises:
        BootstrapError: If listing fails or an ingress cannot be created. The
            remaining work is abandoned.
    """
    namespace = config.namespace
    log_function_entry(logger, "bootstrap", namespace=namespace)
    result = BootstrapResult()

    try:
        ingresses = registry.list_derived(namespace)
    except RegistryError as e:
        logger.error("Failed to list ingresses", namespace=namespace, error=str(e))
        raise BootstrapError(f"cannot list ingresses in {namespace}: {e}") from e

    for ingress in ingresses:
        for service_name in ingress.backend_service_names():
            if service_name in index:
                logger.debug("Service already associated, keeping first ingress",
                             service=service_name,
                             ingress=ingress.name,
                             tracked_by=index.get(service_name).name)
                continue
            index.set(service_name, ingress)
            result.adopted.append(service_name)

    try:
        services = registry.list_primary(namespace)
    except RegistryError as e:
        logger.error("Failed to list services", namespace=namespace, error=str(e))
        raise BootstrapError(f"cannot list services in {namespace}: {e}") from e
    result.services = services

    for service in services:
        if service.name in index or not service.eligible:
            continue
        try:
            created = registry.create_derived(namespace, build_ingress(service, config))
        except RegistryError as e:
            logger.error("Failed to create ingress during bootstrap", service=service.name, error=str(e))
            raise BootstrapError(f"cannot create ingress for service {service.name}: {e}") from e
        index.set(service.name, created)
        result.created.append(service.name)
        log_reconcile_event(logger, "ingress_created", service=service.name, host=created.hostname)

    logger.info("Initialized index",
                namespace=namespace,
                tracked=index.keys(),
                adopted=len(result.adopted),
                created=len(result.created))
    log_function_exit(logger, "bootstrap", tracked=len(index))
    return result
