"""Access to Services and Ingresses in the cluster."""

import functools
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .exceptions import RegistryError, WatchExpiredError
from .logging_config import get_logger, log_function_entry, log_function_exit, log_k8s_operation
from .models import (
    ControllerConfig,
    IngressBackend,
    IngressInfo,
    IngressPath,
    IngressRule,
    IngressTLS,
    ServiceEvent,
    ServiceInfo,
    ServicePort,
)

logger = get_logger(__name__)


class ResourceRegistry(ABC):
    """Operations the reconciliation engine needs from the control plane.

    Every method raises RegistryError when the underlying call fails.
    """

    @abstractmethod
    def list_primary(self, namespace: str) -> List[ServiceInfo]:
        ...

    @abstractmethod
    def list_derived(self, namespace: str) -> List[IngressInfo]:
        ...

    @abstractmethod
    def watch_primary(self, namespace: str) -> Iterator[ServiceEvent]:
        """Stream service changes in delivery order.

        The stream ends when the server-side watch times out; callers re-enter
        it to keep watching. Raises WatchExpiredError when the stream cannot
        resume and the services have to be listed again.
        """

    @abstractmethod
    def create_derived(self, namespace: str, ingress: IngressInfo) -> IngressInfo:
        ...

    @abstractmethod
    def delete_derived(self, namespace: str, name: str) -> None:
        ...

    def stop_watch(self) -> None:
        """Interrupt a running ``watch_primary`` stream."""


def service_from_k8s(svc: client.V1Service) -> ServiceInfo:
    """Convert a V1Service into a ServiceInfo snapshot."""
    ports = []
    if svc.spec and svc.spec.ports:
        for p in svc.spec.ports:
            ports.append(ServicePort(port=p.port, name=p.name, protocol=p.protocol))
    return ServiceInfo(
        name=svc.metadata.name,
        namespace=svc.metadata.namespace or "default",
        labels=svc.metadata.labels or {},
        ports=ports,
        resource_version=svc.metadata.resource_version,
    )


def ingress_from_k8s(ing: client.V1Ingress) -> IngressInfo:
    """Convert a V1Ingress into an IngressInfo.

    Rules without an HTTP block and paths backed by non-service resources are
    kept without backends.
    """
    rules = []
    tls = []
    spec = ing.spec
    if spec and spec.rules:
        for rule in spec.rules:
            paths = []
            if rule.http and rule.http.paths:
                for p in rule.http.paths:
                    backend = IngressBackend()
                    if p.backend and p.backend.service:
                        port = p.backend.service.port
                        backend = IngressBackend(
                            service_name=p.backend.service.name,
                            port=port.number if port else None,
                        )
                    paths.append(IngressPath(path=p.path or "/", path_type=p.path_type or "Prefix", backend=backend))
            rules.append(IngressRule(host=rule.host, paths=paths))
    if spec and spec.tls:
        for t in spec.tls:
            tls.append(IngressTLS(hosts=t.hosts or [], secret_name=t.secret_name))
    return IngressInfo(
        name=ing.metadata.name,
        namespace=ing.metadata.namespace or "default",
        labels=ing.metadata.labels or {},
        rules=rules,
        tls=tls,
    )


def ingress_to_k8s(ingress: IngressInfo) -> client.V1Ingress:
    """Convert an IngressInfo into a networking.k8s.io/v1 Ingress body."""
    rules = []
    for rule in ingress.rules:
        paths = []
        for p in rule.paths:
            port = client.V1ServiceBackendPort(number=p.backend.port) if p.backend.port is not None else None
            paths.append(client.V1HTTPIngressPath(
                path=p.path,
                path_type=p.path_type,
                backend=client.V1IngressBackend(
                    service=client.V1IngressServiceBackend(name=p.backend.service_name, port=port),
                ),
            ))
        rules.append(client.V1IngressRule(
            host=rule.host,
            http=client.V1HTTPIngressRuleValue(paths=paths),
        ))
    return client.V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=client.V1ObjectMeta(
            name=ingress.name,
            namespace=ingress.namespace,
            labels=ingress.labels or None,
        ),
        spec=client.V1IngressSpec(
            rules=rules,
            tls=[client.V1IngressTLS(hosts=t.hosts, secret_name=t.secret_name) for t in ingress.tls],
        ),
    )


class KubernetesRegistry(ResourceRegistry):
    """ResourceRegistry backed by the official Kubernetes Python client."""

    def __init__(self, controller_config: ControllerConfig):
        self.controller_config = controller_config
        self._k8s_client: Optional[client.ApiClient] = None
        self._core_v1: Optional[client.CoreV1Api] = None
        self._networking_v1: Optional[client.NetworkingV1Api] = None
        self._watcher: Optional[watch.Watch] = None
        self._watch_response: Any = None
        self._stopping = False
        self._resource_version: Optional[str] = None
        self._last_seen: Dict[str, ServiceInfo] = {}

    def connect(self) -> None:
        """Load kubeconfig (or the in-cluster service account) and build API clients."""
        cfg = self.controller_config
        log_function_entry(logger, "connect", kubeconfig_path=cfg.kubeconfig_path, context=cfg.context)

        try:
            if cfg.kubeconfig_path:
                logger.debug("Loading kubeconfig from file", kubeconfig_path=cfg.kubeconfig_path, context=cfg.context)
                config.load_kube_config(config_file=cfg.kubeconfig_path, context=cfg.context)
            else:
                logger.debug("Loading in-cluster config")
                config.load_incluster_config()

            self._k8s_client = client.ApiClient()
            self._core_v1 = client.CoreV1Api(self._k8s_client)
            self._networking_v1 = client.NetworkingV1Api(self._k8s_client)
        except Exception as e:
            logger.error("Failed to connect to cluster",
                         error=str(e),
                         kubeconfig_path=cfg.kubeconfig_path,
                         context=cfg.context)
            raise RegistryError("connect", str(e)) from e

        logger.info("Connected to cluster", namespace=cfg.namespace)
        log_function_exit(logger, "connect", status="success")

    def close(self) -> None:
        self.stop_watch()
        if self._k8s_client:
            self._k8s_client.close()
            self._k8s_client = None

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self.connect()
        return self._core_v1

    @property
    def networking_v1(self) -> client.NetworkingV1Api:
        if self._networking_v1 is None:
            self.connect()
        return self._networking_v1

    def _call(self, operation: str, func: Any, resource: Optional[str] = None, **kwargs: Any) -> Any:
        try:
            return func(_request_timeout=self.controller_config.request_timeout_seconds, **kwargs)
        except ApiException as e:
            raise RegistryError(operation, e.reason or str(e), name=resource, status=e.status) from e
        except HTTPError as e:
            raise RegistryError(operation, str(e), name=resource) from e

    def list_primary(self, namespace: str) -> List[ServiceInfo]:
        log_k8s_operation(logger, "list_primary", namespace)
        response = self._call("list_primary", self.core_v1.list_namespaced_service, namespace=namespace)
        services = [service_from_k8s(item) for item in response.items]

        self._last_seen = {svc.name: svc for svc in services}
        if response.metadata is not None:
            self._resource_version = response.metadata.resource_version
        logger.debug("Listed services", namespace=namespace, count=len(services),
                     resource_version=self._resource_version)
        return services

    def list_derived(self, namespace: str) -> List[IngressInfo]:
        log_k8s_operation(logger, "list_derived", namespace)
        response = self._call("list_derived", self.networking_v1.list_namespaced_ingress, namespace=namespace)
        ingresses = [ingress_from_k8s(item) for item in response.items]
        logger.debug("Listed ingresses", namespace=namespace, count=len(ingresses))
        return ingresses

    def create_derived(self, namespace: str, ingress: IngressInfo) -> IngressInfo:
        log_k8s_operation(logger, "create_derived", namespace, name=ingress.name, host=ingress.hostname)
        created = self._call("create_derived", self.networking_v1.create_namespaced_ingress,
                             resource=ingress.name, namespace=namespace, body=ingress_to_k8s(ingress))
        return ingress_from_k8s(created)

    def delete_derived(self, namespace: str, name: str) -> None:
        log_k8s_operation(logger, "delete_derived", namespace, name=name)
        try:
            self._call("delete_derived", self.networking_v1.delete_namespaced_ingress,
                       resource=name, name=name, namespace=namespace)
        except RegistryError as e:
            if e.status != 404:
                raise
            logger.info("Ingress already gone", namespace=namespace, name=name)

    def watch_primary(self, namespace: str) -> Iterator[ServiceEvent]:
        log_k8s_operation(logger, "watch_primary", namespace, resource_version=self._resource_version)
        watcher = watch.Watch()
        self._watcher = watcher
        self._stopping = False
        list_services = self.core_v1.list_namespaced_service

        # Watch.stream reads the docstring of the function it is given
        @functools.wraps(list_services)
        def open_stream(*args: Any, **kw: Any) -> Any:
            self._watch_response = list_services(*args, **kw)
            return self._watch_response

        kwargs: Dict[str, Any] = {
            "namespace": namespace,
            "timeout_seconds": self.controller_config.watch_timeout_seconds,
            "allow_watch_bookmarks": True,
        }
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version

        try:
            for raw in watcher.stream(open_stream, **kwargs):
                event = self._translate(raw)
                if event is not None:
                    yield event
                if self._stopping:
                    return
        except ApiException as e:
            if e.status == 410:
                self._resource_version = None
                raise WatchExpiredError("watch_primary", e.reason or str(e), status=410) from e
            raise RegistryError("watch_primary", e.reason or str(e), status=e.status) from e
        except Exception as e:
            if self._stopping:
                # Reading from a connection closed by stop_watch
                logger.debug("Watch stream closed", namespace=namespace, error=str(e))
                return
            if isinstance(e, HTTPError):
                raise RegistryError("watch_primary", str(e)) from e
            raise
        finally:
            watcher.stop()
            self._watcher = None
            self._watch_response = None

    def _translate(self, raw: Dict[str, Any]) -> Optional[ServiceEvent]:
        event_type = raw.get("type")
        obj = raw.get("object")

        if event_type == "ERROR":
            status = obj.get("code") if isinstance(obj, dict) else None
            message = obj.get("message", "watch error") if isinstance(obj, dict) else str(obj)
            if status == 410:
                self._resource_version = None
                raise WatchExpiredError("watch_primary", message, status=410)
            raise RegistryError("watch_primary", message, status=status)

        if obj is None or getattr(obj, "metadata", None) is None:
            return None
        if obj.metadata.resource_version:
            self._resource_version = obj.metadata.resource_version
        if event_type == "BOOKMARK":
            return None

        service = service_from_k8s(obj)
        if event_type == "ADDED":
            self._last_seen[service.name] = service
            return ServiceEvent.observed(service)
        if event_type == "MODIFIED":
            old = self._last_seen.get(service.name)
            self._last_seen[service.name] = service
            return ServiceEvent.changed(old, service)
        if event_type == "DELETED":
            self._last_seen.pop(service.name, None)
            return ServiceEvent.removed(service)

        logger.warning("Ignoring unknown watch event", event_type=event_type, name=service.name)
        return None

    def stop_watch(self) -> None:
        """Stop the running watch and close its connection.

        Watch.stop alone is only noticed when the next event arrives, so the
        underlying response is closed too to unblock the reading thread.
        """
        self._stopping = True
        if self._watcher is not None:
            self._watcher.stop()
        response = self._watch_response
        if response is not None:
            try:
                response.close()
                release_conn = getattr(response, "release_conn", None)
                if release_conn is not None:
                    release_conn()
            except (HTTPError, OSError) as e:
                logger.debug("Error closing watch connection", error=str(e))
