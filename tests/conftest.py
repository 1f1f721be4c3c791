"""Shared fixtures: an in-memory registry that records every call."""

from typing import Dict, Iterator, List, Optional

import pytest

from autoingress.exceptions import RegistryError
from autoingress.index import IngressIndex
from autoingress.models import (
    AUTO_INGRESS_LABEL,
    ControllerConfig,
    IngressBackend,
    IngressInfo,
    IngressPath,
    IngressRule,
    ServiceEvent,
    ServiceInfo,
    ServicePort,
)
from autoingress.registry import ResourceRegistry


class FakeRegistry(ResourceRegistry):
    """In-memory registry with call tracking and injectable failures."""

    def __init__(self, services: Optional[List[ServiceInfo]] = None,
                 ingresses: Optional[List[IngressInfo]] = None):
        self.services: Dict[str, ServiceInfo] = {s.name: s for s in services or []}
        self.ingresses: Dict[str, IngressInfo] = {i.name: i for i in ingresses or []}
        self.create_calls: List[IngressInfo] = []
        self.delete_calls: List[str] = []
        self.list_primary_calls = 0
        self.fail_create: Dict[str, RegistryError] = {}
        self.fail_delete: Dict[str, RegistryError] = {}
        self.fail_list_primary: Optional[RegistryError] = None
        self.fail_list_derived: Optional[RegistryError] = None
        self.watch_batches: List[object] = []
        self.stopped = False
        self.on_exhausted = None

    def list_primary(self, namespace: str) -> List[ServiceInfo]:
        self.list_primary_calls += 1
        if self.fail_list_primary:
            raise self.fail_list_primary
        return list(self.services.values())

    def list_derived(self, namespace: str) -> List[IngressInfo]:
        if self.fail_list_derived:
            raise self.fail_list_derived
        return list(self.ingresses.values())

    def watch_primary(self, namespace: str) -> Iterator[ServiceEvent]:
        """Replay one queued batch per call; an exception in the queue is raised."""
        if not self.watch_batches:
            if self.on_exhausted is not None:
                self.on_exhausted()
            return
        batch = self.watch_batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        for event in batch:
            yield event

    def create_derived(self, namespace: str, ingress: IngressInfo) -> IngressInfo:
        self.create_calls.append(ingress)
        if ingress.name in self.fail_create:
            raise self.fail_create[ingress.name]
        self.ingresses[ingress.name] = ingress
        return ingress

    def delete_derived(self, namespace: str, name: str) -> None:
        self.delete_calls.append(name)
        if name in self.fail_delete:
            raise self.fail_delete[name]
        self.ingresses.pop(name, None)

    def stop_watch(self) -> None:
        self.stopped = True


def make_service(name: str, label: Optional[str] = None, ports: Optional[List[int]] = None) -> ServiceInfo:
    labels = {AUTO_INGRESS_LABEL: label} if label is not None else {}
    return ServiceInfo(
        name=name,
        namespace="apps",
        labels=labels,
        ports=[ServicePort(port=p) for p in (ports if ports is not None else [8080])],
    )


def make_ingress(name: str, *backends: str) -> IngressInfo:
    return IngressInfo(
        name=name,
        namespace="apps",
        rules=[
            IngressRule(
                host=f"{name}.example.com",
                paths=[IngressPath(path=f"/{b}", backend=IngressBackend(service_name=b, port=80))
                       for b in backends],
            )
        ],
    )


@pytest.fixture
def controller_config():
    return ControllerConfig(namespace="apps", dns_suffix="example.com", tls_secret_name="wildcard-tls")


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def index():
    return IngressIndex()
