"""In-memory index of services and the ingress tracked for each."""

from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import IndexConflictError
from .models import IndexEntryInfo, IngressInfo


class IngressIndex:
    """Mapping from service name to the ingress believed to exist for it.

    The index has a single writer (the bootstrap pass, then the event
    dispatcher) and needs no locking.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, IngressInfo] = {}

    def get(self, service_name: str) -> Optional[IngressInfo]:
        return self._entries.get(service_name)

    def set(self, service_name: str, ingress: IngressInfo) -> None:
        """Track ``ingress`` for ``service_name``.

        Re-setting the same ingress name refreshes the stored record.

        Raises:
            IndexConflictError: If a different ingress is already tracked for the service.
        """
        current = self._entries.get(service_name)
        if current is not None and current.name != ingress.name:
            raise IndexConflictError(
                f"service {service_name} is already tracked by ingress {current.name}, "
                f"refusing to track {ingress.name}"
            )
        self._entries[service_name] = ingress

    def remove(self, service_name: str) -> Optional[IngressInfo]:
        """Stop tracking a service, returning the ingress that was tracked."""
        return self._entries.pop(service_name, None)

    def remove_ingress(self, ingress_name: str) -> List[str]:
        """Stop tracking every service associated with ``ingress_name``.

        Returns:
            Names of the services that were untracked, sorted.
        """
        services = sorted(name for name, ingress in self._entries.items() if ingress.name == ingress_name)
        for name in services:
            del self._entries[name]
        return services

    def keys(self) -> List[str]:
        return sorted(self._entries)

    def items(self) -> List[Tuple[str, IngressInfo]]:
        return sorted(self._entries.items())

    def entries(self) -> List[IndexEntryInfo]:
        return [
            IndexEntryInfo(service_name=name, ingress_name=ingress.name, hostname=ingress.hostname)
            for name, ingress in self.items()
        ]

    def __contains__(self, service_name: object) -> bool:
        return service_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
