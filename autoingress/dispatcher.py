"""Decide and apply ingress changes for each observed service event."""

from typing import Dict, Iterable, List, Optional

from .builder import build_ingress
from .exceptions import RegistryError
from .index import IngressIndex
from .logging_config import get_logger, log_reconcile_event
from .models import AUTO_INGRESS_LABEL, Action, ControllerConfig, EventType, ServiceEvent, ServiceInfo
from .registry import ResourceRegistry

logger = get_logger(__name__)


def decide(event: ServiceEvent, tracked: bool) -> Action:
    """Map an event and the service's tracking state to an action.

    Only the "enabled" label value is a positive trigger. A tracked service
    is never re-created or updated while it stays enabled.
    """
    if event.type is EventType.REMOVED:
        return Action.DELETE if tracked else Action.NONE

    if not tracked:
        return Action.CREATE if event.service.eligible else Action.NONE

    if event.type is EventType.CHANGED and not event.service.eligible:
        return Action.DELETE
    return Action.NONE


class EventDispatcher:
    """Applies decisions against the index and the registry, one event at a time."""

    def __init__(self, registry: ResourceRegistry, index: IngressIndex, config: ControllerConfig):
        self.registry = registry
        self.index = index
        self.config = config

    def dispatch(self, event: ServiceEvent) -> Action:
        """Process one event.

        Registry failures are logged and never raised. A failed create leaves
        the service untracked; a failed delete still untracks it.

        Returns:
            The action that was decided.
        """
        service = event.service
        tracked = self.index.get(service.name)
        action = decide(event, tracked is not None)

        logger.info("Service event",
                    event_type=event.type.value,
                    service=service.name,
                    label=service.labels.get(AUTO_INGRESS_LABEL),
                    tracked=tracked is not None,
                    action=action.value)

        if action is Action.CREATE:
            self._create(service)
        elif action is Action.DELETE:
            self._delete(service.name, tracked.name)
        return action

    def _create(self, service: ServiceInfo) -> None:
        ingress = build_ingress(service, self.config)
        try:
            created = self.registry.create_derived(self.config.namespace, ingress)
        except RegistryError as e:
            logger.error("Failed to create ingress", service=service.name, error=str(e), status=e.status)
            return
        self.index.set(service.name, created)
        log_reconcile_event(logger, "ingress_created", service=service.name, host=created.hostname)
        logger.info("Updated index", tracked=self.index.keys())

    def _delete(self, service_name: str, ingress_name: str) -> None:
        try:
            self.registry.delete_derived(self.config.namespace, ingress_name)
        except RegistryError as e:
            logger.error("Failed to delete ingress", service=service_name, ingress=ingress_name,
                         error=str(e), status=e.status)
        else:
            log_reconcile_event(logger, "ingress_deleted", service=service_name, ingress=ingress_name)
        # An adopted ingress may route to several services; none of them keep it
        untracked = self.index.remove_ingress(ingress_name)
        siblings = [name for name in untracked if name != service_name]
        if siblings:
            logger.info("Untracked services sharing the deleted ingress",
                        ingress=ingress_name, services=siblings)
        logger.info("Updated index", tracked=self.index.keys())

    def resync(self, services: Iterable[ServiceInfo],
               previous: Optional[Dict[str, ServiceInfo]] = None) -> List[Action]:
        """Replay a fresh listing of services through the decision table.

        Services known before but missing from the listing are treated as
        removed; every listed service is treated as changed, so label flips
        missed while the watch was down are applied and failed creates are
        retried.

        Args:
            services: Services as currently listed
            previous: Last known snapshot per service name

        Returns:
            Actions decided, in dispatch order.
        """
        previous = previous or {}
        listed = {svc.name: svc for svc in services}
        actions = []

        for name in sorted(set(previous) - set(listed)):
            actions.append(self.dispatch(ServiceEvent.removed(previous[name])))
        for name, service in listed.items():
            actions.append(self.dispatch(ServiceEvent.changed(previous.get(name), service)))

        logger.info("Resync completed",
                    listed=len(listed),
                    removed=len(set(previous) - set(listed)),
                    tracked=self.index.keys())
        return actions
