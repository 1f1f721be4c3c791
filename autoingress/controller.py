"""Controller loop: bootstrap the index, then follow the service watch."""

import random
import threading
from typing import Dict, Optional

from .dispatcher import EventDispatcher
from .exceptions import RegistryError, WatchExpiredError
from .index import IngressIndex
from .logging_config import get_logger, log_function_entry, log_function_exit
from .models import Action, BootstrapResult, ControllerConfig, EventType, ServiceEvent, ServiceInfo
from .reconciler import bootstrap
from .registry import ResourceRegistry

logger = get_logger(__name__)

MAX_BACKOFF_SECONDS = 30


class AutoIngressController:
    """Owns the ingress index and drives all reconciliation for one namespace.

    Events are processed on the thread calling ``run``; nothing else writes
    to the index.
    """

    def __init__(self, config: ControllerConfig, registry: ResourceRegistry):
        self.config = config
        self.registry = registry
        self.index = IngressIndex()
        self.dispatcher = EventDispatcher(registry, self.index, config)
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._known: Dict[str, ServiceInfo] = {}
        self._bootstrap_result: Optional[BootstrapResult] = None

    def bootstrap(self) -> BootstrapResult:
        """Run the startup reconciliation once. Errors propagate as BootstrapError."""
        if self._bootstrap_result is None:
            result = bootstrap(self.registry, self.index, self.config)
            self._known = {svc.name: svc for svc in result.services}
            self._bootstrap_result = result
            self.ready.set()
        return self._bootstrap_result

    def handle(self, event: ServiceEvent) -> Action:
        action = self.dispatcher.dispatch(event)
        if event.type is EventType.REMOVED:
            self._known.pop(event.service.name, None)
        else:
            self._known[event.service.name] = event.service
        return action

    def resync(self) -> None:
        """List services again and replay them against the index."""
        services = self.registry.list_primary(self.config.namespace)
        previous = self._known
        self._known = {svc.name: svc for svc in services}
        self.dispatcher.resync(services, previous)

    def run(self) -> None:
        """Bootstrap, then process watch events until ``stop`` is called."""
        log_function_entry(logger, "run", namespace=self.config.namespace)
        self.bootstrap()

        try:
            self._watch_loop()
        except Exception:
            self.ready.clear()
            logger.exception("Controller loop failed", namespace=self.config.namespace)
            raise

        logger.info("Controller stopped", tracked=self.index.keys())
        log_function_exit(logger, "run", status="stopped")

    def _watch_loop(self) -> None:
        backoff_seconds = 1
        while not self._stop.is_set():
            try:
                for event in self.registry.watch_primary(self.config.namespace):
                    try:
                        self.handle(event)
                    except Exception:
                        logger.exception("Failed to process service event",
                                         event_type=event.type.value,
                                         service=event.service.name)
                    if self._stop.is_set():
                        break
                backoff_seconds = 1
            except WatchExpiredError:
                logger.warning("Watch resource version expired, re-listing services",
                               namespace=self.config.namespace)
                try:
                    self.resync()
                    backoff_seconds = 1
                except RegistryError as e:
                    logger.error("Failed to re-list services", error=str(e), status=e.status)
                    backoff_seconds = self._backoff(backoff_seconds)
            except RegistryError as e:
                logger.error("Service watch failed", error=str(e), status=e.status,
                             retry_in=backoff_seconds)
                backoff_seconds = self._backoff(backoff_seconds)

    def _backoff(self, seconds: int) -> int:
        self._stop.wait(timeout=seconds * (0.5 + random.random()))
        return min(seconds * 2, MAX_BACKOFF_SECONDS)

    def stop(self) -> None:
        logger.info("Stopping controller")
        self._stop.set()
        self.registry.stop_watch()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()
