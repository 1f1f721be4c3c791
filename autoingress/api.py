"""Read-only diagnostics API for a running controller."""

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException

from .controller import AutoIngressController
from .logging_config import get_logger
from .models import ControllerStatus, IndexEntryInfo

logger = get_logger(__name__)

app = FastAPI(
    title="auto-ingress",
    description="Diagnostics for the auto-ingress controller",
    version="0.1.0",
    docs_url=None,
    redoc_url=None,
)

# Controller served by this process
controller: Optional[AutoIngressController] = None


def initialize_controller(instance: Optional[AutoIngressController]) -> None:
    """Register the controller whose state the API exposes."""
    global controller
    controller = instance
    if instance is not None:
        logger.info("Diagnostics API attached to controller", namespace=instance.config.namespace)


def get_controller() -> AutoIngressController:
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not initialized")
    return controller


@app.get("/healthz")
async def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz", response_model=ControllerStatus)
async def readyz() -> ControllerStatus:
    """Ready once the index has been bootstrapped."""
    current = get_controller()
    status = ControllerStatus(
        ready=current.ready.is_set(),
        namespace=current.config.namespace,
        tracked=len(current.index),
    )
    if not status.ready:
        raise HTTPException(status_code=503, detail="Bootstrap not completed")
    return status


@app.get("/ingresses", response_model=List[IndexEntryInfo])
async def list_ingresses() -> List[IndexEntryInfo]:
    """Services currently tracked, with their ingress and hostname."""
    return get_controller().index.entries()
