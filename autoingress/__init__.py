"""auto-ingress: keep an Ingress for every Kubernetes Service that asks for one."""

__version__ = "0.1.0"

# Lazy imports to avoid loading the kubernetes client for CLI usage
__all__ = [
    "AutoIngressController",
    "ControllerConfig",
    "EventDispatcher",
    "IngressIndex",
    "KubernetesRegistry",
    "build_ingress",
    "bootstrap",
]


def __getattr__(name):
    if name == "AutoIngressController":
        from .controller import AutoIngressController
        return AutoIngressController
    elif name == "ControllerConfig":
        from .models import ControllerConfig
        return ControllerConfig
    elif name == "EventDispatcher":
        from .dispatcher import EventDispatcher
        return EventDispatcher
    elif name == "IngressIndex":
        from .index import IngressIndex
        return IngressIndex
    elif name == "KubernetesRegistry":
        from .registry import KubernetesRegistry
        return KubernetesRegistry
    elif name == "build_ingress":
        from .builder import build_ingress
        return build_ingress
    elif name == "bootstrap":
        from .reconciler import bootstrap
        return bootstrap
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
