"""Load controller configuration from YAML, environment and CLI overrides."""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .logging_config import get_logger
from .models import ControllerConfig

logger = get_logger(__name__)

ENV_VARS = {
    "AUTO_INGRESS_NAMESPACE": "namespace",
    "AUTO_INGRESS_SERVER_NAME": "dns_suffix",
    "AUTO_INGRESS_SECRET": "tls_secret_name",
    "AUTO_INGRESS_KUBECONFIG": "kubeconfig_path",
    "AUTO_INGRESS_CONTEXT": "context",
    "AUTO_INGRESS_WATCH_TIMEOUT": "watch_timeout_seconds",
    "AUTO_INGRESS_REQUEST_TIMEOUT": "request_timeout_seconds",
}

DEFAULT_CONFIG_PATHS = [
    Path("auto-ingress.yaml"),
    Path("/etc/auto-ingress/config.yaml"),
]


def find_config_file() -> Optional[Path]:
    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return path
    return None


def read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"configuration file {path} must contain a mapping")
    return data


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ControllerConfig:
    """Build the controller configuration.

    Values are layered: YAML file, then AUTO_INGRESS_* environment variables,
    then explicit overrides (CLI flags). Empty values do not override.

    Args:
        config_path: YAML file; when None, the default locations are searched
        environ: Environment to read, defaults to os.environ
        overrides: Highest-precedence values keyed by field name

    Raises:
        ConfigError: If the file cannot be read or the result does not validate.
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    path = Path(config_path) if config_path else find_config_file()
    if path is not None:
        if config_path and not path.exists():
            raise ConfigError(f"configuration file not found: {path}")
        logger.debug("Loading configuration file", config_path=str(path))
        data.update(read_config_file(path))

    for env_var, field in ENV_VARS.items():
        value = environ.get(env_var)
        if value:
            data[field] = value

    for field, value in (overrides or {}).items():
        if value is not None and value != "":
            data[field] = value

    try:
        return ControllerConfig(**data)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "config"
        problems.append(f"{field}: {err['msg']}")
    return "invalid configuration: " + "; ".join(problems)
