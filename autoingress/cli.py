"""Command-line interface for auto-ingress."""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict

from .logging_config import setup_logging, get_logger

logger = get_logger(__name__)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "namespace": args.namespace,
        "dns_suffix": args.dns_suffix,
        "tls_secret_name": args.tls_secret,
        "kubeconfig_path": args.kubeconfig,
        "context": args.context,
    }


def _load_config_or_exit(args: argparse.Namespace):
    from .config import load_config
    from .exceptions import ConfigError

    try:
        controller_config = load_config(args.config, overrides=_overrides(args))
    except ConfigError as e:
        logger.error("Failed to load configuration", error=str(e))
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Configuration loaded",
                namespace=controller_config.namespace,
                dns_suffix=controller_config.dns_suffix,
                tls_secret_name=controller_config.tls_secret_name)
    return controller_config


def _build_controller(args: argparse.Namespace):
    from .controller import AutoIngressController
    from .exceptions import RegistryError
    from .registry import KubernetesRegistry

    controller_config = _load_config_or_exit(args)
    registry = KubernetesRegistry(controller_config)
    try:
        registry.connect()
    except RegistryError as e:
        print(f"Cannot connect to cluster: {e}", file=sys.stderr)
        sys.exit(1)
    return AutoIngressController(controller_config, registry)


def run_command(args: argparse.Namespace) -> None:
    """Bootstrap the index, then watch services until interrupted."""
    from .exceptions import BootstrapError

    setup_logging(args.verbose)
    controller = _build_controller(args)

    try:
        controller.bootstrap()
    except BootstrapError as e:
        logger.error("Bootstrap failed", error=str(e))
        print(f"Bootstrap failed: {e}", file=sys.stderr)
        controller.registry.close()
        sys.exit(1)

    try:
        if args.port:
            _serve_with_api(controller, args)
        else:
            def _handle_signal(signum, frame) -> None:
                logger.info("Received signal", signal=signum)
                controller.stop()

            signal.signal(signal.SIGTERM, _handle_signal)
            signal.signal(signal.SIGINT, _handle_signal)
            controller.run()
    finally:
        controller.registry.close()


def _serve_with_api(controller, args: argparse.Namespace) -> None:
    """Follow the watch in a worker thread while uvicorn serves diagnostics."""
    import uvicorn
    from .api import app, initialize_controller

    initialize_controller(controller)
    worker = threading.Thread(target=controller.run, name="auto-ingress-controller", daemon=True)
    worker.start()

    logger.info("Starting diagnostics API", host=args.host, port=args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")

    controller.stop()
    worker.join(timeout=5)


def bootstrap_command(args: argparse.Namespace) -> None:
    """Run the startup reconciliation once and report what it did."""
    from .exceptions import BootstrapError

    setup_logging(args.verbose)
    controller = _build_controller(args)
    try:
        result = controller.bootstrap()
    except BootstrapError as e:
        print(f"Bootstrap failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        controller.registry.close()

    print(f"Namespace: {controller.config.namespace}")
    print(f"Adopted existing ingresses: {len(result.adopted)}")
    print(f"Created ingresses: {len(result.created)}")
    if len(controller.index):
        print(f"\n{'Service':<30} {'Ingress':<30} {'Host':<50}")
        print("-" * 110)
        for entry in controller.index.entries():
            print(f"{entry.service_name:<30} {entry.ingress_name:<30} {entry.hostname or '-':<50}")


def init_config_command(args: argparse.Namespace) -> None:
    """Generate a sample configuration file."""
    import yaml

    sample_config = {
        "namespace": "default",
        "dns_suffix": "apps.example.com",
        "tls_secret_name": "wildcard-apps-example-com",
        "kubeconfig_path": None,
        "context": None,
        "watch_timeout_seconds": 300,
        "request_timeout_seconds": 30,
    }
    config_yaml = yaml.dump(sample_config, default_flow_style=False, sort_keys=False)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(config_yaml)
        print(f"Sample configuration written to {output_path}")
    else:
        print("Sample configuration:\n")
        print(config_yaml)


def validate_config_command(args: argparse.Namespace) -> None:
    """Validate a configuration file."""
    from .config import load_config
    from .exceptions import ConfigError

    config_path = Path(args.config)
    try:
        controller_config = load_config(str(config_path), environ={})
    except ConfigError as e:
        print(f"✗ Configuration file {config_path} is invalid: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Configuration file {config_path} is valid")
    print("\nConfiguration summary:")
    print(f"  Namespace: {controller_config.namespace}")
    print(f"  DNS suffix: {controller_config.dns_suffix}")
    print(f"  TLS secret: {controller_config.tls_secret_name}")
    print(f"  Kubeconfig: {controller_config.kubeconfig_path or 'in-cluster'}")
    print(f"  Watch timeout: {controller_config.watch_timeout_seconds}s")


def version_command(args: argparse.Namespace) -> None:
    """Show version information."""
    from . import __version__
    print(f"auto-ingress {__version__}")


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", help="Configuration file path")
    parser.add_argument("--namespace", "-n", help="Namespace to watch (env: AUTO_INGRESS_NAMESPACE)")
    parser.add_argument("--dns-suffix", help="DNS suffix for generated hosts (env: AUTO_INGRESS_SERVER_NAME)")
    parser.add_argument("--tls-secret", help="TLS secret for generated ingresses (env: AUTO_INGRESS_SECRET)")
    parser.add_argument("--kubeconfig", help="Path to kubeconfig; in-cluster config when omitted")
    parser.add_argument("--context", help="Kubeconfig context")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="auto-ingress: expose labelled Kubernetes services through generated ingresses",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the controller")
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        "--port",
        type=int,
        help="Serve the diagnostics API on this port"
    )
    run_parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host for the diagnostics API (default: 0.0.0.0)"
    )
    run_parser.set_defaults(func=run_command)

    bootstrap_parser = subparsers.add_parser("bootstrap", help="Reconcile existing services once and exit")
    _add_config_arguments(bootstrap_parser)
    bootstrap_parser.set_defaults(func=bootstrap_command)

    init_parser = subparsers.add_parser("init-config", help="Generate a sample configuration file")
    init_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)"
    )
    init_parser.set_defaults(func=init_config_command)

    validate_parser = subparsers.add_parser("validate-config", help="Validate a configuration file")
    validate_parser.add_argument(
        "--config", "-c",
        required=True,
        help="Configuration file path"
    )
    validate_parser.set_defaults(func=validate_config_command)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=version_command)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
