"""
Standalone entrypoint for running the build controller.

Usage:
    python -m build_controller [OPTIONS]
    build-controller [OPTIONS]  (after pip install)

Environment Variables:
    BUILD_DB_PATH: Database path (default: build_controller.db)
    BUILD_NAMESPACE: Namespace of the jobs and their builds (default: default)
    BUILD_AGENT: Agent tag of the jobs this controller owns (default: knative-build)
    BUILD_RECONCILE_INTERVAL: Seconds between reconciliation loops (default: 2.0)
    BUILD_WORKERS: Keys reconciled concurrently (default: 4)
    BUILD_CONTEXTS: Comma-separated cluster contexts to sweep (default: default)
    BUILD_ALLOW_CANCELLATIONS: Comma-separated contexts allowing cancellation, or *
    BUILD_DEFAULT_TIMEOUT: Build timeout in seconds when a job sets none (default: 3600)
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import timedelta
from typing import Any

from build_common.keys import DEFAULT_CLUSTER_CONTEXT
from build_common.models import KNATIVE_BUILD_AGENT
from build_controller.config import ControllerConfig
from build_controller.controller import BuildController
from build_persistence.sqlite_accessor import SQLiteAccessor

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0
DEFAULT_WORKERS = 4
DEFAULT_TIMEOUT_SECONDS = 3600.0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Build Controller - reconciles ProwJobs with Builds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Note: Command-line arguments override environment variables.

Examples:
  # Run with default settings
  build-controller

  # Allow duplicate cancellation in the default cluster
  build-controller --allow-cancellations default

  # Use custom database and reconcile interval
  build-controller --db-path /tmp/builds.db --interval 5.0
        """,
    )

    parser.add_argument("--db-path", type=str, default=None, help="Path to SQLite database file")
    parser.add_argument("--namespace", type=str, default=None, help="Namespace of jobs and builds")
    parser.add_argument("--agent", type=str, default=None, help="Agent tag owned by this controller")
    parser.add_argument(
        "--interval", type=float, default=None, help="Seconds between reconciliation loops"
    )
    parser.add_argument("--workers", type=int, default=None, help="Keys reconciled concurrently")
    parser.add_argument(
        "--context",
        dest="contexts",
        action="append",
        default=None,
        help="Cluster context to sweep for duplicates (repeatable)",
    )
    parser.add_argument(
        "--allow-cancellations",
        dest="cancellation_contexts",
        action="append",
        default=None,
        metavar="CONTEXT",
        help="Cluster context where duplicate jobs may be cancelled, or * (repeatable)",
    )
    parser.add_argument(
        "--default-timeout",
        type=float,
        default=None,
        help="Build timeout in seconds for jobs that set none",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def get_database_path(args: argparse.Namespace) -> str:
    if args.db_path:
        return args.db_path
    return os.environ.get("BUILD_DB_PATH", "build_controller.db")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _positive_float(value: Any, name: str, default: float) -> float:
    """Parse a positive number, falling back to default when invalid."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name}={value!r}, using default {default}")
        return default
    if number <= 0:
        logger.warning(f"Invalid {name}={number}, using default {default}")
        return default
    return number


def get_reconcile_interval(args: argparse.Namespace) -> float:
    """
    Get the reconciliation interval from CLI args or environment.

    Returns:
        Seconds between reconciliation loops
    """
    if args.interval is not None:
        return _positive_float(args.interval, "interval", DEFAULT_INTERVAL)
    return _positive_float(
        os.environ.get("BUILD_RECONCILE_INTERVAL", DEFAULT_INTERVAL),
        "BUILD_RECONCILE_INTERVAL",
        DEFAULT_INTERVAL,
    )


def get_workers(args: argparse.Namespace) -> int:
    value = args.workers if args.workers is not None else os.environ.get("BUILD_WORKERS")
    if value is None:
        return DEFAULT_WORKERS
    return int(_positive_float(value, "workers", DEFAULT_WORKERS))


def get_default_timeout(args: argparse.Namespace) -> timedelta:
    if args.default_timeout is not None:
        value = args.default_timeout
    else:
        value = os.environ.get("BUILD_DEFAULT_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    seconds = _positive_float(value, "default timeout", DEFAULT_TIMEOUT_SECONDS)
    return timedelta(seconds=seconds)


def build_config(args: argparse.Namespace) -> ControllerConfig:
    """
    Assemble the controller configuration from CLI args and environment.

    Args:
        args: Parsed command-line arguments

    Returns:
        The controller configuration
    """
    contexts = args.contexts or _split_list(
        os.environ.get("BUILD_CONTEXTS", DEFAULT_CLUSTER_CONTEXT)
    )
    cancellations = args.cancellation_contexts
    if cancellations is None:
        cancellations = _split_list(os.environ.get("BUILD_ALLOW_CANCELLATIONS", ""))

    return ControllerConfig(
        namespace=args.namespace or os.environ.get("BUILD_NAMESPACE", "default"),
        agent=args.agent or os.environ.get("BUILD_AGENT", KNATIVE_BUILD_AGENT),
        contexts=contexts,
        cancellation_contexts=set(cancellations),
        reconcile_interval=get_reconcile_interval(args),
        workers=get_workers(args),
        default_timeout=get_default_timeout(args),
    )


async def run_controller(args: argparse.Namespace) -> None:
    """
    Initialize and run the build controller until SIGINT or SIGTERM.

    Args:
        args: Parsed command-line arguments
    """
    db_path = get_database_path(args)
    config = build_config(args)

    logger.info("Starting Build Controller")
    logger.info(f"  Database: {db_path}")
    logger.info(f"  Namespace: {config.namespace}")
    logger.info(f"  Agent: {config.agent}")
    logger.info(f"  Contexts: {', '.join(config.contexts)}")
    logger.info(
        f"  Cancellations: {', '.join(sorted(config.cancellation_contexts)) or '(none)'}"
    )
    logger.info(f"  Reconcile interval: {config.reconcile_interval}s")

    accessor = SQLiteAccessor(db_path, namespace=config.namespace)
    await accessor.initialize()
    logger.info("Database initialized")

    controller = BuildController(accessor, config)

    shutdown_event = asyncio.Event()

    def signal_handler(sig: Any, _frame: Any) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await controller.start()
        await shutdown_event.wait()
    except Exception as e:
        logger.error(f"Controller error: {e}", exc_info=True)
        raise
    finally:
        await controller.stop()
        logger.info("Closing database connections...")
        await accessor.close()
        logger.info("Controller stopped cleanly")


def main() -> int:
    """
    Main entrypoint for the controller.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_controller(args))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
