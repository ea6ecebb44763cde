"""DomainWatch - HTTP endpoint availability monitor."""

import argparse
import logging
import signal
import sys
from threading import Event
from typing import Optional

__version__ = "0.1.0"

# Global shutdown event for signal handlers
_shutdown_event: Optional[Event] = None

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _handle_shutdown(signum: int, frame: object) -> None:
    """Signal handler for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating shutdown...", sig_name)
    if _shutdown_event is not None:
        _shutdown_event.set()


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - probe endpoints until done or interrupted."""
    global _shutdown_event

    _setup_logging(args.verbose)

    logger.info("DomainWatch %s starting...", __version__)

    # Import here to avoid circular imports and allow logging setup first
    from dataclasses import replace

    from .config import ConfigError, load_config
    from .monitor import Monitor
    from .reporter import report_availability
    from .scheduler import Scheduler, SchedulerError
    from .store import DomainStatusStore

    # 1. Load configuration, letting CLI flags win over file and environment
    try:
        config = load_config(args.config)
        overrides = {}
        if args.interval is not None:
            overrides["interval"] = args.interval
        if args.max_cycles is not None:
            overrides["max_cycles"] = args.max_cycles
        monitor_config = replace(config.monitor, **overrides)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    logger.info("Configuration loaded from %s", args.config)
    logger.info(
        "Monitoring %d endpoints every %ss",
        len(config.endpoints),
        monitor_config.interval,
    )

    # 2. Setup shutdown handler
    _shutdown_event = Event()
    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    # 3. Wire the cycle: probe everything, then report
    store = DomainStatusStore()
    monitor = Monitor(config.endpoints, store, monitor_config)

    def run_once() -> None:
        monitor.run_cycle()
        report_availability(store)

    try:
        scheduler = Scheduler(
            run_once,
            interval=monitor_config.interval,
            max_cycles=monitor_config.max_cycles,
            on_finished=_shutdown_event.set,
        )
        scheduler.start()
    except SchedulerError as e:
        logger.error("Scheduler error: %s", e)
        monitor.close()
        sys.exit(1)

    try:
        # 4. Wait for max cycles or a shutdown signal
        _shutdown_event.wait()
    except KeyboardInterrupt:
        # Backup handler if signal doesn't work
        logger.info("Keyboard interrupt received")
    finally:
        # 5. Cleanup - an in-flight cycle finishes before we exit
        logger.info("Shutting down...")
        scheduler.stop()
        monitor.close()
        logger.info("Shutdown complete after %d cycle(s)", scheduler.completed_cycles)


def _cmd_validate(args: argparse.Namespace) -> None:
    """Execute the validate command - check the endpoint configuration."""
    from .config import ConfigError, load_config
    from .monitor import extract_domain

    # 1. Load configuration
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    # 2. Resolve the domain every endpoint aggregates under
    invalid = 0
    for endpoint in config.endpoints:
        domain = extract_domain(endpoint.url)
        if domain is None:
            invalid += 1
            print(f"✗ {endpoint.name}: no hostname in {endpoint.url}")
        else:
            print(f"✓ {endpoint.name}: {endpoint.effective_method} {endpoint.url} -> {domain}")

    print(f"\nResult: {len(config.endpoints) - invalid}/{len(config.endpoints)} endpoints valid")

    if invalid:
        sys.exit(1)


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config", "--file",
        dest="config",
        default="config.yaml",
        help="Path to YAML file with HTTP endpoints (default: config.yaml)",
    )


def main() -> None:
    """Main entry point for the domainwatch package."""
    parser = argparse.ArgumentParser(
        description="DomainWatch - HTTP endpoint availability monitor"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"domainwatch {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Probe endpoints periodically and report availability (default)",
    )
    _add_config_argument(run_parser)
    run_parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between check cycles (overrides config)",
    )
    run_parser.add_argument(
        "--max-cycles",
        type=int,
        help="Number of cycles before exiting, 0 for no limit (overrides config)",
    )
    run_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    run_parser.set_defaults(func=_cmd_run)

    # Validate subcommand
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check the endpoint configuration without probing",
    )
    _add_config_argument(validate_parser)
    validate_parser.set_defaults(func=_cmd_validate)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = "config.yaml"
        args.interval = None
        args.max_cycles = None
        args.verbose = False
        args.func = _cmd_run

    args.func(args)
