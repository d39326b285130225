"""Universal HTTP Ping Service - keep-alive and uptime pings for web endpoints."""

import argparse
import logging
import signal
import sys
from functools import partial
from threading import Event

__version__ = "1.0.0"

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


def _apply_log_level(level_name: str, verbose: bool) -> None:
    """Switch the root logger to the configured level (-v always wins)."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def _install_signal_handlers(shutdown_event: Event) -> None:
    """Route SIGINT/SIGTERM to the shutdown event."""

    def _handle_shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, initiating shutdown...", sig_name)
        shutdown_event.set()

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)


def _load_and_validate(args: argparse.Namespace, default_timeout_ms: int):
    """Load configuration and validate endpoints, exiting with 1 on failure."""
    from .config import ConfigError, load_config
    from .validator import validate_endpoints

    try:
        config = load_config(args.config, default_timeout_ms=default_timeout_ms)
        _apply_log_level(config.logging.level, args.verbose)
        valid = validate_endpoints(config.endpoints, config.privacy)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    positions = [position for position, _ in valid]
    endpoints = [endpoint for _, endpoint in valid]
    return config, endpoints, positions


def _log_banner(config, endpoints: list[str], positions: list[int]) -> None:
    """Log the endpoints and settings the service will use."""
    from .config import PRIVACY_FULL
    from .privacy import mask_endpoint

    logger.info("Endpoints to monitor:")
    if config.privacy == PRIVACY_FULL:
        logger.info("  %d endpoint(s) configured (URLs hidden for privacy)", len(endpoints))
    else:
        for position, endpoint in zip(positions, endpoints):
            logger.info("  %d. %s", position + 1, mask_endpoint(endpoint, config.privacy, position))
    logger.info("Request timeout: %dms", config.ping.timeout_ms)
    logger.info("Delay between pings: %dms", config.ping.delay_ms)


def _log_cycle_result(report) -> None:
    """Log whether the last cycle found every endpoint healthy."""
    if report.all_succeeded:
        logger.info("All endpoints are alive and healthy!")
    else:
        logger.warning("%d endpoint(s) failed to respond properly.", report.failure_count)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - ping on a schedule until a shutdown signal."""
    _setup_logging(args.verbose)

    logger.info("Universal HTTP Ping Service %s starting...", __version__)

    # Import here to allow logging setup first
    from .config import DEFAULT_TIMEOUT_MS, ConfigError
    from .runner import run_cycle
    from .scheduler import CycleScheduler, build_trigger

    # 1. Load configuration and validate endpoints
    config, endpoints, positions = _load_and_validate(args, DEFAULT_TIMEOUT_MS)
    try:
        trigger = build_trigger(config.schedule)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    _log_banner(config, endpoints, positions)
    logger.info("Schedule: %s", config.schedule)

    # 2. Setup shutdown handler
    shutdown_event = Event()
    _install_signal_handlers(shutdown_event)

    # 3. Start the scheduler; pauses between pings end early on shutdown
    job = partial(
        run_cycle,
        endpoints,
        config.ping.timeout_ms,
        config.ping.delay_ms,
        config.privacy,
        user_agent=config.ping.user_agent,
        sleep=shutdown_event.wait,
        positions=positions,
    )
    scheduler = CycleScheduler(job, trigger, stop_event=shutdown_event, on_report=_log_cycle_result)

    try:
        logger.info("Running initial ping...")
        scheduler.start()
        logger.info("Service is running, waiting for shutdown signal...")

        # 4. Wait for shutdown signal
        shutdown_event.wait()

    except KeyboardInterrupt:
        # Backup handler if signal doesn't work
        logger.info("Keyboard interrupt received")
    finally:
        # 5. Cleanup
        logger.info("Shutting down...")
        scheduler.stop()
        logger.info("Shutdown complete")


def _cmd_once(args: argparse.Namespace) -> None:
    """Execute the once command - run a single ping cycle and exit.

    Exits with 0 when every endpoint succeeded, 1 otherwise.
    """
    _setup_logging(args.verbose)

    from .config import ONCE_DEFAULT_TIMEOUT_MS
    from .runner import run_cycle

    config, endpoints, positions = _load_and_validate(args, ONCE_DEFAULT_TIMEOUT_MS)

    report = run_cycle(
        endpoints,
        config.ping.timeout_ms,
        config.ping.delay_ms,
        config.privacy,
        user_agent=config.ping.user_agent,
        positions=positions,
    )

    _log_cycle_result(report)
    if not report.all_succeeded:
        sys.exit(1)


def _cmd_check(args: argparse.Namespace) -> None:
    """Execute the check command - validate configuration without pinging."""
    from .config import ConfigError, load_config
    from .privacy import mask_endpoint
    from .scheduler import build_trigger
    from .validator import InvalidEndpointError, parse_endpoint

    try:
        config = load_config(args.config)
        build_trigger(config.schedule)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    valid_count = 0
    for index, endpoint in enumerate(config.endpoints):
        display = mask_endpoint(endpoint, config.privacy, index)
        try:
            parse_endpoint(endpoint)
        except InvalidEndpointError as e:
            print(f"✗ INVALID: {display} ({e})")
            continue
        valid_count += 1
        print(f"✓ VALID: {display}")

    print(f"\nResult: {valid_count}/{len(config.endpoints)} endpoints valid, schedule '{config.schedule}'")

    if valid_count == 0:
        sys.exit(1)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML configuration file (default: environment variables only)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the universalping package."""
    parser = argparse.ArgumentParser(
        description="Universal HTTP Ping Service - keep web endpoints alive and report their health"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"universal-ping {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Ping all endpoints now and then on the configured schedule (default)",
    )
    _add_common_arguments(run_parser)
    run_parser.set_defaults(func=_cmd_run)

    # Once subcommand
    once_parser = subparsers.add_parser(
        "once",
        help="Run a single ping cycle; exit 1 if any endpoint fails",
    )
    _add_common_arguments(once_parser)
    once_parser.set_defaults(func=_cmd_once)

    # Check subcommand
    check_parser = subparsers.add_parser(
        "check",
        help="Validate configuration and list endpoints without pinging",
    )
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=_cmd_check)

    args = parser.parse_args(argv)

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = None
        args.verbose = False
        args.func = _cmd_run

    args.func(args)
