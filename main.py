"""Main entry point for the XML time uniqueifier service.

Loads environment variables, builds the uniqueifier engine and the file
mover, and fires a processing pass every update interval until the process
is interrupted.
"""
from dotenv import load_dotenv
import argparse
import asyncio
import os
import signal
import sys

# Load environment variables first, before any other imports
load_dotenv()

from uniqueifier.config import Config, reload_config
from uniqueifier.engine import create_uniqueifier
from uniqueifier.errors import ConfigurationError, PersistenceError
from uniqueifier.healthcheck import run_health_checks
from uniqueifier.pipeline import FileMover, PassScheduler
from uniqueifier.utils.logger import configure_logging, log_error, log_info


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Give XML records unique event dates while moving them downstream.")
    parser.add_argument('--source', type=str, help='Directory to read files from.')
    parser.add_argument('--destination', type=str, help='Directory to write files to.')
    parser.add_argument('--error', type=str, help='Directory to quarantine files to.')
    parser.add_argument('--interval', type=int, help='Seconds between processing passes.')
    parser.add_argument('--history', type=int, help='Number of assignments to remember (<= 0 keeps all).')
    parser.add_argument('--uniqueifier', type=str, help='Uniqueifier engine: db or memory.')
    parser.add_argument('--database-url', type=str, help='SQLAlchemy URL of the history store.')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--once', action='store_true', help='Run a single processing pass and exit.')
    mode.add_argument('--check', action='store_true', help='Run health checks and exit.')
    return parser.parse_args(argv)


def apply_overrides(args: argparse.Namespace) -> None:
    """Apply parsed arguments to environment variables."""
    overrides = {
        'SOURCE_DIRECTORY': args.source,
        'DESTINATION_DIRECTORY': args.destination,
        'ERROR_DIRECTORY': args.error,
        'UPDATE_INTERVAL': args.interval,
        'HISTORY_LENGTH': args.history,
        'UNIQUEIFIER': args.uniqueifier,
        'DATABASE_URL': args.database_url,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[name] = str(value)


async def run_service(config: Config, once: bool = False) -> int:
    """Run the file mover until a stop signal arrives (or for one pass)."""
    uniqueifier = create_uniqueifier(config.uniqueifier, config.history_length, config.database_url)

    try:
        mover = FileMover(
            config.source_directory,
            config.destination_directory,
            config.error_directory,
            uniqueifier,
        )

        if once:
            result = await mover.process_files()
            log_info("Single pass finished", **result.to_dict())
            return 0

        scheduler = PassScheduler(mover.process_files, config.update_interval)
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows event loops fall back to KeyboardInterrupt
                pass

        log_info("Starting service", **uniqueifier.get_stats())
        scheduler.start()
        await stop_event.wait()

        scheduler.stop()
        await scheduler.wait_idle()
        log_info("Service stopped", **mover.get_stats())
        return 0

    finally:
        await uniqueifier.close()


def main(argv=None) -> int:
    args = parse_args(argv)
    apply_overrides(args)

    config = reload_config()
    configure_logging(config.log_level, config.log_format)

    if args.check:
        all_healthy, _ = run_health_checks(config)
        return 0 if all_healthy else 1

    config.log_configuration()

    # Validate configuration
    issues = config.validate_configuration()
    if issues:
        log_error("Configuration validation failed", issues=issues)
        print("Configuration issues found:")
        for issue in issues:
            print(f"  - {issue}")
        print("\nPlease fix these issues and try again.")
        return 1

    try:
        return asyncio.run(run_service(config, once=args.once))
    except (ConfigurationError, PersistenceError) as e:
        log_error("Error occurred starting the service", error=str(e))
        return 1
    except KeyboardInterrupt:
        log_info("Service interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
