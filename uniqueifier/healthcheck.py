"""Health check module for verifying the service can run.

Checks that the configured directories exist and are writable and that the
history store for the selected uniqueifier can be opened.
"""
from __future__ import annotations
import os
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from uniqueifier.config import Config, get_config
from uniqueifier.engine.models import Base, EventORM, make_engine
from uniqueifier.utils.logger import log_info, log_error


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    service: str
    healthy: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


def _truncate(message: str, limit: int = 100) -> str:
    return message if len(message) <= limit else message[:limit] + "..."


def check_directory(name: str, path: str) -> HealthCheckResult:
    """Check that a directory exists and is writable."""
    if not path:
        return HealthCheckResult(service=name, healthy=False, message="Not configured")

    directory = Path(path).expanduser()
    if not directory.is_dir():
        return HealthCheckResult(
            service=name,
            healthy=False,
            message=f"Directory does not exist: {directory}",
        )

    if not os.access(directory, os.W_OK):
        return HealthCheckResult(
            service=name,
            healthy=False,
            message=f"Directory is not writable: {directory}",
        )

    return HealthCheckResult(
        service=name,
        healthy=True,
        message=f"Ready ({directory})",
        details={"path": str(directory)},
    )


def check_directories(config: Config) -> List[HealthCheckResult]:
    """Check the source, destination and error directories."""
    return [
        check_directory("Source directory", config.source_directory),
        check_directory("Destination directory", config.destination_directory),
        check_directory("Error directory", config.error_directory),
    ]


def check_store(config: Config) -> HealthCheckResult:
    """Check the history store of the selected uniqueifier.

    The memory uniqueifier keeps nothing on disk and is always ready.
    """
    if config.uniqueifier != "db":
        return HealthCheckResult(
            service="History store",
            healthy=True,
            message="In-memory history",
            details={"uniqueifier": config.uniqueifier},
        )

    engine = None
    try:
        engine = make_engine(config.database_url)
        Base.metadata.create_all(engine)
        with engine.connect() as connection:
            events = connection.execute(select(func.count()).select_from(EventORM)).scalar()

        return HealthCheckResult(
            service="History store",
            healthy=True,
            message=f"Connected ({events} events stored)",
            details={"database_url": config.database_url, "events": events},
        )

    except SQLAlchemyError as e:
        return HealthCheckResult(
            service="History store",
            healthy=False,
            message=f"Connection failed: {_truncate(str(e))}",
        )
    finally:
        if engine is not None:
            engine.dispose()


def run_health_checks(
    config: Optional[Config] = None, verbose: bool = True
) -> Tuple[bool, List[HealthCheckResult]]:
    """Run all health checks.

    Args:
        config: Configuration to check; the global one when omitted
        verbose: If True, print results to stdout

    Returns:
        Tuple of (all_healthy, list of results)
    """
    config = config or get_config()
    results = check_directories(config) + [check_store(config)]
    all_healthy = all(r.healthy for r in results)

    if verbose:
        print_health_report(results)

    # Log results
    for result in results:
        if result.healthy:
            log_info(f"Health check passed: {result.service}", **result.details)
        else:
            log_error(f"Health check failed: {result.service}", reason=result.message)

    return all_healthy, results


def print_health_report(results: List[HealthCheckResult]) -> None:
    """Print one line per check followed by an overall verdict."""
    print("\nRunning health checks...\n")
    for result in results:
        icon = "✓" if result.healthy else "✗"
        print(f"  {result.service}: {icon} {result.message}")

    print()
    failed = [r.service for r in results if not r.healthy]
    if failed:
        print(f"Health check failed for: {', '.join(failed)}\n")
    else:
        print("All checks passed.\n")


if __name__ == "__main__":
    # Allow running directly: python -m uniqueifier.healthcheck
    from dotenv import load_dotenv
    load_dotenv()

    all_healthy, _ = run_health_checks()
    sys.exit(0 if all_healthy else 1)
