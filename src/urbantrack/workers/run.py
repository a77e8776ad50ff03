"""CLI runner for offline maintenance of the UrbanTrack data file.

Usage:
    python -m urbantrack.workers.run seed
    python -m urbantrack.workers.run leaderboard --top 10

Do not run these against a data file a live server is writing to; the
server's next periodic save overwrites it.
"""

from __future__ import annotations

import argparse
import logging
import sys

from urbantrack.core.config import Settings
from urbantrack.core.logging import setup_logging
from urbantrack.services.runtime import build_runtime

logger = logging.getLogger(__name__)


def run_seed(settings: Settings, args: argparse.Namespace) -> int:
    """Load the data file, seed missing challenges, and write it back."""
    runtime = build_runtime(settings)
    result = runtime.snapshot_worker.run()
    logger.info(
        "Seed complete: %d riders, %d challenges written to %s",
        result["riders_saved"],
        len(runtime.store.challenges),
        settings.data_file,
    )
    return 0 if result["success"] else 1


def run_leaderboard(settings: Settings, args: argparse.Namespace) -> int:
    """Log the top riders from the data file."""
    runtime = build_runtime(settings)
    entries = runtime.leaderboard.get_leaderboard(args.top)
    logger.info("Leaderboard (%d riders)", len(entries))
    for rank, entry in enumerate(entries, start=1):
        logger.info(
            "  %3d. %-20s score=%d distance=%dm",
            rank,
            entry["name"][:20],
            entry["score"],
            entry["distance"],
        )
    return 0


WORKERS = {
    "seed": run_seed,
    "leaderboard": run_leaderboard,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run an UrbanTrack maintenance task once",
        prog="python -m urbantrack.workers.run",
    )
    parser.add_argument(
        "worker",
        choices=list(WORKERS.keys()),
        help="Which task to run",
    )
    parser.add_argument("--data-file", default=None, help="Override the data file path")
    parser.add_argument("--top", type=int, default=10, help="Leaderboard size (default: 10)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level.upper())

    settings = Settings()
    if args.data_file:
        settings = settings.model_copy(update={"data_file": args.data_file})

    logger.info("Running task: %s", args.worker)
    sys.exit(WORKERS[args.worker](settings, args))


if __name__ == "__main__":
    main()
