#!/usr/bin/env python3
"""
Generation worker process.

Run this separately from the web server; each process runs one or more
independent claim loops against the configured job store.

Usage:
    python -m testgen.jobs.run_worker                          # Both queues
    python -m testgen.jobs.run_worker --queues suggestions     # Only suggestions
    python -m testgen.jobs.run_worker --concurrency 4          # Four claim loops
    python -m testgen.jobs.run_worker --burst                  # Drain queues and exit
"""

import argparse
import asyncio
import signal
import sys

from testgen.config import config
from testgen.jobs.errors import StoreUnavailable
from testgen.jobs.generator import AnthropicGenerator
from testgen.jobs.models import QueueName
from testgen.jobs.store import close_job_store, get_job_store
from testgen.jobs.worker import run_worker_pool
from testgen.utils.logging import configure_logging, worker_logger as logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run test generation workers")
    parser.add_argument(
        "--queues",
        "-q",
        nargs="+",
        choices=[q.value for q in QueueName],
        default=[q.value for q in QueueName],
        help="Queues to process (default: all)"
    )
    parser.add_argument(
        "--concurrency",
        "-c",
        type=int,
        default=config.WORKER_CONCURRENCY,
        help=f"Independent claim loops in this process (default: {config.WORKER_CONCURRENCY})"
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=config.WORKER_POLL_INTERVAL,
        help="Seconds to sleep when all queues are empty"
    )
    parser.add_argument(
        "--burst",
        "-b",
        action="store_true",
        help="Run in burst mode (process all jobs and exit)"
    )
    parser.add_argument(
        "--name",
        "-n",
        default="worker",
        help="Worker name prefix used in logs"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser


async def main(args: argparse.Namespace) -> int:
    """Run the worker pool until a shutdown signal arrives."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_shutdown(signum):
        logger.info("Shutdown signal received, finishing current jobs", signal=signum)
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_shutdown, sig)

    try:
        store = await get_job_store()
        generator = AnthropicGenerator()

        logger.info(
            "Worker pool starting",
            backend=store.backend_name,
            queues=args.queues,
            concurrency=args.concurrency,
            model=generator.model_name
        )

        await run_worker_pool(
            store,
            generator,
            concurrency=args.concurrency,
            queues=[QueueName(q) for q in args.queues],
            poll_interval_seconds=args.poll_interval,
            burst=args.burst,
            stop_event=stop_event,
            name=args.name
        )
        return 0

    except (StoreUnavailable, ValueError) as e:
        logger.critical(f"Worker error: {e}")
        return 1
    finally:
        await close_job_store()


if __name__ == "__main__":
    cli_args = build_parser().parse_args()
    configure_logging("DEBUG" if cli_args.verbose else config.LOG_LEVEL)
    sys.exit(asyncio.run(main(cli_args)))
