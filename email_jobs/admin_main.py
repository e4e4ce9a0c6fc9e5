"""CLI entrypoint for administrative email job operations."""

import argparse
import asyncio
import json
import logging
import sys

from email_jobs.config import EmailJobsConfig
from email_jobs.errors import JobNotFoundError
from email_jobs.models import JobStatus
from email_jobs.processor_main import create_db_pool, setup_logging
from email_jobs.service import EmailJobService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Email Jobs Admin")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show job counts by status")

    retry = subparsers.add_parser("retry-failed", help="Reset failed jobs to pending")
    retry.add_argument("--limit", type=int, default=10)

    reset = subparsers.add_parser("reset-hung", help="Reset jobs stuck in processing")
    reset.add_argument(
        "--timeout-minutes",
        type=int,
        default=None,
        help="Staleness threshold (default: $EMAIL_JOBS_HUNG_JOB_TIMEOUT_MINUTES)",
    )

    show = subparsers.add_parser("show", help="Show a single job")
    show.add_argument("job_id", type=int)

    list_cmd = subparsers.add_parser("list", help="List recent jobs")
    list_cmd.add_argument("--type", default=None)
    list_cmd.add_argument(
        "--status", choices=[s.value for s in JobStatus], default=None
    )
    list_cmd.add_argument("--limit", type=int, default=50)

    return parser


async def run_command(args: argparse.Namespace, service: EmailJobService) -> dict:
    """Run one admin command and return its JSON-serializable result."""
    if args.command == "stats":
        return (await service.stats()).to_dict()
    if args.command == "retry-failed":
        return {"count": await service.retry_failed(args.limit)}
    if args.command == "reset-hung":
        return {"count": await service.reset_hung_jobs(args.timeout_minutes)}
    if args.command == "show":
        return (await service.get_job(args.job_id)).to_dict()
    if args.command == "list":
        jobs = await service.list_jobs(type=args.type, status=args.status, limit=args.limit)
        return {"jobs": [job.to_dict() for job in jobs]}
    raise ValueError(f"Unknown command {args.command}")


def main(argv=None):
    """Main entrypoint for the admin CLI."""
    setup_logging()
    logger = logging.getLogger(__name__)

    args = build_parser().parse_args(argv)

    try:
        config = EmailJobsConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    async def run():
        db_pool = await create_db_pool(config)
        try:
            service = EmailJobService(config, db_pool, logger)
            return await run_command(args, service)
        finally:
            await db_pool.close()

    try:
        result = asyncio.run(run())
    except JobNotFoundError as e:
        logger.error(str(e))
        sys.exit(2)
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
