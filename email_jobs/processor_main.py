"""CLI entrypoint and programmatic interface for the email job processor."""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from typing import Iterable, Optional

import asyncpg

from email_jobs.config import EmailJobsConfig
from email_jobs.ddl import EMAIL_JOBS_TABLE_DDL
from email_jobs.processor import EmailProcessor, StartupHook
from email_jobs.registry import ExecutorRegistry, executor_registry
from email_jobs.store import JobStore


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def create_db_pool(config: EmailJobsConfig):
    """Create database connection pool."""
    return await asyncpg.create_pool(config.db_dsn, min_size=1, max_size=5)


async def ensure_schema(db_pool) -> None:
    """Create the email_jobs table and indexes if they do not exist."""
    async with db_pool.acquire() as conn:
        await conn.execute(EMAIL_JOBS_TABLE_DDL)


def load_handlers(handlers_module: Optional[str], logger: logging.Logger) -> None:
    """Import the module that registers executors on the global registry."""
    handlers_module = handlers_module or os.getenv("EMAIL_JOBS_HANDLERS_MODULE")
    if not handlers_module:
        logger.warning(
            "EMAIL_JOBS_HANDLERS_MODULE not set, no executors will be available"
        )
        return
    try:
        importlib.import_module(handlers_module)
        logger.info(f"Loaded executors from {handlers_module}")
    except ImportError as e:
        logger.warning(f"Failed to import handlers module {handlers_module}: {e}")


async def run_processor(
    config: Optional[EmailJobsConfig] = None,
    db_pool=None,
    registry: Optional[ExecutorRegistry] = None,
    logger: Optional[logging.Logger] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    handlers_module: Optional[str] = None,
    startup_hooks: Optional[Iterable[StartupHook]] = None,
    create_schema: bool = False,
):
    """
    Run the processor until shutdown_event is set.

    This function can be imported and used in your own code to run the
    processor next to an application, or as a standalone process.

    Args:
        config: EmailJobsConfig instance. If None, will load from environment.
        db_pool: Database connection pool. If None, will create from config.
        registry: ExecutorRegistry instance. If None, will use global executor_registry.
        logger: Logger instance. If None, will create default logger.
        shutdown_event: Optional asyncio.Event for graceful shutdown.
        handlers_module: Module path that registers executors. If None, uses
            EMAIL_JOBS_HANDLERS_MODULE env var.
        startup_hooks: Async callables run once when the processor starts.
        create_schema: Create the email_jobs table before starting.

    Example:
        ```python
        from email_jobs import EmailJobsConfig, executor_registry
        from email_jobs.processor_main import run_processor
        import asyncio

        config = EmailJobsConfig.from_env()
        asyncio.run(run_processor(
            config=config,
            registry=executor_registry,
            handlers_module="myapp.email_executors",
        ))
        ```
    """
    if config is None:
        config = EmailJobsConfig.from_env()

    if logger is None:
        logger = logging.getLogger(__name__)

    if registry is None:
        registry = executor_registry

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    load_handlers(handlers_module, logger)
    logger.info(f"Registered executors: {sorted(registry.all_executors())}")

    db_pool_provided = db_pool is not None
    if db_pool is None:
        db_pool = await create_db_pool(config)

    processor = EmailProcessor(
        store=JobStore(db_pool),
        registry=registry,
        config=config,
        logger=logger,
        startup_hooks=startup_hooks,
    )

    try:
        if create_schema:
            await ensure_schema(db_pool)
        await processor.start()
        await shutdown_event.wait()
    finally:
        await processor.stop()
        if not db_pool_provided and db_pool:
            await db_pool.close()


def main():
    """Main entrypoint for the processor."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Email Jobs Processor")
    parser.add_argument(
        "--handlers-module",
        default=None,
        help="Module that registers executors (default: $EMAIL_JOBS_HANDLERS_MODULE)",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the email_jobs table if it does not exist",
    )

    args = parser.parse_args()

    try:
        config = EmailJobsConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    async def run():
        """Async main function."""
        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            logger.info(f"Received signal {signum}, shutting down...")
            shutdown_event.set()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, signal_handler, signum)

        try:
            logger.info("Starting email job processor...")
            await run_processor(
                config=config,
                registry=executor_registry,
                logger=logger,
                shutdown_event=shutdown_event,
                handlers_module=args.handlers_module,
                create_schema=args.create_schema,
            )
        except Exception as e:
            logger.error(f"Fatal error in processor: {e}", exc_info=True)
            sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
