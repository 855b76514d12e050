"""Application entry point: runs the poll scheduler and web server in one process."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn

from carwatch.config import Config, load_config
from carwatch.ingestion.registry import registered_sources
from carwatch.jobs import run_cycle
from carwatch.notify import BroadcastHub, build_notifier
from carwatch.scheduler import PollScheduler
from carwatch.storage import init_db
from carwatch.web.app import create_app
from carwatch.web.config import load_web_config

logger = logging.getLogger("carwatch")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def build_poll_scheduler(config: Config, hub: BroadcastHub) -> PollScheduler:
    """Wire notifier, cycle runner and scheduler for every registered source."""
    notifier = build_notifier(config, hub)

    def _cycle(source):
        return run_cycle(config, source, notifier)

    return PollScheduler(
        _cycle,
        sources=registered_sources(),
        interval_seconds=config.poll_interval_seconds,
    )


def main() -> None:
    """Load config, set up logging, and start scheduler + web server."""
    config = load_config()
    web_config = load_web_config()

    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "carwatch starting (env=%s, db=%s, interval=%ds)",
        config.app_env,
        config.database_path,
        config.poll_interval_seconds,
    )

    init_db(config.database_path)

    hub = BroadcastHub()
    poll_scheduler = build_poll_scheduler(config, hub)

    @asynccontextmanager
    async def lifespan(app):
        if config.poll_on_startup:
            poll_scheduler.start()
        else:
            logger.info("POLL_ON_STARTUP disabled; waiting for a trigger")
        yield
        logger.info("Scheduler shutting down")
        poll_scheduler.stop()

    app = create_app(
        web_config,
        broadcast_hub=hub,
        poll_scheduler=poll_scheduler,
        lifespan=lifespan,
    )

    uvicorn.run(app, host=web_config.web_host, port=web_config.web_port)


if __name__ == "__main__":
    main()
