"""Logger agent: runs the measurement loop until interrupted.

Command-line options override settings file values for this run only.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from .config import load_config, parse_name_list
from .measurement_loop import MeasurementLoop, MeasurementLoopBuilder

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the PiClimate measurement logger")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    parser.add_argument("--provider", default=None, help="Measurement provider name")
    parser.add_argument("--loggers", default=None, help="Comma-separated logger names")
    parser.add_argument("--limiters", default=None, help="Comma-separated limiter names")
    parser.add_argument("--delay", type=float, default=None, help="Loop delay in seconds")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    logger: dict[str, Any] = {}
    if args.provider is not None:
        logger["provider"] = args.provider
    if args.loggers is not None:
        logger["loggers"] = parse_name_list(args.loggers)
    if args.limiters is not None:
        logger["limiters"] = parse_name_list(args.limiters)
    if args.delay is not None:
        logger["loop_delay_s"] = args.delay
    return {"logger": logger} if logger else {}


def _log_failure(what: str):
    def handler(sender: object, exc: Exception) -> None:
        LOGGER.warning("%s error from %s: %s", what, type(sender).__name__, exc)

    return handler


def attach_error_logging(loop: MeasurementLoop) -> None:
    loop.measurement_error_handlers.append(_log_failure("Measurement"))
    loop.logger_error_handlers.append(_log_failure("Logger"))
    loop.limiter_error_handlers.append(_log_failure("Limiter"))


async def run_agent(loop: MeasurementLoop, stop: asyncio.Event | None = None) -> None:
    """Start *loop*, wait for *stop* (or SIGINT/SIGTERM) and close it."""
    stop = stop or asyncio.Event()
    event_loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            event_loop.add_signal_handler(signum, stop.set)
    try:
        async with loop:
            LOGGER.info("Logger agent running; press Ctrl+C to stop")
            await stop.wait()
            LOGGER.info("Stopping logger agent")
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                event_loop.remove_signal_handler(signum)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)
    try:
        config = load_config(args.config, overrides=overrides_from_args(args))
        loop = MeasurementLoopBuilder.from_config(config).build()
    except (OSError, ValueError) as exc:
        LOGGER.error("Invalid logger configuration: %s", exc, exc_info=True)
        return 1
    attach_error_logging(loop)
    try:
        asyncio.run(run_agent(loop))
    except Exception as exc:
        LOGGER.error("Logger agent failed to start: %s", exc, exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
