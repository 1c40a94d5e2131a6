"""Measurement loop: provider -> loggers -> limiters on a fixed delay.

Lifecycle::

    idle --start()--> configuring --ok--> running --stop()--> idle
                           |
                           +--configuration error--> idle (error re-raised)
                           +--stop() while configuring--> idle (loop not started)

``aclose()`` moves any state to ``closed`` and closes every component.

Each cycle takes one measurement, hands it to every logger in registration
order and then applies every limiter in registration order. Limiters run in
every cycle whose measurement succeeded, even if a logger failed. Failures
are reported to the matching error handlers and never stop the loop.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .constants import DEFAULT_LOOP_DELAY_S, MIN_LOOP_DELAY_S
from .errors import LoopClosedError
from .periodic_loop import ErrorHandler, PeriodicLoop
from .plugins import create_provider, resolve_limiter, resolve_logger

if TYPE_CHECKING:
    from .components import MeasurementComponent
    from .config import AppConfig
    from .domain_models import Measurement
    from .limiters import MeasurementLimiter
    from .loggers import MeasurementLogger
    from .providers import MeasurementProvider

LOGGER = logging.getLogger(__name__)


class LoopState(enum.StrEnum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    RUNNING = "running"
    CLOSED = "closed"


def _report(
    handlers: list[ErrorHandler], sender: MeasurementComponent, exc: Exception, what: str
) -> None:
    LOGGER.warning("%s failed in %s: %s", what, type(sender).__name__, exc, exc_info=True)
    for handler in list(handlers):
        try:
            handler(sender, exc)
        except Exception:
            LOGGER.warning("Error handler %r failed", handler, exc_info=True)


class MeasurementLoop:
    def __init__(
        self,
        config: AppConfig,
        provider: MeasurementProvider,
        loggers: Iterable[MeasurementLogger] = (),
        limiters: Iterable[MeasurementLimiter] = (),
        delay_s: float = DEFAULT_LOOP_DELAY_S,
    ) -> None:
        self.config = config
        self.provider = provider
        self.loggers: list[MeasurementLogger] = list(loggers)
        self.limiters: list[MeasurementLimiter] = list(limiters)
        self.state = LoopState.IDLE
        self.measurement_error_handlers: list[ErrorHandler] = []
        self.logger_error_handlers: list[ErrorHandler] = []
        self.limiter_error_handlers: list[ErrorHandler] = []
        self.last_measurement: Measurement | None = None
        self.cycle_count = 0
        self._loop = PeriodicLoop(self.run_cycle, delay_s, name="measurement-loop")

    @property
    def delay_s(self) -> float:
        return self._loop.delay_s

    @property
    def is_running(self) -> bool:
        return self.state is LoopState.RUNNING and self._loop.is_running

    def _check_open(self) -> None:
        if self.state is LoopState.CLOSED:
            raise LoopClosedError(self)

    async def start(self) -> None:
        """Configure all components, then start the periodic cycle.

        Components are configured provider first, then loggers and limiters
        in registration order. The first configuration error aborts start-up
        and propagates. Calling ``start()`` while configuring or running is a
        no-op.
        """
        self._check_open()
        if self.state is not LoopState.IDLE:
            return
        self.state = LoopState.CONFIGURING
        try:
            for component in (self.provider, *self.loggers, *self.limiters):
                await asyncio.to_thread(component.configure, self.config)
                LOGGER.debug("Configured %s", type(component).__name__)
        except BaseException:
            if self.state is LoopState.CONFIGURING:
                self.state = LoopState.IDLE
            raise
        if self.state is not LoopState.CONFIGURING:
            LOGGER.info("Measurement loop start cancelled while configuring")
            return
        self._loop.start()
        self.state = LoopState.RUNNING
        LOGGER.info(
            "Measurement loop started: provider=%s loggers=%s limiters=%s delay=%.1fs",
            type(self.provider).__name__,
            [type(item).__name__ for item in self.loggers],
            [type(item).__name__ for item in self.limiters],
            self._loop.delay_s,
        )

    async def stop(self) -> None:
        """Stop after the in-flight cycle step and wait for the loop task to exit."""
        self._check_open()
        await self._loop.stop()
        if self.state is LoopState.RUNNING:
            LOGGER.info("Measurement loop stopped after %d cycle(s)", self.cycle_count)
        self.state = LoopState.IDLE

    async def aclose(self) -> None:
        if self.state is LoopState.CLOSED:
            return
        try:
            await self._loop.aclose()
        finally:
            self.state = LoopState.CLOSED
            for component in (self.provider, *self.loggers, *self.limiters):
                try:
                    await asyncio.to_thread(component.close)
                except Exception:
                    LOGGER.warning("Error closing %s", type(component).__name__, exc_info=True)

    async def __aenter__(self) -> MeasurementLoop:
        try:
            await self.start()
        except BaseException:
            await self.aclose()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def run_cycle(self, stop_event: asyncio.Event | None = None) -> Measurement | None:
        """Run one measure/log/limit pass; returns the measurement or ``None`` on failure."""
        stop_event = stop_event or asyncio.Event()
        if stop_event.is_set():
            return None
        try:
            measurement = await asyncio.to_thread(self.provider.measure)
        except Exception as exc:
            _report(self.measurement_error_handlers, self.provider, exc, "Measurement")
            return None
        self.cycle_count += 1
        self.last_measurement = measurement

        for logger in self.loggers:
            if stop_event.is_set():
                return measurement
            try:
                await asyncio.to_thread(logger.log_measurement, measurement)
            except Exception as exc:
                _report(self.logger_error_handlers, logger, exc, "Logging")

        for limiter in self.limiters:
            if stop_event.is_set():
                return measurement
            try:
                await asyncio.to_thread(limiter.apply)
            except Exception as exc:
                _report(self.limiter_error_handlers, limiter, exc, "Limiting")
        return measurement


class MeasurementLoopBuilder:
    """Assembles a :class:`MeasurementLoop`; components may be given as objects or names."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self._config = config
        self._provider: MeasurementProvider | None = None
        self._loggers: list[MeasurementLogger] = []
        self._limiters: list[MeasurementLimiter] = []
        self._delay_s = DEFAULT_LOOP_DELAY_S
        if config is not None:
            self.set_delay(config.logger.loop_delay_s)

    @classmethod
    def from_config(cls, config: AppConfig) -> MeasurementLoopBuilder:
        builder = cls(config).use_provider(config.logger.provider)
        for name in config.logger.loggers:
            builder.add_logger(name)
        for name in config.logger.limiters:
            builder.add_limiter(name)
        return builder

    def use_settings(self, config: AppConfig) -> MeasurementLoopBuilder:
        self._config = config
        return self

    def use_provider(self, provider: MeasurementProvider | str) -> MeasurementLoopBuilder:
        """Set the provider, closing a previously set one."""
        if isinstance(provider, str):
            provider = create_provider(provider)
        previous = self._provider
        if previous is not None and previous is not provider:
            previous.close()
        self._provider = provider
        return self

    def add_logger(self, logger: MeasurementLogger | str) -> MeasurementLoopBuilder:
        """Append a logger; a name whose class was already added is ignored."""
        if isinstance(logger, str):
            cls = resolve_logger(logger)
            if any(type(item) is cls for item in self._loggers):
                return self
            logger = cls()
        if logger not in self._loggers:
            self._loggers.append(logger)
        return self

    def add_limiter(self, limiter: MeasurementLimiter | str) -> MeasurementLoopBuilder:
        """Append a limiter; limiters are applied in the order they were added."""
        if isinstance(limiter, str):
            cls = resolve_limiter(limiter)
            if any(type(item) is cls for item in self._limiters):
                return self
            limiter = cls()
        if limiter not in self._limiters:
            self._limiters.append(limiter)
        return self

    def set_delay(self, delay_s: float) -> MeasurementLoopBuilder:
        if delay_s < MIN_LOOP_DELAY_S:
            LOGGER.warning(
                "Loop delay %.3fs is below minimum; using %.1fs", delay_s, MIN_LOOP_DELAY_S
            )
        self._delay_s = max(MIN_LOOP_DELAY_S, float(delay_s))
        return self

    def build(self) -> MeasurementLoop:
        if self._provider is None:
            raise ValueError("A measurement provider must be set before building the loop.")
        if self._config is None:
            raise ValueError("Settings must be set before building the loop.")
        return MeasurementLoop(
            self._config,
            self._provider,
            loggers=self._loggers,
            limiters=self._limiters,
            delay_s=self._delay_s,
        )
