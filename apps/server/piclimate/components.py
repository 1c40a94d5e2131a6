"""Common lifecycle for measurement providers, loggers and limiters.

A component is created unconfigured, becomes usable after ``configure()``
succeeds and cannot be used again once ``close()`` has been called.
``configure``/``measure``/``log_measurement``/``apply`` are blocking and are
run in worker threads by the measurement loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from .errors import LoopClosedError, NotConfiguredError

if TYPE_CHECKING:
    from .config import AppConfig


class MeasurementComponent:
    name: ClassVar[str] = ""
    """Registry name used in configuration files."""

    def __init__(self) -> None:
        self.is_configured = False
        self.closed = False

    def configure(self, config: AppConfig) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self.closed = True
        self.is_configured = False

    def _check_open(self) -> None:
        if self.closed:
            raise LoopClosedError(self)

    def _check_ready(self) -> None:
        self._check_open()
        if not self.is_configured:
            raise NotConfiguredError(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(configured={self.is_configured}, closed={self.closed})"
