from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

from ..domain_models import Measurement
from .base import MeasurementLogger

if TYPE_CHECKING:
    from ..config import AppConfig


class ConsoleLogger(MeasurementLogger):
    """Prints each reading as ``[timestamp] P = ..., T = ..., H = ...``."""

    name = "console"

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self._stream = stream

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        self.is_configured = True

    def log_measurement(self, measurement: Measurement) -> None:
        self._check_ready()
        print(measurement, file=self._stream or sys.stdout, flush=True)
