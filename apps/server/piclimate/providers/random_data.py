from __future__ import annotations

import random
from typing import TYPE_CHECKING

from ..domain_models import Measurement, utc_now
from .base import MeasurementProvider

if TYPE_CHECKING:
    from ..config import AppConfig

PRESSURE_RANGE_MMHG = (700.0, 800.0)
TEMPERATURE_RANGE_C = (0.0, 40.0)
HUMIDITY_RANGE_PCT = (0.0, 100.0)


class RandomDataProvider(MeasurementProvider):
    """Uniformly distributed synthetic readings; needs no hardware."""

    name = "random"

    def __init__(self, rng: random.Random | None = None) -> None:
        super().__init__()
        self._rng = rng or random.Random()
        self.is_configured = True

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        self.is_configured = True

    def measure(self) -> Measurement:
        self._check_ready()
        return Measurement(
            timestamp=utc_now(),
            pressure=self._rng.uniform(*PRESSURE_RANGE_MMHG),
            temperature=self._rng.uniform(*TEMPERATURE_RANGE_C),
            humidity=self._rng.uniform(*HUMIDITY_RANGE_PCT),
        )
