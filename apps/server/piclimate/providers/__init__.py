"""Measurement providers: sources of one reading per call."""

from __future__ import annotations

from .base import MeasurementProvider
from .bme280_i2c import Bme280Provider
from .bme_reader import BmeReaderProvider
from .random_data import RandomDataProvider

__all__ = [
    "Bme280Provider",
    "BmeReaderProvider",
    "MeasurementProvider",
    "RandomDataProvider",
]
