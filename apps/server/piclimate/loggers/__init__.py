"""Measurement loggers: sinks that print or persist one reading per call."""

from __future__ import annotations

from .base import MeasurementLogger
from .console import ConsoleLogger
from .sqlite import SqliteLogger

__all__ = ["ConsoleLogger", "MeasurementLogger", "SqliteLogger"]
