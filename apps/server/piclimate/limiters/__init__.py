"""Measurement limiters: retention policies applied after each logged reading."""

from __future__ import annotations

from .base import MeasurementLimiter
from .count import CountLimiter
from .period import PeriodLimiter

__all__ = ["CountLimiter", "MeasurementLimiter", "PeriodLimiter"]
