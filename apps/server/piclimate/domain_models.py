"""Domain model objects shared by the logger agent and the monitor.

Measurements travel over the wire with the short keys ``d``/``p``/``t``/``h``
so chart payloads stay compact.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from .constants import (
    DEFAULT_LATEST_ROWS,
    DEFAULT_RESOLUTION,
    DEFAULT_TIME_PERIOD_S,
    MAX_LATEST_ROWS,
    MAX_RESOLUTION,
    MIN_LATEST_ROWS,
    MIN_RESOLUTION,
    MIN_TIME_STEP_S,
)

LOGGER = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def _clamp_int(value: Any, minimum: int, maximum: int, default: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    if math.isinf(number):
        return maximum if number > 0 else minimum
    return max(minimum, min(maximum, int(number)))


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Measurement:
    """One climate reading: pressure in mmHg, temperature in °C, humidity in %."""

    timestamp: datetime
    pressure: float
    temperature: float
    humidity: float

    def to_json(self) -> dict[str, Any]:
        return {
            "d": as_utc(self.timestamp).isoformat(),
            "p": self.pressure,
            "t": self.temperature,
            "h": self.humidity,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> Measurement:
        return cls(
            timestamp=parse_timestamp(payload["d"]),
            pressure=float(payload["p"]),
            temperature=float(payload["t"]),
            humidity=float(payload["h"]),
        )

    def rounded(self, digits: int) -> Measurement:
        return Measurement(
            timestamp=self.timestamp,
            pressure=round(self.pressure, digits),
            temperature=round(self.temperature, digits),
            humidity=round(self.humidity, digits),
        )

    def __str__(self) -> str:
        stamp = as_utc(self.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        return (
            f"[{stamp}] P = {self.pressure:.2f} mmHg, "
            f"T = {self.temperature:.2f} °C, H = {self.humidity:.2f} %"
        )


# ---------------------------------------------------------------------------
# Query models
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class MeasurementFilter:
    """Query window plus the number of aggregated points wanted in it.

    ``from_time`` may be later than ``to_time``; :attr:`start` and :attr:`end`
    always give the ordered window that is actually queried.
    """

    from_time: datetime
    to_time: datetime
    resolution: int = DEFAULT_RESOLUTION

    def __post_init__(self) -> None:
        self.from_time = as_utc(self.from_time)
        self.to_time = as_utc(self.to_time)
        clamped = _clamp_int(self.resolution, MIN_RESOLUTION, MAX_RESOLUTION, DEFAULT_RESOLUTION)
        if clamped != self.resolution:
            LOGGER.debug("resolution=%s clamped to %s", self.resolution, clamped)
        self.resolution = clamped

    @classmethod
    def create(
        cls,
        *,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        period_s: int | None = None,
        resolution: int | None = None,
    ) -> MeasurementFilter:
        """Build a filter, deriving missing endpoints.

        ``to_time`` defaults to now. Without ``from_time`` the window starts
        ``period_s`` seconds (at least 1, default one day) before ``to_time``.
        """
        end = as_utc(to_time) if to_time is not None else utc_now()
        if from_time is None:
            period = DEFAULT_TIME_PERIOD_S if period_s is None else max(1, int(period_s))
            start = end - timedelta(seconds=period)
        else:
            start = as_utc(from_time)
        return cls(
            from_time=start,
            to_time=end,
            resolution=DEFAULT_RESOLUTION if resolution is None else resolution,
        )

    @property
    def start(self) -> datetime:
        return min(self.from_time, self.to_time)

    @property
    def end(self) -> datetime:
        return max(self.from_time, self.to_time)

    @property
    def time_period(self) -> int:
        """Window length in whole seconds."""
        return int((self.end - self.start).total_seconds())

    @time_period.setter
    def time_period(self, value: int) -> None:
        self.from_time = self.to_time - timedelta(seconds=max(int(value), 1))

    @property
    def time_step(self) -> int:
        """Bucket width in seconds, never below one second."""
        duration = (self.end - self.start).total_seconds()
        return max(MIN_TIME_STEP_S, int(duration // self.resolution))


@dataclass(slots=True)
class LatestDataRequest:
    max_rows: int = DEFAULT_LATEST_ROWS

    def __post_init__(self) -> None:
        self.max_rows = _clamp_int(
            self.max_rows, MIN_LATEST_ROWS, MAX_LATEST_ROWS, DEFAULT_LATEST_ROWS
        )


# ---------------------------------------------------------------------------
# Auth models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AuthInfo:
    name: str
    role: str

    def to_json(self) -> dict[str, str]:
        return {"name": self.name, "role": self.role}


@dataclass(frozen=True, slots=True)
class AuthTokens:
    access_token: str | None = None
    refresh_token: str | None = None

    def to_json(self) -> dict[str, str | None]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


@dataclass(slots=True)
class ClientOptions:
    """Options served to browser clients."""

    status_page_time_scale: int
    latest_data_expiration_period: int

    def to_json(self) -> dict[str, Any]:
        return {
            "statusPageTimeScale": self.status_page_time_scale,
            "latestDataExpirationPeriod": self.latest_data_expiration_period,
        }
