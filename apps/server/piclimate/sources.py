"""Measurement sources used by the monitor to answer chart queries."""

from __future__ import annotations

import logging
import math
import random
from datetime import timedelta
from typing import TYPE_CHECKING

from .constants import VALUE_PRECISION
from .domain_models import LatestDataRequest, Measurement, MeasurementFilter, utc_now
from .measurements_db import MeasurementsDB

if TYPE_CHECKING:
    from .config import AppConfig

LOGGER = logging.getLogger(__name__)


class MeasurementSource:
    name = ""

    def get_measurements(self, measurement_filter: MeasurementFilter) -> list[Measurement]:
        """Return bucket averages inside the filter window, oldest first."""
        raise NotImplementedError

    def get_latest_measurements(self, request: LatestDataRequest) -> list[Measurement]:
        """Return the newest raw readings, newest first."""
        raise NotImplementedError

    def describe(self) -> str:
        return self.name


class SqliteSource(MeasurementSource):
    name = "sqlite"

    def __init__(self, db: MeasurementsDB) -> None:
        self.db = db
        self.db.ensure_table()

    def get_measurements(self, measurement_filter: MeasurementFilter) -> list[Measurement]:
        return self.db.aggregate(
            measurement_filter.start, measurement_filter.end, measurement_filter.time_step
        )

    def get_latest_measurements(self, request: LatestDataRequest) -> list[Measurement]:
        return self.db.latest(request.max_rows)

    def describe(self) -> str:
        return f"sqlite:{self.db.db_path}"


class RandomDataSource(MeasurementSource):
    """Synthetic curves for demos: rising pressure, falling temperature, a humidity dip."""

    name = "random"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def get_measurements(self, measurement_filter: MeasurementFilter) -> list[Measurement]:
        count = measurement_filter.resolution
        step = (measurement_filter.end - measurement_filter.start) / count
        rng = self._rng
        points: list[Measurement] = []
        for index in range(count):
            fraction = index / count
            points.append(
                Measurement(
                    timestamp=measurement_filter.start + index * step,
                    pressure=700.0 + 10.0 * rng.random() + 100.0 * fraction,
                    temperature=40.0 + 1.0 * rng.random() - 10.0 * fraction,
                    humidity=80.0 + 6.0 * rng.random() - 60.0 * math.sin(math.pi * fraction),
                ).rounded(VALUE_PRECISION)
            )
        return points

    def get_latest_measurements(self, request: LatestDataRequest) -> list[Measurement]:
        now = utc_now()
        rng = self._rng
        return [
            Measurement(
                timestamp=now - timedelta(seconds=offset),
                pressure=700.0 + 100.0 * rng.random(),
                temperature=40.0 * rng.random(),
                humidity=100.0 * rng.random(),
            ).rounded(VALUE_PRECISION)
            for offset in range(request.max_rows)
        ]


def create_source(config: AppConfig) -> MeasurementSource:
    if config.server.source == RandomDataSource.name:
        LOGGER.warning("Serving synthetic measurements from the random data source")
        return RandomDataSource()
    db = MeasurementsDB(config.database.path, config.database.table_name)
    return SqliteSource(db)
