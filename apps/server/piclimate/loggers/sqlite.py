from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..domain_models import Measurement
from ..measurements_db import MeasurementsDB
from .base import MeasurementLogger

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class SqliteLogger(MeasurementLogger):
    """Inserts one row per reading into the shared measurements table."""

    name = "sqlite"

    def __init__(self) -> None:
        super().__init__()
        self.db: MeasurementsDB | None = None

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        db = MeasurementsDB(config.database.path, config.database.table_name)
        db.ensure_table()
        self.db = db
        self.is_configured = True
        LOGGER.info("Logging measurements to %s (table %s)", db.db_path, db.table_name)

    def log_measurement(self, measurement: Measurement) -> None:
        self._check_ready()
        assert self.db is not None
        self.db.insert(measurement)
