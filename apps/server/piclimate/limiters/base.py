from __future__ import annotations

from typing import TYPE_CHECKING

from ..components import MeasurementComponent
from ..measurements_db import MeasurementsDB

if TYPE_CHECKING:
    from ..config import AppConfig


class MeasurementLimiter(MeasurementComponent):
    def apply(self) -> int:
        """Enforce the retention policy; returns the number of deleted rows."""
        raise NotImplementedError


class SqliteLimiter(MeasurementLimiter):
    """Limiter over the shared SQLite measurements table."""

    def __init__(self) -> None:
        super().__init__()
        self.db: MeasurementsDB | None = None

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        db = MeasurementsDB(config.database.path, config.database.table_name)
        db.ensure_table()
        db.check_connection()
        self.db = db
        self._configure_limit(config)
        self.is_configured = True

    def _configure_limit(self, config: AppConfig) -> None:
        raise NotImplementedError

    def _db(self) -> MeasurementsDB:
        self._check_ready()
        assert self.db is not None
        return self.db
