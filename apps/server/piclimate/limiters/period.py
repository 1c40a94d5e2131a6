from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from ..constants import DEFAULT_PERIOD_LIMIT_S
from ..domain_models import utc_now
from ..time_periods import time_period_string
from .base import SqliteLimiter

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class PeriodLimiter(SqliteLimiter):
    """Deletes rows older than ``period_limit_s`` seconds."""

    name = "period"

    def __init__(self) -> None:
        super().__init__()
        self.period_limit_s = DEFAULT_PERIOD_LIMIT_S

    def _configure_limit(self, config: AppConfig) -> None:
        self.period_limit_s = config.period_limiter.period_limit_s
        LOGGER.info("Keeping measurements for %s", time_period_string(self.period_limit_s))

    def apply(self) -> int:
        cutoff = utc_now() - timedelta(seconds=self.period_limit_s)
        deleted = self._db().delete_older_than(cutoff)
        if deleted:
            LOGGER.debug("Period limiter removed %d row(s) older than %s", deleted, cutoff)
        return deleted
