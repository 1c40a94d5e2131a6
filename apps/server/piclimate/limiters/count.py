from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..constants import DEFAULT_COUNT_LIMIT
from .base import SqliteLimiter

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class CountLimiter(SqliteLimiter):
    """Keeps at most ``count_limit`` rows by deleting the oldest ones."""

    name = "count"

    def __init__(self) -> None:
        super().__init__()
        self.count_limit = DEFAULT_COUNT_LIMIT

    def _configure_limit(self, config: AppConfig) -> None:
        self.count_limit = config.count_limiter.count_limit

    def apply(self) -> int:
        deleted = self._db().delete_oldest_beyond(self.count_limit)
        if deleted:
            LOGGER.debug("Count limiter removed %d row(s) beyond %d", deleted, self.count_limit)
        return deleted
