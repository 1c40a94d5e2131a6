"""Shared constants for the logger agent and the monitor."""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Time periods (seconds)
# ---------------------------------------------------------------------------
SECOND: Final[int] = 1
MINUTE: Final[int] = 60 * SECOND
HOUR: Final[int] = 60 * MINUTE
DAY: Final[int] = 24 * HOUR
WEEK: Final[int] = 7 * DAY
MONTH: Final[int] = 30 * DAY
"""Calendar-agnostic month used for period labels."""

YEAR: Final[int] = 365 * DAY

# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------
PA_TO_MMHG: Final[float] = 0.00750061683
"""Multiply pascals by this to get millimetres of mercury."""

# ---------------------------------------------------------------------------
# Measurement query limits
# ---------------------------------------------------------------------------
MIN_RESOLUTION: Final[int] = 1
MAX_RESOLUTION: Final[int] = 3000
DEFAULT_RESOLUTION: Final[int] = 1500
"""Default number of aggregated points requested for a chart window."""

DEFAULT_TIME_PERIOD_S: Final[int] = DAY
MIN_TIME_STEP_S: Final[int] = 1

MIN_LATEST_ROWS: Final[int] = 1
MAX_LATEST_ROWS: Final[int] = 50
DEFAULT_LATEST_ROWS: Final[int] = 10

VALUE_PRECISION: Final[int] = 3
"""Decimal places kept for values returned by measurement sources."""

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DEFAULT_TABLE_NAME: Final[str] = "Measurements"
DEFAULT_COUNT_LIMIT: Final[int] = 1440
DEFAULT_PERIOD_LIMIT_S: Final[int] = DAY

# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------
DEFAULT_LOOP_DELAY_S: Final[float] = 60.0
MIN_LOOP_DELAY_S: Final[float] = 1.0

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
AUTH_COOKIE_NAME: Final[str] = "AuthToken"
DEFAULT_USER_ROLE: Final[str] = "User"
