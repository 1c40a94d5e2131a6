"""Human-readable labels for time periods expressed in seconds."""

from __future__ import annotations

from .constants import DAY, HOUR, MINUTE, MONTH, SECOND, WEEK, YEAR

# Each unit is used until the next larger one is reached.
_UNITS: tuple[tuple[int, int, str], ...] = (
    (MINUTE, SECOND, "second"),
    (HOUR, MINUTE, "minute"),
    (DAY, HOUR, "hour"),
    (WEEK, DAY, "day"),
    (MONTH, WEEK, "week"),
    (YEAR, MONTH, "month"),
)


def time_period_string(seconds: int | float) -> str:
    """Return a label such as ``"1 day"`` or ``"3 weeks"`` for *seconds*.

    The sign is ignored and the count is truncated to whole units of the
    largest unit not exceeding the period.
    """
    period = abs(int(seconds))
    size, name = YEAR, "year"
    for upper, unit_size, unit_name in _UNITS:
        if period < upper:
            size, name = unit_size, unit_name
            break
    count = period // size
    return f"{count} {name}" if count == 1 else f"{count} {name}s"
