"""SQLite-backed measurement storage shared by loggers, limiters and sources.

Every public call opens its own short-lived connection, so one instance can
be used from worker threads of both the logger agent and the monitor.
Timestamps are stored as UTC ISO-8601 text with millisecond precision, which
sorts chronologically and is understood by SQLite's date functions.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from .constants import DEFAULT_TABLE_NAME, VALUE_PRECISION
from .domain_models import Measurement, as_utc

LOGGER = logging.getLogger(__name__)

_BUSY_TIMEOUT_S = 5.0
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


def to_db_timestamp(value: datetime) -> str:
    return as_utc(value).strftime(_TIMESTAMP_FORMAT)[:-3]


def from_db_timestamp(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=UTC)


class MeasurementsDB:
    def __init__(self, db_path: Path, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if not table_name.isidentifier():
            raise ValueError(f"Invalid table name: {table_name!r}")
        self.db_path = Path(db_path)
        self.table_name = table_name
        self._table = f'"{table_name}"'

    @contextmanager
    def _cursor(self, *, commit: bool = True) -> Iterator[sqlite3.Cursor]:
        conn = sqlite3.connect(str(self.db_path), timeout=_BUSY_TIMEOUT_S)
        try:
            cur = conn.cursor()
            try:
                yield cur
                if commit:
                    conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cur.close()
        finally:
            conn.close()

    # -- schema ---------------------------------------------------------------

    def ensure_table(self) -> None:
        """Create the database file and the measurements table if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._cursor() as cur:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} ("
                "Timestamp TEXT NOT NULL PRIMARY KEY, "
                "Pressure REAL NOT NULL, "
                "Temperature REAL NOT NULL, "
                "Humidity REAL NOT NULL)"
            )
        LOGGER.debug("Ensured table %s in %s", self.table_name, self.db_path)

    def check_connection(self) -> None:
        """Raise ``sqlite3.Error`` unless the table can be queried."""
        with self._cursor(commit=False) as cur:
            cur.execute(f"SELECT 1 FROM {self._table} LIMIT 1")

    # -- writes ---------------------------------------------------------------

    def insert(self, measurement: Measurement) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO {self._table} (Timestamp, Pressure, Temperature, Humidity) "
                "VALUES (?, ?, ?, ?)",
                (
                    to_db_timestamp(measurement.timestamp),
                    float(measurement.pressure),
                    float(measurement.temperature),
                    float(measurement.humidity),
                ),
            )

    def delete_oldest_beyond(self, count_limit: int) -> int:
        """Delete the oldest rows so that at most *count_limit* remain."""
        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) FROM {self._table}")
            excess = int(cur.fetchone()[0]) - max(0, count_limit)
            if excess <= 0:
                return 0
            cur.execute(
                f"DELETE FROM {self._table} WHERE Timestamp IN ("
                f"SELECT Timestamp FROM {self._table} ORDER BY Timestamp ASC LIMIT ?)",
                (excess,),
            )
            return cur.rowcount

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._cursor() as cur:
            cur.execute(
                f"DELETE FROM {self._table} WHERE Timestamp < ?",
                (to_db_timestamp(cutoff),),
            )
            return cur.rowcount

    # -- reads ----------------------------------------------------------------

    def count(self) -> int:
        with self._cursor(commit=False) as cur:
            cur.execute(f"SELECT COUNT(*) FROM {self._table}")
            return int(cur.fetchone()[0])

    def aggregate(self, start: datetime, end: datetime, time_step: int) -> list[Measurement]:
        """Average rows in ``[start, end]`` over *time_step*-second buckets.

        Each bucket is stamped with its boundary (unix seconds rounded down
        to a multiple of *time_step*) and buckets are returned ascending.
        """
        step = max(1, int(time_step))
        with self._cursor(commit=False) as cur:
            cur.execute(
                "SELECT CAST(strftime('%s', Timestamp) AS INTEGER) / :step * :step AS bucket, "
                "ROUND(AVG(Pressure), :digits), "
                "ROUND(AVG(Temperature), :digits), "
                "ROUND(AVG(Humidity), :digits) "
                f"FROM {self._table} "
                "WHERE Timestamp BETWEEN :start AND :end "
                "GROUP BY bucket ORDER BY bucket ASC",
                {
                    "step": step,
                    "digits": VALUE_PRECISION,
                    "start": to_db_timestamp(start),
                    "end": to_db_timestamp(end),
                },
            )
            rows = cur.fetchall()
        return [
            Measurement(
                timestamp=datetime.fromtimestamp(int(bucket), UTC),
                pressure=float(pressure),
                temperature=float(temperature),
                humidity=float(humidity),
            )
            for bucket, pressure, temperature, humidity in rows
        ]

    def latest(self, max_rows: int) -> list[Measurement]:
        with self._cursor(commit=False) as cur:
            cur.execute(
                "SELECT Timestamp, "
                "ROUND(Pressure, :digits), ROUND(Temperature, :digits), ROUND(Humidity, :digits) "
                f"FROM {self._table} ORDER BY Timestamp DESC LIMIT :limit",
                {"digits": VALUE_PRECISION, "limit": max(1, int(max_rows))},
            )
            rows = cur.fetchall()
        return [
            Measurement(
                timestamp=from_db_timestamp(ts),
                pressure=float(pressure),
                temperature=float(temperature),
                humidity=float(humidity),
            )
            for ts, pressure, temperature, humidity in rows
        ]
