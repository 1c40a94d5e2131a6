from __future__ import annotations

import pytest

from piclimate.limiters import CountLimiter, PeriodLimiter
from piclimate.loggers import ConsoleLogger, SqliteLogger
from piclimate.measurement_loop import MeasurementLoopBuilder
from piclimate.plugins import (
    create_provider,
    resolve_limiter,
    resolve_logger,
    resolve_provider,
)
from piclimate.providers import Bme280Provider, BmeReaderProvider, RandomDataProvider


@pytest.mark.parametrize(
    ("name", "cls"),
    [
        ("random", RandomDataProvider),
        ("RandomData", RandomDataProvider),
        ("RandomDataProvider", RandomDataProvider),
        ("bme280", Bme280Provider),
        ("BME280Provider", Bme280Provider),
        ("bme_reader", BmeReaderProvider),
        ("BmeReader", BmeReaderProvider),
        ("bme-reader-provider", BmeReaderProvider),
    ],
)
def test_resolve_provider_names(name: str, cls: type) -> None:
    assert resolve_provider(name) is cls


def test_resolve_logger_and_limiter_names() -> None:
    assert resolve_logger("ConsoleLogger") is ConsoleLogger
    assert resolve_logger("SQLite") is SqliteLogger
    assert resolve_limiter("CountLimiter") is CountLimiter
    assert resolve_limiter("period") is PeriodLimiter


def test_unknown_name_lists_known_names() -> None:
    with pytest.raises(ValueError, match="Cannot find a measurement provider class") as exc_info:
        resolve_provider("mysql")
    assert "bme280" in str(exc_info.value)
    with pytest.raises(ValueError, match="measurement logger"):
        resolve_logger("mysql")


def test_create_provider_returns_new_instance() -> None:
    first = create_provider("random")
    second = create_provider("random")
    assert isinstance(first, RandomDataProvider)
    assert first is not second


def test_builder_names_skip_duplicates_and_keep_order(app_config) -> None:
    builder = MeasurementLoopBuilder(app_config).use_provider("random")
    for name in ("sqlite", "console", "SqliteLogger"):
        builder.add_logger(name)
    builder.add_limiter("period").add_limiter("count").add_limiter("PeriodLimiter")
    loop = builder.build()
    assert [type(item) for item in loop.loggers] == [SqliteLogger, ConsoleLogger]
    assert [type(item) for item in loop.limiters] == [PeriodLimiter, CountLimiter]
