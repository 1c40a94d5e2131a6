"""Name -> class registries for providers, loggers and limiters.

Lookup is case-insensitive, ignores ``_``/``-`` and tolerates the kind
suffix, so ``bme_reader``, ``BmeReader`` and ``BmeReaderProvider`` all name
the same provider.
"""

from __future__ import annotations

import re
from typing import TypeVar

from .components import MeasurementComponent
from .limiters import CountLimiter, MeasurementLimiter, PeriodLimiter
from .loggers import ConsoleLogger, MeasurementLogger, SqliteLogger
from .providers import Bme280Provider, BmeReaderProvider, MeasurementProvider, RandomDataProvider

ComponentT = TypeVar("ComponentT", bound=MeasurementComponent)

PROVIDERS: dict[str, type[MeasurementProvider]] = {
    cls.name: cls for cls in (RandomDataProvider, Bme280Provider, BmeReaderProvider)
}
LOGGERS: dict[str, type[MeasurementLogger]] = {
    cls.name: cls for cls in (ConsoleLogger, SqliteLogger)
}
LIMITERS: dict[str, type[MeasurementLimiter]] = {
    cls.name: cls for cls in (CountLimiter, PeriodLimiter)
}

_ALIASES: dict[str, str] = {"randomdata": "random"}
_SEPARATORS_RE = re.compile(r"[\s_\-]")


def _normalize(name: str, suffix: str) -> str:
    key = _SEPARATORS_RE.sub("", name.lower())
    if key.endswith(suffix) and key != suffix:
        key = key[: -len(suffix)]
    return _ALIASES.get(key, key)


def _resolve(
    registry: dict[str, type[ComponentT]], name: str, kind: str
) -> tuple[str, type[ComponentT]]:
    wanted = _normalize(name, kind)
    for key, cls in registry.items():
        if _normalize(key, kind) == wanted:
            return key, cls
    known = ", ".join(sorted(registry))
    raise ValueError(
        f"Cannot find a measurement {kind} class with the name {name!r}. Known names: {known}."
    )


def resolve_provider(name: str) -> type[MeasurementProvider]:
    return _resolve(PROVIDERS, name, "provider")[1]


def resolve_logger(name: str) -> type[MeasurementLogger]:
    return _resolve(LOGGERS, name, "logger")[1]


def resolve_limiter(name: str) -> type[MeasurementLimiter]:
    return _resolve(LIMITERS, name, "limiter")[1]


def create_provider(name: str) -> MeasurementProvider:
    return resolve_provider(name)()
