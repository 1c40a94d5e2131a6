from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DAY,
    DEFAULT_COUNT_LIMIT,
    DEFAULT_LOOP_DELAY_S,
    DEFAULT_PERIOD_LIMIT_S,
    DEFAULT_TABLE_NAME,
    HOUR,
    MIN_LOOP_DELAY_S,
    MINUTE,
    WEEK,
)

SERVER_DIR = Path(__file__).resolve().parents[1]
"""Root of the ``apps/server/`` package tree."""

LOGGER = logging.getLogger(__name__)

VALID_SOURCES: tuple[str, ...] = ("sqlite", "random")
VALID_OVERSAMPLING: tuple[int, ...] = (1, 2, 4, 8, 16)

DEFAULT_CONFIG: dict[str, Any] = {
    "logger": {
        "provider": "random",
        "loggers": ["console"],
        "limiters": [],
        "loop_delay_s": DEFAULT_LOOP_DELAY_S,
    },
    "database": {
        "path": "data/measurements.db",
        "table_name": DEFAULT_TABLE_NAME,
    },
    "bme280": {
        "bus_id": 1,
        "custom_address": None,
        "oversampling": 16,
    },
    "bme_reader": {
        "serial_port": "/dev/ttyUSB0",
        "baud_rate": 9600,
    },
    "count_limiter": {"count_limit": DEFAULT_COUNT_LIMIT},
    "period_limiter": {"period_limit_s": DEFAULT_PERIOD_LIMIT_S},
    "server": {"host": "0.0.0.0", "port": 8080, "source": "sqlite"},
    "auth": {
        "token_signing_key": "PiClimate.TokenSigningKey",
        "hash_signing_key": "PiClimate.HashSigningKey",
        "access_token_expiration_s": 15 * MINUTE,
        "refresh_token_expiration_s": WEEK,
        "clock_skew_s": MINUTE,
        "cookie_expiration_days": 7,
        "credentials": {},
    },
    "client": {
        "status_page_time_scale_s": DAY,
        "latest_data_expiration_s": 10 * MINUTE,
    },
}

CONFIG_COMMENTS: dict[str, str] = {
    "logger": "Measurement loop used by the piclimate-logger agent.",
    "logger.provider": "Measurement provider name: 'random', 'bme280' or 'bme_reader'.",
    "logger.loggers": "Measurement loggers to use, any of: 'console', 'sqlite'.",
    "logger.limiters": (
        "Measurement limiters to apply after each logged measurement, any of: "
        "'count', 'period'. The list order is the order they are applied in."
    ),
    "logger.loop_delay_s": "Delay in seconds between two measurements (minimum 1).",
    "database": "SQLite database shared by the logger agent and the monitor.",
    "database.path": "Database file path, relative paths start at this file's directory.",
    "database.table_name": "Table where climate measurements are stored.",
    "bme280": "Direct I2C access to a BME280 sensor.",
    "bme280.bus_id": "I2C bus number, e.g. 1 for /dev/i2c-1.",
    "bme280.custom_address": "Sensor address probed before 0x76 and 0x77, or null.",
    "bme280.oversampling": "Sampling oversampling factor: 1, 2, 4, 8 or 16.",
    "bme_reader": "BMEReader serial adapter with a BME280 sensor attached.",
    "bme_reader.serial_port": "Serial port name of the adapter.",
    "bme_reader.baud_rate": "Serial port baud rate.",
    "count_limiter": "Row count limiter settings.",
    "count_limiter.count_limit": "Maximum number of measurement rows kept in the table.",
    "period_limiter": "Row age limiter settings.",
    "period_limiter.period_limit_s": "Rows older than this many seconds are deleted.",
    "server": "HTTP server of the piclimate-monitor dashboard.",
    "server.host": "Listen address.",
    "server.port": "Listen port.",
    "server.source": "Measurement source: 'sqlite' or 'random' (synthetic demo data).",
    "auth": "Dashboard authentication.",
    "auth.token_signing_key": "Secret used to sign access and refresh tokens.",
    "auth.hash_signing_key": "Key used to hash and verify passwords.",
    "auth.access_token_expiration_s": "Access token lifetime in seconds.",
    "auth.refresh_token_expiration_s": "Refresh token lifetime in seconds.",
    "auth.clock_skew_s": "Extra seconds tolerated when checking token expiry.",
    "auth.cookie_expiration_days": "Lifetime of the persistent sign-in cookie in days.",
    "auth.credentials": (
        "User name to password map. Passwords may be plain text or "
        "'encrypted:<algorithm>:<base64>'. An empty map accepts any user name."
    ),
    "client": "Options served to dashboard clients.",
    "client.status_page_time_scale_s": "Time window of the status page charts in seconds.",
    "client.latest_data_expiration_s": "Age in seconds after which the latest reading is stale.",
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_config_path(path_text: str, config_path: Path) -> Path:
    path = Path(path_text)
    if path.is_absolute():
        return path
    return config_path.resolve().parent / path


def parse_name_list(value: Any) -> list[str]:
    """Normalize a comma-separated string or a list into unique, trimmed names.

    Order is preserved and the first occurrence wins.
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else [str(item) for item in value]
    names: list[str] = []
    for item in items:
        name = item.strip()
        if name and name not in names:
            names.append(name)
    return names


def _parse_address(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, int):
        address = value
    else:
        try:
            address = int(str(value).strip(), 0)
        except ValueError:
            raise ValueError(f"bme280.custom_address must be an integer, got {value!r}") from None
    if not 0x03 <= address <= 0x77:
        raise ValueError(f"bme280.custom_address must be 0x03-0x77, got {value!r}")
    return address


@dataclass(slots=True)
class LoggerConfig:
    provider: str
    loggers: list[str]
    limiters: list[str]
    loop_delay_s: float

    def __post_init__(self) -> None:
        if not self.provider.strip():
            raise ValueError("logger.provider cannot be empty")
        if self.loop_delay_s < MIN_LOOP_DELAY_S:
            LOGGER.warning(
                "logger.loop_delay_s=%s is below minimum %s; clamped",
                self.loop_delay_s,
                MIN_LOOP_DELAY_S,
            )
            self.loop_delay_s = MIN_LOOP_DELAY_S


@dataclass(slots=True)
class DatabaseConfig:
    path: Path
    table_name: str

    def __post_init__(self) -> None:
        if not self.table_name.isidentifier():
            raise ValueError(
                f"database.table_name must be a plain identifier, got {self.table_name!r}"
            )


@dataclass(slots=True)
class Bme280Config:
    bus_id: int
    custom_address: int | None
    oversampling: int

    def __post_init__(self) -> None:
        if self.oversampling not in VALID_OVERSAMPLING:
            LOGGER.warning(
                "bme280.oversampling=%s is not one of %s; using 16",
                self.oversampling,
                VALID_OVERSAMPLING,
            )
            self.oversampling = 16


@dataclass(slots=True)
class BmeReaderConfig:
    serial_port: str
    baud_rate: int


@dataclass(slots=True)
class CountLimiterConfig:
    count_limit: int

    def __post_init__(self) -> None:
        if self.count_limit < 0:
            LOGGER.warning(
                "count_limiter.count_limit=%s is negative; clamped to 0", self.count_limit
            )
            self.count_limit = 0


@dataclass(slots=True)
class PeriodLimiterConfig:
    period_limit_s: int

    def __post_init__(self) -> None:
        if self.period_limit_s < 1:
            LOGGER.warning(
                "period_limiter.period_limit_s=%s is below 1; clamped to 1", self.period_limit_s
            )
            self.period_limit_s = 1


@dataclass(slots=True)
class ServerConfig:
    host: str
    port: int
    source: str

    def __post_init__(self) -> None:
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError(f"server.port must be 1-65535, got {self.port!r}")
        if self.source not in VALID_SOURCES:
            raise ValueError(f"server.source must be one of {VALID_SOURCES}, got {self.source!r}")


@dataclass(slots=True)
class AuthConfig:
    token_signing_key: str
    hash_signing_key: str
    access_token_expiration_s: int
    refresh_token_expiration_s: int
    clock_skew_s: int
    cookie_expiration_days: int
    credentials: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.token_signing_key:
            raise ValueError("auth.token_signing_key cannot be empty")
        for name in ("access_token_expiration_s", "refresh_token_expiration_s"):
            if getattr(self, name) < MINUTE:
                LOGGER.warning("auth.%s is below %s s; clamped", name, MINUTE)
                setattr(self, name, MINUTE)
        self.clock_skew_s = max(0, self.clock_skew_s)
        self.cookie_expiration_days = max(1, self.cookie_expiration_days)


@dataclass(slots=True)
class ClientConfig:
    status_page_time_scale_s: int
    latest_data_expiration_s: int

    def __post_init__(self) -> None:
        self.status_page_time_scale_s = max(HOUR, self.status_page_time_scale_s)
        self.latest_data_expiration_s = max(1, self.latest_data_expiration_s)


@dataclass(slots=True)
class AppConfig:
    logger: LoggerConfig
    database: DatabaseConfig
    bme280: Bme280Config
    bme_reader: BmeReaderConfig
    count_limiter: CountLimiterConfig
    period_limiter: PeriodLimiterConfig
    server: ServerConfig
    auth: AuthConfig
    client: ClientConfig
    config_path: Path


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def _yaml_entry(key: str, value: Any, indent: int) -> list[str]:
    dumped = yaml.safe_dump(
        {key: value}, default_flow_style=False, sort_keys=False, allow_unicode=True
    )
    pad = " " * indent
    return [pad + line for line in dumped.rstrip("\n").splitlines()]


def render_config_yaml(data: dict[str, Any]) -> str:
    """Render *data* as YAML with a ``#`` comment line above every known key."""
    lines: list[str] = []
    for section, values in data.items():
        comment = CONFIG_COMMENTS.get(section)
        if comment:
            lines.append(f"# {comment}")
        if not isinstance(values, dict) or not values:
            lines.extend(_yaml_entry(section, values, 0))
            lines.append("")
            continue
        lines.append(f"{section}:")
        for key, value in values.items():
            comment = CONFIG_COMMENTS.get(f"{section}.{key}")
            if comment:
                lines.append(f"  # {comment}")
            lines.extend(_yaml_entry(str(key), value, 2))
        lines.append("")
    return "\n".join(lines)


def write_config_file(path: Path, data: dict[str, Any]) -> bool:
    """Rewrite the settings file with comments; failures only log a warning."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(render_config_yaml(data), encoding="utf-8")
        tmp_path.replace(path)
    except OSError:
        LOGGER.warning("Could not regenerate settings file %s", path, exc_info=True)
        return False
    return True


def load_config(
    config_path: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    regenerate: bool = True,
) -> AppConfig:
    """Load the settings file merged over :data:`DEFAULT_CONFIG`.

    The merged file values are written back with comments when *regenerate*
    is set. *overrides* (e.g. command-line options) are applied afterwards and
    never persisted.
    """
    path = config_path or (SERVER_DIR / "config.yaml")
    path = path.resolve()
    file_values = _deep_merge(deepcopy(DEFAULT_CONFIG), _read_config_file(path))
    if regenerate:
        write_config_file(path, file_values)
    merged = _deep_merge(file_values, overrides or {})

    logger_cfg = merged["logger"]
    database_cfg = merged["database"]
    bme280_cfg = merged["bme280"]
    reader_cfg = merged["bme_reader"]
    auth_cfg = merged["auth"]
    client_cfg = merged["client"]
    credentials = auth_cfg.get("credentials") or {}
    if not isinstance(credentials, dict):
        raise ValueError("auth.credentials must be a mapping of user names to passwords")

    app_config = AppConfig(
        logger=LoggerConfig(
            provider=str(logger_cfg["provider"]).strip(),
            loggers=parse_name_list(logger_cfg.get("loggers")),
            limiters=parse_name_list(logger_cfg.get("limiters")),
            loop_delay_s=float(logger_cfg["loop_delay_s"]),
        ),
        database=DatabaseConfig(
            path=_resolve_config_path(str(database_cfg["path"]), path),
            table_name=str(database_cfg["table_name"]),
        ),
        bme280=Bme280Config(
            bus_id=int(bme280_cfg["bus_id"]),
            custom_address=_parse_address(bme280_cfg.get("custom_address")),
            oversampling=int(bme280_cfg["oversampling"]),
        ),
        bme_reader=BmeReaderConfig(
            serial_port=str(reader_cfg["serial_port"]),
            baud_rate=int(reader_cfg["baud_rate"]),
        ),
        count_limiter=CountLimiterConfig(
            count_limit=int(merged["count_limiter"]["count_limit"]),
        ),
        period_limiter=PeriodLimiterConfig(
            period_limit_s=int(merged["period_limiter"]["period_limit_s"]),
        ),
        server=ServerConfig(
            host=str(merged["server"]["host"]),
            port=int(merged["server"]["port"]),
            source=str(merged["server"]["source"]).strip().lower(),
        ),
        auth=AuthConfig(
            token_signing_key=str(auth_cfg["token_signing_key"]),
            hash_signing_key=str(auth_cfg["hash_signing_key"]),
            access_token_expiration_s=int(auth_cfg["access_token_expiration_s"]),
            refresh_token_expiration_s=int(auth_cfg["refresh_token_expiration_s"]),
            clock_skew_s=int(auth_cfg["clock_skew_s"]),
            cookie_expiration_days=int(auth_cfg["cookie_expiration_days"]),
            credentials={str(name): str(password) for name, password in credentials.items()},
        ),
        client=ClientConfig(
            status_page_time_scale_s=int(client_cfg["status_page_time_scale_s"]),
            latest_data_expiration_s=int(client_cfg["latest_data_expiration_s"]),
        ),
        config_path=path,
    )
    LOGGER.info(
        "Loaded config=%s provider=%s database=%s",
        app_config.config_path,
        app_config.logger.provider,
        app_config.database.path,
    )
    return app_config
