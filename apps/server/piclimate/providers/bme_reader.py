"""BME280 sensor behind a BMEReader USB/serial adapter.

The adapter speaks a line protocol: newline-terminated ASCII commands, one
``OK; ...`` response line per command. The port is opened for each exchange
and closed again, so the adapter can be unplugged between measurements.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import serial

from ..domain_models import Measurement, utc_now
from .base import MeasurementProvider

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

ID_COMMAND = "Id"
MEASURE_COMMAND = "Measure All"
NEWLINE = "\n"
ENCODING = "ascii"
SERIAL_TIMEOUT_S = 0.5

ID_PATTERN = re.compile(
    r"^\s*OK\s*;\s*BMEReader\s*;\s*Version:\s*1\.\d+\s*;\s*SN:\s*[\dA-F]{24}\s*$",
    re.IGNORECASE,
)
MEASUREMENT_PATTERN = re.compile(
    r"^\s*OK\s*;\s*P\s*=\s*([\d.]+)\s*mmHg\s*;"
    r"\s*T\s*=\s*([\d.]+)\s*degC\s*;"
    r"\s*H\s*=\s*([\d.]+)\s*%\s*$",
    re.IGNORECASE,
)


class BmeReaderProvider(MeasurementProvider):
    name = "bme_reader"

    def __init__(self) -> None:
        super().__init__()
        self.port: str | None = None
        self.baud_rate = 9600

    def _exchange(self, command: str) -> str:
        """Send *command* and return the single response line, without its terminator."""
        with serial.Serial(
            port=self.port,
            baudrate=self.baud_rate,
            timeout=SERIAL_TIMEOUT_S,
            write_timeout=SERIAL_TIMEOUT_S,
        ) as port:
            port.reset_input_buffer()
            port.write((command + NEWLINE).encode(ENCODING))
            raw = port.readline()
        if not raw:
            raise TimeoutError(f"No response to {command!r} within {SERIAL_TIMEOUT_S} s")
        return raw.decode(ENCODING).rstrip("\r\n")

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        self.is_configured = False
        self.port = config.bme_reader.serial_port
        self.baud_rate = config.bme_reader.baud_rate
        try:
            response = self._exchange(ID_COMMAND)
        except (serial.SerialException, OSError, UnicodeDecodeError) as exc:
            raise OSError(
                "Failed to connect to the BMEReader adapter device "
                f'using the serial port name "{self.port}".'
            ) from exc
        if not ID_PATTERN.match(response):
            raise OSError(
                "Failed to connect to the BMEReader adapter device "
                f'using the serial port name "{self.port}": unexpected identification {response!r}.'
            )
        self.is_configured = True
        LOGGER.info("BMEReader adapter identified on %s: %s", self.port, response.strip())

    def measure(self) -> Measurement:
        self._check_ready()
        try:
            response = self._exchange(MEASURE_COMMAND)
            match = MEASUREMENT_PATTERN.match(response)
            if match is None:
                raise ValueError(f"Malformed measurement response {response!r}")
            pressure, temperature, humidity = (float(group) for group in match.groups())
        except (serial.SerialException, OSError, ValueError) as exc:
            raise OSError(
                "Failed to read measurement data from the connected BMEReader adapter."
            ) from exc
        return Measurement(
            timestamp=utc_now(),
            pressure=pressure,
            temperature=temperature,
            humidity=humidity,
        )
