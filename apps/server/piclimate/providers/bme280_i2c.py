"""BME280 sensor read directly over I2C.

The device runs in normal mode, so each ``measure()`` is a single burst read
of the latest converted values followed by the floating-point compensation
from the Bosch BME280 datasheet (section 4.2.3 / appendix 8.1).
"""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from smbus2 import SMBus

from ..constants import PA_TO_MMHG
from ..domain_models import Measurement, utc_now
from .base import MeasurementProvider

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_ADDRESS = 0x76
SECONDARY_ADDRESS = 0x77

CHIP_ID_REGISTER = 0xD0
BME280_CHIP_ID = 0x60
RESET_REGISTER = 0xE0
RESET_COMMAND = 0xB6
CTRL_HUM_REGISTER = 0xF2
CTRL_MEAS_REGISTER = 0xF4
CONFIG_REGISTER = 0xF5
DATA_REGISTER = 0xF7
CALIBRATION_REGISTER_1 = 0x88
CALIBRATION_REGISTER_2 = 0xE1

MODE_SLEEP = 0b00
MODE_NORMAL = 0b11
STANDBY_62_5_MS = 0b001
FILTER_OFF = 0b000

OVERSAMPLING_CODES: dict[int, int] = {1: 0b001, 2: 0b010, 4: 0b011, 8: 0b100, 16: 0b101}

_RESET_DELAY_S = 0.01
_STARTUP_DELAY_S = 0.12
"""Time for the first conversion after switching to normal mode."""


def candidate_addresses(custom_address: int | None) -> list[int]:
    addresses = [] if custom_address is None else [custom_address]
    for address in (DEFAULT_ADDRESS, SECONDARY_ADDRESS):
        if address not in addresses:
            addresses.append(address)
    return addresses


@dataclass(frozen=True, slots=True)
class Calibration:
    t1: int
    t2: int
    t3: int
    p1: int
    p2: int
    p3: int
    p4: int
    p5: int
    p6: int
    p7: int
    p8: int
    p9: int
    h1: int
    h2: int
    h3: int
    h4: int
    h5: int
    h6: int

    @classmethod
    def from_registers(cls, block1: bytes, block2: bytes) -> Calibration:
        """Decode the 0x88..0xA1 (26 bytes) and 0xE1..0xE7 (7 bytes) blocks."""
        t1, t2, t3, p1, p2, p3, p4, p5, p6, p7, p8, p9 = struct.unpack_from(
            "<HhhHhhhhhhhh", block1
        )
        h2, h3, e4, e5, e6, h6 = struct.unpack_from("<hBbBbb", block2)
        return cls(
            t1=t1,
            t2=t2,
            t3=t3,
            p1=p1,
            p2=p2,
            p3=p3,
            p4=p4,
            p5=p5,
            p6=p6,
            p7=p7,
            p8=p8,
            p9=p9,
            h1=block1[25],
            h2=h2,
            h3=h3,
            h4=(e4 << 4) | (e5 & 0x0F),
            h5=(e6 << 4) | (e5 >> 4),
            h6=h6,
        )

    def t_fine(self, adc_t: int) -> float:
        var1 = (adc_t / 16384.0 - self.t1 / 1024.0) * self.t2
        var2 = (adc_t / 131072.0 - self.t1 / 8192.0) ** 2 * self.t3
        return var1 + var2

    def pressure_pa(self, adc_p: int, t_fine: float) -> float:
        var1 = t_fine / 2.0 - 64000.0
        var2 = var1 * var1 * self.p6 / 32768.0
        var2 = var2 + var1 * self.p5 * 2.0
        var2 = var2 / 4.0 + self.p4 * 65536.0
        var1 = (self.p3 * var1 * var1 / 524288.0 + self.p2 * var1) / 524288.0
        var1 = (1.0 + var1 / 32768.0) * self.p1
        if var1 == 0:
            return 0.0
        pressure = 1048576.0 - adc_p
        pressure = (pressure - var2 / 4096.0) * 6250.0 / var1
        var1 = self.p9 * pressure * pressure / 2147483648.0
        var2 = pressure * self.p8 / 32768.0
        return pressure + (var1 + var2 + self.p7) / 16.0

    def humidity_pct(self, adc_h: int, t_fine: float) -> float:
        h = t_fine - 76800.0
        offset = adc_h - (self.h4 * 64.0 + self.h5 / 16384.0 * h)
        scale = 1.0 + self.h6 / 67108864.0 * h * (1.0 + self.h3 / 67108864.0 * h)
        h = offset * (self.h2 / 65536.0 * scale)
        h = h * (1.0 - self.h1 * h / 524288.0)
        return max(0.0, min(100.0, h))

    def compensate(self, adc_p: int, adc_t: int, adc_h: int) -> tuple[float, float, float]:
        """Return ``(pressure_pa, temperature_c, humidity_pct)``."""
        t_fine = self.t_fine(adc_t)
        return (
            self.pressure_pa(adc_p, t_fine),
            t_fine / 5120.0,
            self.humidity_pct(adc_h, t_fine),
        )


def decode_raw(data: bytes) -> tuple[int, int, int]:
    """Split the 8 data registers into ``(adc_p, adc_t, adc_h)``."""
    adc_p = (data[0] << 12) | (data[1] << 4) | (data[2] >> 4)
    adc_t = (data[3] << 12) | (data[4] << 4) | (data[5] >> 4)
    adc_h = (data[6] << 8) | data[7]
    return adc_p, adc_t, adc_h


def probe(bus: SMBus, address: int) -> bool:
    try:
        return bus.read_byte_data(address, CHIP_ID_REGISTER) == BME280_CHIP_ID
    except OSError:
        return False


class Bme280Provider(MeasurementProvider):
    name = "bme280"

    def __init__(self) -> None:
        super().__init__()
        self._bus: SMBus | None = None
        self.address: int | None = None
        self.calibration: Calibration | None = None

    def configure(self, config: AppConfig) -> None:
        self._check_open()
        self._release()
        settings = config.bme280
        addresses = candidate_addresses(settings.custom_address)
        bus = SMBus(settings.bus_id)
        try:
            address = next((addr for addr in addresses if probe(bus, addr)), None)
            if address is None:
                checked = ", ".join(f"0x{addr:02X}" for addr in addresses)
                raise OSError(
                    f"No BME280 devices found on the I2C bus 0x{settings.bus_id:02X}. "
                    f"Checked I2C addresses: {checked}."
                )
            calibration = self._setup(bus, address, settings.oversampling)
        except Exception:
            bus.close()
            raise
        self._bus, self.address, self.calibration = bus, address, calibration
        self.is_configured = True
        LOGGER.info(
            "BME280 sensor ready on I2C bus %d at address 0x%02X", settings.bus_id, address
        )

    @staticmethod
    def _setup(bus: SMBus, address: int, oversampling: int) -> Calibration:
        bus.write_byte_data(address, RESET_REGISTER, RESET_COMMAND)
        time.sleep(_RESET_DELAY_S)
        calibration = Calibration.from_registers(
            bytes(bus.read_i2c_block_data(address, CALIBRATION_REGISTER_1, 26)),
            bytes(bus.read_i2c_block_data(address, CALIBRATION_REGISTER_2, 7)),
        )
        code = OVERSAMPLING_CODES[oversampling]
        # ctrl_hum only takes effect after the following ctrl_meas write.
        bus.write_byte_data(address, CTRL_HUM_REGISTER, code)
        bus.write_byte_data(address, CONFIG_REGISTER, (STANDBY_62_5_MS << 5) | (FILTER_OFF << 2))
        bus.write_byte_data(address, CTRL_MEAS_REGISTER, (code << 5) | (code << 2) | MODE_NORMAL)
        time.sleep(_STARTUP_DELAY_S)
        return calibration

    def measure(self) -> Measurement:
        self._check_ready()
        assert self._bus is not None and self.address is not None and self.calibration is not None
        data = bytes(self._bus.read_i2c_block_data(self.address, DATA_REGISTER, 8))
        pressure_pa, temperature, humidity = self.calibration.compensate(*decode_raw(data))
        return Measurement(
            timestamp=utc_now(),
            pressure=pressure_pa * PA_TO_MMHG,
            temperature=temperature,
            humidity=humidity,
        )

    def _release(self) -> None:
        bus, address = self._bus, self.address
        self._bus = None
        self.is_configured = False
        if bus is None:
            return
        try:
            if address is not None:
                bus.write_byte_data(address, CTRL_MEAS_REGISTER, MODE_SLEEP)
        except OSError:
            LOGGER.warning("Could not put BME280 at 0x%02X to sleep", address, exc_info=True)
        finally:
            bus.close()

    def close(self) -> None:
        if self.closed:
            return
        self._release()
        super().close()
