from __future__ import annotations

from ..components import MeasurementComponent
from ..domain_models import Measurement


class MeasurementLogger(MeasurementComponent):
    def log_measurement(self, measurement: Measurement) -> None:
        raise NotImplementedError
