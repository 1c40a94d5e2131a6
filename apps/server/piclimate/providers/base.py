from __future__ import annotations

from ..components import MeasurementComponent
from ..domain_models import Measurement


class MeasurementProvider(MeasurementComponent):
    def measure(self) -> Measurement:
        """Take one reading; blocks until the device has answered."""
        raise NotImplementedError
