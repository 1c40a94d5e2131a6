"""Pydantic request/response models for the PiClimate monitor HTTP API.

Separated from the route modules to keep routing logic distinct from data
contracts. Field names match the JSON keys used by browser clients.
"""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field

from .domain_models import LatestDataRequest, MeasurementFilter

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginForm(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    password: str = Field(default="", max_length=256)
    remember: bool = False


class AuthTokensRequest(BaseModel):
    accessToken: str | None = None
    refreshToken: str | None = None


class MeasurementFilterRequest(BaseModel):
    """Chart query window.

    ``timePeriod`` (seconds) is only used when ``fromTime`` is omitted.
    Out-of-range ``resolution`` values are clamped, not rejected.
    """

    fromTime: datetime | None = None
    toTime: datetime | None = None
    timePeriod: int | None = None
    resolution: int | None = None

    def to_filter(self) -> MeasurementFilter:
        return MeasurementFilter.create(
            from_time=self.fromTime,
            to_time=self.toTime,
            period_s=self.timePeriod,
            resolution=self.resolution,
        )


class LatestDataRequestModel(BaseModel):
    maxRows: int | None = None

    def to_request(self) -> LatestDataRequest:
        return LatestDataRequest() if self.maxRows is None else LatestDataRequest(self.maxRows)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    source: str
    version: str
