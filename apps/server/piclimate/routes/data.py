"""Measurement chart and latest-readings endpoints."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Query

from ..api_models import LatestDataRequestModel, MeasurementFilterRequest
from ..domain_models import LatestDataRequest, MeasurementFilter
from ._helpers import CurrentUser, envelope

if TYPE_CHECKING:
    from ..app import RuntimeState


def create_data_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter(prefix="/Api/Data")

    async def _measurements(measurement_filter: MeasurementFilter):
        rows = await asyncio.to_thread(state.source.get_measurements, measurement_filter)
        return envelope(200, [row.to_json() for row in rows])

    async def _latest(request: LatestDataRequest):
        rows = await asyncio.to_thread(state.source.get_latest_measurements, request)
        return envelope(200, [row.to_json() for row in rows])

    @router.get("")
    async def get_data(
        params: Annotated[MeasurementFilterRequest, Query()],
        user: CurrentUser,
    ):
        return await _measurements(params.to_filter())

    @router.post("")
    async def post_data(
        body: MeasurementFilterRequest,
        user: CurrentUser,
    ):
        return await _measurements(body.to_filter())

    @router.get("/Latest")
    async def get_latest(
        params: Annotated[LatestDataRequestModel, Query()],
        user: CurrentUser,
    ):
        return await _latest(params.to_request())

    @router.post("/Latest")
    async def post_latest(
        body: LatestDataRequestModel,
        user: CurrentUser,
    ):
        return await _latest(body.to_request())

    return router
