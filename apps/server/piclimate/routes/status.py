"""Client options, status-code echo and health endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from .. import __version__
from ..api_models import HealthResponse
from ..domain_models import ClientOptions
from ._helpers import envelope

if TYPE_CHECKING:
    from ..app import RuntimeState

_BODYLESS_STATUS_CODES = frozenset({204, 304})


def create_status_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.get("/Api/Options")
    async def options():
        client = state.config.client
        payload = ClientOptions(
            status_page_time_scale=client.status_page_time_scale_s,
            latest_data_expiration_period=client.latest_data_expiration_s,
        )
        return envelope(200, payload.to_json())

    @router.api_route("/Api/Status/{code}", methods=["GET", "POST"])
    async def status(code: int):
        """Answer with an empty payload carrying *code*; used by the dashboard error pages."""
        if not 200 <= code <= 599:
            raise HTTPException(status_code=404, detail=f"Unsupported status code {code}.")
        if code in _BODYLESS_STATUS_CODES:
            return Response(status_code=code)
        return envelope(code)

    @router.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", source=state.source.describe(), version=__version__)

    return router
