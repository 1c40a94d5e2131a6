"""Monitor web application: measurement source -> JSON API + static dashboard.

Boundary note for maintainers:
- Keep this module focused on wiring, not query details.
- Aggregation and sampling belong in `sources.py` / `measurements_db.py`.
- API schemas belong in `api_models.py`.
"""

from __future__ import annotations

import argparse
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from .auth import TokenService
from .config import AppConfig, load_config
from .routes import create_router
from .routes._helpers import envelope
from .sources import MeasurementSource, create_source

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(slots=True)
class RuntimeState:
    config: AppConfig
    source: MeasurementSource
    tokens: TokenService


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in {"body", "query", "path", "header", "cookie"}:
            loc = loc[1:]
        field = ".".join(loc) or "request"
        errors.setdefault(field, []).append(str(error.get("msg", "Invalid value")))
    return errors


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        description = exc.detail if isinstance(exc.detail, str) else None
        response = envelope(exc.status_code, description=description)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return envelope(
            400, _validation_errors(exc), description="The request body validation failed."
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        LOGGER.error("Unhandled error for %s %s", request.method, request.url.path, exc_info=exc)
        return envelope(500, description="The request has caused an exception on the server.")


def create_app(
    config_path: Path | None = None, *, overrides: dict[str, Any] | None = None
) -> FastAPI:
    config = load_config(config_path, overrides=overrides)
    auth = config.auth
    runtime = RuntimeState(
        config=config,
        source=create_source(config),
        tokens=TokenService(
            auth.token_signing_key,
            access_token_ttl_s=auth.access_token_expiration_s,
            refresh_token_ttl_s=auth.refresh_token_expiration_s,
            clock_skew_s=auth.clock_skew_s,
        ),
    )
    if not auth.credentials:
        LOGGER.warning("No credentials configured; any user name can sign in")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        LOGGER.info("Monitor serving measurements from %s", runtime.source.describe())
        yield
        LOGGER.info("Monitor stopped")

    app = FastAPI(title="PiClimate Monitor", lifespan=lifespan)
    app.state.runtime = runtime
    _install_exception_handlers(app)
    app.include_router(create_router(runtime))
    if os.getenv("PICLIMATE_SERVE_STATIC", "1") == "1":
        static_dir = Path(__file__).resolve().parent / "static"
        if (static_dir / "index.html").exists():
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="public")
        else:
            LOGGER.warning("Dashboard not found in %s; serving the API only", static_dir)

    return app


app: FastAPI | None = (
    create_app()
    if __name__ != "__main__" and os.getenv("PICLIMATE_DISABLE_AUTO_APP", "0") != "1"
    else None
)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the PiClimate monitor web server")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    parser.add_argument("--host", default=None, help="Override server.host")
    parser.add_argument("--port", type=int, default=None, help="Override server.port")
    parser.add_argument(
        "--source", choices=("sqlite", "random"), default=None, help="Override server.source"
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)
    server_overrides = {
        key: value
        for key, value in (("host", args.host), ("port", args.port), ("source", args.source))
        if value is not None
    }
    runtime_app = create_app(
        config_path=args.config,
        overrides={"server": server_overrides} if server_overrides else None,
    )
    runtime: RuntimeState = runtime_app.state.runtime
    try:
        uvicorn.run(
            runtime_app,
            host=runtime.config.server.host,
            port=runtime.config.server.port,
            log_level="info",
        )
    except OSError:
        LOGGER.error(
            "Failed to bind to %s:%d.",
            runtime.config.server.host,
            runtime.config.server.port,
            exc_info=True,
        )
        raise


if __name__ == "__main__":
    main()
