"""Shared route helpers used across multiple route modules."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from ..auth import TokenError
from ..constants import AUTH_COOKIE_NAME
from ..domain_models import AuthInfo

if TYPE_CHECKING:
    from ..app import RuntimeState

_BEARER_PREFIX = "bearer "


def status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown Status"


def envelope(
    status_code: int = 200, data: Any = None, description: str | None = None
) -> JSONResponse:
    """Wrap *data* in the ``{statusCode, description, data}`` payload."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "description": description or status_phrase(status_code),
            "data": data,
        },
    )


def set_auth_cookie(
    response: Response, token: str | None, *, persistent: bool, max_age_days: int
) -> None:
    if not token:
        return
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=max_age_days * 24 * 3600 if persistent else None,
        httponly=True,
        samesite="lax",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(AUTH_COOKIE_NAME, httponly=True, samesite="lax")


def request_token(request: Request) -> str | None:
    """Access token from the ``Authorization`` header, falling back to the cookie."""
    header = request.headers.get("authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        token = header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE_NAME) or None


def require_user(request: Request) -> AuthInfo:
    """Resolve the signed-in user from the request token or raise 401."""
    runtime: RuntimeState = request.app.state.runtime
    try:
        return runtime.tokens.verify_access(request_token(request))
    except TokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


CurrentUser = Annotated[AuthInfo, Depends(require_user)]
"""Endpoint parameter type for routes that need a signed-in user."""
