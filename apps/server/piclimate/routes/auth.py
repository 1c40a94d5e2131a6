"""Sign-in, token refresh and sign-out endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException

from ..api_models import AuthTokensRequest, LoginForm
from ..auth import TokenError, find_user
from ._helpers import CurrentUser, clear_auth_cookie, envelope, set_auth_cookie

if TYPE_CHECKING:
    from ..app import RuntimeState

LOGGER = logging.getLogger(__name__)


def create_auth_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter(prefix="/Api/Auth")
    auth_config = state.config.auth

    @router.post("/SignIn")
    async def sign_in(form: LoginForm):
        info = find_user(
            auth_config.credentials, form.name, form.password, auth_config.hash_signing_key
        )
        if info is None:
            LOGGER.info("Rejected sign-in for user %r", form.name)
            raise HTTPException(status_code=406, detail="Invalid user name or password.")
        tokens = state.tokens.issue(info)
        response = envelope(200, tokens.to_json())
        set_auth_cookie(
            response,
            tokens.access_token,
            persistent=form.remember,
            max_age_days=auth_config.cookie_expiration_days,
        )
        LOGGER.info("User %r signed in", info.name)
        return response

    @router.post("/Refresh")
    async def refresh(tokens: AuthTokensRequest):
        try:
            info = state.tokens.verify_refresh(tokens.refreshToken)
        except TokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        renewed = state.tokens.issue(info)
        response = envelope(200, renewed.to_json())
        set_auth_cookie(
            response,
            renewed.access_token,
            persistent=False,
            max_age_days=auth_config.cookie_expiration_days,
        )
        return response

    @router.api_route("/SignOut", methods=["GET", "POST"])
    async def sign_out():
        response = envelope(200)
        clear_auth_cookie(response)
        return response

    @router.get("/Info")
    async def info(user: CurrentUser):
        return envelope(200, user.to_json())

    return router
