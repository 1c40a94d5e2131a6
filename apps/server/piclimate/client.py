"""Small synchronous client for the monitor JSON API."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from .domain_models import AuthInfo, AuthTokens, ClientOptions, Measurement, as_utc

LOGGER = logging.getLogger(__name__)
_ALLOWED_SCHEMES = frozenset({"http", "https"})


class HttpResponseError(Exception):
    """Non-2xx answer from the monitor; *payload* is the decoded envelope (if any)."""

    def __init__(self, status: int, payload: dict[str, Any] | None = None) -> None:
        self.status = status
        self.payload = payload or {}
        description = self.payload.get("description") or "Request failed"
        super().__init__(f"HTTP {status}: {description}")


class MonitorClient:
    def __init__(self, base_url: str, *, timeout_s: float = 10.0) -> None:
        if urlsplit(base_url).scheme not in _ALLOWED_SCHEMES:
            raise ValueError(f"Unsupported monitor URL: {base_url!r}")
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.tokens: AuthTokens | None = None

    @property
    def is_signed_in(self) -> bool:
        return self.tokens is not None and bool(self.tokens.access_token)

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.tokens is not None and self.tokens.access_token:
            headers["Authorization"] = f"Bearer {self.tokens.access_token}"
        req = Request(f"{self.base_url}{path}", data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout_s) as resp:  # noqa: S310
                raw = resp.read()
        except HTTPError as exc:
            payload = _decode(exc.read())
            if exc.code == 401:
                LOGGER.info("Monitor rejected credentials; signing out")
                self.tokens = None
            raise HttpResponseError(exc.code, payload) from exc
        payload = _decode(raw)
        return payload.get("data") if payload else None

    def sign_in(self, name: str, password: str = "", *, remember: bool = False) -> AuthTokens:
        data = self._request(
            "POST",
            "/Api/Auth/SignIn",
            {"name": name, "password": password, "remember": remember},
        )
        self.tokens = _tokens(data)
        return self.tokens

    def refresh(self) -> AuthTokens:
        current = self.tokens or AuthTokens()
        data = self._request("POST", "/Api/Auth/Refresh", current.to_json())
        self.tokens = _tokens(data)
        return self.tokens

    def sign_out(self) -> None:
        try:
            self._request("POST", "/Api/Auth/SignOut")
        finally:
            self.tokens = None

    def get_auth_info(self) -> AuthInfo:
        data = self._request("GET", "/Api/Auth/Info") or {}
        return AuthInfo(name=str(data.get("name", "")), role=str(data.get("role", "")))

    def get_measurements(
        self,
        *,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        time_period_s: int | None = None,
        resolution: int | None = None,
    ) -> list[Measurement]:
        body: dict[str, Any] = {}
        if from_time is not None:
            body["fromTime"] = as_utc(from_time).isoformat()
        if to_time is not None:
            body["toTime"] = as_utc(to_time).isoformat()
        if time_period_s is not None:
            body["timePeriod"] = time_period_s
        if resolution is not None:
            body["resolution"] = resolution
        data = self._request("POST", "/Api/Data", body) or []
        return [Measurement.from_json(item) for item in data]

    def get_latest(self, max_rows: int | None = None) -> list[Measurement]:
        body = {} if max_rows is None else {"maxRows": max_rows}
        data = self._request("POST", "/Api/Data/Latest", body) or []
        return [Measurement.from_json(item) for item in data]

    def get_options(self) -> ClientOptions:
        data = self._request("GET", "/Api/Options") or {}
        return ClientOptions(
            status_page_time_scale=int(data["statusPageTimeScale"]),
            latest_data_expiration_period=int(data["latestDataExpirationPeriod"]),
        )


def _decode(raw: bytes) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        LOGGER.warning("Monitor returned a non-JSON body")
        return {}
    return payload if isinstance(payload, dict) else {}


def _tokens(data: Any) -> AuthTokens:
    if not isinstance(data, dict):
        raise ValueError("Monitor response does not contain tokens")
    return AuthTokens(
        access_token=data.get("accessToken"), refresh_token=data.get("refreshToken")
    )
