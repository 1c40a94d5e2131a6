"""HTTP API tests against a monitor app backed by a temporary SQLite database."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from piclimate import app as app_module
from piclimate.constants import AUTH_COOKIE_NAME
from piclimate.domain_models import Measurement, utc_now
from piclimate.measurements_db import MeasurementsDB


def _make_app(tmp_path: Path, monkeypatch, overrides: dict | None = None):
    monkeypatch.setenv("PICLIMATE_SERVE_STATIC", "0")
    base = {
        "database": {"path": str(tmp_path / "m.db")},
        "auth": {"credentials": {"admin": "secret"}},
    }
    for key, value in (overrides or {}).items():
        base.setdefault(key, {}).update(value)
    return app_module.create_app(tmp_path / "config.yaml", overrides=base)


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    with TestClient(_make_app(tmp_path, monkeypatch)) as test_client:
        yield test_client


def _sign_in(client: TestClient, remember: bool = False) -> dict:
    response = client.post(
        "/Api/Auth/SignIn", json={"name": "admin", "password": "secret", "remember": remember}
    )
    assert response.status_code == 200
    return response.json()["data"]


def _auth_header(tokens: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def test_sign_in_returns_envelope_and_sets_cookie(client: TestClient) -> None:
    response = client.post("/Api/Auth/SignIn", json={"name": "admin", "password": "secret"})
    body = response.json()
    assert body["statusCode"] == 200
    assert body["description"] == "OK"
    assert set(body["data"]) == {"accessToken", "refreshToken"}
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{AUTH_COOKIE_NAME}=")
    assert "Max-Age" not in set_cookie


def test_remembered_sign_in_sets_persistent_cookie(client: TestClient) -> None:
    response = client.post(
        "/Api/Auth/SignIn", json={"name": "admin", "password": "secret", "remember": True}
    )
    assert f"Max-Age={7 * 24 * 3600}" in response.headers["set-cookie"]


def test_bad_credentials_return_406(client: TestClient) -> None:
    response = client.post("/Api/Auth/SignIn", json={"name": "admin", "password": "nope"})
    assert response.status_code == 406
    assert response.json() == {
        "statusCode": 406,
        "description": "Invalid user name or password.",
        "data": None,
    }


def test_sign_in_validation_error_is_400_envelope(client: TestClient) -> None:
    response = client.post("/Api/Auth/SignIn", json={"password": "x"})
    body = response.json()
    assert response.status_code == 400
    assert body["description"] == "The request body validation failed."
    assert "name" in body["data"]


def test_info_requires_auth(client: TestClient) -> None:
    client.cookies.clear()
    response = client.get("/Api/Auth/Info")
    assert response.status_code == 401
    assert response.json()["statusCode"] == 401


def test_info_with_bearer_and_cookie(client: TestClient) -> None:
    tokens = _sign_in(client)
    client.cookies.clear()
    response = client.get("/Api/Auth/Info", headers=_auth_header(tokens))
    assert response.json()["data"] == {"name": "admin", "role": "User"}
    client.cookies.set(AUTH_COOKIE_NAME, tokens["accessToken"])
    assert client.get("/Api/Auth/Info").status_code == 200


def test_refresh_issues_new_tokens(client: TestClient) -> None:
    tokens = _sign_in(client)
    response = client.post("/Api/Auth/Refresh", json=tokens)
    assert response.status_code == 200
    renewed = response.json()["data"]
    assert client.get("/Api/Auth/Info", headers=_auth_header(renewed)).status_code == 200


def test_refresh_with_bad_token_is_401(client: TestClient) -> None:
    tokens = _sign_in(client)
    response = client.post(
        "/Api/Auth/Refresh", json={"accessToken": None, "refreshToken": tokens["accessToken"]}
    )
    assert response.status_code == 401


@pytest.mark.parametrize("method", ["GET", "POST"])
def test_sign_out_clears_cookie(client: TestClient, method: str) -> None:
    _sign_in(client)
    response = client.request(method, "/Api/Auth/SignOut")
    assert response.status_code == 200
    assert response.json()["data"] is None
    assert f'{AUTH_COOKIE_NAME}=""' in response.headers["set-cookie"]


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@pytest.fixture
def seeded(tmp_path: Path) -> list[Measurement]:
    db = MeasurementsDB(tmp_path / "m.db")
    db.ensure_table()
    now = utc_now().replace(microsecond=0)
    rows = [
        Measurement(now - timedelta(minutes=i), 750.0 + i, 20.0, 40.0) for i in range(20)
    ]
    for row in rows:
        db.insert(row)
    return rows


PROTECTED_ROUTES = [
    ("GET", "/Api/Auth/Info", None),
    ("GET", "/Api/Data", None),
    ("POST", "/Api/Data", {"timePeriod": 3600}),
    ("GET", "/Api/Data/Latest", None),
    ("POST", "/Api/Data/Latest", {"maxRows": 2}),
]


@pytest.mark.parametrize(("method", "path", "body"), PROTECTED_ROUTES)
def test_protected_routes_accept_bearer_token(
    client: TestClient, seeded, method: str, path: str, body: dict | None
) -> None:
    headers = _auth_header(_sign_in(client))
    client.cookies.clear()
    response = client.request(method, path, json=body, headers=headers)
    assert response.status_code == 200
    assert response.json()["statusCode"] == 200


@pytest.mark.parametrize(("method", "path", "body"), PROTECTED_ROUTES)
def test_protected_routes_reject_missing_token(
    client: TestClient, method: str, path: str, body: dict | None
) -> None:
    client.cookies.clear()
    response = client.request(method, path, json=body)
    assert response.status_code == 401
    assert response.json()["statusCode"] == 401


def test_data_requires_auth(client: TestClient) -> None:
    client.cookies.clear()
    assert client.get("/Api/Data").status_code == 401
    assert client.post("/Api/Data/Latest", json={}).status_code == 401


def test_latest_get_and_post(client: TestClient, seeded) -> None:
    headers = _auth_header(_sign_in(client))
    got = client.get("/Api/Data/Latest", params={"maxRows": 3}, headers=headers).json()["data"]
    assert [row["p"] for row in got] == [750.0, 751.0, 752.0]
    posted = client.post("/Api/Data/Latest", json={"maxRows": 500}, headers=headers)
    assert len(posted.json()["data"]) == 20
    default = client.post("/Api/Data/Latest", json={}, headers=headers)
    assert len(default.json()["data"]) == 10


def test_data_aggregates_window(client: TestClient, seeded) -> None:
    headers = _auth_header(_sign_in(client))
    response = client.post(
        "/Api/Data", json={"timePeriod": 3600, "resolution": 3600}, headers=headers
    )
    rows = response.json()["data"]
    assert len(rows) == 20
    assert [row["d"] for row in rows] == sorted(row["d"] for row in rows)
    assert set(rows[0]) == {"d", "p", "t", "h"}


def test_data_get_with_query_filter(client: TestClient, seeded) -> None:
    headers = _auth_header(_sign_in(client))
    to_time = seeded[0].timestamp
    from_time = seeded[4].timestamp
    response = client.get(
        "/Api/Data",
        params={"fromTime": from_time.isoformat(), "toTime": to_time.isoformat()},
        headers=headers,
    )
    assert response.status_code == 200
    assert len(response.json()["data"]) == 5


def test_data_invalid_query_is_400(client: TestClient) -> None:
    headers = _auth_header(_sign_in(client))
    response = client.get("/Api/Data", params={"fromTime": "yesterday"}, headers=headers)
    assert response.status_code == 400
    assert "fromTime" in response.json()["data"]


# ---------------------------------------------------------------------------
# Options, status and health
# ---------------------------------------------------------------------------


def test_options(client: TestClient) -> None:
    response = client.get("/Api/Options")
    assert response.json()["data"] == {
        "statusPageTimeScale": 86400,
        "latestDataExpirationPeriod": 600,
    }


@pytest.mark.parametrize(("code", "phrase"), [(200, "OK"), (404, "Not Found"), (503, None)])
def test_status_echoes_code(client: TestClient, code: int, phrase: str | None) -> None:
    response = client.post(f"/Api/Status/{code}")
    assert response.status_code == code
    body = response.json()
    assert body["statusCode"] == code
    assert body["data"] is None
    if phrase:
        assert body["description"] == phrase


def test_status_without_body(client: TestClient) -> None:
    response = client.get("/Api/Status/204")
    assert response.status_code == 204
    assert response.content == b""


def test_status_out_of_range_is_404(client: TestClient) -> None:
    assert client.get("/Api/Status/42").status_code == 404


def test_health_reports_source(client: TestClient) -> None:
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["source"].startswith("sqlite:")


def test_unhandled_error_is_500_envelope(tmp_path: Path, monkeypatch) -> None:
    app = _make_app(tmp_path, monkeypatch, {"server": {"source": "random"}})
    runtime = app.state.runtime

    def broken(request):
        raise RuntimeError("boom")

    monkeypatch.setattr(runtime.source, "get_latest_measurements", broken)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        headers = _auth_header(_sign_in(test_client))
        response = test_client.post("/Api/Data/Latest", json={}, headers=headers)
    assert response.status_code == 500
    assert response.json() == {
        "statusCode": 500,
        "description": "The request has caused an exception on the server.",
        "data": None,
    }


def test_open_sign_in_without_credentials(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("PICLIMATE_SERVE_STATIC", "0")
    app = app_module.create_app(
        tmp_path / "config.yaml", overrides={"database": {"path": str(tmp_path / "m.db")}}
    )
    with TestClient(app) as test_client:
        response = test_client.post("/Api/Auth/SignIn", json={"name": "anyone"})
    assert response.status_code == 200
