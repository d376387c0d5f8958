from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from inventory_auth.app import create_app
from inventory_auth.auth.sessions import SESSION_COOKIE_NAME
from tests.factories import RecordingDispatcher, app_config

ADMIN_EMAIL = "root@shop.local"
ADMIN_PASSWORD = "root-pass"


def _client(tmp_path: Path, **auth_overrides) -> tuple[TestClient, RecordingDispatcher]:
    dispatcher = RecordingDispatcher()
    config = app_config(
        tmp_path, admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD, **auth_overrides
    )
    app = create_app(config, database_path=tmp_path / "state.db", dispatcher=dispatcher)
    return TestClient(app), dispatcher


def test_health_is_public(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_two_factor_login_me_logout_flow(tmp_path: Path) -> None:
    client, dispatcher = _client(tmp_path)

    login = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert login.status_code == 200
    body = login.json()
    assert body["message"] == "Verification code sent"
    assert "debugCode" not in body
    assert "set-cookie" not in login.headers

    verify = client.post(
        "/auth/verify-otp",
        json={"pendingToken": body["pendingToken"], "code": dispatcher.last_code},
    )
    assert verify.status_code == 200
    user = verify.json()["user"]
    assert user["email"] == ADMIN_EMAIL
    assert user["role"] == "ADMIN"
    assert user["isActive"] is True
    assert user["lastLoginAt"] is not None
    assert "passwordHash" not in user
    set_cookie = verify.headers["set-cookie"]
    assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == user["id"]

    logout = client.post("/auth/logout")
    assert logout.status_code == 204
    assert SESSION_COOKIE_NAME in logout.headers["set-cookie"]

    after = client.get("/auth/me")
    assert after.status_code == 401
    assert after.json() == {"error_code": "AUTH_UNAUTHORIZED", "message": "Unauthorized"}


def test_login_without_two_factor_sets_cookie_directly(tmp_path: Path) -> None:
    client, dispatcher = _client(tmp_path, disable_two_factor=True)

    login = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

    assert login.status_code == 200
    assert login.json()["user"]["email"] == ADMIN_EMAIL
    assert SESSION_COOKIE_NAME in login.headers["set-cookie"]
    assert dispatcher.sent == []
    assert client.get("/auth/me").status_code == 200


def test_replayed_code_is_rejected(tmp_path: Path) -> None:
    client, dispatcher = _client(tmp_path)
    pending = client.post(
        "/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    ).json()["pendingToken"]
    payload = {"pendingToken": pending, "code": dispatcher.last_code}

    assert client.post("/auth/verify-otp", json=payload).status_code == 200
    replay = client.post("/auth/verify-otp", json=payload)

    assert replay.status_code == 400
    assert replay.json()["message"] == "Verification code already used"


def test_wrong_code_then_resend(tmp_path: Path) -> None:
    client, dispatcher = _client(tmp_path)
    pending = client.post(
        "/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    ).json()["pendingToken"]
    wrong = "000000" if dispatcher.last_code != "000000" else "111111"

    mismatch = client.post("/auth/verify-otp", json={"pendingToken": pending, "code": wrong})
    resend = client.post("/auth/resend-otp", json={"pendingToken": pending})
    verify = client.post(
        "/auth/verify-otp", json={"pendingToken": pending, "code": dispatcher.last_code}
    )

    assert mismatch.status_code == 401
    assert mismatch.json()["error_code"] == "VERIFICATION_CODE_MISMATCH"
    assert resend.status_code == 200
    assert len(dispatcher.sent) == 2
    assert verify.status_code == 200


def test_login_error_contracts(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    missing = client.post("/auth/login", json={"email": ADMIN_EMAIL})
    wrong = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    malformed = client.post("/auth/login", json=["not", "an", "object"])

    assert missing.status_code == 400
    assert missing.json()["message"] == "Email and password are required"
    assert wrong.status_code == 401
    assert wrong.json() == {
        "error_code": "AUTH_INVALID_CREDENTIALS",
        "message": "Invalid email or password",
    }
    assert malformed.status_code == 400
    assert malformed.json()["error_code"] == "VALIDATION_ERROR"


def test_repeated_failed_logins_are_rate_limited(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    statuses = [
        client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"}).status_code
        for _ in range(5)
    ]
    locked = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

    assert statuses == [401] * 5
    assert locked.status_code == 429
    assert locked.json()["error_code"] == "AUTH_RATE_LIMITED"


def test_protected_routes_reject_forged_cookie(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    client.cookies.set(SESSION_COOKIE_NAME, "header.payload.signature")

    assert client.get("/auth/me").status_code == 401
    assert client.post("/auth/logout").status_code == 401
