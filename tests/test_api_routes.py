"""
tests/test_api_routes.py -- Integration tests for the /api auth, user and product routes.

These tests exercise the full stack: middleware -> ApiGate -> FastAPI routing
-> AuthService / ProductStore -> ApiResponse envelope. Unit testing route
functions alone would miss the gate chain, the exception handlers and the
cookie handling, so integration tests are the right tool here.

Coverage:
  - Gate failures: 401 envelope without a token, with a garbage token, after
    logout and after rotation
  - Auth routes: register 201 / 409 / 422, login 200 / 401, logout clears cookie
  - GET /api/users/me returns the caller without the password hash
  - Products: create 201, list with ?category=, detail, 404, owner-only
    update and delete

Fixtures used (from conftest.py):
  - api_client: (client, auth_service) -- TestClient on the real app
  - api_signup: factory that registers + logs in a fresh account
"""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from auth.service import AuthService
from conftest import TEST_PASSWORD as PASSWORD


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _fresh_cookie_jar(api_client: tuple[TestClient, AuthService]) -> None:
    """Login responses set the session cookie; keep it from leaking between tests."""
    client, _service = api_client
    client.cookies.clear()


def _assert_fail_envelope(resp, status_code: int) -> dict:
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert set(body) == {"status", "message", "data"}
    assert body["status"] == "fail"
    assert body["message"]
    return body


class TestApiGateOverHttp:
    """Protected API routes must answer with the structured 401 body."""

    def test_no_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        body = _assert_fail_envelope(client.get("/api/products"), 401)
        assert body["message"] == "Authentication token not found."
        assert body["data"] is None

    def test_garbage_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _assert_fail_envelope(client.get("/api/users/me", headers=_auth("not-a-token")), 401)

    def test_non_bearer_scheme(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _assert_fail_envelope(client.get("/api/users/me", headers={"Authorization": "Basic abc"}), 401)

    def test_unknown_api_path_still_gated(self, api_client: tuple[TestClient, AuthService]) -> None:
        """Unauthenticated callers must not learn which API paths exist."""
        client, _service = api_client
        _assert_fail_envelope(client.get("/api/does-not-exist"), 401)

    def test_cookie_alone_does_not_open_api(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        client.cookies.set("token", session.token)
        _assert_fail_envelope(client.get("/api/users/me"), 401)


class TestRegister:
    def test_register_created(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = client.post(
            "/api/auth/register",
            json={"name": "Ann", "email": "Ann.Register@Example.com", "password": PASSWORD},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["status"] == "success"
        assert body["data"]["email"] == "ann.register@example.com"
        assert uuid.UUID(body["data"]["id"])
        assert "hashed_password" not in body["data"]

    def test_register_duplicate_is_409(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        payload = {"name": "Dup", "email": "dup@example.com", "password": PASSWORD}
        assert client.post("/api/auth/register", json=payload).status_code == 201
        _assert_fail_envelope(client.post("/api/auth/register", json=payload), 409)

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Short", "email": "short@example.com", "password": "1234567"},
            {"name": "NoAt", "email": "not-an-email", "password": PASSWORD},
            {"name": "", "email": "noname@example.com", "password": PASSWORD},
            {"email": "missing@example.com", "password": PASSWORD},
        ],
    )
    def test_register_validation_is_422(self, api_client: tuple[TestClient, AuthService], payload: dict) -> None:
        client, _service = api_client
        body = _assert_fail_envelope(client.post("/api/auth/register", json=payload), 422)
        assert isinstance(body["data"], list)


class TestLogin:
    def test_login_returns_token_and_cookie(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, service = api_client
        service.register("Login", "login@example.com", PASSWORD)
        resp = client.post("/api/auth/login", json={"email": "login@example.com", "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 86400
        assert resp.headers["cache-control"] == "no-store"
        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith(f"token={data['token']}")
        assert "HttpOnly" in set_cookie
        assert "Path=/" in set_cookie
        assert "Max-Age=86400" in set_cookie
        assert client.get("/api/users/me", headers=_auth(data["token"])).status_code == 200

    def test_wrong_password_is_401(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        account, _session = api_signup()
        body = _assert_fail_envelope(
            client.post("/api/auth/login", json={"email": account.email, "password": "wrong-password"}), 401
        )
        assert body["message"] == "Invalid email or password."

    def test_unknown_email_is_401(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        body = _assert_fail_envelope(
            client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}), 401
        )
        assert body["message"] == "Invalid email or password."

    def test_second_login_revokes_first_token(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, service = api_client
        account, first = api_signup()
        resp = client.post("/api/auth/login", json={"email": account.email, "password": PASSWORD})
        second = resp.json()["data"]["token"]
        assert second != first.token
        _assert_fail_envelope(client.get("/api/users/me", headers=_auth(first.token)), 401)
        assert client.get("/api/users/me", headers=_auth(second)).status_code == 200
        assert service.tokens.count_by_account(account.id) == 1


class TestLogout:
    def test_logout_revokes_token_for_api(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        resp = client.post("/api/auth/logout", headers=_auth(session.token))
        assert resp.status_code == 200
        assert resp.json()["status"] == "success"
        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith("token=")
        assert "Max-Age=0" in set_cookie
        _assert_fail_envelope(client.get("/api/users/me", headers=_auth(session.token)), 401)

    def test_logout_via_cookie(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, service = api_client
        _account, session = api_signup()
        client.cookies.set("token", session.token)
        assert client.post("/api/auth/logout").status_code == 200
        assert service.tokens.find(session.token) is None

    def test_logout_without_token_succeeds(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        assert client.post("/api/auth/logout").status_code == 200

    def test_logout_with_garbage_token_succeeds(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        assert client.post("/api/auth/logout", headers=_auth("garbage")).status_code == 200


class TestMe:
    def test_me_returns_account(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        account, session = api_signup(name="Me Myself")
        resp = client.get("/api/users/me", headers=_auth(session.token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["id"] == account.id
        assert data["name"] == "Me Myself"
        assert "hashed_password" not in data


class TestProducts:
    _PRODUCT = {"name": "Desk lamp", "price": 1500, "category": "home", "condition": "used"}

    def test_create_list_get(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        account, session = api_signup()
        resp = client.post("/api/products", json=self._PRODUCT, headers=_auth(session.token))
        assert resp.status_code == 201, resp.text
        created = resp.json()["data"]
        assert created["owner_id"] == account.id
        assert created["price"] == 1500

        listed = client.get("/api/products", headers=_auth(session.token)).json()["data"]
        assert created["id"] in [p["id"] for p in listed]

        detail = client.get(f"/api/products/{created['id']}", headers=_auth(session.token))
        assert detail.status_code == 200
        assert detail.json()["data"]["name"] == "Desk lamp"

    def test_missing_product_is_404(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        _assert_fail_envelope(client.get("/api/products/999999", headers=_auth(session.token)), 404)

    def test_invalid_condition_is_422(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        bad = dict(self._PRODUCT, condition="broken")
        _assert_fail_envelope(client.post("/api/products", json=bad, headers=_auth(session.token)), 422)

    def test_only_owner_can_delete(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _owner, owner_session = api_signup()
        _other, other_session = api_signup()
        product_id = client.post("/api/products", json=self._PRODUCT, headers=_auth(owner_session.token)).json()[
            "data"
        ]["id"]

        _assert_fail_envelope(client.delete(f"/api/products/{product_id}", headers=_auth(other_session.token)), 404)
        assert client.delete(f"/api/products/{product_id}", headers=_auth(owner_session.token)).status_code == 200
        _assert_fail_envelope(client.get(f"/api/products/{product_id}", headers=_auth(owner_session.token)), 404)

    def _create(self, client: TestClient, token: str, **overrides) -> int:
        resp = client.post("/api/products", json=dict(self._PRODUCT, **overrides), headers=_auth(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]

    def test_list_filters_by_category(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        category = f"cat-{uuid.uuid4().hex[:8]}"
        wanted = self._create(client, session.token, category=category)
        self._create(client, session.token)
        resp = client.get("/api/products", params={"category": category}, headers=_auth(session.token))
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json()["data"]] == [wanted]

    def test_owner_can_update(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        product_id = self._create(client, session.token)
        resp = client.put(f"/api/products/{product_id}", json={"price": 1200}, headers=_auth(session.token))
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["price"] == 1200
        assert data["name"] == "Desk lamp"
        detail = client.get(f"/api/products/{product_id}", headers=_auth(session.token)).json()["data"]
        assert detail["price"] == 1200

    def test_other_seller_cannot_update(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _owner, owner_session = api_signup()
        _other, other_session = api_signup()
        product_id = self._create(client, owner_session.token)
        _assert_fail_envelope(
            client.put(f"/api/products/{product_id}", json={"price": 1}, headers=_auth(other_session.token)), 404
        )
        detail = client.get(f"/api/products/{product_id}", headers=_auth(owner_session.token)).json()["data"]
        assert detail["price"] == 1500

    def test_update_missing_is_404(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        _assert_fail_envelope(
            client.put("/api/products/999999", json={"price": 1}, headers=_auth(session.token)), 404
        )

    def test_update_invalid_condition_is_422(self, api_client: tuple[TestClient, AuthService], api_signup) -> None:
        client, _service = api_client
        _account, session = api_signup()
        product_id = self._create(client, session.token)
        _assert_fail_envelope(
            client.put(f"/api/products/{product_id}", json={"condition": "broken"}, headers=_auth(session.token)),
            422,
        )

    def test_update_without_token_is_401(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _assert_fail_envelope(client.put("/api/products/1", json={"price": 1}), 401)
