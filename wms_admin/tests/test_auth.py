import io
import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from wms_admin.auth import register_login_failure, token_expiry, token_is_expired
from wms_admin.models import user_type_for_role

from .conftest import csrf_token, login_as, make_user, post_form


def session_user(client):
    with client.session_transaction() as sess:
        return sess.get("cms_user"), sess.get("cms_token")


@pytest.mark.parametrize(
    "user_type,role",
    [("SA", "SuperAdmin"), ("Admin", "OrgAdmin"), ("User", "Employee")],
)
def test_login_maps_api_role_to_user_type(client, stub, user_type, role):
    response = login_as(client, stub, user_type)
    assert response.headers["Location"].endswith("/admin/")
    user, token = session_user(client)
    assert user["UserType"] == user_type
    assert token == "opaque-session-token"

    call = stub.find("POST", "users/login")[0]
    assert call.json() == {"LoginId": "tperson", "LoginPwd": "correct horse"}
    assert "Authorization" not in call.headers


def test_role_mapping_defaults_to_user():
    assert user_type_for_role("SuperAdmin") == "SA"
    assert user_type_for_role("OrgAdmin") == "Admin"
    assert user_type_for_role("Editor") == "User"
    assert user_type_for_role(None) == "User"


def test_login_without_token_is_rejected(client, stub):
    stub.add("POST", "users/login", {"user": make_user(), "role": "OrgAdmin"})
    response = post_form(client, "/login", {"login_id": "tperson", "password": "secret"})
    assert response.status_code == 200
    assert "Login failed" in response.get_data(as_text=True)
    assert session_user(client) == (None, None)


def test_login_requires_both_fields(client, stub):
    response = post_form(client, "/login", {"login_id": "tperson", "password": ""})
    assert response.status_code == 200
    assert stub.find("POST", "users/login") == []


def test_login_rate_limit_locks_after_repeated_failures(client, stub):
    stub.add("POST", "users/login", {"success": False, "message": "Invalid credentials"}, status=401)
    for attempt in range(5):
        response = post_form(client, "/login", {"login_id": "tperson", "password": f"wrong-{attempt}"})
        assert response.status_code == 200
    assert "Too many failed attempts" in response.get_data(as_text=True)

    locked = post_form(client, "/login", {"login_id": "tperson", "password": "correct horse"})
    assert locked.status_code == 429
    assert len(stub.find("POST", "users/login")) == 5


def test_successful_login_clears_failure_bucket(client, stub, app):
    stub.add("POST", "users/login", {"success": False, "message": "Invalid credentials"}, status=401)
    post_form(client, "/login", {"login_id": "tperson", "password": "wrong"})
    assert app.extensions["login_buckets"]["127.0.0.1"]["count"] == 1
    login_as(client, stub)
    assert "127.0.0.1" not in app.extensions["login_buckets"]


def test_expired_failure_buckets_are_pruned(app):
    past = datetime.now(timezone.utc) - timedelta(minutes=30)
    buckets = app.extensions.setdefault("login_buckets", {})
    buckets["203.0.113.9"] = {"count": 3, "reset_at": past}
    with app.test_request_context("/login", method="POST", environ_base={"REMOTE_ADDR": "127.0.0.1"}):
        assert register_login_failure() == 1
    assert "203.0.113.9" not in buckets
    assert buckets["127.0.0.1"]["count"] == 1


def test_dashboard_requires_login(client):
    response = client.get("/admin/", follow_redirects=False)
    assert response.status_code == 302
    assert "/login" in response.headers["Location"]


def test_expired_jwt_signs_the_user_out(client, stub):
    expired = jwt.encode({"sub": "7", "exp": int(time.time()) - 60}, "server-secret", algorithm="HS256")
    login_as(client, stub, token=expired)
    response = client.get("/admin/", follow_redirects=False)
    assert response.status_code == 302
    assert session_user(client) == (None, None)


def test_token_expiry_helpers():
    future = jwt.encode({"exp": int(time.time()) + 3600}, "k", algorithm="HS256")
    no_exp = jwt.encode({"sub": "7"}, "k", algorithm="HS256")
    assert token_expiry(future) is not None
    assert not token_is_expired(future)
    assert token_expiry(no_exp) is None
    assert token_expiry("not-a-jwt") is None
    assert not token_is_expired("not-a-jwt")


def test_api_401_clears_session_and_redirects_to_login(client, stub):
    login_as(client, stub)
    stub.add("GET", "stats/admin/12", {"message": "jwt expired"}, status=401)
    response = client.get("/admin/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    assert session_user(client) == (None, None)
    with client.session_transaction() as sess:
        messages = [message for _, message in sess.get("_flashes", [])]
    assert "Your session has expired. Please sign in again." in messages


def test_role_gate_returns_403(client, stub):
    login_as(client, stub, "User")
    assert client.get("/products/").status_code == 403
    assert client.get("/org/licenses").status_code == 403


def test_bearer_token_is_attached_after_login(client, stub):
    login_as(client, stub)
    stub.add("GET", "stats/admin/12", {"success": True, "data": {"jobs": 3}})
    client.get("/admin/")
    call = stub.find("GET", "stats/admin/12")[0]
    assert call.headers["Authorization"] == "Bearer opaque-session-token"


def test_profile_refresh_keeps_user_type(client, stub):
    login_as(client, stub, "Admin")
    stub.add(
        "GET",
        "users/profile",
        {"user": {"UserId": 7, "UserName": "Renamed Person", "UserType": "User", "OrgCode": 12}},
    )
    response = client.get("/profile")
    assert response.status_code == 200
    assert "Renamed Person" in response.get_data(as_text=True)
    user, _ = session_user(client)
    assert user["UserType"] == "Admin"
    assert user["UserName"] == "Renamed Person"


def test_profile_update_replaces_session_copy(client, stub):
    login_as(client, stub, "Admin")
    stub.add("PUT", "users/profile", {"user": {"UserId": 7, "UserName": "Updated", "UserEmail": "new@example.com"}})
    response = post_form(
        client,
        "/profile",
        {"user_name": "Updated", "user_email": "new@example.com", "mobile": "5550100"},
    )
    assert response.status_code == 302
    call = stub.find("PUT", "users/profile")[0]
    assert b"UserName=Updated" in call.body
    assert b"UserDOB" not in call.body
    user, _ = session_user(client)
    assert user["UserName"] == "Updated"
    assert user["UserType"] == "Admin"


def test_register_signs_in_new_user(client, stub):
    stub.add(
        "POST",
        "users/register",
        {"user": make_user("User", UserId=40, LoginId="newbie"), "token": "fresh-token", "role": "Employee"},
    )
    response = client.post(
        "/register",
        data={
            "_csrf_token": csrf_token(client),
            "org_code": "12",
            "user_name": "New Person",
            "user_email": "newbie@example.com",
            "login_id": "newbie",
            "password": "long-enough-pass",
            "user_photo": (io.BytesIO(b"not an image"), "photo.png", "image/png"),
        },
        content_type="multipart/form-data",
        follow_redirects=False,
    )
    # The photo is not a real PNG, so the upload is rejected before the API is called.
    assert response.status_code == 200
    assert stub.find("POST", "users/register") == []

    response = post_form(
        client,
        "/register",
        {
            "org_code": "12",
            "user_name": "New Person",
            "user_email": "newbie@example.com",
            "login_id": "newbie",
            "password": "long-enough-pass",
        },
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/")
    user, token = session_user(client)
    assert user["UserType"] == "User"
    assert token == "fresh-token"


def test_register_rejects_short_password(client, stub):
    response = post_form(
        client,
        "/register",
        {
            "org_code": "12",
            "user_name": "New Person",
            "user_email": "newbie@example.com",
            "login_id": "newbie",
            "password": "short",
        },
    )
    assert response.status_code == 200
    assert stub.find("POST", "users/register") == []
