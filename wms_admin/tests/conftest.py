import json
import re
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from wms_admin import create_app

API_BASE_URL = "https://cms.test/api"
CSRF_TOKEN_RE = re.compile(r'name="_csrf_token" value="([^"]+)"')
ROLE_FOR_USER_TYPE = {"SA": "SuperAdmin", "Admin": "OrgAdmin", "User": "Employee"}


def extract_csrf_token(html):
    match = CSRF_TOKEN_RE.search(html or "")
    return match.group(1) if match else None


class RecordedCall:
    def __init__(self, request, path):
        self.method = request.method
        self.path = path
        self.url = request.url
        self.query = parse_qs(urlparse(request.url).query)
        self.headers = request.headers
        body = request.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body or b""

    def json(self):
        return json.loads(self.body.decode("utf-8"))


class StubAdapter(BaseAdapter):
    """Transport adapter that answers CMS API calls from canned payloads."""

    def __init__(self):
        super().__init__()
        self.routes = {}
        self.calls = []
        self.raise_on_send = None

    def add(self, method, path, payload=None, status=200):
        self.routes[(method.upper(), path.strip("/"))] = (status, payload)

    def find(self, method, path):
        return [call for call in self.calls if call.method == method.upper() and call.path == path.strip("/")]

    def send(self, request, **kwargs):
        parsed = urlparse(request.url)
        base_path = urlparse(API_BASE_URL).path
        path = parsed.path[len(base_path):] if parsed.path.startswith(base_path) else parsed.path
        path = path.strip("/")
        self.calls.append(RecordedCall(request, path))
        if self.raise_on_send is not None:
            raise self.raise_on_send

        status, payload = self.routes.get(
            (request.method, path),
            (404, {"success": False, "message": f"No stub for {request.method} {path}"}),
        )
        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def build_test_app(stub, overrides=None):
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "CMS_API_BASE_URL": API_BASE_URL,
        "LOG_JSON": False,
    }
    if overrides:
        config.update(overrides)
    session = requests.Session()
    session.mount("https://cms.test", stub)
    return create_app(config, api_session=session)


@pytest.fixture()
def stub():
    return StubAdapter()


@pytest.fixture()
def app(stub):
    return build_test_app(stub)


@pytest.fixture()
def client(app):
    return app.test_client()


def csrf_token(client):
    with client.session_transaction() as sess:
        token = sess.get("_csrf_token") or "test-csrf-token"
        sess["_csrf_token"] = token
    return token


def make_user(user_type="Admin", **extra):
    user = {
        "UserId": 7,
        "UserName": "Test Person",
        "LoginId": "tperson",
        "UserEmail": "tperson@example.com",
        "OrgCode": 12,
    }
    if user_type == "SA":
        user.update({"UserId": 1, "LoginId": "root", "UserName": "Platform Owner"})
    user.update(extra)
    return user


def login_as(client, stub, user_type="Admin", token="opaque-session-token", **extra):
    stub.add(
        "POST",
        "users/login",
        {"user": make_user(user_type, **extra), "token": token, "role": ROLE_FOR_USER_TYPE[user_type]},
    )
    response = client.post(
        "/login",
        data={"_csrf_token": csrf_token(client), "login_id": "tperson", "password": "correct horse"},
        follow_redirects=False,
    )
    assert response.status_code in (302, 303)
    return response


def post_form(client, path, data=None, **kwargs):
    payload = {"_csrf_token": csrf_token(client)}
    payload.update(data or {})
    return client.post(path, data=payload, follow_redirects=False, **kwargs)
