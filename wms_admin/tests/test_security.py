import logging

from flask import g

from wms_admin import JsonLogFormatter

from .conftest import build_test_app, csrf_token, extract_csrf_token, login_as, post_form


def test_login_page_and_security_headers(client):
    response = client.get("/login")
    assert response.status_code == 200
    csp = response.headers.get("Content-Security-Policy", "")
    assert "script-src 'self' 'nonce-" in csp
    assert "script-src 'self' 'unsafe-inline'" not in csp
    assert "style-src 'self' 'nonce-" in csp
    assert "frame-ancestors 'none'" in csp
    assert response.headers.get("X-Frame-Options") == "DENY"
    assert response.headers.get("X-Content-Type-Options") == "nosniff"
    assert response.headers.get("Cross-Origin-Resource-Policy") == "same-origin"
    assert response.headers.get("X-Robots-Tag") == "noindex, nofollow, noarchive"
    assert response.headers.get("Cache-Control", "").startswith("no-store")
    html = response.get_data(as_text=True)
    assert extract_csrf_token(html)
    assert "style=" not in html


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get("/healthz", headers={"X-Request-ID": "req-12345678"})
    assert echoed.headers.get("X-Request-ID") == "req-12345678"
    generated = client.get("/healthz", headers={"X-Request-ID": "bad id"})
    assert len(generated.headers.get("X-Request-ID")) == 32


def test_hsts_header_on_https_requests(client):
    response = client.get("/login", base_url="https://example.com")
    assert response.status_code == 200
    assert response.headers.get("Strict-Transport-Security") == "max-age=31536000; includeSubDomains"


def test_hsts_header_on_trusted_forwarded_proto(stub):
    proxied_app = build_test_app(stub, {"TRUST_PROXY_HEADERS": True, "HSTS_PRELOAD": True})
    response = proxied_app.test_client().get(
        "/login",
        base_url="http://example.com",
        headers={"X-Forwarded-Proto": "https"},
    )
    assert response.status_code == 200
    assert response.headers.get("Strict-Transport-Security") == "max-age=31536000; includeSubDomains; preload"


def test_health_endpoint_reports_ok(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_readiness_probes_the_cms_api(client, stub):
    stub.add("HEAD", "", None, status=200)
    ready = client.get("/readyz")
    assert ready.status_code == 200
    assert ready.get_json() == {"status": "ready", "checks": {"cms_api": True}}

    stub.add("HEAD", "", None, status=503)
    degraded = client.get("/readyz")
    assert degraded.status_code == 503
    assert degraded.get_json()["status"] == "degraded"


def test_login_post_requires_csrf(client, stub):
    response = client.post(
        "/login",
        data={"login_id": "tperson", "password": "correct horse"},
        follow_redirects=False,
    )
    assert response.status_code in (302, 400)
    assert stub.find("POST", "users/login") == []
    blocked_dashboard = client.get("/admin/", follow_redirects=False)
    assert blocked_dashboard.status_code in (302, 303)


def test_logout_post_requires_csrf(client, stub):
    login_as(client, stub)
    stub.add("GET", "stats/admin/12", {"success": True, "data": {}})
    response = client.post("/logout", data={}, follow_redirects=False)
    assert response.status_code in (302, 400)
    still_logged_in = client.get("/admin/", follow_redirects=False)
    assert still_logged_in.status_code == 200


def test_logout_clears_the_session(client, stub):
    login_as(client, stub)
    response = post_form(client, "/logout")
    assert response.status_code == 302
    with client.session_transaction() as sess:
        assert "cms_token" not in sess
        assert "cms_user" not in sess
    assert client.get("/admin/", follow_redirects=False).status_code == 302


def test_csrf_token_survives_across_requests(client):
    token = csrf_token(client)
    page = client.get("/login")
    assert extract_csrf_token(page.get_data(as_text=True)) == token


def test_upload_too_large_redirects_with_message(stub):
    small_app = build_test_app(stub, {"MAX_CONTENT_LENGTH": 1024})
    small_client = small_app.test_client()
    login_as(small_client, stub)
    response = post_form(small_client, "/blog/categories/add", {"category_name": "x" * 4096})
    assert response.status_code == 302
    with small_client.session_transaction() as sess:
        messages = [message for _, message in sess.get("_flashes", [])]
    assert "The upload is too large." in messages


def test_json_log_formatter_includes_request_context(app):
    formatter = JsonLogFormatter()
    record = logging.LogRecord("wms_admin.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    with app.test_request_context("/login", headers={"X-Request-ID": "req-abcdef12"}):
        g.request_id = "req-abcdef12"
        rendered = formatter.format(record)
    assert '"message": "hello world"' in rendered
    assert '"request_id": "req-abcdef12"' in rendered
    assert '"path": "/login"' in rendered
