import time

import pytest
from itsdangerous import TimestampSigner

from models import db
from models.admin_audit_log import AdminAuditLog
from utils.audit import query_admin_actions


@pytest.fixture
def target_id(make_user):
    return make_user("target@example.com", name="Tess Target", tier="paid")


def _start(client, csrf_headers, user_id):
    return client.post(
        "/admin/impersonate/start",
        json={"userId": user_id},
        headers=csrf_headers(client),
    )


def _carry_cookies(source, dest):
    for name in ("impersonation", "admin_session"):
        cookie = source.get_cookie(name)
        if cookie is not None:
            dest.set_cookie(name, cookie.value)


def test_start_sets_cookies_and_audits(app, admin_client, csrf_headers, target_id):
    resp = _start(admin_client, csrf_headers, target_id)
    assert resp.status_code == 200

    body = resp.get_json()
    assert body["success"] is True
    assert body["user"] == {
        "id": target_id,
        "email": "target@example.com",
        "name": "Tess Target",
        "role": "user",
    }
    assert len(body["token"]) == 64

    assert admin_client.get_cookie("impersonation") is not None
    assert admin_client.get_cookie("admin_session") is not None
    set_cookies = resp.headers.getlist("Set-Cookie")
    assert all("HttpOnly" in c and "Max-Age=3600" in c for c in set_cookies)

    with app.app_context():
        logs = query_admin_actions(target_id=target_id, action="impersonate_start")["logs"]
    assert len(logs) == 1
    assert logs[0]["targetEmail"] == "target@example.com"
    assert logs[0]["details"]["token"] == body["token"][:8] + "..."
    assert body["token"] not in str(logs[0])


def test_cannot_impersonate_admin(app, admin_client, make_user, csrf_headers):
    other_admin = make_user("boss@example.com", role="admin")

    resp = _start(admin_client, csrf_headers, other_admin)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Cannot impersonate admin users"
    assert admin_client.get_cookie("impersonation") is None
    assert admin_client.get_cookie("admin_session") is None
    with app.app_context():
        assert AdminAuditLog.query.count() == 0


def test_start_input_errors(admin_client, csrf_headers):
    headers = csrf_headers(admin_client)
    resp = admin_client.post("/admin/impersonate/start", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "User ID is required"

    resp = admin_client.post("/admin/impersonate/start", json={"userId": 9999}, headers=headers)
    assert resp.status_code == 404


def test_start_requires_admin(client, user_client, csrf_headers, target_id):
    assert client.post("/admin/impersonate/start", json={"userId": target_id}).status_code == 401
    assert _start(user_client, csrf_headers, target_id).status_code == 403


def test_status_as_admin_target_and_stranger(
    app, admin_client, make_user, login, csrf_headers, target_id
):
    _start(admin_client, csrf_headers, target_id)

    target_client = app.test_client()
    login(target_client, "target@example.com")
    _carry_cookies(admin_client, target_client)

    make_user("stranger@example.com")
    stranger = app.test_client()
    login(stranger, "stranger@example.com")
    _carry_cookies(admin_client, stranger)

    as_admin = admin_client.get("/admin/impersonate/status").get_json()
    as_target = target_client.get("/admin/impersonate/status").get_json()
    as_stranger = stranger.get("/admin/impersonate/status").get_json()

    assert as_admin["impersonating"] is True
    assert as_admin["user"]["id"] == target_id
    assert as_target == as_admin
    assert as_stranger == {"impersonating": False}


def test_status_without_identity_or_cookie(client, admin_client):
    assert client.get("/admin/impersonate/status").get_json() == {"impersonating": False}
    assert admin_client.get("/admin/impersonate/status").get_json() == {"impersonating": False}


def test_tampered_cookie_is_not_trusted(admin_client, csrf_headers, target_id):
    _start(admin_client, csrf_headers, target_id)
    value = admin_client.get_cookie("impersonation").value
    admin_client.set_cookie("impersonation", value[:-4] + "AAAA")

    assert admin_client.get("/admin/impersonate/status").get_json() == {"impersonating": False}
    assert admin_client.get("/auth/me").get_json()["email"] == "admin@example.com"


def test_plain_json_cookie_is_rejected(admin_client, target_id):
    admin_client.set_cookie(
        "impersonation",
        '{"adminId": 1, "user": {"id": %d}, "startedAt": "2026-01-01T00:00:00"}' % target_id,
    )
    assert admin_client.get("/admin/impersonate/status").get_json() == {"impersonating": False}


def test_me_reports_impersonated_user(admin_client, csrf_headers, target_id):
    _start(admin_client, csrf_headers, target_id)

    me = admin_client.get("/auth/me").get_json()
    assert me["id"] == target_id
    assert me["impersonatedBy"] is not None


def test_paid_pages_follow_impersonated_user(app, make_user, login, csrf_headers):
    make_user("freeadmin@example.com", role="admin")
    paid_id = make_user("paid@example.com", tier="paid")
    admin = app.test_client()
    login(admin, "freeadmin@example.com")

    assert admin.get("/plantings").status_code == 302
    _start(admin, csrf_headers, paid_id)
    assert admin.get("/plantings").status_code != 302


def test_stop_twice(app, admin_client, csrf_headers, target_id):
    _start(admin_client, csrf_headers, target_id)
    headers = csrf_headers(admin_client)

    first = admin_client.post("/admin/impersonate/stop", headers=headers)
    assert first.status_code == 200
    assert first.get_json() == {"success": True}
    assert admin_client.get_cookie("impersonation") is None
    assert admin_client.get_cookie("admin_session") is None
    assert admin_client.get("/admin/impersonate/status").get_json() == {"impersonating": False}

    second = admin_client.post("/admin/impersonate/stop", headers=headers)
    assert second.status_code == 400
    assert second.get_json()["error"] == "Not currently impersonating"

    with app.app_context():
        ends = query_admin_actions(target_id=target_id, action="impersonate_end")
        assert ends["total"] == 1
        assert ends["logs"][0]["details"]["duration"].endswith(" seconds")
        assert query_admin_actions(target_id=target_id)["total"] == 2


def test_stop_with_corrupt_cookie_clears_it(app, admin_client, csrf_headers):
    admin_client.set_cookie("impersonation", "garbage")
    admin_client.set_cookie("admin_session", "garbage")

    resp = admin_client.post("/admin/impersonate/stop", headers=csrf_headers(admin_client))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid impersonation data"
    assert admin_client.get_cookie("impersonation") is None
    assert admin_client.get_cookie("admin_session") is None
    with app.app_context():
        assert AdminAuditLog.query.count() == 0


def test_stop_requires_session(client):
    assert client.post("/admin/impersonate/stop").status_code == 401


def test_logout_ends_impersonation(app, admin_client, csrf_headers, target_id):
    _start(admin_client, csrf_headers, target_id)

    resp = admin_client.post("/auth/logout", headers=csrf_headers(admin_client))
    assert resp.status_code == 200
    assert admin_client.get_cookie("impersonation") is None

    with app.app_context():
        ends = query_admin_actions(target_id=target_id, action="impersonate_end")["logs"]
    assert len(ends) == 1
    assert ends[0]["reason"] == "logout"


def test_cookie_older_than_window_is_rejected(app, admin_client, csrf_headers, target_id, monkeypatch):
    headers = csrf_headers(admin_client)
    signed_at = int(time.time()) - 2 * 60 * 60
    monkeypatch.setattr(TimestampSigner, "get_timestamp", lambda self: signed_at)
    resp = admin_client.post("/admin/impersonate/start", json={"userId": target_id}, headers=headers)
    assert resp.status_code == 200
    monkeypatch.undo()

    # the browser still presents both cookies
    assert admin_client.get_cookie("impersonation") is not None
    assert admin_client.get("/admin/impersonate/status").get_json() == {"impersonating": False}
    assert admin_client.get("/auth/me").get_json()["email"] == "admin@example.com"

    resp = admin_client.post("/admin/impersonate/stop", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid impersonation data"
    assert admin_client.get_cookie("impersonation") is None
    assert admin_client.get_cookie("admin_session") is None
    with app.app_context():
        assert query_admin_actions(action="impersonate_end")["total"] == 0
