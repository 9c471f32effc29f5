from datetime import datetime, timedelta

from models import db
from models.csrf_token import CsrfToken
from models.session import Session


def test_login_rejects_bad_credentials(client, make_user):
    make_user("grower@example.com")
    resp = client.post("/auth/login", json={"email": "grower@example.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid credentials"

    resp = client.post("/auth/login", json={"email": "nobody@example.com", "password": "nope"})
    assert resp.status_code == 401


def test_login_sets_http_only_cookie(app, client, make_user, login):
    make_user("grower@example.com")
    resp = login(client, "GROWER@example.com ")

    cookie = next(c for c in resp.headers.getlist("Set-Cookie") if c.startswith("seedkeeper_session="))
    assert "HttpOnly" in cookie
    assert "SameSite=Lax" in cookie
    with app.app_context():
        sess = Session.query.one()
        assert sess.token_hash != client.get_cookie("seedkeeper_session").value


def test_me(user_client):
    me = user_client.get("/auth/me").get_json()
    assert me["email"] == "grower@example.com"
    assert me["isPaid"] is False
    assert me["impersonatedBy"] is None


def test_logout_removes_session_and_tokens(app, user_client, csrf_headers):
    headers = csrf_headers(user_client)

    resp = user_client.post("/auth/logout", headers=headers)
    assert resp.status_code == 200
    assert user_client.get_cookie("seedkeeper_session") is None
    with app.app_context():
        assert Session.query.count() == 0
        assert CsrfToken.query.count() == 0

    assert user_client.get("/auth/me").status_code == 401


def test_expired_session_is_dropped(app, user_client, csrf_headers):
    csrf_headers(user_client)
    with app.app_context():
        sess = Session.query.one()
        sess.expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.session.commit()

    assert user_client.get("/auth/me").status_code == 401
    with app.app_context():
        assert Session.query.count() == 0
        assert CsrfToken.query.count() == 0


def test_extend_session(app, user_client, csrf_headers):
    headers = csrf_headers(user_client)

    resp = user_client.post("/auth/extend-session", json={"remember": False}, headers=headers)
    assert resp.get_json()["message"] == "Session will expire in 1 day"

    resp = user_client.post("/auth/extend-session", json={"remember": True}, headers=headers)
    assert resp.status_code == 200
    with app.app_context():
        sess = Session.query.one()
        assert sess.expires_at > datetime.utcnow() + timedelta(days=364)


def test_login_is_exempt_from_csrf(user_client, make_user):
    make_user("second@example.com")
    resp = user_client.post(
        "/auth/login", json={"email": "second@example.com", "password": "correct horse battery"}
    )
    assert resp.status_code == 200


def test_health(client):
    body = client.get("/health").get_json()
    assert body == {"status": "ok", "database": "healthy"}
