"""
Pytest fixtures for the Seedkeeper backend.

Each test gets its own application bound to a throwaway SQLite file.
Requests go through Flask's test client; model access in a test body must
happen inside `with app.app_context():`.
"""
import pytest

from app import create_app
from config import Config
from models import db
from models.user import User
from security.password import hash_password

PASSWORD = "correct horse battery"
API_KEY = "test-api-key"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SESSION_COOKIE_SECURE = False
    CSRF_SWEEP_PROBABILITY = 0.0
    BCRYPT_ROUNDS = 4
    ADMIN_API_KEY = API_KEY
    LOG_LEVEL = "DEBUG"


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")

    app = create_app(_Config)
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Creates a user and returns its id."""
    def _make(email, role="user", tier="free", name=None, password=PASSWORD):
        with app.app_context():
            user = User(
                email=email,
                password_hash=hash_password(password),
                role=role,
                subscription_tier=tier,
                name=name,
            )
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def login():
    def _login(client, email, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _login


@pytest.fixture
def csrf_headers():
    """Fetches the session's CSRF token and returns it as request headers."""
    def _headers(client):
        resp = client.get("/auth/csrf-token")
        assert resp.status_code == 200, resp.get_json()
        return {"X-CSRF-Token": resp.get_json()["csrfToken"]}
    return _headers


@pytest.fixture
def admin_client(app, make_user, login):
    make_user("admin@example.com", role="admin", name="Ada Admin")
    client = app.test_client()
    login(client, "admin@example.com")
    return client


@pytest.fixture
def user_client(app, make_user, login):
    make_user("grower@example.com", name="Gus Grower")
    client = app.test_client()
    login(client, "grower@example.com")
    return client
