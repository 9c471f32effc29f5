import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as seedkeeper.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "seedkeeper.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "seedkeeper_session"

    # 1 day session lifetime, 1 year when the user asks to be remembered
    SESSION_LIFETIME_SECONDS = 24 * 60 * 60
    REMEMBER_ME_SECONDS = 365 * 24 * 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # CSRF tokens (header-carried, stored per session)
    CSRF_TOKEN_LIFETIME_SECONDS = 24 * 60 * 60
    CSRF_SWEEP_PROBABILITY = float(os.getenv("CSRF_SWEEP_PROBABILITY", "0.01"))

    # Admin impersonation window
    IMPERSONATION_MAX_AGE_SECONDS = 60 * 60

    # Audit log paging
    AUDIT_LOG_DEFAULT_PAGE_SIZE = 50
    AUDIT_LOG_MAX_PAGE_SIZE = 100

    # Shared secret for the plant catalog API (/api/v1/admin/...)
    ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

    # bcrypt cost factor
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
