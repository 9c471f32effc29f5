from flask import Flask, request, g, jsonify
from config import Config
from routes import health_bp, auth_bp, admin_bp, audit_bp, plants_api_bp

from models import db
from flask_migrate import Migrate
from utils.auth_context import load_current_user
from security.csrf import require_csrf
from security.errors import SecurityError, DataCorruption
from security.route_policy import authorize_request


CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/health",
}

# Authenticated by ADMIN_API_KEY, not by the session cookie
CSRF_EXEMPT_PREFIXES = ("/api/v1/",)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(plants_api_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Create missing tables at startup (safe & idempotent)
    with app.app_context():
        db.create_all()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _authorize():
        return authorize_request()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS or request.path.startswith(CSRF_EXEMPT_PREFIXES):
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                require_csrf()
        return None

    @app.errorhandler(SecurityError)
    def _security_error(err):
        resp = jsonify(error=err.message)
        if isinstance(err, DataCorruption):
            for name in err.cookies:
                resp.delete_cookie(name, path="/")
        return resp, err.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # CSP can be strict if you serve frontend separately; for API it's fine to keep minimal:
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from models.user import User, ROLE_ADMIN, SUBSCRIPTION_TIERS
from security.password import hash_password
from security.csrf import sweep_expired_csrf_tokens

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to admin by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        if user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            db.session.commit()

        click.echo(f"{user.email} promoted to admin")

    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--admin", is_flag=True, help="Create the account with the admin role.")
    @click.option("--tier", type=click.Choice(SUBSCRIPTION_TIERS), default="free", show_default=True)
    def create_user(email, password, admin, tier):
        """Create a local account."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo("Email already registered")
            return

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=ROLE_ADMIN if admin else "user",
            subscription_tier=tier,
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {user.email} ({user.role}, {user.subscription_tier})")

    @app.cli.command("prune-csrf-tokens")
    def prune_csrf_tokens():
        """Delete every expired CSRF token."""
        count = sweep_expired_csrf_tokens()
        click.echo(f"Deleted {count} expired CSRF tokens")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
