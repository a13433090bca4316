import logging

from flask import Flask, jsonify
from config import Config
from routes import (
    health_bp,
    faculty_bp,
    student_bp,
    waitlist_bp,
    recurring_bp,
    notifications_bp,
    public_bp,
)

from models import db
from flask_migrate import Migrate
from services.errors import SchedulingError
from utils.auth_context import load_current_user

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(faculty_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(waitlist_bp)
    app.register_blueprint(recurring_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(public_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(SchedulingError)
    def _scheduling_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("request_failed code=%s: %s", exc.code, exc.message)
        else:
            logger.info("request_rejected code=%s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, ROLES
from security.session import create_session, revoke_all_sessions
from services import bookings, notifications, waitlist
from utils.audit import log_event

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("name")
    @click.option("--role", type=click.Choice(ROLES), default="student", show_default=True)
    @click.option("--department", default=None)
    def create_user(email, name, role, department):
        """Create a faculty or student account and print a bearer token."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise click.ClickException("User already exists")

        user = User(email=email, name=name.strip(), role=role, department=department)
        db.session.add(user)
        db.session.commit()

        token = create_session(user.id)
        log_event("USER_CREATE", user_id=user.id, entity="user", entity_id=user.id, metadata={"role": role})
        click.echo(f"{user.email} created as {role} (id={user.id})")
        click.echo(f"token: {token}")

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token(email):
        """Issue a fresh bearer token for an existing user."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise click.ClickException("User not found")
        click.echo(create_session(user.id))

    @app.cli.command("revoke-tokens")
    @click.argument("email")
    def revoke_tokens(email):
        """Revoke every live bearer token of a user."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise click.ClickException("User not found")
        count = revoke_all_sessions(user.id)
        log_event("TOKENS_REVOKE", user_id=user.id, entity="user", entity_id=user.id, metadata={"count": count})
        click.echo(f"Revoked {count} tokens for {user.email}")

    @app.cli.command("expire-waitlist-offers")
    def expire_waitlist_offers():
        """Expire overdue waitlist offers and re-offer the seats."""
        count = waitlist.expire_overdue_offers()
        click.echo(f"Expired {count} waitlist offers")

    @app.cli.command("send-reminders")
    def send_reminders():
        """Send meeting reminders for approved bookings starting soon."""
        count = bookings.send_meeting_reminders()
        click.echo(f"Sent {count} reminders")

    @app.cli.command("cleanup-notifications")
    def cleanup_notifications():
        """Delete read notifications past the retention window."""
        count = notifications.cleanup_old_notifications()
        click.echo(f"Cleaned up {count} old notifications")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
