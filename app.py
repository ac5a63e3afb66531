import logging
from datetime import timedelta

from flask import Flask, jsonify
from config import Config
from routes import (
    health_bp, auth_bp, packages_bp, reservations_bp, payments_bp, webhook_bp, admin_bp,
)

from models import db
from flask_migrate import Migrate
from services.errors import BookingError
from utils.seed import seed_roles
from utils.auth_context import load_current_user


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(packages_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (tables must already be migrated)
    if app.config.get("SEED_ROLES_ON_STARTUP", True):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, Role
from security.rbac import ADMIN
from services.reservations import sweep_stale_pending
from utils.seed import seed_packages

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Grant ADMIN to a user by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("seed-packages")
    def seed_packages_command():
        """Insert the sample checkup packages."""
        added = seed_packages()
        click.echo(f"{added} package(s) added")

    @app.cli.command("sweep-pending")
    @click.option("--hours", type=int, default=None, help="Age in hours (default PENDING_TTL_HOURS).")
    def sweep_pending(hours):
        """Cancel pending reservations whose payment never completed."""
        hours = hours if hours is not None else app.config.get("PENDING_TTL_HOURS", 24)
        stale = sweep_stale_pending(timedelta(hours=hours))
        click.echo(f"{len(stale)} pending reservation(s) cancelled")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
