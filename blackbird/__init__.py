"""
__init__.py – Blackbird Tattoo POS Backend
────────────────────────────────────────────────────────────
Initialises the Flask app and registers all feature blueprints.

✅ Includes:
 • auth_router       → login / me
 • bookings_router   → create, list, detail, invoice PDF
 • catalog_router    → products
 • branches_router   → branches
 • employees_router  → staff accounts (admin)
 • customers_router  → customer registry
 • dashboard_router  → date-ranged rollups
 • marketing_router  → templates, preview, broadcasts
 • settings_router   → WhatsApp / reminder switches
 • tasks_router      → externally scheduled jobs
────────────────────────────────────────────────────────────
"""

import logging

import click
from flask import Flask

from . import config
from .db import create_all, get_session, init_engine


# ─────────────────────────────────────────────────────────────
# Flask App Factory
# ─────────────────────────────────────────────────────────────
def create_app(test_config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_mapping(config.as_dict())
    app.config["BOOTSTRAP"] = True
    if test_config:
        app.config.update(test_config)

    # ── Configure logging ───────────────────────────────
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # ── Database ────────────────────────────────────────
    init_engine(app.config["DATABASE_URL"])

    # ── Errors ──────────────────────────────────────────
    from .errors import register_error_handlers
    register_error_handlers(app)

    # ── Sliding token refresh ───────────────────────────
    from .auth import attach_refreshed_token
    app.after_request(attach_refreshed_token)

    # ── Register Blueprints ─────────────────────────────
    from .auth_router import bp as auth_bp
    from .bookings_router import bp as bookings_bp
    from .catalog_router import bp as catalog_bp
    from .branches_router import bp as branches_bp
    from .employees_router import bp as employees_bp
    from .customers_router import bp as customers_bp
    from .dashboard_router import bp as dashboard_bp
    from .marketing_router import bp as marketing_bp
    from .settings_router import bp as settings_bp
    from .tasks_router import bp as tasks_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(bookings_bp, url_prefix="/bookings")
    app.register_blueprint(catalog_bp, url_prefix="/products")
    app.register_blueprint(branches_bp, url_prefix="/branches")
    app.register_blueprint(employees_bp, url_prefix="/employees")
    app.register_blueprint(customers_bp, url_prefix="/customers")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(marketing_bp, url_prefix="/marketing")
    app.register_blueprint(settings_bp, url_prefix="/settings")
    app.register_blueprint(tasks_bp, url_prefix="/tasks")

    # ── Startup routine ─────────────────────────────────
    if app.config["BOOTSTRAP"]:
        _run_bootstrap(app)

    _register_commands(app)

    # ── Root health check ───────────────────────────────
    @app.route("/health", methods=["GET"])
    def health_root():
        return {"ok": True, "status": "ok", "service": "Blackbird POS Backend"}, 200

    return app


def _run_bootstrap(app):
    from .bootstrap import bootstrap
    create_all()
    with get_session() as s:
        bootstrap(
            s,
            admin_email=app.config.get("ADMIN_EMAIL"),
            admin_password=app.config.get("ADMIN_PASSWORD"),
            admin_name=app.config.get("ADMIN_NAME"),
        )


# ─────────────────────────────────────────────────────────────
# CLI (flask --app wsgi <command>)
# ─────────────────────────────────────────────────────────────
def _register_commands(app):
    @app.cli.command("bootstrap")
    def bootstrap_command():
        """Create tables and seed admin, default product and settings."""
        _run_bootstrap(app)
        click.echo("bootstrap done")

    @app.cli.command("run-reminders")
    def run_reminders_command():
        """Send due check-up reminders once."""
        from .reminders import run_reminder_job
        summary = run_reminder_job()
        click.echo(f"reminders: {summary}")
