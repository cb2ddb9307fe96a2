import logging
import os

from flask import Flask, current_app, jsonify, send_from_directory
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect
from sqlalchemy.exc import InterfaceError, OperationalError
from werkzeug.exceptions import HTTPException

db = SQLAlchemy()

from .errors import AppError, StorageUnavailable  # noqa: E402
from .models import User  # noqa: E402
from .shared.constants import ENTRY_KINDS, SUPER_ADMIN  # noqa: E402
from .shared.forms_layout import FORM_TEMPLATES  # noqa: E402


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    DB_USER = os.getenv("DB_USER", "tkd")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "tkd")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = int(
        os.getenv("MAX_CONTENT_LENGTH", str(5 * 1024 * 1024))
    )
    app.config["DEPLOY_ENV"] = os.getenv("DEPLOY_ENV", "development")
    app.config["ENTRY_MAX_ATTEMPTS"] = int(os.getenv("ENTRY_MAX_ATTEMPTS", "3"))
    app.config["TOKEN_TTL_HOURS"] = int(os.getenv("TOKEN_TTL_HOURS", "24"))
    app.config["UPLOAD_ROOT"] = os.getenv(
        "UPLOAD_ROOT", os.path.join(app.instance_path, "uploads")
    )

    template_dir = os.getenv(
        "TEMPLATE_DIR", os.path.join(app.root_path, "assets", "templates")
    )
    app.config["TEMPLATE_DIR"] = template_dir
    app.config["FORM_TEMPLATES"] = {
        template_id: os.getenv(
            f"{template_id.upper()}_TEMPLATE_PATH",
            os.path.join(template_dir, spec["filename"]),
        )
        for template_id, spec in FORM_TEMPLATES.items()
    }

    db.init_app(app)

    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(OperationalError)
    @app.errorhandler(InterfaceError)
    def handle_storage_error(exc):
        db.session.rollback()
        current_app.logger.error("[DB] storage unavailable: %s", exc)
        err = StorageUnavailable()
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("[ERROR] unhandled %s", type(exc).__name__)
        return jsonify({"success": False, "message": "Something went wrong"}), 500

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return jsonify({"success": True, "status": "ok"})

    kinds = ", ".join(ENTRY_KINDS)

    @app.get(f"/uploads/<any({kinds}):kind>/<path:filename>")
    def uploaded_form(kind: str, filename: str):
        directory = os.path.join(app.config["UPLOAD_ROOT"], kind)
        return send_from_directory(directory, filename)

    from .routes.auth import bp as auth_bp
    from .routes.entries import bp as entries_bp
    from .routes.exports import bp as exports_bp
    from .routes.dashboard import bp as dashboard_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(entries_bp)
    app.register_blueprint(exports_bp)
    app.register_blueprint(dashboard_bp)

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_admin_safely()

    return app


def seed_initial_admin_safely() -> None:
    """Seed a super admin from FIRST_ADMIN_EMAIL if the users table is empty."""

    email = (os.getenv("FIRST_ADMIN_EMAIL") or "").strip().lower()
    password = os.getenv("FIRST_ADMIN_PASSWORD") or ""
    if not email or not password:
        return
    try:
        if db.engine.url.drivername.startswith("sqlite"):
            return
        if "users" not in inspect(db.engine).get_table_names():
            logging.info("admin seed skipped (users table missing)")
            return
        if db.session.query(User).count() > 0:
            return
        admin = User(email=email, name="Super Admin", role=SUPER_ADMIN)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        logging.info("Seeded super admin %s", email)
    except Exception:
        db.session.rollback()
        logging.exception("seed_initial_admin_safely failed")
