import logging

from flask import Flask, g, request
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect
from werkzeug.exceptions import HTTPException

from app.registry.config import load_config
from app.registry.db import init_db, teardown_db_session
from app.registry.routes import bp as routes_bp
from app.registry.auth import bp as auth_bp, load_current_user
from app.registry.modules.provinces.api import bp as provinces_bp
from app.registry.modules.stakeholders.api import bp as stakeholders_bp
from app.registry.modules.tags.api import bp as tags_bp
from app.registry.modules.users.api import bp as users_bp
from app.registry.utils import json_error

REQUIRED_TABLES = ("users", "provincias", "stakeholders", "tags", "stakeholder_tags", "audit_events")

_ERROR_MESSAGES = {
    400: "Bad request.",
    401: "Authentication required.",
    403: "You do not have permission to perform this action.",
    404: "Resource not found.",
    405: "Method not allowed.",
    413: "Request body too large.",
    429: "Too many requests.",
}


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO"), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False  # keep model field order in responses
    _configure_logging(app)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(provinces_bp, url_prefix="/api")
    app.register_blueprint(stakeholders_bp, url_prefix="/api")
    app.register_blueprint(tags_bp, url_prefix="/api")
    app.register_blueprint(users_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # Schema health (lean): checked on the first /api request, once the DB is reachable.
    app.config.setdefault("_schema_health_ok", None)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> bool:
        missing: list[str] = []
        try:
            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = [t for t in REQUIRED_TABLES if not insp.has_table(t)]
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)
            return False

        if missing:
            app.config["_schema_health_missing"] = missing
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
            return False
        app.config["_schema_health_ok"] = True
        return True

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if not request.path.startswith("/api") or app.config.get("_schema_health_ok"):
            return None
        if _run_schema_health_check():
            return None
        return json_error(
            "Database schema out of date.",
            500,
            details=app.config.get("_schema_health_missing") or None,
        )

    @app.after_request
    def _echo_request_id(response):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        code = e.code or 500
        if code == 403:
            app.logger.warning(
                "Forbidden: missing_role=%s path=%s request_id=%s",
                getattr(g, "missing_role", None),
                request.path,
                getattr(g, "request_id", None),
            )
        return json_error(_ERROR_MESSAGES.get(code, e.name), code)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        return json_error("Internal server error.", 500, details=str(e))

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
