from __future__ import annotations

import re
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session

from app.registry.audit import record_event
from app.registry.constants import ROLE_ADMIN
from app.registry.db import db_session
from app.registry.models import User
from app.registry.modules.users.service import authenticate, create_user, validate_user_payload
from app.registry.rbac import require_role
from app.registry.utils import current_user, json_error, request_json_object

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9-]{1,64}")


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def reset_login_attempts() -> None:
    _login_attempts.clear()


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        incoming = request.headers.get("X-Request-ID") or ""
        # Stored on audit rows (String(64)); anything else gets a fresh id.
        g.request_id = incoming if _REQUEST_ID_RE.fullmatch(incoming) else uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login():
    payload = request_json_object() or {}
    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not username.strip() or not isinstance(password, str) or not password:
        return jsonify({"ok": False, "message": "Username and password are required."}), 400

    username = username.strip()
    ip = request.remote_addr or "unknown"
    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit (ip=%s username=%s)", ip, username)
        return jsonify({"ok": False, "message": "Too many login attempts. Please wait 5 minutes."}), 429
    _record_attempt(ip)

    s = db_session()
    user = authenticate(s, username, password)
    if not user:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=username[:64],
            metadata={"username": username},
        )
        s.commit()
        current_app.logger.info("Failed login (username=%s request_id=%s)", username, g.request_id)
        return jsonify({"ok": False, "message": "Invalid username or password."}), 400

    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    _login_attempts[ip].clear()
    g.current_user = user
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    current_app.logger.info("Login ok (username=%s)", user.username)
    return jsonify({"ok": True, "message": "Login successful.", "user": user.to_dict()})


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"ok": True, "message": "Logged out."})


@bp.get("/user")
def get_user():
    user = getattr(g, "current_user", None)
    if not user:
        return jsonify({"ok": False, "message": "Not logged in."}), 401
    return jsonify(user.to_dict())


@bp.post("/register")
@require_role(ROLE_ADMIN)
def register():
    payload = request_json_object()
    if payload is None:
        return json_error("Request body must be a JSON object.", 400)

    errors = validate_user_payload(payload)
    if errors:
        return json_error("Invalid data: " + " ".join(errors), 400, details=errors)

    s = db_session()
    try:
        user = create_user(s, payload, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify({"message": "User created.", "user": user.to_dict()}), 201
