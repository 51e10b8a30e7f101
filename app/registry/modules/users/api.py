from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.registry.constants import ROLE_ADMIN
from app.registry.db import db_session
from app.registry.models import User
from app.registry.modules.users.service import create_user, delete_user, list_users, update_user, validate_user_payload
from app.registry.rbac import require_role
from app.registry.utils import current_user, json_error, request_json_object

bp = Blueprint("users", __name__)


@bp.get("/users")
@require_role(ROLE_ADMIN)
def users_list():
    s = db_session()
    return jsonify([u.to_dict() for u in list_users(s)])


@bp.post("/users")
@require_role(ROLE_ADMIN)
def users_create():
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
    return jsonify(user.to_dict()), 201


@bp.put("/users/<int:user_id>")
@require_role(ROLE_ADMIN)
def users_update(user_id: int):
    s = db_session()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    payload = request_json_object()
    if payload is None:
        return json_error("Request body must be a JSON object.", 400)

    errors = validate_user_payload(payload, partial=True)
    if errors:
        return json_error("Invalid data: " + " ".join(errors), 400, details=errors)

    try:
        update_user(s, user, payload, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify(user.to_dict())


@bp.delete("/users/<int:user_id>")
@require_role(ROLE_ADMIN)
def users_delete(user_id: int):
    s = db_session()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    try:
        delete_user(s, user, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify({"success": True})
