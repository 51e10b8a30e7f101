from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.registry.db import db_session
from app.registry.modules.tags.models import Tag
from app.registry.modules.tags.service import create_tag, delete_tag, list_tags, update_tag, validate_tag_payload
from app.registry.rbac import require_login
from app.registry.utils import current_user, json_error, request_json_object

bp = Blueprint("tags", __name__)


@bp.get("/tags")
@require_login
def tags_list():
    s = db_session()
    return jsonify([t.to_dict() for t in list_tags(s)])


@bp.post("/tags")
@require_login
def tags_create():
    payload = request_json_object() or {}
    errors = validate_tag_payload(payload)
    if errors:
        return json_error(errors[0], 400, details=errors)

    s = db_session()
    try:
        tag = create_tag(s, payload, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify(tag.to_dict()), 201


@bp.put("/tags/<int:tag_id>")
@require_login
def tag_update(tag_id: int):
    s = db_session()
    tag = s.get(Tag, tag_id)
    if not tag:
        abort(404)

    payload = request_json_object() or {}
    errors = validate_tag_payload(payload)
    if errors:
        return json_error(errors[0], 400, details=errors)

    try:
        update_tag(s, tag, payload, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify(tag.to_dict())


@bp.delete("/tags/<int:tag_id>")
@require_login
def tag_delete(tag_id: int):
    s = db_session()
    tag = s.get(Tag, tag_id)
    if not tag:
        abort(404)
    delete_tag(s, tag, current_user())
    s.commit()
    return jsonify({"success": True})
