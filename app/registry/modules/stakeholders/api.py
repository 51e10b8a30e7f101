from __future__ import annotations

import io
import json
from datetime import date

from flask import Blueprint, abort, current_app, jsonify, request, send_file

from app.registry.db import db_session
from app.registry.modules.stakeholders.export import XLSX_MIMETYPE, build_stakeholders_workbook
from app.registry.modules.stakeholders.models import Stakeholder
from app.registry.modules.stakeholders.service import (
    contact_export_document,
    create_stakeholder,
    delete_stakeholder,
    import_linkedin,
    list_stakeholders,
    set_personalidad,
    set_stakeholder_tags,
    update_stakeholder,
    validate_stakeholder_payload,
)
from app.registry.rbac import require_login
from app.registry.utils import current_user, json_error, parse_id_list, request_json_object, slugify_filename

bp = Blueprint("stakeholders", __name__)


def _get_stakeholder_or_404(stakeholder_id: int) -> Stakeholder:
    stakeholder = db_session().get(Stakeholder, stakeholder_id)
    if not stakeholder:
        abort(404)
    return stakeholder


# ---------- List ----------
@bp.get("/stakeholders")
@require_login
def stakeholders_list():
    s = db_session()
    try:
        tag_ids = parse_id_list(request.args.getlist("tags"))
        provincia_ids = parse_id_list(request.args.getlist("provincia_id"))
    except ValueError as e:
        return json_error(str(e), 400)

    stakeholders = list_stakeholders(
        s,
        provincia_id=provincia_ids[0] if provincia_ids else None,
        tag_ids=tag_ids,
        search=(request.args.get("q") or "").strip() or None,
    )
    return jsonify([sh.to_dict() for sh in stakeholders])


# ---------- Create ----------
@bp.post("/stakeholders")
@require_login
def stakeholders_create():
    payload = request_json_object()
    if payload is None:
        return json_error("Request body must be a JSON object.", 400)

    s = db_session()
    errors = validate_stakeholder_payload(s, payload)
    if errors:
        return json_error(errors[0], 400, details=errors)

    stakeholder = create_stakeholder(s, payload, current_user())
    s.commit()
    current_app.logger.info("Stakeholder created id=%s provincia_id=%s", stakeholder.id, stakeholder.provincia_id)
    return jsonify(stakeholder.to_dict()), 201


# ---------- Excel export ----------
@bp.post("/stakeholders/export")
@require_login
def stakeholders_export_xlsx():
    payload = request_json_object() or {}
    raw_ids = payload.get("ids")
    if not isinstance(raw_ids, list) or not raw_ids:
        return json_error("Select at least one stakeholder to export (ids).", 400)
    try:
        ids = parse_id_list(raw_ids)
    except ValueError as e:
        return json_error(str(e), 400)
    if not ids:
        return json_error("Select at least one stakeholder to export (ids).", 400)

    s = db_session()
    stakeholders = s.query(Stakeholder).filter(Stakeholder.id.in_(ids)).all()
    if not stakeholders:
        abort(404)
    # Keep the selection order.
    position = {sid: i for i, sid in enumerate(ids)}
    stakeholders.sort(key=lambda sh: position[sh.id])

    data = build_stakeholders_workbook(stakeholders)
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"stakeholders_{date.today().isoformat()}.xlsx",
    )


# ---------- Update / Delete ----------
@bp.put("/stakeholders/<int:stakeholder_id>")
@require_login
def stakeholder_update(stakeholder_id: int):
    s = db_session()
    stakeholder = _get_stakeholder_or_404(stakeholder_id)

    payload = request_json_object()
    if payload is None:
        return json_error("Request body must be a JSON object.", 400)
    errors = validate_stakeholder_payload(s, payload)
    if errors:
        return json_error(errors[0], 400, details=errors)

    update_stakeholder(s, stakeholder, payload, current_user())
    s.commit()
    return jsonify(stakeholder.to_dict())


@bp.delete("/stakeholders/<int:stakeholder_id>")
@require_login
def stakeholder_delete(stakeholder_id: int):
    s = db_session()
    stakeholder = _get_stakeholder_or_404(stakeholder_id)
    delete_stakeholder(s, stakeholder, current_user())
    s.commit()
    return jsonify({"success": True})


# ---------- Tags ----------
@bp.post("/stakeholders/<int:stakeholder_id>/tags")
@require_login
def stakeholder_set_tags(stakeholder_id: int):
    s = db_session()
    stakeholder = _get_stakeholder_or_404(stakeholder_id)

    payload = request_json_object() or {}
    raw = payload.get("tag_ids")
    if not isinstance(raw, list):
        return json_error("tag_ids must be a list of tag ids.", 400)
    try:
        tag_ids = parse_id_list(raw)
        set_stakeholder_tags(s, stakeholder, tag_ids, current_user())
    except ValueError as e:
        s.rollback()
        return json_error(str(e), 400)
    s.commit()
    return jsonify(stakeholder.to_dict())


# ---------- Contact / LinkedIn / personality documents ----------
@bp.get("/stakeholders/<int:stakeholder_id>/contact-export")
@require_login
def stakeholder_contact_export(stakeholder_id: int):
    stakeholder = _get_stakeholder_or_404(stakeholder_id)
    body = json.dumps(contact_export_document(stakeholder), ensure_ascii=False, indent=2)
    return send_file(
        io.BytesIO(body.encode("utf-8")),
        mimetype="application/json",
        as_attachment=True,
        download_name=f"contacto_linkedin_{slugify_filename(stakeholder.nombre) or stakeholder.id}.json",
    )


@bp.post("/stakeholders/<int:stakeholder_id>/linkedin-import")
@require_login
def stakeholder_linkedin_import(stakeholder_id: int):
    s = db_session()
    stakeholder = _get_stakeholder_or_404(stakeholder_id)

    document = request_json_object()
    if document is None:
        return json_error("The LinkedIn file is not a valid JSON object.", 400)
    for key in ("experiencia", "formacion"):
        if document.get(key) is not None and not isinstance(document.get(key), list):
            return json_error(f"{key} must be a list.", 400)

    import_linkedin(s, stakeholder, document, current_user())
    s.commit()
    return jsonify(stakeholder.to_dict())


@bp.put("/stakeholders/<int:stakeholder_id>/personalidad")
@require_login
def stakeholder_personalidad(stakeholder_id: int):
    s = db_session()
    stakeholder = _get_stakeholder_or_404(stakeholder_id)

    document = request_json_object()
    if document is None:
        return json_error("The personality file is not a valid JSON object.", 400)

    set_personalidad(s, stakeholder, document, current_user())
    s.commit()
    return jsonify(stakeholder.to_dict())
