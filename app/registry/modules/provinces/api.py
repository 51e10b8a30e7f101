from __future__ import annotations

import io
import json

from flask import Blueprint, abort, current_app, jsonify, request, send_file

from app.registry.db import db_session
from app.registry.modules.provinces.models import Provincia
from app.registry.modules.provinces.service import (
    create_provincia,
    delete_provincia,
    export_document,
    export_filename,
    import_provincia,
    list_provincias,
    validate_import_document,
    validate_provincia_payload,
)
from app.registry.modules.stakeholders.service import list_stakeholders
from app.registry.rbac import require_login
from app.registry.utils import current_user, json_error, parse_id_list, request_json_object

bp = Blueprint("provinces", __name__)


def _get_provincia_or_404(provincia_id: int) -> Provincia:
    provincia = db_session().get(Provincia, provincia_id)
    if not provincia:
        abort(404)
    return provincia


# ---------- List / Create ----------
@bp.get("/provincias")
@require_login
def provincias_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    return jsonify([p.to_dict() for p in list_provincias(s, search=search or None)])


@bp.post("/provincias")
@require_login
def provincias_create():
    payload = request_json_object() or {}
    errors = validate_provincia_payload(payload)
    if errors:
        return json_error(errors[0], 400, details=errors)

    s = db_session()
    provincia = create_provincia(s, payload, current_user())
    s.commit()
    current_app.logger.info("Provincia created id=%s nombre=%s", provincia.id, provincia.nombre)
    return jsonify(provincia.to_dict()), 201


# ---------- Import ----------
@bp.post("/provincias/import")
@require_login
def provincias_import():
    document = request_json_object()
    if document is None:
        return json_error("Import file must contain a JSON object.", 400)

    s = db_session()
    errors = validate_import_document(s, document)
    if errors:
        return json_error("Invalid import document.", 400, details=errors)

    provincia = import_provincia(s, document, current_user())
    s.commit()
    current_app.logger.info(
        "Provincia imported id=%s nombre=%s stakeholders=%s",
        provincia.id,
        provincia.nombre,
        len(provincia.stakeholders),
    )
    return jsonify(provincia.to_dict()), 201


# ---------- Detail / Delete ----------
@bp.get("/provincias/<int:provincia_id>")
@require_login
def provincia_detail(provincia_id: int):
    return jsonify(_get_provincia_or_404(provincia_id).to_dict())


@bp.delete("/provincias/<int:provincia_id>")
@require_login
def provincia_delete(provincia_id: int):
    s = db_session()
    provincia = _get_provincia_or_404(provincia_id)
    delete_provincia(s, provincia, current_user())
    s.commit()
    return jsonify({"success": True})


# ---------- Export ----------
@bp.get("/provincias/<int:provincia_id>/export")
@require_login
def provincia_export(provincia_id: int):
    provincia = _get_provincia_or_404(provincia_id)
    body = json.dumps(export_document(provincia), ensure_ascii=False, indent=2)
    return send_file(
        io.BytesIO(body.encode("utf-8")),
        mimetype="application/json",
        as_attachment=True,
        download_name=export_filename(provincia),
    )


# ---------- Stakeholders of a province ----------
@bp.get("/provincias/<int:provincia_id>/stakeholders")
@require_login
def provincia_stakeholders(provincia_id: int):
    s = db_session()
    provincia = _get_provincia_or_404(provincia_id)
    try:
        tag_ids = parse_id_list(request.args.getlist("tags"))
    except ValueError as e:
        return json_error(str(e), 400)

    stakeholders = list_stakeholders(
        s,
        provincia_id=provincia.id,
        tag_ids=tag_ids,
        search=(request.args.get("q") or "").strip() or None,
        nivel_influencia=(request.args.get("nivel_influencia") or "").strip() or None,
    )
    return jsonify([sh.to_dict() for sh in stakeholders])
