from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.registry.audit import record_event
from app.registry.modules.provinces.models import Provincia
from app.registry.modules.stakeholders.service import create_stakeholder, validate_stakeholder_payload
from app.registry.modules.tags.service import get_or_create_tags
from app.registry.utils import clean_str, slugify_filename

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.registry.models import User

# Stakeholder keys carried by export documents that an import must not reuse.
_IMPORT_IGNORED_KEYS = ("id", "provincia_id", "created_at", "updated_at", "tags")


def validate_provincia_payload(payload: dict) -> list[str]:
    """Validate province creation payload. Returns list of errors."""
    nombre = payload.get("nombre")
    if not isinstance(nombre, str) or not nombre.strip():
        return ["The province name (nombre) is required and must be valid text."]
    return []


def list_provincias(s: "Session", search: str | None = None) -> list[Provincia]:
    q = s.query(Provincia)
    if search:
        q = q.filter(Provincia.nombre.icontains(search, autoescape=True))
    return q.order_by(func.lower(Provincia.nombre).asc(), Provincia.id.asc()).all()


def create_provincia(s: "Session", payload: dict, user: "User") -> Provincia:
    provincia = Provincia(nombre=payload["nombre"].strip())
    s.add(provincia)
    s.flush()

    record_event(
        s,
        actor=user,
        action="provincia.create",
        entity_type="Provincia",
        entity_id=str(provincia.id),
        metadata={"nombre": provincia.nombre},
    )
    return provincia


def delete_provincia(s: "Session", provincia: Provincia, user: "User") -> None:
    """Delete a province together with its stakeholders and their tag assignments."""
    record_event(
        s,
        actor=user,
        action="provincia.delete",
        entity_type="Provincia",
        entity_id=str(provincia.id),
        metadata={"nombre": provincia.nombre, "stakeholders": len(provincia.stakeholders)},
    )
    s.delete(provincia)


def export_filename(provincia: Provincia) -> str:
    slug = slugify_filename(provincia.nombre)
    return f"provincia_{slug}.json" if slug else f"provincia_{provincia.id}.json"


def export_document(provincia: Provincia) -> dict:
    doc = provincia.to_dict(include_stakeholders=True)
    doc["exported_at"] = datetime.utcnow().isoformat()
    return doc


def validate_import_document(s: "Session", document: dict) -> list[str]:
    """
    Validate an export-shaped document ({nombre, stakeholders: [...]}).
    Stakeholder errors are prefixed with their position in the list.
    """
    errors = validate_provincia_payload(document)
    stakeholders = document.get("stakeholders")
    if stakeholders is None:
        return errors
    if not isinstance(stakeholders, list):
        errors.append("stakeholders must be a list.")
        return errors

    for i, item in enumerate(stakeholders):
        if not isinstance(item, dict):
            errors.append(f"stakeholders[{i}]: must be an object.")
            continue
        tags = item.get("tags")
        if tags is not None and not isinstance(tags, list):
            errors.append(f"stakeholders[{i}]: tags must be a list.")
        candidate = {k: v for k, v in item.items() if k not in _IMPORT_IGNORED_KEYS}
        for message in validate_stakeholder_payload(s, candidate, check_provincia=False):
            errors.append(f"stakeholders[{i}]: {message}")
    return errors


def _import_tag_names(raw: list | None) -> list[str]:
    names = []
    for item in raw or []:
        if isinstance(item, dict):
            item = item.get("name")
        name = clean_str(item)
        if name:
            names.append(name)
    return names


def import_provincia(s: "Session", document: dict, user: "User") -> Provincia:
    """Create a new province with the document's stakeholders. Tags are matched by name."""
    provincia = create_provincia(s, {"nombre": document["nombre"]}, user)
    created = 0
    for item in document.get("stakeholders") or []:
        payload = {k: v for k, v in item.items() if k not in _IMPORT_IGNORED_KEYS}
        payload["provincia_id"] = provincia.id
        stakeholder = create_stakeholder(s, payload, user)
        stakeholder.tags = get_or_create_tags(s, _import_tag_names(item.get("tags")), user)
        created += 1
    s.flush()
    s.refresh(provincia)

    record_event(
        s,
        actor=user,
        action="provincia.import",
        entity_type="Provincia",
        entity_id=str(provincia.id),
        metadata={"nombre": provincia.nombre, "stakeholders": created},
    )
    return provincia
