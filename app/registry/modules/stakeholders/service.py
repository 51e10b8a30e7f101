from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.registry.audit import record_event
from app.registry.constants import (
    CONTACT_FIELDS,
    LEVEL_MAX_LENGTH,
    LINKEDIN_ENTRY_FIELDS,
    LINKEDIN_LIST_FIELDS,
    LINKEDIN_TEXT_FIELDS,
    STAKEHOLDER_LEVEL_FIELDS,
    STAKEHOLDER_TEXT_FIELDS,
)
from app.registry.modules.provinces.models import Provincia
from app.registry.modules.stakeholders.models import Stakeholder
from app.registry.modules.tags.models import Tag
from app.registry.modules.tags.service import resolve_tags
from app.registry.utils import clean_str, parse_id, parse_id_list

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.registry.models import User


# ---------- Normalization ----------

def normalize_contact(raw: dict | None) -> dict:
    """Keep known contact keys with non-blank values."""
    out: dict[str, str] = {}
    for key in CONTACT_FIELDS:
        value = clean_str((raw or {}).get(key))
        if value:
            out[key] = value
    return out


def normalize_linkedin_entry(entry: Any) -> dict:
    """experiencia/formacion entry with all six keys; missing or null -> ""."""
    entry = entry if isinstance(entry, dict) else {}
    return {key: str(entry.get(key) or "") for key in LINKEDIN_ENTRY_FIELDS}


def normalize_linkedin(raw: dict | None) -> dict:
    raw = raw or {}
    out: dict[str, Any] = {}
    for key in LINKEDIN_TEXT_FIELDS:
        value = clean_str(raw.get(key))
        if value:
            out[key] = value
    for key in LINKEDIN_LIST_FIELDS:
        out[key] = [normalize_linkedin_entry(e) for e in (raw.get(key) or [])]
    return out


def extract_tag_ids(raw: Any) -> list[int]:
    """
    Tag references from a payload: ids ([1, "2"]) or serialized tags ([{"id": 1, "name": ...}]).
    Raises ValueError on anything else.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("Tags must be a list of tag ids.")
    flat = [item.get("id") if isinstance(item, dict) else item for item in raw]
    if any(item is None for item in flat):
        raise ValueError("Tags must be a list of tag ids.")
    return parse_id_list(flat)


# ---------- Validation ----------

def _validate_linkedin(raw: Any) -> list[str]:
    errors = []
    if raw is None:
        return errors
    if not isinstance(raw, dict):
        return ["datos_especificos_linkedin must be an object."]
    for key in LINKEDIN_LIST_FIELDS:
        entries = raw.get(key)
        if entries is None:
            continue
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            errors.append(f"datos_especificos_linkedin.{key} must be a list of objects.")
    return errors


def validate_stakeholder_payload(s: "Session", payload: dict, check_provincia: bool = True) -> list[str]:
    """
    Validate stakeholder creation/update payload. Returns list of errors.
    check_provincia=False skips the province reference (imports create the province afterwards).
    """
    errors = []

    if check_provincia:
        try:
            provincia_id = parse_id(payload.get("provincia_id"))
        except ValueError:
            provincia_id = None
        if provincia_id is None:
            errors.append("provincia_id is required and must be an integer.")
        elif s.get(Provincia, provincia_id) is None:
            errors.append(f"Province {provincia_id} does not exist.")

    nombre = payload.get("nombre")
    if not isinstance(nombre, str) or not nombre.strip():
        errors.append("Name (nombre) is required.")

    contact = payload.get("datos_contacto")
    if contact is not None and not isinstance(contact, dict):
        errors.append("datos_contacto must be an object.")

    errors.extend(_validate_linkedin(payload.get("datos_especificos_linkedin")))

    for field in STAKEHOLDER_TEXT_FIELDS:
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            errors.append(f"{field} must be text.")

    for field in STAKEHOLDER_LEVEL_FIELDS:
        value = payload.get(field)
        if value is not None and not isinstance(value, (str, int)):
            errors.append(f"{field} must be text.")
        elif len(clean_str(value) or "") > LEVEL_MAX_LENGTH:
            errors.append(f"{field} must be at most {LEVEL_MAX_LENGTH} characters.")

    personalidad = payload.get("personalidad")
    if personalidad is not None and not isinstance(personalidad, dict):
        errors.append("personalidad must be an object.")

    if "tags" in payload:
        try:
            resolve_tags(s, extract_tag_ids(payload.get("tags")))
        except ValueError as e:
            errors.append(str(e))

    return errors


# ---------- Queries ----------

def list_stakeholders(
    s: "Session",
    *,
    provincia_id: int | None = None,
    tag_ids: list[int] | None = None,
    search: str | None = None,
    nivel_influencia: str | None = None,
) -> list[Stakeholder]:
    """Stakeholders sorted by name. A stakeholder matches tag_ids only when it carries all of them."""
    q = s.query(Stakeholder)
    if provincia_id is not None:
        q = q.filter(Stakeholder.provincia_id == provincia_id)
    for tag_id in tag_ids or []:
        q = q.filter(Stakeholder.tags.any(Tag.id == tag_id))
    if search:
        q = q.filter(Stakeholder.nombre.icontains(search, autoescape=True))
    if nivel_influencia and nivel_influencia != "all":
        q = q.filter(Stakeholder.nivel_influencia == nivel_influencia)
    return q.order_by(func.lower(Stakeholder.nombre).asc(), Stakeholder.id.asc()).all()


# ---------- Mutations ----------

def _apply_payload(s: "Session", stakeholder: Stakeholder, payload: dict) -> None:
    stakeholder.provincia_id = parse_id(payload["provincia_id"])
    stakeholder.nombre = payload["nombre"].strip()
    stakeholder.datos_contacto = normalize_contact(payload.get("datos_contacto"))
    for field in STAKEHOLDER_TEXT_FIELDS:
        setattr(stakeholder, field, clean_str(payload.get(field)))
    for field in STAKEHOLDER_LEVEL_FIELDS:
        setattr(stakeholder, field, clean_str(payload.get(field)))
    stakeholder.datos_especificos_linkedin = normalize_linkedin(payload.get("datos_especificos_linkedin"))
    # Managed separately; only replaced when the payload carries them.
    if "personalidad" in payload:
        stakeholder.personalidad = payload.get("personalidad")
    if "tags" in payload:
        stakeholder.tags = resolve_tags(s, extract_tag_ids(payload.get("tags")))


def create_stakeholder(s: "Session", payload: dict, user: "User") -> Stakeholder:
    """Create a new stakeholder. Payload must already be validated."""
    now = datetime.utcnow()
    stakeholder = Stakeholder(created_at=now, updated_at=now)
    _apply_payload(s, stakeholder, payload)
    s.add(stakeholder)
    s.flush()

    record_event(
        s,
        actor=user,
        action="stakeholder.create",
        entity_type="Stakeholder",
        entity_id=str(stakeholder.id),
        metadata={"nombre": stakeholder.nombre, "provincia_id": stakeholder.provincia_id},
    )
    return stakeholder


def update_stakeholder(s: "Session", stakeholder: Stakeholder, payload: dict, user: "User") -> Stakeholder:
    """Replace the stakeholder's fields with the payload."""
    before = stakeholder.to_dict()
    _apply_payload(s, stakeholder, payload)
    s.flush()
    after = stakeholder.to_dict()

    changes = {
        key: {"old": before.get(key), "new": after.get(key)}
        for key in after
        if key not in ("updated_at", "created_at") and before.get(key) != after.get(key)
    }
    if changes:
        stakeholder.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="stakeholder.edit",
            entity_type="Stakeholder",
            entity_id=str(stakeholder.id),
            metadata={"nombre": stakeholder.nombre, "changed_fields": sorted(changes)},
        )
    return stakeholder


def delete_stakeholder(s: "Session", stakeholder: Stakeholder, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="stakeholder.delete",
        entity_type="Stakeholder",
        entity_id=str(stakeholder.id),
        metadata={"nombre": stakeholder.nombre, "provincia_id": stakeholder.provincia_id},
    )
    s.delete(stakeholder)


def set_stakeholder_tags(s: "Session", stakeholder: Stakeholder, tag_ids: list[int], user: "User") -> Stakeholder:
    """Replace the stakeholder's tag set. Raises ValueError on unknown tag ids."""
    tags = resolve_tags(s, tag_ids)
    old_ids = sorted(t.id for t in stakeholder.tags)
    stakeholder.tags = tags
    new_ids = sorted(t.id for t in tags)
    if old_ids != new_ids:
        stakeholder.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="stakeholder.tags",
            entity_type="Stakeholder",
            entity_id=str(stakeholder.id),
            metadata={"old": old_ids, "new": new_ids},
        )
    return stakeholder


def import_linkedin(s: "Session", stakeholder: Stakeholder, document: dict, user: "User") -> Stakeholder:
    """
    Merge a LinkedIn JSON document into datos_especificos_linkedin.
    Keys present in the document replace the stored ones; list entries are normalized.
    """
    current = normalize_linkedin(stakeholder.datos_especificos_linkedin)
    incoming = normalize_linkedin(document)
    for key in LINKEDIN_LIST_FIELDS:
        if key in document:
            current[key] = incoming[key]
    for key in LINKEDIN_TEXT_FIELDS:
        if key in document:
            if key in incoming:
                current[key] = incoming[key]
            else:
                current.pop(key, None)
    stakeholder.datos_especificos_linkedin = current
    stakeholder.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="stakeholder.linkedin_import",
        entity_type="Stakeholder",
        entity_id=str(stakeholder.id),
        metadata={
            "experiencia": len(current.get("experiencia", [])),
            "formacion": len(current.get("formacion", [])),
        },
    )
    return stakeholder


def set_personalidad(s: "Session", stakeholder: Stakeholder, document: dict, user: "User") -> Stakeholder:
    stakeholder.personalidad = document
    stakeholder.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="stakeholder.personalidad",
        entity_type="Stakeholder",
        entity_id=str(stakeholder.id),
        metadata={"keys": sorted(document)[:20]},
    )
    return stakeholder


def contact_export_document(stakeholder: Stakeholder) -> dict:
    return {
        "datos_contacto": stakeholder.datos_contacto or {},
        "datos_linkedin": stakeholder.datos_especificos_linkedin or {},
    }
