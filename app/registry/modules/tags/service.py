from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.registry.audit import record_event
from app.registry.constants import TAG_NAME_MAX_LENGTH
from app.registry.modules.tags.models import Tag
from app.registry.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.registry.models import User


def validate_tag_payload(payload: dict) -> list[str]:
    """Validate tag creation/update payload. Returns list of errors."""
    errors = []
    raw = payload.get("name")
    if raw is not None and not isinstance(raw, str):
        errors.append("Tag name must be a string.")
        return errors
    name = clean_str(raw)
    if not name:
        errors.append("Tag name is required.")
    elif len(name) > TAG_NAME_MAX_LENGTH:
        errors.append(f"Tag name must be at most {TAG_NAME_MAX_LENGTH} characters.")
    return errors


def list_tags(s: "Session") -> list[Tag]:
    return s.query(Tag).order_by(func.lower(Tag.name).asc()).all()


def find_tag_by_name(s: "Session", name: str, exclude_id: int | None = None) -> Tag | None:
    """Case-insensitive lookup on the trimmed name."""
    q = s.query(Tag).filter(func.lower(Tag.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Tag.id != exclude_id)
    return q.first()


def resolve_tags(s: "Session", tag_ids: list[int]) -> list[Tag]:
    """Load tags by id; raises ValueError listing ids that do not exist."""
    if not tag_ids:
        return []
    tags = s.query(Tag).filter(Tag.id.in_(tag_ids)).all()
    found = {t.id for t in tags}
    missing = [i for i in tag_ids if i not in found]
    if missing:
        raise ValueError(f"Unknown tag id(s): {', '.join(str(i) for i in missing)}")
    return tags


def create_tag(s: "Session", payload: dict, user: "User") -> Tag:
    name = clean_str(payload.get("name")) or ""
    if find_tag_by_name(s, name):
        raise ValueError(f"A tag named '{name}' already exists.")

    tag = Tag(name=name)
    s.add(tag)
    s.flush()

    record_event(s, actor=user, action="tag.create", entity_type="Tag", entity_id=str(tag.id), metadata={"name": name})
    return tag


def update_tag(s: "Session", tag: Tag, payload: dict, user: "User") -> Tag:
    name = clean_str(payload.get("name")) or ""
    if find_tag_by_name(s, name, exclude_id=tag.id):
        raise ValueError(f"A tag named '{name}' already exists.")

    if name != tag.name:
        record_event(
            s,
            actor=user,
            action="tag.edit",
            entity_type="Tag",
            entity_id=str(tag.id),
            metadata={"changes": {"name": {"old": tag.name, "new": name}}},
        )
        tag.name = name
    return tag


def delete_tag(s: "Session", tag: Tag, user: "User") -> None:
    record_event(s, actor=user, action="tag.delete", entity_type="Tag", entity_id=str(tag.id), metadata={"name": tag.name})
    # Assignment rows go with the tag (secondary rows + ON DELETE CASCADE).
    s.delete(tag)


def get_or_create_tags(s: "Session", names: list[str], user: "User") -> list[Tag]:
    """Match tags by name (case-insensitive), creating the missing ones. Used by imports."""
    tags: list[Tag] = []
    seen: set[str] = set()
    for raw in names:
        name = clean_str(raw)
        if not name:
            continue
        name = name[:TAG_NAME_MAX_LENGTH]
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        tag = find_tag_by_name(s, name)
        if tag is None:
            tag = create_tag(s, {"name": name}, user)
        tags.append(tag)
    return tags
