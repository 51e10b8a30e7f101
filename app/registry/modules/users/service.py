from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.registry.audit import record_event
from app.registry.constants import (
    PASSWORD_MIN_LENGTH,
    ROLE_ADMIN,
    ROLE_USER,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
    VALID_ROLES,
)
from app.registry.models import User
from app.registry.security import hash_password, verify_password

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def validate_user_payload(payload: dict, partial: bool = False) -> list[str]:
    """
    Validate user creation (partial=False) or update (partial=True) payload.
    On update every field is optional. Returns list of errors.
    """
    errors = []

    username = payload.get("username")
    if username is not None or not partial:
        if not isinstance(username, str) or not username.strip():
            errors.append("Username is required.")
        elif not USERNAME_MIN_LENGTH <= len(username.strip()) <= USERNAME_MAX_LENGTH:
            errors.append(f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters long.")

    password = payload.get("password")
    # Blank password on update means "keep the current one".
    if (password not in (None, "")) or not partial:
        if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
            errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")

    role = payload.get("role")
    if role not in (None, "") and role not in VALID_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")

    return errors


def list_users(s: "Session") -> list[User]:
    return s.query(User).order_by(func.lower(User.username).asc()).all()


def get_user_by_username(s: "Session", username: str) -> User | None:
    return s.query(User).filter(User.username == username.strip()).one_or_none()


def authenticate(s: "Session", username: str, password: str) -> User | None:
    user = get_user_by_username(s, username)
    if not user or not verify_password(user.password_hash, password):
        return None
    return user


def _admin_count(s: "Session") -> int:
    return s.query(func.count(User.id)).filter(User.role == ROLE_ADMIN).scalar() or 0


def create_user(s: "Session", payload: dict, actor: User | None) -> User:
    """Create a user. Raises ValueError if the username is taken."""
    username = payload["username"].strip()
    if get_user_by_username(s, username):
        raise ValueError("Username already exists.")

    user = User(
        username=username,
        password_hash=hash_password(payload["password"]),
        role=payload.get("role") or ROLE_USER,
        created_at=datetime.utcnow(),
    )
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": user.username, "role": user.role},
    )
    return user


def update_user(s: "Session", user: User, payload: dict, actor: User) -> User:
    """
    Update username/password/role. Raises ValueError on a taken username
    or when the change would leave no admin.
    """
    changes: dict = {}

    new_username = (payload.get("username") or "").strip()
    if new_username and new_username != user.username:
        other = get_user_by_username(s, new_username)
        if other and other.id != user.id:
            raise ValueError("Username already exists.")
        changes["username"] = {"old": user.username, "new": new_username}
        user.username = new_username

    new_role = payload.get("role") or None
    if new_role and new_role != user.role:
        if user.role == ROLE_ADMIN and _admin_count(s) <= 1:
            raise ValueError("Cannot remove the admin role from the last administrator.")
        changes["role"] = {"old": user.role, "new": new_role}
        user.role = new_role

    new_password = payload.get("password")
    if new_password:
        user.password_hash = hash_password(new_password)
        changes["password"] = "changed"

    if changes:
        record_event(
            s,
            actor=actor,
            action="user.edit",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"username": user.username, "changes": changes},
        )
    return user


def delete_user(s: "Session", user: User, actor: User) -> None:
    if user.id == actor.id:
        raise ValueError("You cannot delete your own account.")
    if user.role == ROLE_ADMIN and _admin_count(s) <= 1:
        raise ValueError("Cannot delete the last administrator.")

    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": user.username},
    )
    s.delete(user)
