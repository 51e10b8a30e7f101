from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.registry.models import User


def user_has_role(user: User | None, role: str) -> bool:
    if not user:
        return False
    return user.role == role


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def require_role(role: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401, authenticated but wrong role -> 403
            if not user:
                abort(401)
            if not user_has_role(user, role):
                g.missing_role = role
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
