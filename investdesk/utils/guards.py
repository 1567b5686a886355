# investdesk/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask import abort
from flask_login import login_required, current_user

from ..models import UserRole


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Allow only admins. Returns 403 for every other logged-in role.
    Services repeat this check, so it also holds outside HTTP.
    """
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if getattr(current_user, "role", None) != UserRole.ADMIN:
            abort(403)
        return view(*args, **kwargs)

    return wrapped


def role_required(*allowed_roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Generic role gate:
        @role_required("admin", "member")
        def view(): ...
    """
    allowed = {UserRole(r) for r in allowed_roles}

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if getattr(current_user, "role", None) not in allowed:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator
