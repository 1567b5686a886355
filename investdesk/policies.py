# investdesk/policies.py
"""
Authorization rules: one allow/deny decision per (caller, ability, target).

Every service calls ``authorize`` before it reads or writes, so the rules hold
no matter which entry point (HTTP, CLI, shell) reached the service.
Denials carry no reason beyond the generic forbidden message.
"""

from __future__ import annotations

from typing import Callable

from flask import current_app

from .errors import AuthorizationError
from .models import Account, Investor, Payment, User, UserRole

Rule = Callable[[User, object], bool]


def _anyone(caller: User, target: object) -> bool:
    return caller is not None and not caller.is_deleted


def _nobody(caller: User, target: object) -> bool:
    return False


def _admin(caller: User, target: object) -> bool:
    return _anyone(caller, target) and caller.role == UserRole.ADMIN


def _investor_owner(caller: User, investor: Investor) -> bool:
    return _anyone(caller, investor) and investor.is_owned_by(caller)


def _admin_self(caller: User, user: User) -> bool:
    # Admin role gate on user mutations, then the user may only edit themself.
    return _admin(caller, user) and caller.id == user.id


# =========================================================
# Rule tables
# =========================================================
INVESTOR_RULES: dict[str, Rule] = {
    "view_any": _anyone,
    "create": _anyone,
    "create_with_user": _admin,  # also creates a User
    "view": _investor_owner,
    "update": _investor_owner,
    "delete": _investor_owner,
    "restore": _investor_owner,
    "force_delete": _investor_owner,
    "activate": _investor_owner,
    "set_pending": _investor_owner,
}

ACCOUNT_RULES: dict[str, Rule] = {
    "view_any": _anyone,
    "view": _anyone,
    "create": _admin,
    "update": _admin,
    "delete": _admin,
    "activate": _admin,
}

PAYMENT_RULES: dict[str, Rule] = {
    "view_any": _anyone,
    "view": _anyone,
    "create": _admin,
    "update": _admin,
    "delete": _admin,
    "adjust": _admin,
    "allocate": _admin,
}

USER_RULES: dict[str, Rule] = {
    "view_any": _anyone,
    "view": _anyone,
    "create": _admin,
    "update": _admin_self,
    # Users are never deleted, not even by themselves.
    "delete": _nobody,
    "restore": _nobody,
    "force_delete": _nobody,
}

POLICIES: dict[type, dict[str, Rule]] = {
    Investor: INVESTOR_RULES,
    Account: ACCOUNT_RULES,
    Payment: PAYMENT_RULES,
    User: USER_RULES,
}


def _rules_for(target: object) -> dict[str, Rule]:
    model = target if isinstance(target, type) else type(target)
    try:
        return POLICIES[model]
    except KeyError:
        raise LookupError(f"No policy registered for {model.__name__}") from None


def can(caller: User | None, ability: str, target: object) -> bool:
    """``target`` is a model class for class-level abilities (view_any, create) or a row."""
    if caller is None:
        return False
    rule = _rules_for(target).get(ability, _nobody)
    return bool(rule(caller, target))


def authorize(caller: User | None, ability: str, target: object) -> None:
    if can(caller, ability, target):
        return
    model = target if isinstance(target, type) else type(target)
    current_app.logger.warning(
        "Denied %s on %s (target id=%s) for user id=%s",
        ability,
        model.__name__,
        getattr(target, "id", None) if not isinstance(target, type) else None,
        getattr(caller, "id", None),
    )
    raise AuthorizationError()
