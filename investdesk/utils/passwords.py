# investdesk/utils/passwords.py
from __future__ import annotations

from typing import Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from .validation import PASSWORD_MINLEN


# =========================
# Password hashing / verify
# =========================
def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using a strong KDF.
    Werkzeug's scrypt is memory-hard and suitable for production.
    """
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValueError("Password must be a non-empty string.")
    return generate_password_hash(plain_password, method="scrypt")


def verify_password(password_hash: str, plain_password: str) -> bool:
    """Verify plaintext password against stored hash."""
    if not password_hash or not plain_password:
        return False
    return check_password_hash(password_hash, plain_password)


# =========================
# Password policy
# =========================
_PASSWORD_RULES = [
    (lambda s: len(s) >= PASSWORD_MINLEN, f"The password field must be at least {PASSWORD_MINLEN} characters."),
    (lambda s: len(s) <= 255, "The password field must not be greater than 255 characters."),
]


def validate_password(plain_password: str) -> Tuple[bool, str]:
    """
    Returns (ok, message). If ok is False, message explains what to fix.
    """
    if not isinstance(plain_password, str):
        return False, "The password field must be a string."
    if not plain_password.strip():
        return False, "The password field is required."

    for rule, msg in _PASSWORD_RULES:
        if not rule(plain_password):
            return False, msg
    return True, ""
