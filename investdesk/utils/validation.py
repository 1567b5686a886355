# investdesk/utils/validation.py
from __future__ import annotations

import re
from collections import defaultdict
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from ..errors import ValidationError
from ..extensions import db

# -------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------
NAME_MAXLEN = 255
EMAIL_MAXLEN = 255
MOBILE_MAXLEN = 20
PASSWORD_MINLEN = 8

# Numeric(12, 2) and INTEGER primary keys.
MONEY_MAX = Decimal("9999999999.99")
ID_MAX = 2**31 - 1

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")

TWO_PLACES = Decimal("0.01")


def _label(field: str) -> str:
    # "investments.0.for_month" -> "for month"
    return field.rsplit(".", 1)[-1].replace("_", " ")


def parse_decimal(value: Any) -> Decimal | None:
    """Numeric input (int, float, Decimal or numeric string) -> Decimal, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_month(value: Any) -> str | None:
    """Strict YYYY-MM (month 01-12). Returns the token or None."""
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not _MONTH_RE.match(token):
        return None
    try:
        datetime.strptime(token, "%Y-%m")
    except ValueError:
        return None
    return token


def parse_id(value: Any) -> int | None:
    """Primary key within the INTEGER column range, else None."""
    pk = parse_int(value)
    if pk is None or not 1 <= pk <= ID_MAX:
        return None
    return pk


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        s = str(value).strip()
        if not s:
            return None
        return int(s)
    except (TypeError, ValueError):
        return None


class Validator:
    """
    Collects field-level errors for one submitted payload.

    Each check returns the cleaned value (or None) and records a message on
    failure; ``raise_if_invalid`` then raises a single ValidationError with
    every message, so nothing is written on partial success.
    """

    def __init__(self, data: Mapping[str, Any] | None):
        self.data: Mapping[str, Any] = data or {}
        self.errors: dict[str, list[str]] = defaultdict(list)

    # -------------------------
    # Bookkeeping
    # -------------------------
    def add(self, field: str, message: str) -> None:
        self.errors[field].append(message)

    def has_error(self, field: str) -> bool:
        return bool(self.errors.get(field))

    @property
    def ok(self) -> bool:
        return not any(self.errors.values())

    def raise_if_invalid(self) -> None:
        if not self.ok:
            raise ValidationError(
                {k: v for k, v in self.errors.items() if v},
                old=self.data,
            )

    def _missing(self, field: str, value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    # -------------------------
    # Field checks
    # -------------------------
    def string(
        self,
        field: str,
        *,
        required: bool = True,
        max_len: int | None = None,
        min_len: int | None = None,
        value: Any = ...,
    ) -> str | None:
        raw = self.data.get(field) if value is ... else value
        if self._missing(field, raw):
            if required:
                self.add(field, f"The {_label(field)} field is required.")
            return None
        if not isinstance(raw, str):
            self.add(field, f"The {_label(field)} field must be a string.")
            return None
        s = raw.strip()
        if max_len is not None and len(s) > max_len:
            self.add(field, f"The {_label(field)} field must not be greater than {max_len} characters.")
        if min_len is not None and len(s) < min_len:
            self.add(field, f"The {_label(field)} field must be at least {min_len} characters.")
        return s

    def email(self, field: str, *, required: bool = True, max_len: int = EMAIL_MAXLEN) -> str | None:
        s = self.string(field, required=required, max_len=max_len)
        if s is None:
            return None
        s = s.lower()
        if not _EMAIL_RE.match(s):
            self.add(field, f"The {_label(field)} field must be a valid email address.")
        return s

    def decimal(
        self,
        field: str,
        *,
        required: bool = True,
        min_value: Decimal | None = Decimal("0"),
        max_value: Decimal | None = MONEY_MAX,
        value: Any = ...,
    ) -> Decimal | None:
        raw = self.data.get(field) if value is ... else value
        if self._missing(field, raw):
            if required:
                self.add(field, f"The {_label(field)} field is required.")
            return None
        d = parse_decimal(raw)
        if d is None:
            self.add(field, f"The {_label(field)} field must be a number.")
            return None
        if min_value is not None and d < min_value:
            self.add(field, f"The {_label(field)} field must be at least {min_value}.")
            return None
        if max_value is not None and d > max_value:
            self.add(field, f"The {_label(field)} field must not be greater than {max_value}.")
            return None
        return quantize_money(d)

    def choice(
        self,
        field: str,
        choices: Iterable[str],
        *,
        required: bool = True,
        value: Any = ...,
    ) -> str | None:
        raw = self.data.get(field) if value is ... else value
        if self._missing(field, raw):
            if required:
                self.add(field, f"The {_label(field)} field is required.")
            return None
        allowed = list(choices)
        s = raw.strip().lower() if isinstance(raw, str) else raw
        if s not in allowed:
            self.add(field, f"The selected {_label(field)} is invalid.")
            return None
        return s

    def month(self, field: str, *, value: Any = ...) -> str | None:
        raw = self.data.get(field) if value is ... else value
        if self._missing(field, raw):
            self.add(field, f"The {_label(field)} field is required.")
            return None
        token = parse_month(raw)
        if token is None:
            self.add(field, f"The {_label(field)} field must match the format Y-m.")
        return token

    def document(self, field: str) -> dict | None:
        """Optional JSON object (dict)."""
        raw = self.data.get(field)
        if raw is None or raw == "":
            return None
        if not isinstance(raw, dict):
            self.add(field, f"The {_label(field)} field must be an object.")
            return None
        return raw

    def exists(self, field: str, model, *, value: Any = ...):
        """Integer id that resolves to a non-deleted row of ``model``. Returns the row."""
        raw = self.data.get(field) if value is ... else value
        if self._missing(field, raw):
            self.add(field, f"The {_label(field)} field is required.")
            return None
        pk = parse_id(raw)
        row = None
        if pk is not None:
            row = db.session.get(model, pk)
        if row is None or getattr(row, "deleted_at", None) is not None:
            self.add(field, f"The selected {_label(field)} is invalid.")
            return None
        return row

    def unique(self, field: str, value: Any, column, *, ignore_id: int | None = None) -> None:
        """
        Uniqueness across ALL rows (soft-deleted included), the same scope as
        the DB constraint. ``ignore_id`` skips the record being updated.
        """
        if value is None or self.has_error(field):
            return
        model = column.class_
        q = model.query.filter(column == value)
        if ignore_id is not None:
            q = q.filter(model.id != ignore_id)
        if db.session.query(q.exists()).scalar():
            self.add(field, f"The {_label(field)} has already been taken.")

    def confirmed(self, field: str, value: str | None) -> None:
        if value is None or self.has_error(field):
            return
        if self.data.get(f"{field}_confirmation") != self.data.get(field):
            self.add(field, f"The {_label(field)} field confirmation does not match.")
