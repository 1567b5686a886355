# investdesk/schemas.py
"""
Typed shapes for the two JSON documents stored on rows:

- Investor.personal_info -> PersonalInfo
- Payment.logs entries   -> AllocationLine

Known keys are typed; unknown personal_info keys survive in ``extra`` so older
or hand-entered documents round-trip without loss.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any


@dataclass
class PersonalInfo:
    date_of_birth: date | None = None
    occupation: str | None = None
    notes: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("date_of_birth", "occupation", "notes")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersonalInfo":
        """
        Build from a submitted/stored mapping.
        Raises ValueError with a human message when a known key is malformed.
        """
        dob = data.get("date_of_birth")
        if dob in (None, ""):
            dob = None
        elif isinstance(dob, date):
            pass
        else:
            try:
                dob = date.fromisoformat(str(dob))
            except ValueError:
                raise ValueError("The date of birth must be a date in YYYY-MM-DD format.")

        occupation = data.get("occupation")
        notes = data.get("notes")
        for label, value in (("occupation", occupation), ("notes", notes)):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"The {label} must be a string.")

        extra = {k: v for k, v in data.items() if k not in cls.KNOWN_KEYS}
        return cls(
            date_of_birth=dob,
            occupation=occupation or None,
            notes=notes or None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        if self.date_of_birth is not None:
            out["date_of_birth"] = self.date_of_birth.isoformat()
        if self.occupation is not None:
            out["occupation"] = self.occupation
        if self.notes is not None:
            out["notes"] = self.notes
        return out


@dataclass(frozen=True)
class AllocationLine:
    account_id: int
    for_month: str  # YYYY-MM
    amount: Decimal
    type: str

    def to_log(self) -> dict[str, Any]:
        # Amount kept as a 2dp string: JSON has no decimal type.
        return {
            "account_id": self.account_id,
            "for_month": self.for_month,
            "amount": f"{self.amount:.2f}",
            "type": self.type,
        }
