"""
Data model for the user API.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict


def isoformat(dt: datetime) -> str:
    """
    Serialize a datetime as ISO-8601 UTC with millisecond precision.

        datetime(2024, 1, 1, tzinfo=timezone.utc) → "2024-01-01T00:00:00.000Z"

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Absent:
    """Marks a field the client never sent, as opposed to an explicit null."""

    def __repr__(self):
        return "ABSENT"


ABSENT = _Absent()


@dataclass
class User:
    """
    A user record.

    name and email are stored exactly as the client sent them, so they
    may hold any JSON value, null included. ABSENT means the field was
    not supplied at all.
    """

    id: int
    name: Any = ABSENT
    email: Any = ABSENT
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """
        Wire form of the record. Absent fields are left out while an
        explicit null is kept, and the creation time is exposed as
        "createdAt".
        """
        record: Dict[str, Any] = {"id": self.id}
        if self.name is not ABSENT:
            record["name"] = self.name
        if self.email is not ABSENT:
            record["email"] = self.email
        record["createdAt"] = isoformat(self.created_at)
        return record


def seed_users() -> list[User]:
    """The two records every fresh store starts with."""
    return [
        User(
            id=1,
            name="Juan Pérez",
            email="juan@ejemplo.com",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        User(
            id=2,
            name="María García",
            email="maria@ejemplo.com",
            created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        ),
    ]


def user_fields(payload: Any) -> tuple[Any, Any]:
    """
    Pick name and email out of a decoded request body.

    Anything that is not a JSON object yields (ABSENT, ABSENT); unknown
    keys are ignored and a key that is missing comes back as ABSENT.
    """
    if not isinstance(payload, dict):
        return ABSENT, ABSENT
    return payload.get("name", ABSENT), payload.get("email", ABSENT)
