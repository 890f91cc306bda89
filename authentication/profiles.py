from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

UNSPECIFIED = "Belirtilmemiş"

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

# Profile form fields -> dto_users columns. Role is not here on purpose:
# it is never written from the client side.
EDITABLE_COLUMNS = {
    "name": "full_name",
    "age": "age",
    "gender": "gender",
    "marital_status": "marital_status",
    "job": "job",
    "notes": "notes",
}


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    role: str = ROLE_USER
    name: str = ""
    age: str = ""
    gender: str = UNSPECIFIED
    marital_status: str = UNSPECIFIED
    job: str = ""
    notes: str = ""
    password: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_record(cls, row: Mapping[str, Any], *, include_password: bool = False) -> "UserProfile":
        role = row.get("role") or ROLE_USER
        return cls(
            id=str(row["id"]),
            username=row.get("username") or "",
            role=role if role in ROLES else ROLE_USER,
            name=row.get("full_name") or "",
            age=str(row.get("age") or ""),
            gender=row.get("gender") or UNSPECIFIED,
            marital_status=row.get("marital_status") or UNSPECIFIED,
            job=row.get("job") or "",
            notes=row.get("notes") or "",
            password=row.get("password") if include_password else None,
        )

    def with_changes(self, **changes) -> "UserProfile":
        allowed = {k: v for k, v in changes.items() if k in EDITABLE_COLUMNS}
        return replace(self, **allowed)

    def to_update(self) -> Dict[str, Any]:
        """Column values for an update of the editable profile fields."""
        return {column: getattr(self, field) for field, column in EDITABLE_COLUMNS.items()}

    def to_dict(self, *, include_password: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if not include_password:
            data.pop("password", None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)
