"""Identity models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    """Roles an identity may hold."""

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


def normalize_roles(roles: list[str]) -> list[str]:
    """Deduplicate roles preserving order; reject empty or unknown sets."""
    known = {role.value for role in UserRole}
    normalized: list[str] = []
    for role in roles:
        value = role.value if isinstance(role, UserRole) else str(role).strip().lower()
        if value not in known:
            raise ValueError(
                f"Role must be one of: {', '.join(sorted(known))}"
            )
        if value not in normalized:
            normalized.append(value)
    if not normalized:
        raise ValueError("At least one role is required")
    return normalized


def normalize_email(email: str) -> str:
    """Emails are stored and compared trimmed and lowercased."""
    return email.strip().lower()


class User(BaseModel):
    """A registered identity: a storage customer or a staff member.

    Credentials (password hash, reset ticket) are deliberately not part of
    this model so they can never be serialized into a response.
    """

    id: UUID
    name: str
    email: str
    phone_number: str
    roles: list[str] = Field(default_factory=lambda: [UserRole.USER.value])
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address_line_one: Optional[str] = None
    address_line_two: Optional[str] = None
    city: Optional[str] = None
    state_province: Optional[str] = None
    zip_code: Optional[str] = None
    secondary_contact_name: Optional[str] = None
    secondary_phone_number: Optional[str] = None
    secondary_email: Optional[str] = None
    language: Optional[str] = None
    other: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("roles")
    @classmethod
    def roles_valid(cls, v: list[str]) -> list[str]:
        return normalize_roles(v)

    @property
    def role_set(self) -> frozenset[str]:
        return frozenset(self.roles)


class UserUpdate(BaseModel):
    """Allow-listed fields the credential store will write on update.

    Only fields explicitly set are persisted; anything not listed here can
    never reach storage.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    password: Optional[str] = None
    roles: Optional[list[str]] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address_line_one: Optional[str] = None
    address_line_two: Optional[str] = None
    city: Optional[str] = None
    state_province: Optional[str] = None
    zip_code: Optional[str] = None
    secondary_contact_name: Optional[str] = None
    secondary_phone_number: Optional[str] = None
    secondary_email: Optional[str] = None
    language: Optional[str] = None
    other: Optional[str] = None

    model_config = {"extra": "forbid"}
