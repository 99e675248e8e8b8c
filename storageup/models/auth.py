"""Auth and identity-management request/response models with validation."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from storageup.models.user import User, normalize_email, normalize_roles

PHONE_PATTERN = r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$"

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72
# bcrypt refuses passwords whose UTF-8 encoding is longer than this
PASSWORD_MAX_BYTES = 72


def _password_not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    return v


def _password_within_byte_limit(v: str) -> str:
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password cannot be longer than {PASSWORD_MAX_BYTES} bytes")
    return v


class SignupRequest(BaseModel):
    """Client self-registration.

    Attributes:
        name: Display name (1-100 chars)
        email: Login handle, stored lowercased
        phone_number: Contact number (``phoneNumber`` accepted)
        password: Plain-text password (at least 6 chars, at most 72 UTF-8 bytes)
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(..., alias="phoneNumber", pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def name_stripped(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name is required")
        return stripped

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        return _password_within_byte_limit(_password_not_blank(v))


class AdminSignupRequest(SignupRequest):
    """Staff registration.

    ``role`` may be ``admin`` or ``moderator``; anything else (including
    omission) registers an admin.
    """

    role: Optional[str] = None

    @property
    def resolved_role(self) -> str:
        if self.role in ("admin", "moderator"):
            return self.role
        return "admin"


class LoginRequest(BaseModel):
    """Email/password credentials."""

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)


class ForgotPasswordRequest(BaseModel):
    """Request a password reset link for an email address."""

    email: str = Field(..., min_length=1, max_length=320)

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    """Redeem a password reset ticket with a new password."""

    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str = Field(..., alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        return _password_within_byte_limit(_password_not_blank(v))

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class AuthResponse(BaseModel):
    """Successful signup/login: the session token plus the identity."""

    success: bool = True
    message: str
    token: str
    user: User


class RefreshResponse(BaseModel):
    """Result of a token refresh.

    Attributes:
        token: Newly issued session token
        refreshed: True when the presented token had already expired
        user: Identity the token authenticates
    """

    success: bool = True
    message: str
    token: str
    refreshed: bool
    user: User


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserResponse(BaseModel):
    success: bool = True
    user: User


class CreateUserRequest(BaseModel):
    """Staff-initiated identity creation."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(..., alias="phoneNumber", pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    roles: list[str] = Field(default_factory=lambda: ["user"])

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        return _password_within_byte_limit(_password_not_blank(v))

    @field_validator("roles")
    @classmethod
    def roles_valid(cls, v: list[str]) -> list[str]:
        return normalize_roles(v)


class AdminUpdateUserRequest(BaseModel):
    """Fields staff may change on an identity. Unknown fields are rejected."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", pattern=PHONE_PATTERN)
    password: Optional[str] = Field(
        default=None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )
    roles: Optional[list[str]] = None
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    address_line_one: Optional[str] = Field(default=None, max_length=200)
    address_line_two: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state_province: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    secondary_contact_name: Optional[str] = Field(default=None, max_length=100)
    secondary_phone_number: Optional[str] = Field(default=None, max_length=32)
    secondary_email: Optional[str] = Field(default=None, max_length=320)
    language: Optional[str] = Field(default=None, max_length=50)
    other: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v is not None else v

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _password_within_byte_limit(_password_not_blank(v))

    @field_validator("roles")
    @classmethod
    def roles_valid(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return normalize_roles(v) if v is not None else v


class ProfileUpdateRequest(BaseModel):
    """Fields a client may change on their own profile."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = Field(default=None, alias="email_address")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", pattern=PHONE_PATTERN)
    address_line_one: Optional[str] = Field(default=None, max_length=200)
    address_line_two: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state_province: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v is not None else v


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class UserListResponse(BaseModel):
    success: bool = True
    count: int
    pagination: Pagination
    users: list[User]


class UserSearchResult(BaseModel):
    """Minimal identity projection for staff autocomplete."""

    id: UUID
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone_number: str
    display_name: str
