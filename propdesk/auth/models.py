"""
Pydantic models for authentication and tenant resolution.

Request models validate caller input; domain models mirror the `tenants`
and `users` rows and the provider session. Every model serializes with
camelCase aliases for the UI and accepts snake_case names from Python.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..errors import ValidationError


PASSWORD_MIN_LENGTH = 8


class UserRole(str, Enum):
    VIEWER = "viewer"
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


# Lowest to highest
ROLE_HIERARCHY = {
    UserRole.VIEWER.value: 1,
    UserRole.USER.value: 2,
    UserRole.MANAGER.value: 3,
    UserRole.ADMIN.value: 4,
    UserRole.SUPER_ADMIN.value: 5,
}


class ProfileStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def check_password_strength(value: str) -> str:
    """At least 8 characters with an upper-case letter, a lower-case letter and a digit."""
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    return value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class RegisterRequest(CamelModel):
    """Request model for registering a new organization and its owner."""
    email: EmailStr
    password: str
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("name", "displayName", "display_name"),
    )
    phone: Optional[str] = Field(None, max_length=20)
    tenant_name: Optional[str] = Field(None, min_length=1, max_length=100)
    invite_code: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("name", "tenant_name")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Must not be blank")
        return value

    @model_validator(mode="after")
    def _tenant_or_invite(self) -> "RegisterRequest":
        if bool(self.tenant_name) == bool(self.invite_code):
            raise ValueError("Exactly one of tenantName or inviteCode is required")
        return self


class LoginRequest(CamelModel):
    """Request model for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant_id: Optional[str] = None

    @field_validator("tenant_id")
    @classmethod
    def _uuid(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return str(UUID(value))


class TokenRefresh(CamelModel):
    """Request model for token refresh."""
    refresh_token: str = Field(..., min_length=1)


class UpdateProfileRequest(CamelModel):
    """Partial update of the caller's tenant profile."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    avatar_url: Optional[HttpUrl] = None

    @model_validator(mode="after")
    def _not_empty(self) -> "UpdateProfileRequest":
        if not self.model_fields_set:
            raise ValueError("No fields to update")
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("Name cannot be removed")
        return self

    def to_row(self) -> dict:
        """Only the fields the caller sent, keyed by column name."""
        row = {}
        if "name" in self.model_fields_set:
            row["name"] = self.name
        if "phone" in self.model_fields_set:
            row["phone"] = self.phone
        if "avatar_url" in self.model_fields_set:
            row["avatar_url"] = str(self.avatar_url) if self.avatar_url else None
        return row


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def _passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# ---------------------------------------------------------------------------
# Domain
# ---------------------------------------------------------------------------

class GlobalIdentity(CamelModel):
    """A credential record in the identity provider, independent of tenants."""
    id: str
    email: str
    created_at: Optional[datetime] = None


class Tenant(CamelModel):
    """An organization; every tenant-scoped row carries its id."""
    id: str
    name: str
    status: str = "active"
    subdomain: Optional[str] = None
    plan: Optional[str] = None
    created_at: Optional[datetime] = None


class TenantProfile(CamelModel):
    """A `users` row: one identity's membership in one tenant."""
    id: str
    tenant_id: str
    auth_user_id: Optional[str] = None
    email: str
    name: str
    role: str = UserRole.USER.value
    status: str = ProfileStatus.ACTIVE.value
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ProfileStatus.ACTIVE.value

    def has_role(self, required_role: str) -> bool:
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


class Session(CamelModel):
    """A provider session. Returned to callers, never stored here."""
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    identity: GlobalIdentity


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserOut(CamelModel):
    """Public view of a tenant profile."""
    id: str
    email: str
    name: str
    role: str
    status: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: TenantProfile) -> "UserOut":
        return cls(
            id=profile.id,
            email=profile.email,
            name=profile.name,
            role=profile.role,
            status=profile.status,
            phone=profile.phone,
            avatar_url=profile.avatar_url,
            created_at=profile.created_at,
        )


class TenantOut(CamelModel):
    id: str
    name: str
    subdomain: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantOut":
        return cls(id=tenant.id, name=tenant.name, subdomain=tenant.subdomain)


class TokenPair(CamelModel):
    """Response for token refresh."""
    token: str
    refresh_token: str
    expires_at: int


class AuthResponse(CamelModel):
    """Response for successful registration or login."""
    token: str
    refresh_token: str
    expires_at: int
    user: UserOut
    tenant: TenantOut


class CurrentUserResponse(CamelModel):
    user: UserOut
    tenant: TenantOut


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


def parse_request(model_cls, data):
    """
    Validate `data` into `model_cls`.

    Raises:
        ValidationError: listing every failing field
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def build_auth_response(pair: TokenPair, profile: TenantProfile, tenant: Tenant) -> AuthResponse:
    return AuthResponse(
        token=pair.token,
        refresh_token=pair.refresh_token,
        expires_at=pair.expires_at,
        user=UserOut.from_profile(profile),
        tenant=TenantOut.from_tenant(tenant),
    )
