"""Pydantic models for blogdesk."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """User roles.

    - ADMIN: full access to the admin area and every management action
    - USER: reader account, can view and comment
    """

    ADMIN = "admin"
    USER = "user"


class Capability(str, Enum):
    """Actions a role may be granted."""

    VIEW_PUBLIC = "view_public"
    COMMENT = "comment"
    ADMIN_AREA = "admin_area"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_CONTENT = "manage_content"
    MANAGE_USERS = "manage_users"
    VIEW_AUDIT = "view_audit"


class SettingVisibility(str, Enum):
    """Whether a setting may be served to anonymous readers."""

    PUBLIC = "public"
    PRIVATE = "private"


class PostStatus(str, Enum):
    """Post publication status."""

    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"


class Setting(BaseModel):
    """A single site setting."""

    key: str = Field(..., min_length=1, max_length=100)
    value: str = ""
    category: str = Field(default="general", min_length=1, max_length=50)
    visibility: SettingVisibility = SettingVisibility.PUBLIC
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Keys are plain identifiers (letters, digits, underscores)."""
        if not re.match(r"^[A-Za-z0-9_]+$", v):
            raise ValueError("Setting key must contain only letters, digits and underscores")
        return v


class User(BaseModel):
    """User account model."""

    id: str
    email: str
    name: str | None = None
    password_hash: str
    role: Role = Role.USER
    created_at: datetime = Field(default_factory=utc_now)
    last_login: datetime | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email validation."""
        v = v.strip().lower()
        if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", v):
            raise ValueError("Invalid email format")
        return v


class Session(BaseModel):
    """User session model.

    A session only exists once credentials have been verified, so holding
    one means the caller is authenticated. Anonymous callers have no session.
    """

    session_id: str
    user_id: str
    role: Role
    ip: str
    user_agent: str
    csrf_token: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    @property
    def is_authenticated(self) -> bool:
        return True


class LoginAttempt(BaseModel):
    """Login attempt for rate limiting."""

    ip: str
    timestamp: datetime = Field(default_factory=utc_now)
    success: bool
    user_agent: str | None = None


class Post(BaseModel):
    """Blog post, reduced to what scheduled publishing needs."""

    id: str
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=200)
    status: PostStatus = PostStatus.DRAFT
    published_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        """Ensure slug is URL-safe."""
        if not re.match(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", v):
            raise ValueError("Slug must be lowercase alphanumeric with hyphens")
        return v


class PasswordResetToken(BaseModel):
    """One-time password reset token."""

    token: str
    user_id: str
    expires_at: datetime
    used: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class AuditEvent(BaseModel):
    """Audit log event model."""

    timestamp: datetime = Field(default_factory=utc_now)
    event: str
    actor: str
    ip: str | None = None
    user_agent: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
