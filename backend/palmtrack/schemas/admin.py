"""Pydantic schemas for user administration and the activity feed."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator


class AdminUserCreate(BaseModel):
    """Create a co-admin or an agent login.

    Agent logins must name the agent they act for.  If no password is
    given a temporary one is generated and returned once.
    """
    email: EmailStr
    full_name: str
    role: str = "AGENT"
    agent_id: str | None = None
    password: str | None = None

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str) -> str:
        v = v.upper()
        if v not in ("ADMIN", "AGENT"):
            raise ValueError("role must be 'ADMIN' or 'AGENT'")
        return v

    @field_validator("password")
    @classmethod
    def min_length(cls, v: str | None) -> str | None:
        if v is not None and len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class AdminUserOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    agent_id: str | None = None
    is_active: bool
    must_change_password: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminUserCreated(BaseModel):
    user: AdminUserOut
    temporary_password: str | None = None


class PasswordResetOut(BaseModel):
    user_id: str
    temporary_password: str


# ── Activity Log ──────────────────────────────────────────────

class ActivityEntry(BaseModel):
    id: str
    user_name: str
    action: str
    entity_type: str
    entity_id: str | None = None
    entity_code: str | None = None
    summary: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivityListResponse(BaseModel):
    items: list[ActivityEntry]
    total: int
