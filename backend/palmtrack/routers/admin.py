"""Admin routes: user management and activity feed (ADMIN only).

Route overview:
  GET    /users                       — list logins
  POST   /users                       — create a co-admin or agent login
  POST   /users/{id}/disable          — block sign-in, revoke sessions
  POST   /users/{id}/enable           — re-allow sign-in
  POST   /users/{id}/reset-password   — issue a temporary password
  DELETE /users/{id}                  — remove a login
  GET    /activity                    — audit trail, newest first
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import require_role
from palmtrack.auth.password import generate_temp_password, hash_password
from palmtrack.auth.revocation import TokenRevocation
from palmtrack.database import get_db
from palmtrack.middleware.exceptions import (
    BusinessLogicError,
    ConflictError,
    ResourceNotFoundError,
)
from palmtrack.models.activity_log import ActivityLog
from palmtrack.models.agent import Agent
from palmtrack.models.user import User, UserRole
from palmtrack.schemas.admin import (
    ActivityEntry,
    ActivityListResponse,
    AdminUserCreate,
    AdminUserCreated,
    AdminUserOut,
    PasswordResetOut,
)
from palmtrack.utils.activity import log_activity

router = APIRouter()

_admin = require_role(UserRole.ADMIN)


# ── Helpers ──────────────────────────────────────────────────

async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


def _not_self(admin: User, target: User, verb: str) -> None:
    if admin.id == target.id:
        raise BusinessLogicError(f"You cannot {verb} your own account", error_code="SELF_ACTION")


def _out(user: User) -> AdminUserOut:
    return AdminUserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        agent_id=user.agent_id,
        is_active=user.is_active,
        must_change_password=user.must_change_password,
        created_at=user.created_at,
    )


# ── Users ────────────────────────────────────────────────────

@router.get("/users", response_model=list[AdminUserOut])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_admin),
):
    result = await db.execute(select(User).order_by(User.role, User.full_name))
    return [_out(u) for u in result.scalars().all()]


@router.post("/users", response_model=AdminUserCreated, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(_admin),
):
    email = body.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none():
        raise ConflictError("Email already registered", error_code="EMAIL_TAKEN")

    role = UserRole(body.role)
    agent_id = None
    if role == UserRole.AGENT:
        if not body.agent_id:
            raise BusinessLogicError("Agent logins must be linked to an agent")
        agent = (await db.execute(select(Agent).where(Agent.id == body.agent_id))).scalar_one_or_none()
        if not agent:
            raise ResourceNotFoundError("Agent", body.agent_id)
        bound = await db.execute(select(User.id).where(User.agent_id == agent.id))
        if bound.scalar_one_or_none():
            raise ConflictError("This agent already has a login", error_code="AGENT_HAS_LOGIN")
        agent_id = agent.id

    temp_password = None if body.password else generate_temp_password()
    user = User(
        email=email,
        full_name=body.full_name,
        hashed_password=hash_password(body.password or temp_password),
        role=role,
        agent_id=agent_id,
        must_change_password=temp_password is not None,
        created_by=admin.id,
    )
    db.add(user)
    await db.flush()

    await log_activity(
        db, admin,
        action="user_created",
        entity_type="user",
        entity_id=user.id,
        entity_code=user.email,
        summary=f"Created {role.value} login {user.email}",
    )
    return AdminUserCreated(user=_out(user), temporary_password=temp_password)


@router.post("/users/{user_id}/disable", response_model=AdminUserOut)
async def disable_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(_admin),
):
    user = await _get_user(db, user_id)
    _not_self(admin, user, "disable")
    user.is_active = False
    await db.flush()
    await TokenRevocation.revoke_all_user_tokens(user.id)
    await log_activity(
        db, admin, action="user_disabled", entity_type="user",
        entity_id=user.id, entity_code=user.email,
    )
    return _out(user)


@router.post("/users/{user_id}/enable", response_model=AdminUserOut)
async def enable_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(_admin),
):
    user = await _get_user(db, user_id)
    user.is_active = True
    await db.flush()
    await log_activity(
        db, admin, action="user_enabled", entity_type="user",
        entity_id=user.id, entity_code=user.email,
    )
    return _out(user)


@router.post("/users/{user_id}/reset-password", response_model=PasswordResetOut)
async def reset_password(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(_admin),
):
    """Replace the password with a temporary one the user must change."""
    user = await _get_user(db, user_id)
    temp_password = generate_temp_password()
    user.hashed_password = hash_password(temp_password)
    user.must_change_password = True
    await db.flush()
    await TokenRevocation.revoke_all_user_tokens(user.id)
    await log_activity(
        db, admin, action="password_reset", entity_type="user",
        entity_id=user.id, entity_code=user.email,
    )
    return PasswordResetOut(user_id=user.id, temporary_password=temp_password)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(_admin),
):
    user = await _get_user(db, user_id)
    _not_self(admin, user, "remove")
    await TokenRevocation.revoke_all_user_tokens(user.id)
    await log_activity(
        db, admin, action="user_removed", entity_type="user",
        entity_id=user.id, entity_code=user.email,
    )
    await db.delete(user)
    await db.flush()


# ── Activity feed ────────────────────────────────────────────

@router.get("/activity", response_model=ActivityListResponse)
async def list_activity(
    entity_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(_admin),
):
    stmt = select(ActivityLog)
    count_stmt = select(func.count(ActivityLog.id))
    if entity_type:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
        count_stmt = count_stmt.where(ActivityLog.entity_type == entity_type)

    total = await db.scalar(count_stmt) or 0
    result = await db.execute(
        stmt.order_by(ActivityLog.created_at.desc()).limit(limit).offset(offset)
    )
    return ActivityListResponse(
        items=[ActivityEntry.model_validate(e) for e in result.scalars().all()],
        total=total,
    )
