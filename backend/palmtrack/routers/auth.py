"""Auth routes: login, refresh, logout, profile, password change.

Route overview:
  POST /login            — email + password login
  POST /refresh          — exchange a refresh token for a new pair
  POST /logout           — revoke the presented access token
  GET  /me               — current user profile + permissions
  POST /change-password  — set a new password, revoking earlier tokens
"""

import time

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_current_user
from palmtrack.auth.jwt import create_access_token, create_refresh_token, decode_token
from palmtrack.auth.password import hash_password, verify_password
from palmtrack.auth.permissions import resolve_permissions
from palmtrack.auth.revocation import TokenRevocation
from palmtrack.database import get_db
from palmtrack.models.user import User
from palmtrack.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    UserOut,
)
from palmtrack.utils.activity import log_activity

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _build_user_out(user: User, permissions: list[str]) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        is_active=user.is_active,
        agent_id=user.agent_id,
        must_change_password=user.must_change_password,
        permissions=permissions,
    )


def _build_token_response(user: User) -> TokenResponse:
    permissions = resolve_permissions(user.role.value)
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id,
            role=user.role.value,
            permissions=permissions,
            agent_id=user.agent_id,
            must_change_password=user.must_change_password,
        ),
        refresh_token=create_refresh_token(user_id=user.id, role=user.role.value),
        user=_build_user_out(user, permissions),
    )


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")

    return _build_token_response(user)


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Rotate: the presented refresh token is revoked once used."""
    payload = decode_token(body.refresh_token)
    user_id = payload.get("sub")
    if not user_id or payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if await TokenRevocation.is_revoked(body.refresh_token) or (
        await TokenRevocation.is_user_revoked(user_id, float(payload.get("iat", 0)))
    ):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    await TokenRevocation.revoke_token(body.refresh_token, float(payload["exp"]))
    return _build_token_response(user)


# ── POST /logout ─────────────────────────────────────────────

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(user: User = Depends(get_current_user)):
    payload: dict = getattr(user, "_token_payload", {})
    await TokenRevocation.revoke_token(
        user._token,  # type: ignore[attr-defined]
        float(payload.get("exp", time.time())),
    )


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return _build_user_out(user, resolve_permissions(user.role.value))


# ── POST /change-password ────────────────────────────────────

@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Verify the current password, store the new one, revoke old sessions.

    Returns a fresh token pair so the caller stays signed in.
    """
    if not verify_password(body.current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if body.current_password == body.new_password:
        raise HTTPException(status_code=400, detail="New password must be different")

    user.hashed_password = hash_password(body.new_password)
    user.must_change_password = False
    await db.flush()
    await log_activity(
        db, user,
        action="password_changed",
        entity_type="user",
        entity_id=user.id,
        entity_code=user.email,
    )

    await TokenRevocation.revoke_all_user_tokens(user.id)
    return _build_token_response(user)
