"""JWT token creation and decoding.

Token claims:
  - sub:                   user ID
  - role:                  ADMIN | AGENT
  - agent_id:              the agent an AGENT login is bound to
  - permissions:           list of permission strings
  - must_change_password:  set after an admin password reset
  - type:                  "access" | "refresh"
  - iat:                   issue time (float seconds, compared against
                           per-user revocation)
  - exp:                   expiry timestamp
"""

import time
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from palmtrack.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    role: str,
    permissions: list[str],
    agent_id: str | None = None,
    must_change_password: bool = False,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "role": role,
        "permissions": permissions,
        "must_change_password": must_change_password,
        "type": "access",
        "iat": time.time(),
        "exp": expire,
    }
    if agent_id:
        payload["agent_id"] = agent_id
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_refresh_token(user_id: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "refresh",
        "iat": time.time(),
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_signed_path_token(path: str, expires_in: int) -> str:
    """Short-lived token granting read access to one stored file."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    payload = {"path": path, "type": "file", "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
