"""Signed bearer sessions for snippet-share accounts.

Tokens carry the account id, role and username. The role claim is informative
only: ``routers.auth_scope`` re-reads role and active state from the database.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings
from models.user import UserRole


SESSION_TOKEN_TYPE = "snippet_session"
_ROLES = {role.value for role in UserRole}


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    role: str
    username: Optional[str]
    issued_at: int
    expires_at: int


def session_lifetime(timeout_minutes: Optional[int] = None) -> timedelta:
    """Admin-configured session timeout, else the JWT_EXPIRATION_HOURS default."""
    if timeout_minutes:
        return timedelta(minutes=max(int(timeout_minutes), 1))
    return timedelta(hours=max(int(settings.JWT_EXPIRATION_HOURS or 24), 1))


def create_session_token(
    user_id: str,
    role: str = UserRole.EDITOR.value,
    username: Optional[str] = None,
    timeout_minutes: Optional[int] = None,
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    expires_at = now + session_lifetime(timeout_minutes)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if username:
        claims["username"] = username

    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": int(expires_at.timestamp()),
    }


def decode_session_token(token: str) -> SessionClaims:
    """Verify signature, expiry and shape; raise ValueError on any defect."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")
    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise ValueError("Session token missing subject.")
    role = str(payload.get("role") or UserRole.EDITOR.value)
    if role not in _ROLES:
        raise ValueError("Session token carries an unknown role.")

    return SessionClaims(
        user_id=subject,
        role=role,
        username=payload.get("username"),
        issued_at=int(payload.get("iat") or 0),
        expires_at=int(payload.get("exp") or 0),
    )
