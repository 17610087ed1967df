"""Authentication dependencies for API user scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from errors import Forbidden, Unauthenticated
from models.user import User, UserRole
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    role: str = UserRole.EDITOR.value
    username: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve authenticated user from Bearer session token.

    Role and active flag come from the stored account, so demotions and
    deactivations apply to already-issued tokens.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Missing Bearer session token.")

    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise Unauthenticated(str(exc)) from exc

    user = await db.get(User, claims.user_id)
    if user is None:
        raise Unauthenticated("Session user no longer exists.")
    if not user.is_active:
        raise Forbidden("Account is disabled.")

    return AuthContext(
        user_id=user.id,
        role=user.role,
        username=user.username,
        email=user.email,
        is_active=bool(user.is_active),
    )


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.is_admin:
        raise Forbidden("Administrator role required.")
    return auth
