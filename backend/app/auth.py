"""
CiviLens Accountability Engine - Authentication Adapter
JWT bearer validation and role dependencies

Identity issuance (OTP, authority login) lives outside this service; the
core only needs an authenticated user id and role.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models.db_models import UserDB, UserRole

JWT_SECRET = os.getenv("JWT_SECRET_KEY", "civilens-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
TOKEN_TTL_HOURS = int(os.getenv("JWT_TTL_HOURS", "24"))

bearer_scheme = HTTPBearer()

COMPLAINT_HANDLERS = frozenset({UserRole.AUTHORITY, UserRole.ADMIN})


def create_access_token(user_id: str, role: str = UserRole.CITIZEN.value, expires_hours: int = TOKEN_TTL_HOURS) -> str:
    """Issue a signed token carrying the user id (`sub`) and role."""
    claims = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=expires_hours),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid token, or None for a bad signature or an expired one."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired session token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserDB:
    """
    Resolve the bearer token to a stored user.

    The token must verify and its subject must still exist; anything else
    is a 401 so clients know to re-authenticate.
    """
    claims = decode_token(credentials.credentials) or {}
    subject = claims.get("sub")
    if not subject:
        raise _unauthenticated()

    account = db.get(UserDB, subject)
    if account is None:
        raise _unauthenticated()
    return account


def _forbidden(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


async def require_authority(current_user: UserDB = Depends(get_current_user)) -> UserDB:
    """Complaint queue, status changes and dashboards: authorities and admins."""
    if current_user.role not in COMPLAINT_HANDLERS:
        raise _forbidden("Authority access required")
    return current_user


async def require_admin(current_user: UserDB = Depends(get_current_user)) -> UserDB:
    if current_user.role is not UserRole.ADMIN:
        raise _forbidden("Admin access required")
    return current_user
