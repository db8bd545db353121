import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from pydantic import BaseModel

from .config import JWT_ALGORITHM, SECRET_KEY
from .domain.billing.errors import AuthzError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Identity carried by the bearer token"""

    user_id: int
    role: str = ""


def _normalize_role(role: Optional[str]) -> str:
    return str(role or "").lower()


def is_admin_role(role: Optional[str]) -> bool:
    return "admin" in _normalize_role(role)


def is_owner_role(role: Optional[str]) -> bool:
    return "owner" in _normalize_role(role)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Resolve the caller from the Authorization: Bearer header"""
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    raw_id = payload.get("userId", payload.get("sub"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        logger.warning("⚠️ Token without a usable user id")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return CurrentUser(user_id=user_id, role=str(payload.get("role") or ""))


def can_access_owner(user: CurrentUser, owner_id: int) -> bool:
    """Admins can act on any owner; everyone else only on themselves"""
    if is_admin_role(user.role):
        return True
    return str(user.user_id) == str(owner_id)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not is_admin_role(user.role):
        raise AuthzError("Acceso denegado: solo admin")
    return user


def require_owner_or_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not is_admin_role(user.role) and not is_owner_role(user.role):
        raise AuthzError("Acceso denegado")
    return user
