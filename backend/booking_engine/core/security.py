"""
Identity boundary.

Tokens are issued by the external identity/session service; this module
only verifies them and exposes the acting principal (id + role).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import PermissionDenied

settings = get_settings()

ROLE_CLIENT = "client"
ROLE_MANAGER = "manager"
ROLE_REVIEWER = "reviewer"
ROLE_ADMIN = "admin"
ROLES = {ROLE_CLIENT, ROLE_MANAGER, ROLE_REVIEWER, ROLE_ADMIN}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in (ROLE_MANAGER, ROLE_ADMIN)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity service does (used by tests and tooling)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_actor(token: str) -> Actor:
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise credentials_error

    subject = payload.get("sub")
    role = payload.get("role", ROLE_CLIENT)
    if not subject or role not in ROLES:
        raise credentials_error
    return Actor(id=str(subject), role=role)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_actor(credentials.credentials)


def require_roles(*roles: str):
    """Dependency factory: admit only actors holding one of `roles` (admin always passes)."""
    allowed = set(roles) | {ROLE_ADMIN}

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise PermissionDenied(
                f"Role '{actor.role}' may not perform this action",
                required_roles=sorted(allowed),
            )
        return actor

    return dependency
