"""
Security utilities - JWT, actor context, RBAC
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from cyberquote.core.config import settings

# JWT Bearer scheme
security = HTTPBearer()


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    BROKER = "broker"
    UNDERWRITER = "underwriter"
    TEAM_LEAD = "team_lead"
    HEAD_UNDERWRITING = "head_underwriting"
    ADMIN = "admin"


# Roles allowed to work the underwriting queue
UNDERWRITING_ROLES = [
    ActorRole.BROKER.value,
    ActorRole.UNDERWRITER.value,
    ActorRole.TEAM_LEAD.value,
    ActorRole.HEAD_UNDERWRITING.value,
    ActorRole.ADMIN.value,
]


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity."""
    actor_id: str
    role: ActorRole

    @property
    def is_customer(self) -> bool:
        return self.role == ActorRole.CUSTOMER


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRATION_HOURS)

    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """Build the actor context from the JWT token."""
    payload = decode_access_token(credentials.credentials)
    actor_id = payload.get("sub")
    if actor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    try:
        role = ActorRole(payload.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role",
        )
    return Actor(actor_id=actor_id, role=role)


def require_role(allowed_roles: list[str]):
    """Dependency factory that requires one of the given roles."""
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role.value not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{actor.role.value}' not authorized. Required: {allowed_roles}",
            )
        return actor
    return role_checker
