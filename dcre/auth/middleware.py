"""Bearer token authentication - resolves the caller to an Actor."""

import hashlib
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.auth.roles import Actor, normalize_role
from dcre.config import settings
from dcre.database import get_db
from dcre.engine.errors import ForbiddenError, UnauthorizedError
from dcre.storage.repositories import get_profile_by_token_hash


TOKEN_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


def hash_token(token: str) -> str:
    """Hash session token with salt for storage/lookup."""
    return hashlib.sha256(
        f"{settings.token_hash_salt}:{token}".encode()
    ).hexdigest()


def client_ip(request: Request) -> str | None:
    return request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")


async def get_actor_from_bearer(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_header: str | None = Depends(TOKEN_HEADER),
) -> Actor:
    """Extract the acting profile from the Bearer token."""
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Missing or invalid Authorization header")
    token = auth_header[7:].strip()
    if not token:
        raise UnauthorizedError("Missing session token")
    profile = await get_profile_by_token_hash(db, hash_token(token))
    if not profile:
        raise ForbiddenError("Invalid session token")
    # private_host becomes dealer here and nowhere else
    role = normalize_role(profile.role)
    if role is None:
        raise ForbiddenError("Profile role is not permitted")
    return Actor(
        actor_id=str(profile.profile_id),
        role=role,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


# Type alias for dependency injection
ActorDep = Annotated[Actor, Depends(get_actor_from_bearer)]
