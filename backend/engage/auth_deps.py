from __future__ import annotations
import uuid
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from engage.db import get_session
from engage.security import decode_token
from engage.models.user import User
from engage.models.circle import Circle
from engage.models.challenge import Challenge
from engage.services.errors import NotFound

security = HTTPBearer()

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    token = credentials.credentials
    try:
        data = decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    try:
        user_id = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

async def require_moderator(user: User = Depends(get_current_user)) -> User:
    if user.role != "moderator":
        raise HTTPException(status_code=403, detail="Moderator role required")
    return user

# ---------- tenant scoping for route handlers ----------
# Anything outside the caller's tenant is reported as missing, not forbidden.

async def user_in_tenant(session: AsyncSession, caller: User, user_id: uuid.UUID) -> User:
    if user_id == caller.id:
        return caller
    target = await session.get(User, user_id)
    if not target or caller.tenant_id is None or target.tenant_id != caller.tenant_id:
        raise NotFound("User", user_id)
    return target

async def acting_for(session: AsyncSession, caller: User, target_id: uuid.UUID | None) -> uuid.UUID:
    """Employees act for themselves; moderators may act for another user of their tenant."""
    if target_id is None or target_id == caller.id:
        return caller.id
    if caller.role != "moderator":
        raise HTTPException(status_code=403, detail="Only moderators can act for other users")
    return (await user_in_tenant(session, caller, target_id)).id

async def circle_in_tenant(session: AsyncSession, caller: User, circle_id: uuid.UUID) -> None:
    tenant_id = await session.scalar(select(Circle.tenant_id).where(Circle.id == circle_id))
    if tenant_id is None or tenant_id != caller.tenant_id:
        raise NotFound("Circle", circle_id)

async def challenge_in_tenant(session: AsyncSession, caller: User, challenge_id: uuid.UUID) -> None:
    tenant_id = await session.scalar(
        select(Circle.tenant_id).join(Challenge, Challenge.circle_id == Circle.id).where(Challenge.id == challenge_id)
    )
    if tenant_id is None or tenant_id != caller.tenant_id:
        raise NotFound("Challenge", challenge_id)
