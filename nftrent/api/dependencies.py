from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBearer
from sqlalchemy.ext.asyncio.session import AsyncSession

from nftrent.core.config import Settings, config
from nftrent.security.context import SecurityContext
from nftrent.services.escrow import EscrowAuthority

from ..db.database import async_session

security = HTTPBearer()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def get_user(request: Request) -> dict:
    # request.state.user is set by the authentication middleware
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated.",
        )
    return user


async def get_security_context(request: Request) -> SecurityContext:
    return request.app.state.security


async def get_escrow_authority(request: Request) -> EscrowAuthority:
    return request.app.state.escrow


async def get_settings() -> Settings:
    return config
