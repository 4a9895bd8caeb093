import logging
from typing import List, Literal, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from nftrent.api.dependencies import get_async_session, get_security_context, get_user
from nftrent.models.profile_model import Profile
from nftrent.schemas.profile_schema import ProfileRegister
from nftrent.security.context import SecurityContext
from nftrent.security.monitor import current_user_id
from nftrent.security.validation import sanitize_text_input, validate_mint_address
from nftrent.services.exceptions import ProfileAlreadyExists, ProfileNotFound

logger = logging.getLogger(__name__)

AllowedProfileDependencies = Literal["listings", "rentals"]
DependenciesList = Optional[List[AllowedProfileDependencies]]

# 5 attempts per 5 minutes per email address
AUTH_MAX_ATTEMPTS = 5
AUTH_WINDOW_MS = 300000

DISPLAY_NAME_MAX_LENGTH = 100
DISPLAY_NAME_SUSPICIOUS_LENGTH = 50


class ProfileService:
    def __init__(
        self, session: AsyncSession, user: dict, security: SecurityContext
    ) -> None:
        self.session = session
        self.security = security
        self.user_metadata = user or {}

        self.user_id = self.user_metadata.get("uid")
        if not self.user_id:
            security.event_log.log_auth_failure("Missing user id in token metadata")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not authenticated.",
            )
        current_user_id.set(self.user_id)

    async def get_profile_by_id(
        self, profile_id: str, dependencies: DependenciesList = None
    ) -> Profile:
        query = select(Profile).where(Profile.id == profile_id)
        dependencies = dependencies or []
        if dependencies:
            query = query.options(
                *[selectinload(getattr(Profile, dep)) for dep in dependencies]
            )

        result = await self.session.execute(query)
        profile = result.scalars().one_or_none()
        if not profile:
            raise ProfileNotFound(f"Profile with ID {profile_id} not found.")

        return profile

    async def get_current_profile(
        self, dependencies: DependenciesList = None
    ) -> Profile:
        """
        Retrieve the profile of the authenticated user.
        You can optionally provide a list of relationships to be preloaded.
        """
        return await self.get_profile_by_id(self.user_id, dependencies=dependencies)

    async def register(self, data: ProfileRegister) -> Profile:
        """
        Creates the profile of the authenticated user.

        :raises RateLimited: after too many attempts for the same email.
        :raises ValidationError: on an invalid wallet address.
        :raises ProfileAlreadyExists: when the user registered before.
        """
        email = self.user_metadata.get("email")
        # keyed by email so retries from several sessions share one budget
        self.security.enforce_rate_limit(
            f"auth-{email or self.user_id}", None, AUTH_MAX_ATTEMPTS, AUTH_WINDOW_MS
        )

        display_name = sanitize_text_input(data.display_name, DISPLAY_NAME_MAX_LENGTH)
        if display_name != data.display_name:
            self.security.event_log.log_suspicious_input(
                "display_name", "Content sanitized during input", data.display_name
            )
        if len(data.display_name) > DISPLAY_NAME_SUSPICIOUS_LENGTH:
            self.security.event_log.log_suspicious_input(
                "display_name", "Unusually long input detected", data.display_name
            )

        wallet_address = None
        if data.wallet_address and data.wallet_address.strip():
            self.security.require_valid(
                "wallet_address",
                validate_mint_address(data.wallet_address),
                data.wallet_address,
            )
            wallet_address = data.wallet_address.strip()

        existing = await self.session.get(Profile, self.user_id)
        if existing:
            raise ProfileAlreadyExists(
                f"Profile for user {self.user_id} is already registered."
            )

        profile = Profile(
            id=self.user_id,
            email=email,
            display_name=display_name or None,
            wallet_address=wallet_address,
        )
        self.session.add(profile)
        await self.session.commit()
        await self.session.refresh(profile)

        logger.info("profile %s registered", profile.id)
        return profile

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        user: dict = Depends(get_user),
        security: SecurityContext = Depends(get_security_context),
    ) -> "ProfileService":
        return cls(session, user, security)
