import logging
from typing import List, Literal, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import desc, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from nftrent.api.dependencies import (
    get_async_session,
    get_escrow_authority,
    get_security_context,
    get_settings,
    get_user,
)
from nftrent.core.config import Settings, config
from nftrent.models.enums.rental_status import RentalStatus
from nftrent.models.listing_model import SECONDS_PER_DAY, NFTListing
from nftrent.models.profile_model import Profile
from nftrent.models.rental_model import Rental
from nftrent.schemas.listing_schema import ListingCreate
from nftrent.security.context import SecurityContext
from nftrent.security.monitor import current_user_id
from nftrent.security.validation import (
    sanitize_text_input,
    validate_mint_address,
    validate_numeric_range,
    validate_secure_url,
)
from nftrent.services.escrow import EscrowAuthority, call_escrow
from nftrent.services.exceptions import (
    CannotToggleWhileRented,
    ListingNotFound,
    NotListingOwner,
    ProfileNotFound,
    RecordStoreFailure,
)
from nftrent.services.transaction import transaction

logger = logging.getLogger(__name__)

AllowedListingDependencies = Literal["owner", "rentals"]
DependenciesList = Optional[List[AllowedListingDependencies]]

LAMPORTS_PER_SOL = 1_000_000_000

LISTING_SUBMIT_KEY = "nft-listing-submit"
LISTING_SUBMIT_MAX_ATTEMPTS = 3
LISTING_TOGGLE_KEY = "nft-listing-toggle"
LISTING_TOGGLE_MAX_ATTEMPTS = 10
LISTING_WINDOW_MS = 60000

# 0.001 .. 1000 SOL per day
MIN_DAILY_RENT_LAMPORTS = LAMPORTS_PER_SOL // 1000
MAX_DAILY_RENT_LAMPORTS = 1000 * LAMPORTS_PER_SOL
# 0.001 .. 10000 SOL
MIN_COLLATERAL_LAMPORTS = LAMPORTS_PER_SOL // 1000
MAX_COLLATERAL_LAMPORTS = 10000 * LAMPORTS_PER_SOL
# 1 .. 365 days
MIN_DURATION_SECS = SECONDS_PER_DAY
MAX_DURATION_SECS = 365 * SECONDS_PER_DAY

NAME_MAX_LENGTH = 100
NAME_SUSPICIOUS_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 2000
DESCRIPTION_SUSPICIOUS_LENGTH = 1000


class ListingService:
    def __init__(
        self,
        session: AsyncSession,
        user: dict,
        security: SecurityContext,
        escrow: EscrowAuthority,
        settings: Settings = config,
    ) -> None:
        self.session = session
        self.security = security
        self.escrow = escrow
        self.settings = settings

        self.user_metadata = user or {}
        self.user_id = self.user_metadata.get("uid")
        if not self.user_id:
            security.event_log.log_auth_failure("Missing user id in token metadata")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not authenticated.",
            )
        current_user_id.set(self.user_id)

    async def _get_current_profile(self) -> Profile:
        profile = await self.session.get(Profile, self.user_id)
        if not profile:
            raise ProfileNotFound(
                f"Profile for user {self.user_id} not found, register first."
            )
        return profile

    def _sanitize(
        self,
        field: str,
        value: str | None,
        max_length: int,
        suspicious_length: int,
    ) -> str | None:
        if value is None:
            return None

        sanitized = sanitize_text_input(value, max_length)
        if sanitized != value:
            self.security.event_log.log_suspicious_input(
                field, "Content sanitized during input", value
            )
        if len(value) > suspicious_length:
            self.security.event_log.log_suspicious_input(
                field, "Unusually long input detected", value
            )
        return sanitized or None

    def _validate_terms(self, data: ListingCreate) -> None:
        require_valid = self.security.require_valid

        require_valid(
            "daily_rent_lamports",
            validate_numeric_range(
                data.daily_rent_lamports,
                MIN_DAILY_RENT_LAMPORTS,
                MAX_DAILY_RENT_LAMPORTS,
                "Daily rent (lamports)",
            ),
            data.daily_rent_lamports,
        )
        require_valid(
            "collateral_lamports",
            validate_numeric_range(
                data.collateral_lamports,
                MIN_COLLATERAL_LAMPORTS,
                MAX_COLLATERAL_LAMPORTS,
                "Collateral (lamports)",
            ),
            data.collateral_lamports,
        )
        require_valid(
            "min_duration_secs",
            validate_numeric_range(
                data.min_duration_secs,
                MIN_DURATION_SECS,
                MAX_DURATION_SECS,
                "Minimum duration (seconds)",
            ),
            data.min_duration_secs,
        )
        require_valid(
            "max_duration_secs",
            validate_numeric_range(
                data.max_duration_secs,
                MIN_DURATION_SECS,
                MAX_DURATION_SECS,
                "Maximum duration (seconds)",
            ),
            data.max_duration_secs,
        )
        if data.min_duration_secs > data.max_duration_secs:
            self.security.reject(
                "duration_range",
                "Minimum duration cannot exceed maximum duration",
                f"{data.min_duration_secs}-{data.max_duration_secs}",
            )

    async def create(self, data: ListingCreate) -> NFTListing:
        """
        Lists an NFT for rent on behalf of the authenticated user.

        Every field is checked before anything is written, each rejection is
        recorded in the security event log.

        :raises RateLimited: after 3 submissions within a minute.
        :raises ValidationError: on the first invalid field.
        :raises EscrowCallFailed: when the escrow refused the listing.
        """
        self.security.enforce_rate_limit(
            LISTING_SUBMIT_KEY,
            self.user_id,
            LISTING_SUBMIT_MAX_ATTEMPTS,
            LISTING_WINDOW_MS,
        )
        owner = await self._get_current_profile()

        name = self._sanitize(
            "name", data.name, NAME_MAX_LENGTH, NAME_SUSPICIOUS_LENGTH
        )
        description = self._sanitize(
            "description",
            data.description,
            DESCRIPTION_MAX_LENGTH,
            DESCRIPTION_SUSPICIOUS_LENGTH,
        )

        self.security.require_valid(
            "mint_address", validate_mint_address(data.mint_address), data.mint_address
        )
        mint_address = data.mint_address.strip()

        image_url = None
        if data.image_url and data.image_url.strip():
            self.security.require_valid(
                "image_url", validate_secure_url(data.image_url), data.image_url
            )
            image_url = data.image_url.strip()

        self._validate_terms(data)

        listing = NFTListing(
            owner_id=owner.id,
            mint_address=mint_address,
            name=name,
            description=description,
            image_url=image_url,
            daily_rent_lamports=data.daily_rent_lamports,
            collateral_lamports=data.collateral_lamports,
            min_duration_secs=data.min_duration_secs,
            max_duration_secs=data.max_duration_secs,
            active=True,
            current_rental_id=None,
        )

        escrow_result = await call_escrow(
            "list",
            self.escrow.list_nft(
                owner_id=owner.id,
                mint_address=mint_address,
                daily_rent_lamports=listing.daily_rent_lamports,
                collateral_lamports=listing.collateral_lamports,
                min_duration_days=listing.min_duration_days,
                max_duration_days=listing.max_duration_days,
            ),
            self.settings.allow_simulated_escrow,
        )

        try:
            async with transaction(self.session):
                self.session.add(listing)
        except RecordStoreFailure:
            # the escrow has no cancel call, the listing must be reconciled by hand
            logger.error(
                "escrow list call %s for %s succeeded but the listing was not stored",
                escrow_result.signature,
                mint_address,
            )
            raise
        await self.session.refresh(listing)

        logger.info("listing %s created by %s", listing.id, owner.id)
        return listing

    async def has_active_rental(self, listing_id: str) -> bool:
        query = select(Rental.id).where(
            Rental.listing_id == listing_id,
            Rental.status == RentalStatus.ACTIVE,
        )
        result = await self.session.execute(query.limit(1))
        return result.scalars().first() is not None

    async def toggle_active(self, listing_id: str) -> NFTListing:
        """
        Activates or deactivates a listing of the authenticated user.

        A listing bound to a rental cannot be toggled, only returning the
        rental makes it available again.
        """
        self.security.enforce_rate_limit(
            LISTING_TOGGLE_KEY,
            self.user_id,
            LISTING_TOGGLE_MAX_ATTEMPTS,
            LISTING_WINDOW_MS,
        )

        listing = await self.get_listing(listing_id)

        # check that the caller owns the listing
        if listing.owner_id != self.user_id:
            self.security.event_log.log_auth_failure(
                "Listing toggle attempted by non-owner",
                {"listing_id": listing.id},
            )
            raise NotListingOwner("You can only modify your own listings.")

        if listing.current_rental_id or await self.has_active_rental(listing.id):
            raise CannotToggleWhileRented(
                "Cannot toggle a listing while it is rented."
            )

        new_active = not listing.active
        async with transaction(self.session):
            result = await self.session.execute(
                update(NFTListing)
                .where(
                    NFTListing.id == listing.id,
                    NFTListing.active == listing.active,
                    NFTListing.current_rental_id.is_(None),
                )
                .values(active=new_active)
            )
            # rented or toggled by a concurrent request in the meantime
            if result.rowcount != 1:
                raise CannotToggleWhileRented(
                    "Listing state changed, reload it and try again."
                )
        await self.session.refresh(listing)

        logger.info("listing %s active=%s", listing.id, listing.active)
        return listing

    async def get_listing(
        self, listing_id: str, dependencies: DependenciesList = None
    ) -> NFTListing:
        query = select(NFTListing).where(NFTListing.id == listing_id)
        if dependencies:
            query = query.options(
                *[selectinload(getattr(NFTListing, dep)) for dep in dependencies]
            ).execution_options(populate_existing=True)

        result = await self.session.execute(query)
        listing = result.scalars().one_or_none()
        if not listing:
            raise ListingNotFound(f"Listing with ID {listing_id} not found.")

        return listing

    async def get_marketplace_listings(
        self, limit: int = 50, offset: int = 0
    ) -> list[NFTListing]:
        """Returns active listings, newest first."""
        query = (
            select(NFTListing)
            .where(NFTListing.active == True)  # noqa: E712
            .order_by(desc(NFTListing.created_at))
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_current_user_listings(self) -> list[NFTListing]:
        """
        Returns every listing of the authenticated user, newest first, with
        its rentals and their renters preloaded.
        """
        query = (
            select(NFTListing)
            .where(NFTListing.owner_id == self.user_id)
            .options(selectinload(NFTListing.rentals).selectinload(Rental.renter))
            .order_by(desc(NFTListing.created_at))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        user: dict = Depends(get_user),
        security: SecurityContext = Depends(get_security_context),
        escrow: EscrowAuthority = Depends(get_escrow_authority),
        settings: Settings = Depends(get_settings),
    ) -> "ListingService":
        return cls(session, user, security, escrow, settings)
