import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Literal, Optional

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
from nftrent.models.listing_model import NFTListing
from nftrent.models.profile_model import Profile
from nftrent.models.rental_model import Rental
from nftrent.security.context import SecurityContext
from nftrent.security.monitor import current_user_id
from nftrent.security.validation import validate_numeric_range
from nftrent.services.escrow import EscrowAuthority, EscrowResult, call_escrow
from nftrent.services.exceptions import (
    AlreadyRented,
    CannotRentOwnListing,
    ListingNotActive,
    ListingNotFound,
    NotRented,
    ProfileNotFound,
    RecordStoreFailure,
    RentalNotFound,
    UnauthorizedRenter,
)
from nftrent.services.listing.listing_service import LAMPORTS_PER_SOL
from nftrent.services.transaction import transaction

logger = logging.getLogger(__name__)

AllowedRentalDependencies = Literal["listing", "renter"]
DependenciesList = Optional[List[AllowedRentalDependencies]]

RENTAL_SUBMIT_KEY = "nft-rental-submit"
RENTAL_RETURN_KEY = "nft-rental-return"
RENTAL_MAX_ATTEMPTS = 5
RENTAL_WINDOW_MS = 60000

# flagged in the event log, not rejected
LONG_RENTAL_DAYS = 90
HIGH_VALUE_LAMPORTS = 100 * LAMPORTS_PER_SOL


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def total_cost_lamports(
    daily_rent_lamports: int, collateral_lamports: int, duration_days: int
) -> int:
    return daily_rent_lamports * duration_days + collateral_lamports


async def find_overdue_rentals(
    session: AsyncSession, now: datetime | None = None
) -> list[Rental]:
    """Active rentals whose end date has passed, oldest deadline first."""
    now = now or utc_now()
    query = (
        select(Rental)
        .where(Rental.status == RentalStatus.ACTIVE, Rental.end_date < now)
        .options(selectinload(Rental.listing))
        .order_by(Rental.end_date)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    return result.scalars().all()


class RentalService:
    def __init__(
        self,
        session: AsyncSession,
        user: dict,
        security: SecurityContext,
        escrow: EscrowAuthority,
        settings: Settings = config,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.security = security
        self.escrow = escrow
        self.settings = settings
        self.clock = clock

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

    def _flag_anomalies(self, duration_days: int, total_cost: int) -> None:
        event_log = self.security.event_log
        if duration_days > LONG_RENTAL_DAYS:
            event_log.log_validation_error(
                "duration_days", "Unusually long rental period requested", duration_days
            )
        if total_cost > HIGH_VALUE_LAMPORTS:
            event_log.log_validation_error(
                "total_cost", "High value transaction attempted", total_cost
            )

    def _log_unrecorded_escrow_call(
        self, operation: str, escrow_result: EscrowResult, listing_id: str
    ) -> None:
        # not compensated, the escrow has no call undoing a rent or a return
        logger.error(
            "escrow %s call %s for listing %s succeeded but was not recorded",
            operation,
            escrow_result.signature,
            listing_id,
        )

    async def create(self, listing_id: str, duration_days: int) -> Rental:
        """
        Rents a listing for ``duration_days`` whole days on behalf of the
        authenticated user.

        The rental row and the listing binding are written in one
        transaction. The listing is claimed with a conditional update, so of
        two concurrent requests only one can bind it.

        :raises AlreadyRented: when the listing is bound to another rental.
        :raises ListingNotActive: when the owner deactivated the listing.
        :raises ValidationError: when the duration is outside the listing terms.
        :raises EscrowCallFailed: when the escrow refused the rent call.
        """
        self.security.enforce_rate_limit(
            RENTAL_SUBMIT_KEY, self.user_id, RENTAL_MAX_ATTEMPTS, RENTAL_WINDOW_MS
        )
        renter = await self._get_current_profile()

        listing = await self.session.get(NFTListing, listing_id)
        if not listing:
            raise ListingNotFound(f"Listing with ID {listing_id} not found.")

        if listing.owner_id == renter.id:
            raise CannotRentOwnListing("You cannot rent your own listing.")

        if not listing.active:
            if listing.current_rental_id:
                raise AlreadyRented("This NFT is already rented.")
            raise ListingNotActive("This listing is not active.")

        min_days = listing.min_duration_days
        max_days = listing.max_duration_days
        self.security.require_valid(
            "duration_days",
            validate_numeric_range(
                duration_days, min_days, max_days, "Rental duration (days)"
            ),
            duration_days,
        )

        # terms are copied so later listing edits do not change the rental
        daily_rent = listing.daily_rent_lamports
        collateral = listing.collateral_lamports
        total_cost = total_cost_lamports(daily_rent, collateral, duration_days)
        self._flag_anomalies(duration_days, total_cost)

        start_date = self.clock()
        rental = Rental(
            listing_id=listing.id,
            renter_id=renter.id,
            duration_days=duration_days,
            daily_rent_lamports=daily_rent,
            collateral_lamports=collateral,
            total_cost_lamports=total_cost,
            status=RentalStatus.ACTIVE,
            start_date=start_date,
            end_date=start_date + timedelta(days=duration_days),
        )
        mint_address = listing.mint_address

        escrow_result = None
        try:
            async with transaction(self.session):
                self.session.add(rental)
                await self.session.flush()

                result = await self.session.execute(
                    update(NFTListing)
                    .where(
                        NFTListing.id == listing.id,
                        NFTListing.active == True,  # noqa: E712
                        NFTListing.current_rental_id.is_(None),
                    )
                    .values(active=False, current_rental_id=rental.id)
                )
                # another rental claimed the listing first
                if result.rowcount != 1:
                    raise AlreadyRented("This NFT is already rented.")

                escrow_result = await call_escrow(
                    "rent",
                    self.escrow.rent_nft(
                        renter_id=renter.id,
                        mint_address=mint_address,
                        duration_days=duration_days,
                    ),
                    self.settings.allow_simulated_escrow,
                )
        except RecordStoreFailure:
            if escrow_result is not None:
                self._log_unrecorded_escrow_call("rent", escrow_result, listing_id)
            raise
        await self.session.refresh(rental)

        logger.info(
            "rental %s: listing %s rented by %s for %d days",
            rental.id,
            rental.listing_id,
            rental.renter_id,
            duration_days,
        )
        return rental

    async def return_rental(self, rental_id: str) -> Rental:
        """
        Returns an active rental of the authenticated user and makes the
        listing available again.

        Returning twice is rejected with ``NotRented`` and changes nothing.
        """
        self.security.enforce_rate_limit(
            RENTAL_RETURN_KEY, self.user_id, RENTAL_MAX_ATTEMPTS, RENTAL_WINDOW_MS
        )

        rental = await self.get_rental(rental_id)

        if rental.status != RentalStatus.ACTIVE:
            raise NotRented("This rental is not active.")

        # check that the caller is the renter
        if rental.renter_id != self.user_id:
            self.security.event_log.log_auth_failure(
                "Rental return attempted by non-renter",
                {"rental_id": rental.id},
            )
            raise UnauthorizedRenter("Only the renter can return this NFT.")

        listing = await self.session.get(NFTListing, rental.listing_id)
        listing_id = listing.id

        escrow_result = None
        try:
            async with transaction(self.session):
                result = await self.session.execute(
                    update(Rental)
                    .where(Rental.id == rental.id, Rental.status == RentalStatus.ACTIVE)
                    .values(status=RentalStatus.RETURNED)
                )
                # returned by a concurrent request
                if result.rowcount != 1:
                    raise NotRented("This rental is not active.")

                result = await self.session.execute(
                    update(NFTListing)
                    .where(
                        NFTListing.id == rental.listing_id,
                        NFTListing.current_rental_id == rental.id,
                    )
                    .values(active=True, current_rental_id=None)
                )
                if result.rowcount != 1:
                    logger.warning(
                        "listing %s was not bound to returned rental %s",
                        rental.listing_id,
                        rental.id,
                    )

                # collateral refund, the transaction is only committed once it succeeded
                escrow_result = await call_escrow(
                    "return",
                    self.escrow.return_nft(
                        renter_id=rental.renter_id,
                        mint_address=listing.mint_address,
                        collateral_lamports=rental.collateral_lamports,
                    ),
                    self.settings.allow_simulated_escrow,
                )
        except RecordStoreFailure:
            if escrow_result is not None:
                self._log_unrecorded_escrow_call("return", escrow_result, listing_id)
            raise
        await self.session.refresh(rental)

        logger.info("rental %s returned by %s", rental.id, rental.renter_id)
        return rental

    async def get_rental(
        self, rental_id: str, dependencies: DependenciesList = None
    ) -> Rental:
        query = select(Rental).where(Rental.id == rental_id)
        if dependencies:
            query = query.options(
                *[selectinload(getattr(Rental, dep)) for dep in dependencies]
            ).execution_options(populate_existing=True)

        result = await self.session.execute(query)
        rental = result.scalars().one_or_none()
        if not rental:
            raise RentalNotFound(f"Rental with ID {rental_id} not found.")

        return rental

    async def get_current_user_rentals(self) -> list[Rental]:
        """Rentals of the authenticated user, newest first, with their listing."""
        query = (
            select(Rental)
            .where(Rental.renter_id == self.user_id)
            .options(selectinload(Rental.listing))
            .order_by(desc(Rental.created_at))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_overdue_rentals(self, now: datetime | None = None) -> list[Rental]:
        return await find_overdue_rentals(self.session, now or self.clock())

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        user: dict = Depends(get_user),
        security: SecurityContext = Depends(get_security_context),
        escrow: EscrowAuthority = Depends(get_escrow_authority),
        settings: Settings = Depends(get_settings),
    ) -> "RentalService":
        return cls(session, user, security, escrow, settings)
