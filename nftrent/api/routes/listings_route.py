from typing import List

from fastapi import APIRouter, Depends, Query, status

from nftrent.models.enums.rental_status import RentalStatus
from nftrent.models.listing_model import NFTListing
from nftrent.schemas.listing_schema import (
    ListingCreate,
    ListingRead,
    ListingRentalInfo,
    ListingWithRentals,
)
from nftrent.schemas.profile_schema import ProfileInfoCard
from nftrent.schemas.rental_schema import RentalCreate, RentalRead
from nftrent.services.listing.listing_service import ListingService
from nftrent.services.rental.rental_service import RentalService

router = APIRouter(prefix="/listings", tags=["Listings"])


def to_listing_read(listing: NFTListing) -> ListingRead:
    # duration days are properties, model_dump only covers columns
    return ListingRead(
        **listing.model_dump(),
        min_duration_days=listing.min_duration_days,
        max_duration_days=listing.max_duration_days,
    )


@router.post(
    "/",
    response_model=ListingRead,
    status_code=status.HTTP_201_CREATED,
    summary="List an NFT for rent",
    description="Validates the listing terms, registers the NFT with the escrow and publishes an active listing owned by the current user.",
)
async def create_listing(
    *,
    new_listing_data: ListingCreate,
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listing = await listing_service.create(new_listing_data)
    return to_listing_read(listing)


@router.get(
    "/",
    response_model=List[ListingRead],
    summary="Get marketplace listings",
    description="Active listings available for rent, newest first.",
)
async def get_marketplace_listings(
    *,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listings = await listing_service.get_marketplace_listings(limit, offset)
    return [to_listing_read(listing) for listing in listings]


# get current user's listings with their rental history
@router.get(
    "/my-listings",
    response_model=List[ListingWithRentals],
    summary="Get current user's listings",
    description="Fetch all listings created by the current user together with their rentals.",
)
async def get_my_listings(
    *,
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listings = await listing_service.get_current_user_listings()

    listing_result: list[ListingWithRentals] = []
    for listing in listings:
        rentals = sorted(listing.rentals, key=lambda r: r.start_date, reverse=True)
        listing_result.append(
            ListingWithRentals(
                **to_listing_read(listing).model_dump(),
                rentals=[
                    ListingRentalInfo(
                        id=rental.id,
                        renter=ProfileInfoCard(
                            id=rental.renter.id,
                            display_name=rental.renter.display_name,
                        ),
                        start_date=rental.start_date,
                        end_date=rental.end_date,
                        status=rental.status,
                    )
                    for rental in rentals
                ],
                currently_rented=any(
                    rental.status == RentalStatus.ACTIVE for rental in rentals
                ),
            )
        )

    return listing_result


@router.get("/{listing_id}", response_model=ListingRead)
async def get_listing(
    *,
    listing_id: str,
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listing = await listing_service.get_listing(listing_id)
    return to_listing_read(listing)


@router.put(
    "/{listing_id}/toggle",
    response_model=ListingRead,
    summary="Activate or deactivate a listing",
    description="Only the owner can toggle a listing, and never while it is rented.",
)
async def toggle_listing(
    *,
    listing_id: str,
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listing = await listing_service.toggle_active(listing_id)
    return to_listing_read(listing)


@router.post(
    "/{listing_id}/rent",
    response_model=RentalRead,
    status_code=status.HTTP_201_CREATED,
    summary="Rent a listed NFT",
    description="Rents the NFT for a whole number of days within the listing terms. The listing stays bound to the rental until it is returned.",
)
async def rent_listing(
    *,
    listing_id: str,
    rental_data: RentalCreate,
    rental_service: RentalService = Depends(RentalService.get_dependency),
):
    rental = await rental_service.create(listing_id, rental_data.duration_days)
    return RentalRead(**rental.model_dump())
