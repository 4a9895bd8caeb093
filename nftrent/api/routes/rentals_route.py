from typing import List

from fastapi import APIRouter, Depends

from nftrent.models.rental_model import Rental
from nftrent.schemas.rental_schema import RentalListingInfo, RentalRead, RentalWithListing
from nftrent.services.rental.rental_service import RentalService

router = APIRouter(prefix="/rentals", tags=["Rentals"])


def to_rental_with_listing(rental: Rental) -> RentalWithListing:
    listing = rental.listing
    return RentalWithListing(
        **rental.model_dump(),
        listing=RentalListingInfo(
            id=listing.id,
            name=listing.name,
            image_url=listing.image_url,
            mint_address=listing.mint_address,
            owner_id=listing.owner_id,
        ),
    )


@router.get(
    "/my-rentals",
    response_model=List[RentalWithListing],
    summary="Get current user's rentals",
    description="Fetch all rentals of the current user, newest first, with the rented listing.",
)
async def get_my_rentals(
    *,
    rental_service: RentalService = Depends(RentalService.get_dependency),
):
    rentals = await rental_service.get_current_user_rentals()
    return [to_rental_with_listing(rental) for rental in rentals]


@router.get("/{rental_id}", response_model=RentalWithListing)
async def get_rental(
    *,
    rental_id: str,
    rental_service: RentalService = Depends(RentalService.get_dependency),
):
    rental = await rental_service.get_rental(rental_id, dependencies=["listing"])
    return to_rental_with_listing(rental)


@router.post(
    "/{rental_id}/return",
    response_model=RentalRead,
    summary="Return a rented NFT",
    description="Refunds the collateral through the escrow, closes the rental and makes the listing available again.",
)
async def return_rental(
    *,
    rental_id: str,
    rental_service: RentalService = Depends(RentalService.get_dependency),
):
    rental = await rental_service.return_rental(rental_id)
    return RentalRead(**rental.model_dump())
