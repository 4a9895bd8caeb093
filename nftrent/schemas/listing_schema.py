from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict
from sqlalchemy import BigInteger
from sqlmodel import Field, SQLModel

from nftrent.models.enums.rental_status import RentalStatus
from nftrent.schemas.profile_schema import ProfileInfoCard


# Basic schema for listing data
# field formats are checked by the listing service so that every rejection
# ends up in the security event log, hence no constraints here
class ListingBase(SQLModel):
    mint_address: str = Field(index=True, max_length=64)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    image_url: str | None = Field(default=None, max_length=2048)

    # amounts in lamports, durations in seconds
    daily_rent_lamports: int = Field(sa_type=BigInteger)
    collateral_lamports: int = Field(sa_type=BigInteger)
    min_duration_secs: int
    max_duration_secs: int


# schema for listing creation
class ListingCreate(ListingBase):
    model_config = ConfigDict(extra="forbid")
    # pydantic only checks types, lengths are handled by the sanitizer
    mint_address: str
    name: str | None = None
    description: str | None = None
    image_url: str | None = None


class ListingRead(ListingBase):
    id: str
    owner_id: str
    active: bool
    current_rental_id: str | None = None
    # whole-day bounds a renter can choose from
    min_duration_days: int
    max_duration_days: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class ListingRentalInfo(SQLModel):
    id: str
    renter: ProfileInfoCard
    start_date: datetime
    end_date: datetime
    status: RentalStatus


# Schema for the "my listings" view of an owner
class ListingWithRentals(ListingRead):
    rentals: List[ListingRentalInfo] = []
    currently_rented: bool = False
