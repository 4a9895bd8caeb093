from datetime import datetime
from typing import Optional

from pydantic import ConfigDict
from sqlalchemy import BigInteger
from sqlmodel import Field, SQLModel

from nftrent.models.enums.rental_status import RentalStatus


# terms snapshot copied from the listing when the rental is created
class RentalTermsBase(SQLModel):
    duration_days: int
    daily_rent_lamports: int = Field(sa_type=BigInteger)
    collateral_lamports: int = Field(sa_type=BigInteger)
    total_cost_lamports: int = Field(sa_type=BigInteger)


class RentalCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")
    duration_days: int


class RentalListingInfo(SQLModel):
    id: str
    name: str | None = None
    image_url: str | None = None
    mint_address: str
    owner_id: str


class RentalRead(RentalTermsBase):
    id: str
    listing_id: str
    renter_id: str
    start_date: datetime
    end_date: datetime
    status: RentalStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


# Schema for the "my rentals" view of a renter
class RentalWithListing(RentalRead):
    listing: RentalListingInfo
