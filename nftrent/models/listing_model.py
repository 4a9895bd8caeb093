from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional
from uuid import uuid4

from sqlalchemy import TIMESTAMP, Column, func
from sqlmodel import Field, Relationship

from nftrent.schemas.listing_schema import ListingBase

if TYPE_CHECKING:
    from .profile_model import Profile
    from .rental_model import Rental

SECONDS_PER_DAY = 86400


def new_id() -> str:
    return str(uuid4())


class NFTListing(ListingBase, table=True):
    __tablename__ = "nft_listings"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    owner_id: str = Field(foreign_key="profiles.id", index=True)

    active: bool = Field(default=True, index=True)
    # set iff the listing is bound to its one active rental
    # no foreign key, rentals already reference listings
    current_rental_id: str | None = Field(default=None, max_length=36)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(
            TIMESTAMP(timezone=True),
            nullable=True,
            server_default=func.now(),
            onupdate=func.now(),
        ),
    )

    # Relationships
    owner: Optional["Profile"] = Relationship(back_populates="listings")
    rentals: List["Rental"] = Relationship(back_populates="listing")

    @property
    def min_duration_days(self) -> int:
        # ceiling, a renter can never go below the listed minimum
        return -(-self.min_duration_secs // SECONDS_PER_DAY)

    @property
    def max_duration_days(self) -> int:
        return self.max_duration_secs // SECONDS_PER_DAY
