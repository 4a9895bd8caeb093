from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import TIMESTAMP, Column, func
from sqlmodel import Field, Relationship

from nftrent.models.enums.rental_status import RentalStatus
from nftrent.models.listing_model import new_id
from nftrent.schemas.rental_schema import RentalTermsBase

if TYPE_CHECKING:
    from .listing_model import NFTListing
    from .profile_model import Profile


class Rental(RentalTermsBase, table=True):
    __tablename__ = "rentals"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)

    # Foreign keys
    listing_id: str = Field(foreign_key="nft_listings.id", index=True)
    renter_id: str = Field(foreign_key="profiles.id", index=True)

    status: RentalStatus = Field(default=RentalStatus.ACTIVE, index=True)

    start_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
    end_date: datetime = Field(
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
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
    listing: Optional["NFTListing"] = Relationship(back_populates="rentals")
    renter: Optional["Profile"] = Relationship(back_populates="rentals")
