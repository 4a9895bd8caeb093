from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import TIMESTAMP, Column, func
from sqlmodel import Field, Relationship

from nftrent.schemas.profile_schema import ProfileBase

if TYPE_CHECKING:
    from .listing_model import NFTListing
    from .rental_model import Rental


class Profile(ProfileBase, table=True):
    __tablename__ = "profiles"

    # stable user id issued by the identity provider (firebase uid)
    id: str = Field(primary_key=True, max_length=128)
    email: str | None = Field(default=None, max_length=255, index=True)

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
    listings: List["NFTListing"] = Relationship(back_populates="owner")
    rentals: List["Rental"] = Relationship(back_populates="renter")
