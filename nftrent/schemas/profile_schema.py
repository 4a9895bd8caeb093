from datetime import datetime

from pydantic import ConfigDict, EmailStr
from sqlmodel import Field, SQLModel


class ProfileBase(SQLModel):
    display_name: str | None = Field(default=None, max_length=255)
    wallet_address: str | None = Field(default=None, max_length=64)


class ProfileRegister(SQLModel):
    model_config = ConfigDict(extra="forbid")
    display_name: str
    wallet_address: str | None = None


class ProfileRead(ProfileBase):
    id: str
    email: EmailStr | None = None
    created_at: datetime


# owner/renter info shown next to listings and rentals
class ProfileInfoCard(SQLModel):
    id: str
    display_name: str | None = None
