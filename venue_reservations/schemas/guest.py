from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from venue_reservations.models import GuestRole


class GuestCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: EmailStr
    role: GuestRole = GuestRole.GUEST


class GuestBulkCreate(BaseModel):
    guests: list[GuestCreate] = Field(min_length=1, max_length=1000)


class GuestOut(BaseModel):
    id: str
    reservation_id: str
    name: str
    email: str
    role: GuestRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestBulkResult(BaseModel):
    created: int
    skipped: int
