from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from venue_reservations.models import ReservationStatus, ReservationType

# Fields only ADMIN callers may set
ADMIN_ONLY_FIELDS = ("source", "utm_source", "utm_campaign")


class ReservationAttribution(BaseModel):
    utm_source: Optional[str] = Field(default=None, max_length=120)
    utm_medium: Optional[str] = Field(default=None, max_length=120)
    utm_campaign: Optional[str] = Field(default=None, max_length=120)
    utm_content: Optional[str] = Field(default=None, max_length=120)
    utm_term: Optional[str] = Field(default=None, max_length=120)
    url: Optional[str] = Field(default=None, max_length=500)
    ref: Optional[str] = Field(default=None, max_length=120)
    source: Optional[str] = Field(default=None, max_length=60)


class ReservationCreate(ReservationAttribution):
    full_name: str = Field(min_length=3, max_length=200)
    people: int = Field(ge=1, le=1000)
    kids: int = Field(default=0, ge=0, le=1000)
    reservation_date: datetime
    birthday_date: Optional[datetime] = None
    cpf: Optional[str] = Field(default=None, max_length=14)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    notes: Optional[str] = Field(default=None, max_length=2000)
    reservation_type: Optional[ReservationType] = None

    # Ids win; names are the legacy way clients point at a unit/area
    unit_id: Optional[str] = None
    unit: Optional[str] = Field(default=None, max_length=120)
    area_id: Optional[str] = None
    area: Optional[str] = Field(default=None, max_length=120)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("full_name must have at least 3 characters")
        return v


class ReservationUpdate(ReservationAttribution):
    full_name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    people: Optional[int] = Field(default=None, ge=1, le=1000)
    kids: Optional[int] = Field(default=None, ge=0, le=1000)
    reservation_date: Optional[datetime] = None
    birthday_date: Optional[datetime] = None
    cpf: Optional[str] = Field(default=None, max_length=14)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    notes: Optional[str] = Field(default=None, max_length=2000)
    reservation_type: Optional[ReservationType] = None
    unit_id: Optional[str] = None
    unit: Optional[str] = Field(default=None, max_length=120)
    area_id: Optional[str] = None
    area: Optional[str] = Field(default=None, max_length=120)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus
    renew_qr: bool = False


class CheckinByToken(BaseModel):
    token: str = Field(min_length=1, max_length=64)

    @field_validator("token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("token is required")
        return v


class ReservationOut(BaseModel):
    id: str
    full_name: str
    cpf: Optional[str] = None
    people: int
    kids: int
    reservation_date: datetime
    birthday_date: Optional[datetime] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    reservation_type: Optional[ReservationType] = None
    unit_id: Optional[str] = None
    unit_name: Optional[str] = None
    area_id: Optional[str] = None
    area_name: Optional[str] = None
    status: ReservationStatus
    reservation_code: str
    qr_token: str
    qr_expires_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    url: Optional[str] = None
    ref: Optional[str] = None
    source: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReservationPublicOut(BaseModel):
    """What the booking page may show back to the guest."""

    id: str
    full_name: str
    people: int
    kids: int
    reservation_date: datetime
    unit_name: Optional[str] = None
    area_name: Optional[str] = None
    status: ReservationStatus
    reservation_code: str
    qr_token: str
    qr_expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReservationStatusOut(BaseModel):
    status: ReservationStatus
    checked_in_at: Optional[datetime] = None
    reservation_code: str

    model_config = ConfigDict(from_attributes=True)


class ReservationPage(BaseModel):
    items: list[ReservationOut]
    total: int
    skip: int
    take: int


class CalendarLinkOut(BaseModel):
    url: str
    emails: list[str]
