from typing import Optional
from pydantic import BaseModel

from venue_reservations.domain.periods import Period


class AreaAvailability(BaseModel):
    id: str
    name: str
    unit_id: str
    capacity_afternoon: Optional[int] = None
    capacity_night: Optional[int] = None
    photo_url: Optional[str] = None
    description: Optional[str] = None
    icon_emoji: Optional[str] = None
    is_active: bool = True

    # Date-specific fields, absent for the static listing
    period: Optional[Period] = None
    capacity: Optional[int] = None
    remaining: Optional[int] = None
    available: Optional[int] = None
    is_available: Optional[bool] = None
    blocked: Optional[bool] = None
