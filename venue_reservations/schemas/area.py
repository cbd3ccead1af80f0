from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _floor_capacity(v):
    # Non-negative integers; NULL stays NULL (read as zero seats)
    if v is None:
        return None
    return max(0, int(v))


class AreaBase(BaseModel):
    unit_id: str
    name: str = Field(min_length=2, max_length=120)
    capacity_afternoon: Optional[int] = None
    capacity_night: Optional[int] = None
    is_active: bool = True
    photo_url: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    icon_emoji: Optional[str] = Field(default=None, max_length=16)

    @field_validator("capacity_afternoon", "capacity_night", mode="before")
    @classmethod
    def floor_capacity(cls, v):
        return _floor_capacity(v)


class AreaCreate(AreaBase):
    pass


class AreaUpdate(BaseModel):
    unit_id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    capacity_afternoon: Optional[int] = None
    capacity_night: Optional[int] = None
    is_active: Optional[bool] = None
    photo_url: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    icon_emoji: Optional[str] = Field(default=None, max_length=16)

    @field_validator("capacity_afternoon", "capacity_night", mode="before")
    @classmethod
    def floor_capacity(cls, v):
        return _floor_capacity(v)


class AreaOut(BaseModel):
    id: str
    unit_id: str
    name: str
    capacity_afternoon: Optional[int] = None
    capacity_night: Optional[int] = None
    is_active: bool
    photo_url: Optional[str] = None
    description: Optional[str] = None
    icon_emoji: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AreaPage(BaseModel):
    items: list[AreaOut]
    total: int
    page: int
    page_size: int
