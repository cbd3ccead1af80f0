import datetime as dt
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from venue_reservations.models import BlockMode, BlockPeriod


class BlockCreate(BaseModel):
    unit_id: str
    area_id: Optional[str] = None  # None blocks every area of the unit
    date: dt.date
    mode: BlockMode = BlockMode.PERIOD
    period: BlockPeriod = BlockPeriod.ALL_DAY
    reason: Optional[str] = Field(default=None, max_length=500)


class BlockUpdate(BaseModel):
    unit_id: Optional[str] = None
    area_id: Optional[str] = None
    date: Optional[dt.date] = None
    mode: Optional[BlockMode] = None
    period: Optional[BlockPeriod] = None
    reason: Optional[str] = Field(default=None, max_length=500)


class BlockOut(BaseModel):
    id: str
    unit_id: str
    area_id: Optional[str] = None
    date: dt.datetime
    mode: BlockMode
    period: BlockPeriod
    reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)
