from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UnitBase(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    slug: Optional[str] = Field(default=None, max_length=140)
    is_active: bool = True


class UnitCreate(UnitBase):
    pass


class UnitUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    slug: Optional[str] = Field(default=None, max_length=140)
    is_active: Optional[bool] = None


class UnitOut(BaseModel):
    id: str
    name: str
    slug: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UnitOption(BaseModel):
    id: str
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class UnitPage(BaseModel):
    items: list[UnitOut]
    total: int
    page: int
    page_size: int
