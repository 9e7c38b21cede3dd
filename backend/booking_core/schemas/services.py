# backend/booking_core/schemas/services.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    price: Optional[float] = None
    active: bool = True

    model_config = {"from_attributes": True}


# duration_minutes is fixed at creation
class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = None
    active: Optional[bool] = None

    model_config = {"from_attributes": True, "extra": "forbid"}


class ServiceRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: Optional[float] = None
    active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
