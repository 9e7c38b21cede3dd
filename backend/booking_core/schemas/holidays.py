# backend/booking_core/schemas/holidays.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class HolidayCreate(BaseModel):
    service_id: int
    holiday_date: date
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class HolidayUpdate(BaseModel):
    holiday_date: Optional[date] = None
    note: Optional[str] = None

    model_config = {"from_attributes": True, "extra": "forbid"}


class HolidayRead(BaseModel):
    id: int
    service_id: int
    holiday_date: date
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
