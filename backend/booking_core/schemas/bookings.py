# backend/booking_core/schemas/bookings.py

from datetime import datetime
from typing import Literal, Optional
from pydantic import AwareDatetime, BaseModel, EmailStr, Field, model_validator


class BookingCreate(BaseModel):
    service_id: int
    start: AwareDatetime = Field(description="ISO-8601 instant with offset")
    end: AwareDatetime = Field(description="ISO-8601 instant with offset")
    customer_name: str = Field(min_length=1)
    customer_email: EmailStr
    notes: Optional[str] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def check_range(self):
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class BookingStatusUpdate(BaseModel):
    status: Literal["canceled", "confirmed"]

    model_config = {"extra": "forbid"}


class BookingRead(BaseModel):
    id: int
    service_id: int
    customer_name: str
    customer_email: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
