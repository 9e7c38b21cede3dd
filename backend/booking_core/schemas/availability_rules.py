# backend/booking_core/schemas/availability_rules.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from ..errors import ValidationError
from ..validation import load_timezone, parse_local_time


def _check_time(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        parse_local_time(v)
    except ValidationError as exc:
        raise ValueError(exc.message)
    return v


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        load_timezone(v)
    except ValidationError as exc:
        raise ValueError(exc.message)
    return v


class AvailabilityRuleCreate(BaseModel):
    service_id: int
    weekday: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time_local: str = Field(description="HH:MM")
    end_time_local: str = Field(description="HH:MM")
    timezone: str = Field(description="IANA timezone, e.g. Europe/Berlin")
    capacity: int = Field(default=1, ge=1)

    model_config = {"from_attributes": True}

    @field_validator("start_time_local", "end_time_local")
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        return _check_timezone(v)

    @model_validator(mode="after")
    def check_order(self):
        if parse_local_time(self.start_time_local) >= parse_local_time(self.end_time_local):
            raise ValueError("start_time_local must be before end_time_local")
        return self


# Cross-field ordering is checked by the store against the merged rule
class AvailabilityRuleUpdate(BaseModel):
    weekday: Optional[int] = Field(default=None, ge=0, le=6)
    start_time_local: Optional[str] = None
    end_time_local: Optional[str] = None
    timezone: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)

    model_config = {"from_attributes": True, "extra": "forbid"}

    @field_validator("start_time_local", "end_time_local")
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        return _check_timezone(v)


class AvailabilityRuleRead(BaseModel):
    id: int
    service_id: int
    weekday: int
    start_time_local: str
    end_time_local: str
    timezone: str
    capacity: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
