# backend/booking_core/schemas/slots.py
"""
Pydantic schemas for the availability API.
"""

from datetime import datetime
from pydantic import BaseModel


class SlotRead(BaseModel):
    """A single offerable slot (UTC instants)."""
    start: datetime
    end: datetime
    capacity_remaining: int

    model_config = {"from_attributes": True}
