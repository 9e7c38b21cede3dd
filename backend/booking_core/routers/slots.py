# backend/booking_core/routers/slots.py
"""
Availability API endpoint.

GET /availability - Offerable slots for a service over a date range
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from redis import Redis

from ..deps import get_config, get_redis, get_storage
from ..schemas.slots import SlotRead
from ..services.slots import BookingConfig, get_availability
from ..storage import BookingStorage


router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=list[SlotRead])
def list_availability(
    service_id: int,
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    slot_length: Optional[int] = Query(default=None, gt=0),
    storage: BookingStorage = Depends(get_storage),
    config: BookingConfig = Depends(get_config),
    redis: Optional[Redis] = Depends(get_redis),
):
    """Slots with remaining capacity, hiding those that can no longer be booked."""
    not_before = datetime.now(timezone.utc) + timedelta(minutes=config.min_advance_minutes)

    return get_availability(
        storage,
        service_id,
        from_date,
        to_date,
        slot_length=slot_length,
        config=config,
        redis=redis,
        not_before=not_before,
    )
