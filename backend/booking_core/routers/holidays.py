# backend/booking_core/routers/holidays.py
# PATCH = ALLOWED, DELETE = ALLOWED (hard)

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis

from ..deps import get_redis, get_storage
from ..schemas.holidays import (
    HolidayCreate,
    HolidayUpdate,
    HolidayRead,
)
from ..services.slots import invalidate_service_cache
from ..storage import BookingStorage

router = APIRouter(prefix="/holidays", tags=["holidays"])


@router.get("/", response_model=list[HolidayRead])
def list_holidays(
    service_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    storage: BookingStorage = Depends(get_storage),
):
    return storage.list_holidays(service_id, date_from, date_to)


@router.get("/{id}", response_model=HolidayRead)
def get_holiday(id: int, storage: BookingStorage = Depends(get_storage)):
    obj = storage.get_holiday(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=HolidayRead, status_code=status.HTTP_201_CREATED)
def create_holiday(
    data: HolidayCreate,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.create_holiday(**data.model_dump())
    invalidate_service_cache(redis, obj.service_id)
    return obj


@router.patch("/{id}", response_model=HolidayRead)
def update_holiday(
    id: int,
    data: HolidayUpdate,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.update_holiday(id, **data.model_dump(exclude_unset=True))
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, obj.service_id)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(
    id: int,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.get_holiday(id)
    if not obj or not storage.delete_holiday(id):
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, obj.service_id)
