# backend/booking_core/routers/availability_rules.py
# PATCH = ALLOWED, DELETE = ALLOWED (hard)

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis

from ..deps import get_redis, get_storage
from ..schemas.availability_rules import (
    AvailabilityRuleCreate,
    AvailabilityRuleUpdate,
    AvailabilityRuleRead,
)
from ..services.slots import invalidate_service_cache
from ..storage import BookingStorage

router = APIRouter(prefix="/availability_rules", tags=["availability_rules"])


@router.get("/", response_model=list[AvailabilityRuleRead])
def list_availability_rules(
    service_id: int,
    storage: BookingStorage = Depends(get_storage),
):
    return storage.list_rules(service_id)


@router.get("/{id}", response_model=AvailabilityRuleRead)
def get_availability_rule(id: int, storage: BookingStorage = Depends(get_storage)):
    obj = storage.get_rule(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post(
    "/", response_model=AvailabilityRuleRead, status_code=status.HTTP_201_CREATED
)
def create_availability_rule(
    data: AvailabilityRuleCreate,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.create_rule(**data.model_dump())
    invalidate_service_cache(redis, obj.service_id)
    return obj


@router.patch("/{id}", response_model=AvailabilityRuleRead)
def update_availability_rule(
    id: int,
    data: AvailabilityRuleUpdate,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.update_rule(id, **data.model_dump(exclude_unset=True))
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, obj.service_id)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_rule(
    id: int,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.get_rule(id)
    if not obj or not storage.delete_rule(id):
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, obj.service_id)
