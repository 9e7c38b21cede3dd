# backend/booking_core/routers/services.py
# PATCH = ALLOWED (duration is immutable), DELETE = soft-delete (active=false)

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis

from ..deps import get_redis, get_storage
from ..schemas.services import (
    ServiceCreate,
    ServiceUpdate,
    ServiceRead,
)
from ..services.slots import invalidate_service_cache
from ..storage import BookingStorage

router = APIRouter(prefix="/services", tags=["services"])


@router.get("/", response_model=list[ServiceRead])
def list_services(
    include_inactive: bool = False,
    storage: BookingStorage = Depends(get_storage),
):
    return storage.list_services(include_inactive=include_inactive)


@router.get("/{id}", response_model=ServiceRead)
def get_service(id: int, storage: BookingStorage = Depends(get_storage)):
    obj = storage.get_service(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    storage: BookingStorage = Depends(get_storage),
):
    return storage.create_service(**data.model_dump())


@router.patch("/{id}", response_model=ServiceRead)
def update_service(
    id: int,
    data: ServiceUpdate,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.update_service(id, **data.model_dump(exclude_unset=True))
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, id)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    id: int,
    storage: BookingStorage = Depends(get_storage),
    redis: Optional[Redis] = Depends(get_redis),
):
    obj = storage.deactivate_service(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    invalidate_service_cache(redis, id)
