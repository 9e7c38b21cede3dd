# backend/booking_core/routers/bookings.py
# PATCH = status change only (cancel / confirm), DELETE = 405

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..deps import get_coordinator, get_storage
from ..domain import CANCELED, Customer
from ..schemas.bookings import (
    BookingCreate,
    BookingRead,
    BookingStatusUpdate,
)
from ..services.reservations import ReservationCoordinator
from ..storage import BookingStorage

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    service_id: Optional[int] = None,
    status: Optional[Literal["pending", "confirmed", "canceled"]] = None,
    storage: BookingStorage = Depends(get_storage),
):
    return storage.list_bookings(service_id=service_id, status=status)


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, storage: BookingStorage = Depends(get_storage)):
    obj = storage.get_booking(id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    customer = Customer(
        name=data.customer_name,
        email=str(data.customer_email),
        notes=data.notes,
    )
    return coordinator.reserve(data.service_id, data.start, data.end, customer)


@router.patch("/{id}", response_model=BookingRead)
def update_booking_status(
    id: int,
    data: BookingStatusUpdate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    if data.status == CANCELED:
        obj = coordinator.cancel(id)
        if obj is None:
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        return obj
    return coordinator.confirm(id)


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
