from __future__ import annotations

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CreateBookingRequest(StrictModel):
    guest_id: UUID
    hotel_id: UUID
    check_in_date: date
    check_out_date: date
    # Each entry is either a concrete room id or a room type id (one room of that type is allocated).
    room_ids: Annotated[list[UUID], Field(min_length=1)]
    number_of_guests: Annotated[int, Field(ge=1)] = 1
    special_requests: str | None = None
    discount_code: str | None = None

    @field_validator("discount_code")
    @classmethod
    def _blank_code_is_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class StatusUpdateRequest(StrictModel):
    # Plain string; unknown values are rejected by the booking core with 400.
    status: str
    actor_id: UUID | None = None
    notes: str | None = None


class CancelBookingRequest(StrictModel):
    actor_id: UUID | None = None
    reason: str | None = None
    release_rooms: bool | None = None


class ChangeRoomRequest(StrictModel):
    room_id: UUID
    # Which line to move on multi-room bookings; defaults to the first line.
    booking_room_id: UUID | None = None


class BookingLine(StrictModel):
    id: UUID
    line_number: int
    room_id: UUID
    room_number: str
    room_type: str | None = None
    check_in_date: date
    check_out_date: date
    price_per_night: float
    number_of_nights: int
    total_price: float
    tariff_id: UUID | None = None


class StatusChange(StrictModel):
    old_status: str | None
    new_status: str
    changed_by: UUID | None = None
    notes: str | None = None
    changed_at: datetime


class Booking(StrictModel):
    id: UUID
    guest_id: UUID
    hotel_id: UUID
    hotel_name: str
    city: str | None = None
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    special_requests: str | None = None
    total_amount: float
    discount_amount: float
    final_amount: float
    discount_id: UUID | None = None
    status: str
    booking_date: datetime
    cancelled_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    rooms_count: int
    room_numbers: str
    rooms: list[BookingLine]
    status_history: list[StatusChange] = Field(default_factory=list)


class BookingListResponse(StrictModel):
    bookings: list[Booking]
    page: int
    limit: int


class AvailableRoom(StrictModel):
    id: UUID
    room_number: str
    floor: str | None = None
    room_type_id: UUID


class AvailableRoomsResponse(StrictModel):
    hotel_id: UUID
    check_in_date: date
    check_out_date: date
    rooms: list[AvailableRoom]


class OkResponse(StrictModel):
    ok: bool = True
