from __future__ import annotations

from datetime import date
from uuid import UUID


class BookingError(Exception):
    """Base class for failures that abort a booking operation and roll back its transaction."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidDateRange(BookingError):
    status_code = 400

    def __init__(self, check_in: date, check_out: date) -> None:
        super().__init__(f"check_out ({check_out.isoformat()}) must be after check_in ({check_in.isoformat()})")
        self.check_in = check_in
        self.check_out = check_out


class NoAvailableRoomOfType(BookingError):
    status_code = 409

    def __init__(self, room_type_id: UUID) -> None:
        super().__init__(f"no available rooms of type {room_type_id} for the selected dates")
        self.room_type_id = room_type_id


class RoomUnavailable(BookingError):
    status_code = 409

    def __init__(self, room_id: UUID) -> None:
        super().__init__(f"room {room_id} is not available for the selected dates")
        self.room_id = room_id


class RoomNotFound(BookingError):
    status_code = 404

    def __init__(self, room_id: UUID) -> None:
        super().__init__(f"room {room_id} not found")
        self.room_id = room_id


class BookingNotFound(BookingError):
    status_code = 404

    def __init__(self, booking_id: UUID) -> None:
        super().__init__(f"booking {booking_id} not found")
        self.booking_id = booking_id


class BookingLineNotFound(BookingError):
    status_code = 404

    def __init__(self, booking_id: UUID, booking_room_id: UUID | None = None) -> None:
        if booking_room_id is None:
            detail = f"booking {booking_id} has no allocated rooms"
        else:
            detail = f"booking room {booking_room_id} not found on booking {booking_id}"
        super().__init__(detail)
        self.booking_id = booking_id
        self.booking_room_id = booking_room_id


class GuestNotFound(BookingError):
    status_code = 404

    def __init__(self, guest_id: UUID) -> None:
        super().__init__(f"guest {guest_id} not found")
        self.guest_id = guest_id


class HotelNotFound(BookingError):
    status_code = 404

    def __init__(self, hotel_id: UUID) -> None:
        super().__init__(f"hotel {hotel_id} not found")
        self.hotel_id = hotel_id


class InvalidStatus(BookingError):
    status_code = 400

    def __init__(self, status: str) -> None:
        super().__init__(f"invalid status: {status!r}")
        self.status = status


class InvalidStatusTransition(BookingError):
    status_code = 409

    def __init__(self, old_status: str, new_status: str) -> None:
        super().__init__(f"cannot move booking from {old_status} to {new_status}")
        self.old_status = old_status
        self.new_status = new_status
