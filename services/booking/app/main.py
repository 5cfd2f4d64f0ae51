from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

import sqlalchemy as sa
import structlog
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app import bookings, observability
from services.booking.app.availability import list_available_rooms
from services.booking.app.db import ENGINE, get_session
from services.booking.app.errors import BookingError, InvalidDateRange
from services.booking.app.logging import configure_logging, logger
from services.booking.app.pricing import nights_between
from services.booking.app.schemas import (
    AvailableRoomsResponse,
    Booking,
    BookingListResponse,
    CancelBookingRequest,
    ChangeRoomRequest,
    CreateBookingRequest,
    OkResponse,
    StatusUpdateRequest,
)
from services.booking.app.settings import SETTINGS


app = FastAPI(title="Hotel Booking API", version="0.1.0")
configure_logging(SETTINGS.log_level)
observability.setup_tracing(app, service_name="booking")
observability.add_metrics_middleware(app, service_name="booking")
observability.instrument_sqlalchemy(ENGINE)


@app.middleware("http")
async def bind_request_context(request: Request, call_next) -> Response:
    # Every log line emitted while serving the request carries its id.
    request_id = request.headers.get("x-request-id") or uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
    resp = await call_next(request)
    resp.headers["x-request-id"] = request_id
    return resp


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info("request_rejected", error=type(exc).__name__, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": type(exc).__name__})


@app.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)) -> dict:
    await session.execute(sa.text("SELECT 1"))
    return {"ok": True}


@app.post("/bookings", response_model=Booking, status_code=201)
async def create_booking(req: CreateBookingRequest, session: AsyncSession = Depends(get_session)) -> Booking:
    booking = await bookings.create_booking(
        session,
        guest_id=req.guest_id,
        hotel_id=req.hotel_id,
        check_in=req.check_in_date,
        check_out=req.check_out_date,
        room_ids=req.room_ids,
        number_of_guests=req.number_of_guests,
        special_requests=req.special_requests,
        discount_code=req.discount_code,
    )
    return Booking(**booking)


@app.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    guest_id: UUID | None = None,
    hotel_id: UUID | None = None,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=SETTINGS.default_page_size, ge=1),
    session: AsyncSession = Depends(get_session),
) -> BookingListResponse:
    limit = min(limit, SETTINGS.max_page_size)
    rows = await bookings.list_bookings(
        session, guest_id=guest_id, hotel_id=hotel_id, status=status, page=page, limit=limit
    )
    return BookingListResponse(bookings=[Booking(**r, status_history=[]) for r in rows], page=page, limit=limit)


@app.get("/bookings/{booking_id}", response_model=Booking)
async def get_booking(booking_id: UUID, session: AsyncSession = Depends(get_session)) -> Booking:
    return Booking(**await bookings.get_booking(session, booking_id))


@app.patch("/bookings/{booking_id}/status", response_model=OkResponse)
async def update_booking_status(
    booking_id: UUID, req: StatusUpdateRequest, session: AsyncSession = Depends(get_session)
) -> OkResponse:
    await bookings.set_booking_status(session, booking_id, req.status, req.actor_id, req.notes)
    return OkResponse()


@app.post("/bookings/{booking_id}/cancel", response_model=OkResponse)
async def cancel_booking(
    booking_id: UUID, req: CancelBookingRequest, session: AsyncSession = Depends(get_session)
) -> OkResponse:
    await bookings.cancel_booking(session, booking_id, req.actor_id, req.reason, release_rooms=req.release_rooms)
    return OkResponse()


@app.patch("/bookings/{booking_id}/room", response_model=Booking)
async def change_room(
    booking_id: UUID, req: ChangeRoomRequest, session: AsyncSession = Depends(get_session)
) -> Booking:
    booking = await bookings.change_room(session, booking_id, req.room_id, booking_room_id=req.booking_room_id)
    return Booking(**booking)


@app.get("/hotels/{hotel_id}/available-rooms", response_model=AvailableRoomsResponse)
async def available_rooms(
    hotel_id: UUID,
    check_in_date: date,
    check_out_date: date,
    room_type_id: UUID | None = None,
    session: AsyncSession = Depends(get_session),
) -> AvailableRoomsResponse:
    if nights_between(check_in_date, check_out_date) <= 0:
        raise InvalidDateRange(check_in_date, check_out_date)
    rooms = await list_available_rooms(session, hotel_id, check_in_date, check_out_date, room_type_id=room_type_id)
    return AvailableRoomsResponse(
        hotel_id=hotel_id, check_in_date=check_in_date, check_out_date=check_out_date, rooms=rooms
    )
