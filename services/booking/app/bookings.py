from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app import observability
from services.booking.app.availability import ensure_room_available, lock_rooms
from services.booking.app.errors import (
    BookingError,
    BookingLineNotFound,
    BookingNotFound,
    GuestNotFound,
    HotelNotFound,
    InvalidDateRange,
    InvalidStatus,
    InvalidStatusTransition,
    NoAvailableRoomOfType,
    RoomNotFound,
    RoomUnavailable,
)
from services.booking.app.inventory import resolve_rooms
from services.booking.app.logging import logger
from services.booking.app.pricing import (
    ZERO,
    apply_discount,
    increment_discount_usage,
    money,
    nights_between,
    price_room,
)
from services.booking.app.settings import SETTINGS
from services.booking.app.tables import (
    booking_rooms,
    booking_status_history,
    bookings,
    guests,
    hotels,
    room_types,
    rooms,
)


BOOKING_STATUSES = ("pending_payment", "confirmed", "checked_in", "checked_out", "cancelled", "no_show")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending_payment": frozenset({"confirmed", "cancelled", "no_show"}),
    "confirmed": frozenset({"checked_in", "cancelled", "no_show"}),
    "checked_in": frozenset({"checked_out", "cancelled", "no_show"}),
    "checked_out": frozenset(),
    "cancelled": frozenset(),
    "no_show": frozenset(),
}


def can_transition(old_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(old_status, frozenset())


def _now() -> datetime:
    return datetime.now(tz=UTC)


@asynccontextmanager
async def _atomic(session: AsyncSession) -> AsyncIterator[None]:
    """One unit of work: commit on success, roll back everything written so far on any failure."""
    try:
        yield
    except BaseException:
        await session.rollback()
        raise
    else:
        await session.commit()


async def _exists(session: AsyncSession, table: Any, row_id: UUID) -> bool:
    q = sa.select(table.c.id).where(table.c.id == row_id)
    return (await session.execute(q)).first() is not None


async def _lock_booking(session: AsyncSession, booking_id: UUID) -> Any:
    q = (
        sa.select(bookings.c.id, bookings.c.hotel_id, bookings.c.status, bookings.c.discount_amount)
        .where(bookings.c.id == booking_id)
        .with_for_update()
    )
    row = (await session.execute(q)).first()
    if row is None:
        raise BookingNotFound(booking_id)
    return row


async def _set_booking_rooms_status(
    session: AsyncSession, booking_id: UUID, status: str, *, only_from: str | None = None
) -> None:
    allocated = sa.select(booking_rooms.c.room_id).where(booking_rooms.c.booking_id == booking_id)
    q = sa.update(rooms).where(rooms.c.id.in_(allocated)).values(status=status)
    if only_from is not None:
        q = q.where(rooms.c.status == only_from)
    await session.execute(q)


async def _record_status_change(
    session: AsyncSession,
    booking_id: UUID,
    old_status: str | None,
    new_status: str,
    actor_id: UUID | None,
    notes: str | None,
) -> None:
    await session.execute(
        sa.insert(booking_status_history).values(
            id=uuid4(),
            booking_id=booking_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
            notes=notes,
            changed_at=_now(),
        )
    )


async def create_booking(
    session: AsyncSession,
    *,
    guest_id: UUID,
    hotel_id: UUID,
    check_in: date,
    check_out: date,
    room_ids: Sequence[UUID],
    number_of_guests: int,
    special_requests: str | None = None,
    discount_code: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Reserve rooms for a stay as a single transaction.

    Steps: validate nights, resolve room-type placeholders, re-check every concrete room for
    overlaps, price each room, apply at most one discount, then insert the booking, one line per
    room, and bump the discount counter. Any failure rolls the whole attempt back.
    """
    nights = nights_between(check_in, check_out)
    if nights <= 0:
        raise InvalidDateRange(check_in, check_out)

    today = today or date.today()
    booking_id = uuid4()
    log = logger.bind(booking_id=str(booking_id), hotel_id=str(hotel_id), guest_id=str(guest_id))

    try:
        async with _atomic(session):
            if not await _exists(session, guests, guest_id):
                raise GuestNotFound(guest_id)
            if not await _exists(session, hotels, hotel_id):
                raise HotelNotFound(hotel_id)

            resolved = await resolve_rooms(session, hotel_id, check_in, check_out, room_ids)
            seen: set[UUID] = set()
            for room_id in resolved:
                if room_id in seen:
                    # Same room twice in one request would double-allocate it.
                    raise RoomUnavailable(room_id)
                seen.add(room_id)

            if SETTINGS.lock_rooms_for_update:
                await lock_rooms(session, resolved)
            for room_id in resolved:
                await ensure_room_available(session, room_id, check_in, check_out)

            quotes = [await price_room(session, room_id, check_in, nights) for room_id in resolved]
            total_amount = money(sum((q.total_price for q in quotes), ZERO))

            discount = await apply_discount(session, discount_code, total_amount, today)
            discount_amount = discount.discount_amount if discount else ZERO
            final_amount = money(total_amount - discount_amount)

            now = _now()
            await session.execute(
                sa.insert(bookings).values(
                    id=booking_id,
                    guest_id=guest_id,
                    hotel_id=hotel_id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    number_of_guests=number_of_guests,
                    special_requests=special_requests,
                    total_amount=total_amount,
                    discount_amount=discount_amount,
                    final_amount=final_amount,
                    discount_id=discount.discount_id if discount else None,
                    status="pending_payment",
                    booking_date=now,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.execute(
                sa.insert(booking_rooms),
                [
                    dict(
                        id=uuid4(),
                        booking_id=booking_id,
                        line_number=i,
                        room_id=q.room_id,
                        check_in_date=check_in,
                        check_out_date=check_out,
                        price_per_night=q.price_per_night,
                        number_of_nights=q.nights,
                        total_price=q.total_price,
                        tariff_id=q.tariff_id,
                        created_at=now,
                    )
                    for i, q in enumerate(quotes, start=1)
                ],
            )
            if discount:
                await increment_discount_usage(session, discount.discount_id)
    except BookingError as e:
        if isinstance(e, (RoomUnavailable, NoAvailableRoomOfType)):
            observability.BOOKING_CONFLICT_TOTAL.labels(type(e).__name__).inc()
        log.info("booking_failed", error=type(e).__name__, detail=e.detail)
        raise

    observability.BOOKING_CREATED_TOTAL.inc()
    log.info(
        "booking_created",
        rooms=len(resolved),
        nights=nights,
        total_amount=str(total_amount),
        discount_amount=str(discount_amount),
        final_amount=str(final_amount),
    )
    return await get_booking(session, booking_id)


async def set_booking_status(
    session: AsyncSession,
    booking_id: UUID,
    new_status: str,
    actor_id: UUID | None,
    notes: str | None = None,
) -> None:
    if new_status not in BOOKING_STATUSES:
        raise InvalidStatus(new_status)

    async with _atomic(session):
        current = await _lock_booking(session, booking_id)
        old_status = current.status
        if SETTINGS.enforce_status_transitions and not can_transition(old_status, new_status):
            raise InvalidStatusTransition(old_status, new_status)

        await session.execute(
            sa.update(bookings).where(bookings.c.id == booking_id).values(status=new_status, updated_at=_now())
        )
        await _record_status_change(session, booking_id, old_status, new_status, actor_id, notes)

        if new_status == "checked_in":
            await _set_booking_rooms_status(session, booking_id, "occupied")
        elif new_status == "checked_out":
            await _set_booking_rooms_status(session, booking_id, "available")

    logger.info(
        "booking_status_changed",
        booking_id=str(booking_id),
        old_status=old_status,
        new_status=new_status,
        actor_id=str(actor_id) if actor_id else None,
    )


async def cancel_booking(
    session: AsyncSession,
    booking_id: UUID,
    actor_id: UUID | None,
    reason: str | None = None,
    *,
    release_rooms: bool | None = None,
) -> None:
    """
    Cancel a booking regardless of its current status.

    Rooms are left as they are unless `release_rooms` (or `SETTINGS.release_rooms_on_cancel` when
    the argument is omitted) is true, in which case rooms this booking holds as `occupied` go back
    to `available`.
    """
    release = SETTINGS.release_rooms_on_cancel if release_rooms is None else release_rooms

    async with _atomic(session):
        current = await _lock_booking(session, booking_id)
        old_status = current.status
        if SETTINGS.enforce_status_transitions and not can_transition(old_status, "cancelled"):
            raise InvalidStatusTransition(old_status, "cancelled")

        now = _now()
        await session.execute(
            sa.update(bookings)
            .where(bookings.c.id == booking_id)
            .values(
                status="cancelled",
                cancelled_at=now,
                cancelled_by=actor_id,
                cancellation_reason=reason,
                updated_at=now,
            )
        )
        await _record_status_change(session, booking_id, old_status, "cancelled", actor_id, reason)
        if release:
            await _set_booking_rooms_status(session, booking_id, "available", only_from="occupied")

    logger.info(
        "booking_cancelled",
        booking_id=str(booking_id),
        old_status=old_status,
        actor_id=str(actor_id) if actor_id else None,
        rooms_released=release,
    )


async def change_room(
    session: AsyncSession,
    booking_id: UUID,
    new_room_id: UUID,
    *,
    booking_room_id: UUID | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Move a booking onto `new_room_id`.

    Only one line is reassigned: `booking_room_id` when given, otherwise the booking's first line.
    The new room must belong to the booking's hotel, be `available`, and have no other active line
    overlapping the moved line's stay. Every room the booking currently holds is released, the new
    room is priced at today's tariff, and the booking totals are recomputed from its lines.
    """
    today = today or date.today()

    async with _atomic(session):
        booking = await _lock_booking(session, booking_id)

        # Rooms of other hotels are treated as unknown.
        room_q = (
            sa.select(rooms.c.id, rooms.c.status)
            .where(rooms.c.id == new_room_id)
            .where(rooms.c.hotel_id == booking.hotel_id)
            .with_for_update()
        )
        room = (await session.execute(room_q)).first()
        if room is None:
            raise RoomNotFound(new_room_id)
        if room.status != "available":
            raise RoomUnavailable(new_room_id)

        line_q = (
            sa.select(
                booking_rooms.c.id,
                booking_rooms.c.room_id,
                booking_rooms.c.check_in_date,
                booking_rooms.c.check_out_date,
                booking_rooms.c.number_of_nights,
            )
            .where(booking_rooms.c.booking_id == booking_id)
            .order_by(booking_rooms.c.line_number)
            .limit(1)
        )
        if booking_room_id is not None:
            line_q = line_q.where(booking_rooms.c.id == booking_room_id)
        line = (await session.execute(line_q)).first()
        if line is None:
            raise BookingLineNotFound(booking_id, booking_room_id)

        # `available` only means nobody is checked in; other bookings (or this booking's other
        # lines) may still hold the room for the same nights.
        await ensure_room_available(
            session, new_room_id, line.check_in_date, line.check_out_date, exclude_line_id=line.id
        )

        await _set_booking_rooms_status(session, booking_id, "available")

        quote = await price_room(session, new_room_id, today, line.number_of_nights)
        await session.execute(
            sa.update(booking_rooms)
            .where(booking_rooms.c.id == line.id)
            .values(
                room_id=new_room_id,
                price_per_night=quote.price_per_night,
                total_price=quote.total_price,
                tariff_id=quote.tariff_id,
            )
        )
        if booking.status == "checked_in":
            await session.execute(sa.update(rooms).where(rooms.c.id == new_room_id).values(status="occupied"))

        total_q = sa.select(sa.func.coalesce(sa.func.sum(booking_rooms.c.total_price), 0)).where(
            booking_rooms.c.booking_id == booking_id
        )
        total_amount = money((await session.execute(total_q)).scalar_one())
        final_amount = money(total_amount - money(booking.discount_amount))
        await session.execute(
            sa.update(bookings)
            .where(bookings.c.id == booking_id)
            .values(total_amount=total_amount, final_amount=final_amount, updated_at=_now())
        )

    logger.info(
        "booking_room_changed",
        booking_id=str(booking_id),
        booking_room_id=str(line.id),
        old_room_id=str(line.room_id),
        new_room_id=str(new_room_id),
        price_per_night=str(quote.price_per_night),
        total_amount=str(total_amount),
    )
    return await get_booking(session, booking_id)


_BOOKING_COLUMNS = (
    bookings.c.id,
    bookings.c.guest_id,
    bookings.c.hotel_id,
    bookings.c.check_in_date,
    bookings.c.check_out_date,
    bookings.c.number_of_guests,
    bookings.c.special_requests,
    bookings.c.total_amount,
    bookings.c.discount_amount,
    bookings.c.final_amount,
    bookings.c.discount_id,
    bookings.c.status,
    bookings.c.booking_date,
    bookings.c.cancelled_at,
    bookings.c.cancelled_by,
    bookings.c.cancellation_reason,
    bookings.c.created_at,
    bookings.c.updated_at,
    hotels.c.name.label("hotel_name"),
    hotels.c.city,
)


async def _lines_for(session: AsyncSession, booking_ids: Sequence[UUID]) -> dict[UUID, list[dict[str, Any]]]:
    if not booking_ids:
        return {}
    q = (
        sa.select(
            booking_rooms.c.id,
            booking_rooms.c.booking_id,
            booking_rooms.c.line_number,
            booking_rooms.c.room_id,
            rooms.c.room_number,
            room_types.c.name.label("room_type"),
            booking_rooms.c.check_in_date,
            booking_rooms.c.check_out_date,
            booking_rooms.c.price_per_night,
            booking_rooms.c.number_of_nights,
            booking_rooms.c.total_price,
            booking_rooms.c.tariff_id,
        )
        .select_from(
            booking_rooms.join(rooms, booking_rooms.c.room_id == rooms.c.id).join(
                room_types, rooms.c.room_type_id == room_types.c.id
            )
        )
        .where(booking_rooms.c.booking_id.in_(list(booking_ids)))
        .order_by(booking_rooms.c.booking_id, booking_rooms.c.line_number)
    )
    out: dict[UUID, list[dict[str, Any]]] = {}
    for r in (await session.execute(q)).mappings().all():
        line = dict(r)
        out.setdefault(line.pop("booking_id"), []).append(line)
    return out


def _with_lines(booking: dict[str, Any], lines: list[dict[str, Any]]) -> dict[str, Any]:
    booking["rooms"] = lines
    booking["rooms_count"] = len(lines)
    booking["room_numbers"] = ",".join(str(line["room_number"]) for line in lines)
    return booking


async def get_booking(session: AsyncSession, booking_id: UUID) -> dict[str, Any]:
    q = (
        sa.select(*_BOOKING_COLUMNS)
        .select_from(bookings.join(hotels, bookings.c.hotel_id == hotels.c.id))
        .where(bookings.c.id == booking_id)
    )
    row = (await session.execute(q)).mappings().first()
    if row is None:
        raise BookingNotFound(booking_id)

    lines = await _lines_for(session, [booking_id])
    history_q = (
        sa.select(
            booking_status_history.c.old_status,
            booking_status_history.c.new_status,
            booking_status_history.c.changed_by,
            booking_status_history.c.notes,
            booking_status_history.c.changed_at,
        )
        .where(booking_status_history.c.booking_id == booking_id)
        .order_by(booking_status_history.c.changed_at)
    )
    history = [dict(h) for h in (await session.execute(history_q)).mappings().all()]

    booking = _with_lines(dict(row), lines.get(row["id"], []))
    booking["status_history"] = history
    return booking


async def list_bookings(
    session: AsyncSession,
    *,
    guest_id: UUID | None = None,
    hotel_id: UUID | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    if status is not None and status not in BOOKING_STATUSES:
        raise InvalidStatus(status)
    limit = min(limit or SETTINGS.default_page_size, SETTINGS.max_page_size)
    page = max(page, 1)

    q = sa.select(*_BOOKING_COLUMNS).select_from(bookings.join(hotels, bookings.c.hotel_id == hotels.c.id))
    if guest_id is not None:
        q = q.where(bookings.c.guest_id == guest_id)
    if hotel_id is not None:
        q = q.where(bookings.c.hotel_id == hotel_id)
    if status is not None:
        q = q.where(bookings.c.status == status)
    q = q.order_by(bookings.c.booking_date.desc(), bookings.c.id).limit(limit).offset((page - 1) * limit)

    rows = [dict(r) for r in (await session.execute(q)).mappings().all()]
    lines = await _lines_for(session, [r["id"] for r in rows])
    return [_with_lines(r, lines.get(r["id"], [])) for r in rows]
