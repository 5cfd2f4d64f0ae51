from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app.errors import RoomUnavailable
from services.booking.app.logging import logger
from services.booking.app.tables import active_line_overlaps, booking_rooms, bookings, rooms


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    # Half-open [start, end): touching intervals (checkout day == next check-in) do not overlap.
    return not (a_end <= b_start or a_start >= b_end)


def _conflicts_query(room_id: UUID, check_in: date, check_out: date, exclude_line_id: UUID | None) -> sa.Select:
    q = (
        sa.select(booking_rooms.c.booking_id, booking_rooms.c.check_in_date, booking_rooms.c.check_out_date)
        .select_from(booking_rooms.join(bookings, booking_rooms.c.booking_id == bookings.c.id))
        .where(booking_rooms.c.room_id == room_id)
        .where(active_line_overlaps(check_in, check_out))
    )
    if exclude_line_id is not None:
        q = q.where(booking_rooms.c.id != exclude_line_id)
    return q


def busy_room_ids(check_in: date, check_out: date) -> sa.Select:
    """Rooms holding an active line that overlaps [check_in, check_out)."""
    return (
        sa.select(booking_rooms.c.room_id)
        .select_from(booking_rooms.join(bookings, booking_rooms.c.booking_id == bookings.c.id))
        .where(active_line_overlaps(check_in, check_out))
    )


async def find_conflicts(
    session: AsyncSession,
    room_id: UUID,
    check_in: date,
    check_out: date,
    *,
    exclude_line_id: UUID | None = None,
) -> list[dict[str, Any]]:
    q = _conflicts_query(room_id, check_in, check_out, exclude_line_id).order_by(booking_rooms.c.check_in_date)
    rows = (await session.execute(q)).mappings().all()
    return [dict(r) for r in rows]


async def ensure_room_available(
    session: AsyncSession,
    room_id: UUID,
    check_in: date,
    check_out: date,
    *,
    exclude_line_id: UUID | None = None,
) -> None:
    """
    Raise `RoomUnavailable` if committing a line for `room_id` over [check_in, check_out) would
    overlap an active line on the same room.

    Runs for every concrete room, including ones the inventory resolver picked, because the
    resolver does not reserve anything. `exclude_line_id` skips the booking line being moved
    by a room change.
    """
    conflicts = await find_conflicts(session, room_id, check_in, check_out, exclude_line_id=exclude_line_id)
    if conflicts:
        logger.info(
            "room_conflict",
            room_id=str(room_id),
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            conflicting_booking_ids=[str(c["booking_id"]) for c in conflicts],
        )
        raise RoomUnavailable(room_id)


async def lock_rooms(session: AsyncSession, room_ids: Sequence[UUID]) -> None:
    # Ascending id order so two transactions locking overlapping sets cannot deadlock.
    ordered = sorted(set(room_ids), key=str)
    if not ordered:
        return
    q = sa.select(rooms.c.id).where(rooms.c.id.in_(ordered)).order_by(rooms.c.id).with_for_update()
    await session.execute(q)


async def list_available_rooms(
    session: AsyncSession,
    hotel_id: UUID,
    check_in: date,
    check_out: date,
    *,
    room_type_id: UUID | None = None,
) -> list[dict[str, Any]]:
    busy = busy_room_ids(check_in, check_out)
    q = (
        sa.select(rooms.c.id, rooms.c.room_number, rooms.c.floor, rooms.c.room_type_id)
        .where(rooms.c.hotel_id == hotel_id)
        .where(rooms.c.status == "available")
        .where(rooms.c.id.not_in(busy))
        .order_by(rooms.c.room_number, rooms.c.id)
    )
    if room_type_id is not None:
        q = q.where(rooms.c.room_type_id == room_type_id)
    rows = (await session.execute(q)).mappings().all()
    return [dict(r) for r in rows]
