from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app.availability import busy_room_ids
from services.booking.app.errors import NoAvailableRoomOfType
from services.booking.app.logging import logger
from services.booking.app.tables import room_types, rooms


async def _room_type_ids(session: AsyncSession, ids: Sequence[UUID]) -> set[UUID]:
    if not ids:
        return set()
    q = sa.select(room_types.c.id).where(room_types.c.id.in_(list(dict.fromkeys(ids))))
    return set((await session.execute(q)).scalars().all())


async def pick_room_of_type(
    session: AsyncSession,
    room_type_id: UUID,
    hotel_id: UUID,
    check_in: date,
    check_out: date,
    *,
    exclude: Sequence[UUID] = (),
) -> UUID | None:
    """Lowest-numbered `available` room of the type in the hotel with no overlapping active line."""
    busy = busy_room_ids(check_in, check_out)
    q = (
        sa.select(rooms.c.id)
        .where(rooms.c.room_type_id == room_type_id)
        .where(rooms.c.hotel_id == hotel_id)
        .where(rooms.c.status == "available")
        .where(rooms.c.id.not_in(busy))
        .order_by(rooms.c.room_number, rooms.c.id)
        .limit(1)
    )
    if exclude:
        q = q.where(rooms.c.id.not_in(list(exclude)))
    return (await session.execute(q)).scalar_one_or_none()


async def resolve_rooms(
    session: AsyncSession,
    hotel_id: UUID,
    check_in: date,
    check_out: date,
    room_or_type_ids: Sequence[UUID],
) -> list[UUID]:
    """
    Turn requested identifiers into concrete room ids, one output per input, in input order.

    Room-type ids are expanded to a free room of that type; anything else is assumed to be a
    concrete room id and passed through unchanged (existence and overlap are checked later by
    the availability pass). Nothing is reserved here.
    """
    type_ids = await _room_type_ids(session, room_or_type_ids)
    resolved: list[UUID] = []
    for requested in room_or_type_ids:
        if requested not in type_ids:
            resolved.append(requested)
            continue
        room_id = await pick_room_of_type(session, requested, hotel_id, check_in, check_out, exclude=resolved)
        if room_id is None:
            raise NoAvailableRoomOfType(requested)
        logger.debug("room_type_resolved", room_type_id=str(requested), room_id=str(room_id))
        resolved.append(room_id)
    return resolved
