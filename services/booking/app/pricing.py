from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app.errors import RoomNotFound
from services.booking.app.logging import logger
from services.booking.app.tables import discounts, room_types, rooms, tariffs


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(x: Any) -> Decimal:
    if x is None:
        return ZERO
    return Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP)


def nights_between(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def line_total(rate: Decimal, nights: int) -> Decimal:
    return money(rate * nights)


@dataclass(frozen=True)
class TariffRate:
    tariff_id: UUID
    price: Decimal
    start_date: date
    end_date: date


def pick_rate(
    candidates: Iterable[TariffRate], base_price: Decimal | None, on_date: date
) -> tuple[Decimal, UUID | None]:
    """
    Nightly rate on `on_date`: the tariff whose closed [start_date, end_date] contains it, else the
    room type's base price, else zero. Overlapping tariffs are not expected; if they exist the most
    recently starting one wins so the result stays deterministic.
    """
    matching = [t for t in candidates if t.start_date <= on_date <= t.end_date]
    if matching:
        best = max(matching, key=lambda t: (t.start_date, str(t.tariff_id)))
        return money(best.price), best.tariff_id
    if base_price is not None:
        return money(base_price), None
    return ZERO, None


def compute_discount(
    amount_type: str, amount: Decimal, max_discount_amount: Decimal | None, total: Decimal
) -> Decimal:
    if amount_type == "percentage":
        value = money(total * money(amount) / 100)
        if max_discount_amount is not None:
            value = min(value, money(max_discount_amount))
        return value
    # Fixed amounts are not clamped to the booking total.
    return money(amount)


@dataclass(frozen=True)
class RoomQuote:
    room_id: UUID
    room_number: str
    tariff_id: UUID | None
    price_per_night: Decimal
    nights: int
    total_price: Decimal


@dataclass(frozen=True)
class AppliedDiscount:
    discount_id: UUID
    code: str
    discount_amount: Decimal


async def _tariffs_for(session: AsyncSession, room_type_id: UUID, on_date: date) -> list[TariffRate]:
    q = (
        sa.select(tariffs.c.id, tariffs.c.price, tariffs.c.start_date, tariffs.c.end_date)
        .where(tariffs.c.room_type_id == room_type_id)
        .where(tariffs.c.start_date <= on_date)
        .where(tariffs.c.end_date >= on_date)
    )
    rows = (await session.execute(q)).all()
    return [TariffRate(tariff_id=r.id, price=r.price, start_date=r.start_date, end_date=r.end_date) for r in rows]


async def price_room(session: AsyncSession, room_id: UUID, on_date: date, nights: int) -> RoomQuote:
    q = (
        sa.select(rooms.c.id, rooms.c.room_number, room_types.c.id.label("room_type_id"), room_types.c.base_price)
        .select_from(rooms.join(room_types, rooms.c.room_type_id == room_types.c.id))
        .where(rooms.c.id == room_id)
    )
    row = (await session.execute(q)).first()
    if row is None:
        raise RoomNotFound(room_id)

    rate, tariff_id = pick_rate(await _tariffs_for(session, row.room_type_id, on_date), row.base_price, on_date)
    return RoomQuote(
        room_id=row.id,
        room_number=row.room_number,
        tariff_id=tariff_id,
        price_per_night=rate,
        nights=nights,
        total_price=line_total(rate, nights),
    )


async def find_discount(session: AsyncSession, code: str, on_date: date) -> dict[str, Any] | None:
    # Row is locked so the usage cap check and the increment see the same counter.
    q = (
        sa.select(
            discounts.c.id,
            discounts.c.code,
            discounts.c.amount_type,
            discounts.c.amount,
            discounts.c.max_discount_amount,
        )
        .where(discounts.c.code == code)
        .where(discounts.c.is_active.is_(True))
        .where(discounts.c.valid_from <= on_date)
        .where(discounts.c.valid_to >= on_date)
        .where(sa.or_(discounts.c.usage_limit.is_(None), discounts.c.usage_count < discounts.c.usage_limit))
        .with_for_update()
    )
    row = (await session.execute(q)).mappings().first()
    return dict(row) if row else None


async def apply_discount(
    session: AsyncSession, code: str | None, total: Decimal, on_date: date
) -> AppliedDiscount | None:
    """Resolve a discount code against `total`. Unknown, inactive or exhausted codes yield None."""
    if not code:
        return None
    found = await find_discount(session, code, on_date)
    if found is None:
        logger.info("discount_ignored", code=code)
        return None
    amount = compute_discount(found["amount_type"], found["amount"], found["max_discount_amount"], total)
    logger.info("discount_applied", code=code, discount_id=str(found["id"]), discount_amount=str(amount))
    return AppliedDiscount(discount_id=found["id"], code=found["code"], discount_amount=amount)


async def increment_discount_usage(session: AsyncSession, discount_id: UUID) -> None:
    q = (
        sa.update(discounts)
        .where(discounts.c.id == discount_id)
        .values(usage_count=discounts.c.usage_count + 1)
    )
    await session.execute(q)
