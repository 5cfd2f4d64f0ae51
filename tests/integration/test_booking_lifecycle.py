from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import sqlalchemy as sa


async def _booked_room(session, inventory, *, rooms=("101",), base_price=Decimal("100.00")):
    from services.booking.app.bookings import create_booking

    hotel_id = await inventory.hotel()
    type_id = await inventory.room_type(hotel_id, base_price=base_price)
    room_ids = [await inventory.room(hotel_id, type_id, n) for n in rooms]
    guest_id = await inventory.guest()
    booking = await create_booking(
        session,
        guest_id=guest_id,
        hotel_id=hotel_id,
        check_in=date(2024, 6, 1),
        check_out=date(2024, 6, 4),
        room_ids=room_ids,
        number_of_guests=len(room_ids),
    )
    return hotel_id, type_id, room_ids, booking


@pytest.mark.asyncio
async def test_check_in_and_out_move_room_status_and_record_history(session, inventory) -> None:
    from services.booking.app.bookings import get_booking, set_booking_status

    _, _, [room_id], booking = await _booked_room(session, inventory)
    actor = uuid4()

    await set_booking_status(session, booking["id"], "confirmed", actor, "paid")
    assert await inventory.room_status(room_id) == "available"

    await set_booking_status(session, booking["id"], "checked_in", actor)
    assert await inventory.room_status(room_id) == "occupied"

    await set_booking_status(session, booking["id"], "checked_out", actor)
    assert await inventory.room_status(room_id) == "available"

    current = await get_booking(session, booking["id"])
    assert current["status"] == "checked_out"
    history = [(h["old_status"], h["new_status"]) for h in current["status_history"]]
    assert history == [
        ("pending_payment", "confirmed"),
        ("confirmed", "checked_in"),
        ("checked_in", "checked_out"),
    ]
    assert current["status_history"][0]["notes"] == "paid"
    assert all(h["changed_by"] == actor for h in current["status_history"])


@pytest.mark.asyncio
async def test_same_status_still_records_history(session, inventory) -> None:
    from services.booking.app.bookings import get_booking, set_booking_status

    _, _, _, booking = await _booked_room(session, inventory)
    await set_booking_status(session, booking["id"], "pending_payment", None)

    current = await get_booking(session, booking["id"])
    assert [(h["old_status"], h["new_status"]) for h in current["status_history"]] == [
        ("pending_payment", "pending_payment")
    ]


@pytest.mark.asyncio
async def test_status_change_on_missing_booking(session) -> None:
    from services.booking.app.bookings import set_booking_status
    from services.booking.app.errors import BookingNotFound

    with pytest.raises(BookingNotFound):
        await set_booking_status(session, uuid4(), "confirmed", None)


@pytest.mark.asyncio
async def test_lenient_transitions_by_default(session, inventory) -> None:
    from services.booking.app.bookings import get_booking, set_booking_status

    _, _, _, booking = await _booked_room(session, inventory)
    await set_booking_status(session, booking["id"], "checked_out", None)
    await set_booking_status(session, booking["id"], "pending_payment", None)
    assert (await get_booking(session, booking["id"]))["status"] == "pending_payment"


@pytest.mark.asyncio
async def test_enforced_transitions_reject_and_roll_back(session, inventory, monkeypatch) -> None:
    from services.booking.app.bookings import get_booking, set_booking_status
    from services.booking.app.errors import InvalidStatusTransition
    from services.booking.app.settings import SETTINGS

    monkeypatch.setattr(SETTINGS, "enforce_status_transitions", True)
    _, _, _, booking = await _booked_room(session, inventory)

    with pytest.raises(InvalidStatusTransition) as exc:
        await set_booking_status(session, booking["id"], "checked_out", None)
    assert exc.value.status_code == 409

    current = await get_booking(session, booking["id"])
    assert current["status"] == "pending_payment"
    assert current["status_history"] == []

    await set_booking_status(session, booking["id"], "confirmed", None)
    assert (await get_booking(session, booking["id"]))["status"] == "confirmed"


@pytest.mark.asyncio
async def test_cancel_keeps_occupied_rooms_by_default(session, inventory) -> None:
    from services.booking.app.bookings import cancel_booking, get_booking, set_booking_status

    _, _, [room_id], booking = await _booked_room(session, inventory)
    await set_booking_status(session, booking["id"], "checked_in", None)
    actor = uuid4()

    await cancel_booking(session, booking["id"], actor, "guest left early")

    current = await get_booking(session, booking["id"])
    assert current["status"] == "cancelled"
    assert current["cancelled_at"] is not None
    assert current["cancelled_by"] == actor
    assert current["cancellation_reason"] == "guest left early"
    assert current["status_history"][-1]["old_status"] == "checked_in"
    assert current["status_history"][-1]["new_status"] == "cancelled"
    assert await inventory.room_status(room_id) == "occupied"


@pytest.mark.asyncio
async def test_cancel_with_release_frees_occupied_rooms_only(session, inventory) -> None:
    from services.booking.app.bookings import cancel_booking, set_booking_status

    _, _, [occupied, other], booking = await _booked_room(session, inventory, rooms=("101", "102"))
    await set_booking_status(session, booking["id"], "checked_in", None)
    await inventory.session.execute(
        sa.text("UPDATE rooms SET status = 'maintenance' WHERE id = :id"), {"id": other}
    )
    await inventory.session.commit()

    await cancel_booking(session, booking["id"], None, release_rooms=True)

    assert await inventory.room_status(occupied) == "available"
    assert await inventory.room_status(other) == "maintenance"


@pytest.mark.asyncio
async def test_cancel_release_follows_setting(session, inventory, monkeypatch) -> None:
    from services.booking.app.bookings import cancel_booking, set_booking_status
    from services.booking.app.settings import SETTINGS

    monkeypatch.setattr(SETTINGS, "release_rooms_on_cancel", True)
    _, _, [room_id], booking = await _booked_room(session, inventory)
    await set_booking_status(session, booking["id"], "checked_in", None)

    await cancel_booking(session, booking["id"], None)
    assert await inventory.room_status(room_id) == "available"


@pytest.mark.asyncio
async def test_cancel_missing_booking(session) -> None:
    from services.booking.app.bookings import cancel_booking
    from services.booking.app.errors import BookingNotFound

    with pytest.raises(BookingNotFound):
        await cancel_booking(session, uuid4(), None)


@pytest.mark.asyncio
async def test_change_room_on_checked_in_booking(session, inventory) -> None:
    from services.booking.app.bookings import change_room, set_booking_status

    hotel_id, _, [r1], booking = await _booked_room(session, inventory)
    suite_type = await inventory.room_type(hotel_id, base_price=Decimal("180.00"), name="Suite")
    r2 = await inventory.room(hotel_id, suite_type, "501")
    tariff_id = await inventory.tariff(suite_type, Decimal("150.00"), date(2024, 6, 1), date(2024, 6, 30))
    await set_booking_status(session, booking["id"], "checked_in", None)

    changed = await change_room(session, booking["id"], r2, today=date(2024, 6, 2))

    assert await inventory.room_status(r1) == "available"
    assert await inventory.room_status(r2) == "occupied"
    [line] = changed["rooms"]
    assert line["room_id"] == r2
    assert line["room_number"] == "501"
    assert line["room_type"] == "Suite"
    assert line["tariff_id"] == tariff_id
    assert line["price_per_night"] == Decimal("150")
    assert line["number_of_nights"] == 3
    assert line["total_price"] == Decimal("450")
    assert changed["total_amount"] == Decimal("450")
    assert changed["final_amount"] == Decimal("450")


@pytest.mark.asyncio
async def test_change_room_keeps_discount_amount(session, inventory) -> None:
    from services.booking.app.bookings import change_room, create_booking

    hotel_id = await inventory.hotel()
    type_id = await inventory.room_type(hotel_id)
    r1 = await inventory.room(hotel_id, type_id, "101")
    r2 = await inventory.room(hotel_id, await inventory.room_type(hotel_id, base_price=Decimal("200.00")), "201")
    guest_id = await inventory.guest()
    _, code = await inventory.discount("fixed", Decimal("30"), valid_from=date(2024, 1, 1), valid_to=date(2024, 12, 31))
    booking = await create_booking(
        session,
        guest_id=guest_id,
        hotel_id=hotel_id,
        check_in=date(2024, 6, 1),
        check_out=date(2024, 6, 3),
        room_ids=[r1],
        number_of_guests=1,
        discount_code=code,
        today=date(2024, 5, 1),
    )
    assert booking["final_amount"] == Decimal("170")

    changed = await change_room(session, booking["id"], r2, today=date(2024, 5, 2))
    assert changed["total_amount"] == Decimal("400")
    assert changed["discount_amount"] == Decimal("30")
    assert changed["final_amount"] == Decimal("370")


@pytest.mark.asyncio
async def test_change_room_targets_given_line(session, inventory) -> None:
    from services.booking.app.bookings import change_room

    hotel_id, type_id, [r1, r2], booking = await _booked_room(session, inventory, rooms=("101", "102"))
    r3 = await inventory.room(hotel_id, type_id, "103")
    first, second = booking["rooms"]
    assert (first["line_number"], second["line_number"]) == (1, 2)

    changed = await change_room(session, booking["id"], r3, booking_room_id=second["id"])

    assert [line["room_id"] for line in changed["rooms"]] == [r1, r3]
    assert changed["room_numbers"] == "101,103"
    assert changed["total_amount"] == Decimal("600")


@pytest.mark.asyncio
async def test_change_room_defaults_to_first_line(session, inventory) -> None:
    from services.booking.app.bookings import change_room

    hotel_id, type_id, [_, r2], booking = await _booked_room(session, inventory, rooms=("101", "102"))
    r3 = await inventory.room(hotel_id, type_id, "103")

    changed = await change_room(session, booking["id"], r3)
    assert [line["room_id"] for line in changed["rooms"]] == [r3, r2]


@pytest.mark.asyncio
async def test_change_room_to_unavailable_room_changes_nothing(session, inventory) -> None:
    from services.booking.app.bookings import change_room, get_booking, set_booking_status
    from services.booking.app.errors import RoomUnavailable

    hotel_id, type_id, [r1], booking = await _booked_room(session, inventory)
    blocked = await inventory.room(hotel_id, type_id, "102", status="maintenance")
    await set_booking_status(session, booking["id"], "checked_in", None)

    with pytest.raises(RoomUnavailable):
        await change_room(session, booking["id"], blocked)

    assert await inventory.room_status(r1) == "occupied"
    [line] = (await get_booking(session, booking["id"]))["rooms"]
    assert line["room_id"] == r1


@pytest.mark.asyncio
async def test_change_room_error_cases(session, inventory) -> None:
    from services.booking.app.bookings import change_room
    from services.booking.app.errors import BookingLineNotFound, BookingNotFound, RoomNotFound

    hotel_id, type_id, _, booking = await _booked_room(session, inventory)
    spare = await inventory.room(hotel_id, type_id, "102")

    with pytest.raises(BookingNotFound):
        await change_room(session, uuid4(), spare)
    with pytest.raises(RoomNotFound):
        await change_room(session, booking["id"], uuid4())
    with pytest.raises(BookingLineNotFound):
        await change_room(session, booking["id"], spare, booking_room_id=uuid4())


@pytest.mark.asyncio
async def test_change_room_onto_room_held_by_another_booking(session, inventory) -> None:
    from services.booking.app.bookings import change_room, create_booking, get_booking, set_booking_status
    from services.booking.app.errors import RoomUnavailable

    hotel_id, type_id, [r1], moving = await _booked_room(session, inventory)
    r2 = await inventory.room(hotel_id, type_id, "102")
    holder = await create_booking(
        session,
        guest_id=await inventory.guest(),
        hotel_id=hotel_id,
        check_in=date(2024, 6, 2),
        check_out=date(2024, 6, 5),
        room_ids=[r2],
        number_of_guests=1,
    )
    await set_booking_status(session, moving["id"], "checked_in", None)
    # Nobody has checked in to r2 yet, so its status still reads available.
    assert await inventory.room_status(r2) == "available"

    with pytest.raises(RoomUnavailable) as exc:
        await change_room(session, moving["id"], r2)
    assert exc.value.room_id == r2

    assert await inventory.room_status(r1) == "occupied"
    assert await inventory.room_status(r2) == "available"
    assert [line["room_id"] for line in (await get_booking(session, moving["id"]))["rooms"]] == [r1]
    assert [line["room_id"] for line in (await get_booking(session, holder["id"]))["rooms"]] == [r2]


@pytest.mark.asyncio
async def test_change_room_onto_own_other_line_is_rejected(session, inventory) -> None:
    from services.booking.app.bookings import change_room, get_booking
    from services.booking.app.errors import RoomUnavailable

    _, _, [r1, r2], booking = await _booked_room(session, inventory, rooms=("101", "102"))
    first, _ = booking["rooms"]

    with pytest.raises(RoomUnavailable):
        await change_room(session, booking["id"], r2, booking_room_id=first["id"])

    current = await get_booking(session, booking["id"])
    assert [line["room_id"] for line in current["rooms"]] == [r1, r2]
    assert current["total_amount"] == booking["total_amount"]


@pytest.mark.asyncio
async def test_change_room_back_onto_its_own_room_is_allowed(session, inventory) -> None:
    from services.booking.app.bookings import change_room

    _, _, [r1], booking = await _booked_room(session, inventory)

    changed = await change_room(session, booking["id"], r1)
    assert [line["room_id"] for line in changed["rooms"]] == [r1]


@pytest.mark.asyncio
async def test_change_room_to_other_hotel_is_rejected(session, inventory) -> None:
    from services.booking.app.bookings import change_room, get_booking
    from services.booking.app.errors import RoomNotFound

    _, _, [r1], booking = await _booked_room(session, inventory)
    other_hotel = await inventory.hotel("Elsewhere")
    foreign_room = await inventory.room(other_hotel, await inventory.room_type(other_hotel), "101")

    with pytest.raises(RoomNotFound):
        await change_room(session, booking["id"], foreign_room)

    [line] = (await get_booking(session, booking["id"]))["rooms"]
    assert line["room_id"] == r1


@pytest.mark.asyncio
async def test_get_booking_missing(session) -> None:
    from services.booking.app.bookings import get_booking
    from services.booking.app.errors import BookingNotFound

    with pytest.raises(BookingNotFound):
        await get_booking(session, uuid4())


@pytest.mark.asyncio
async def test_list_bookings_filters_and_pages(session, inventory) -> None:
    from services.booking.app.bookings import cancel_booking, create_booking, list_bookings

    hotel_id = await inventory.hotel()
    type_id = await inventory.room_type(hotel_id)
    room_id = await inventory.room(hotel_id, type_id, "101")
    guest_id = await inventory.guest()
    created = []
    for day in (1, 5, 9):
        created.append(
            await create_booking(
                session,
                guest_id=guest_id,
                hotel_id=hotel_id,
                check_in=date(2024, 12, day),
                check_out=date(2024, 12, day + 2),
                room_ids=[room_id],
                number_of_guests=1,
            )
        )
    await cancel_booking(session, created[0]["id"], None)

    everything = await list_bookings(session, guest_id=guest_id)
    assert [b["id"] for b in everything] == [b["id"] for b in reversed(created)]
    assert all(b["rooms_count"] == 1 and b["room_numbers"] == "101" for b in everything)

    cancelled = await list_bookings(session, guest_id=guest_id, status="cancelled")
    assert [b["id"] for b in cancelled] == [created[0]["id"]]

    page_two = await list_bookings(session, hotel_id=hotel_id, page=2, limit=2)
    assert [b["id"] for b in page_two] == [created[0]["id"]]

    assert await list_bookings(session, guest_id=uuid4()) == []


@pytest.mark.asyncio
async def test_list_available_rooms_excludes_busy_and_inactive(session, inventory) -> None:
    from services.booking.app.availability import list_available_rooms

    hotel_id, type_id, [booked], _ = await _booked_room(session, inventory)
    free = await inventory.room(hotel_id, type_id, "102")
    await inventory.room(hotel_id, type_id, "103", status="blocked")
    suite_type = await inventory.room_type(hotel_id, name="Suite")
    suite = await inventory.room(hotel_id, suite_type, "501")

    overlapping = await list_available_rooms(session, hotel_id, date(2024, 6, 2), date(2024, 6, 6))
    assert [r["id"] for r in overlapping] == [free, suite]

    after = await list_available_rooms(session, hotel_id, date(2024, 6, 4), date(2024, 6, 6))
    assert [r["id"] for r in after] == [booked, free, suite]

    only_suites = await list_available_rooms(
        session, hotel_id, date(2024, 6, 2), date(2024, 6, 6), room_type_id=suite_type
    )
    assert [r["room_number"] for r in only_suites] == ["501"]
