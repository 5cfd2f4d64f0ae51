"""
Column maps for the tables the booking core reads and writes.

DDL is owned by the Alembic migrations under `db/migrations`; these are lightweight
`sa.table(...)` handles so queries stay expression-based instead of string-built.
"""

from __future__ import annotations

import sqlalchemy as sa


ACTIVE_EXCLUDED_STATUSES = ("cancelled", "no_show")

guests = sa.table(
    "guests",
    sa.column("id"),
    sa.column("first_name"),
    sa.column("last_name"),
    sa.column("email"),
)

hotels = sa.table(
    "hotels",
    sa.column("id"),
    sa.column("name"),
    sa.column("city"),
    sa.column("is_active"),
)

room_types = sa.table(
    "room_types",
    sa.column("id"),
    sa.column("hotel_id"),
    sa.column("name"),
    sa.column("max_occupancy"),
    sa.column("base_price"),
)

rooms = sa.table(
    "rooms",
    sa.column("id"),
    sa.column("hotel_id"),
    sa.column("room_type_id"),
    sa.column("room_number"),
    sa.column("floor"),
    sa.column("status"),
)

tariffs = sa.table(
    "tariffs",
    sa.column("id"),
    sa.column("room_type_id"),
    sa.column("price"),
    sa.column("start_date"),
    sa.column("end_date"),
    sa.column("season_name"),
)

discounts = sa.table(
    "discounts",
    sa.column("id"),
    sa.column("code"),
    sa.column("amount_type"),
    sa.column("amount"),
    sa.column("max_discount_amount"),
    sa.column("valid_from"),
    sa.column("valid_to"),
    sa.column("usage_limit"),
    sa.column("usage_count"),
    sa.column("is_active"),
)

bookings = sa.table(
    "bookings",
    sa.column("id"),
    sa.column("guest_id"),
    sa.column("hotel_id"),
    sa.column("check_in_date"),
    sa.column("check_out_date"),
    sa.column("number_of_guests"),
    sa.column("special_requests"),
    sa.column("total_amount"),
    sa.column("discount_amount"),
    sa.column("final_amount"),
    sa.column("discount_id"),
    sa.column("status"),
    sa.column("booking_date"),
    sa.column("cancelled_at"),
    sa.column("cancelled_by"),
    sa.column("cancellation_reason"),
    sa.column("created_at"),
    sa.column("updated_at"),
)

booking_rooms = sa.table(
    "booking_rooms",
    sa.column("id"),
    sa.column("booking_id"),
    sa.column("line_number"),
    sa.column("room_id"),
    sa.column("check_in_date"),
    sa.column("check_out_date"),
    sa.column("price_per_night"),
    sa.column("number_of_nights"),
    sa.column("total_price"),
    sa.column("tariff_id"),
    sa.column("created_at"),
)

booking_status_history = sa.table(
    "booking_status_history",
    sa.column("id"),
    sa.column("booking_id"),
    sa.column("old_status"),
    sa.column("new_status"),
    sa.column("changed_by"),
    sa.column("notes"),
    sa.column("changed_at"),
)


def active_line_overlaps(check_in, check_out) -> sa.ColumnElement[bool]:
    """Lines on non-cancelled, non-no-show bookings whose half-open interval intersects [check_in, check_out)."""
    return sa.and_(
        bookings.c.status.not_in(ACTIVE_EXCLUDED_STATUSES),
        sa.not_(
            sa.or_(
                booking_rooms.c.check_out_date <= check_in,
                booking_rooms.c.check_in_date >= check_out,
            )
        ),
    )
