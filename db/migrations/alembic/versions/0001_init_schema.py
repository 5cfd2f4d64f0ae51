"""init schema

Revision ID: 0001_init_schema
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "guests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "hotels",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("postal_code", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("star_rating", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("star_rating BETWEEN 1 AND 5", name="ck_hotels_star_rating"),
    )

    op.create_table(
        "room_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hotels.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("max_occupancy", sa.Integer(), nullable=True),
        sa.Column("bed_type", sa.Text(), nullable=True),
        sa.Column("amenities", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=True),
    )

    op.create_table(
        "rooms",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hotels.id"), nullable=False),
        sa.Column("room_type_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("room_number", sa.Text(), nullable=False),
        sa.Column("floor", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="available"),
        sa.CheckConstraint(
            "status IN ('available', 'occupied', 'maintenance', 'blocked')", name="ck_rooms_status"
        ),
        sa.UniqueConstraint("hotel_id", "room_number", name="uq_rooms_hotel_room_number"),
    )

    op.create_table(
        "tariffs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("room_type_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False, server_default="USD"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("season_name", sa.Text(), nullable=True),
        sa.CheckConstraint("end_date >= start_date", name="ck_tariffs_interval"),
    )

    op.create_table(
        "discounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.Text(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount_type", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("amount_type IN ('percentage', 'fixed')", name="ck_discounts_amount_type"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("guest_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("guests.id"), nullable=False),
        sa.Column("hotel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hotels.id"), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("number_of_guests", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("discounts.id"), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending_payment"),
        sa.Column("booking_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("check_out_date > check_in_date", name="ck_bookings_interval"),
        sa.CheckConstraint(
            "status IN ('pending_payment', 'confirmed', 'checked_in', 'checked_out', 'cancelled', 'no_show')",
            name="ck_bookings_status",
        ),
    )

    op.create_table(
        "booking_rooms",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("room_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("price_per_night", sa.Numeric(10, 2), nullable=False),
        sa.Column("number_of_nights", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("tariff_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tariffs.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("number_of_nights > 0", name="ck_booking_rooms_nights"),
        sa.UniqueConstraint("booking_id", "line_number", name="uq_booking_rooms_line"),
    )

    op.create_table(
        "booking_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("old_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_index("idx_room_types_hotel", "room_types", ["hotel_id"])
    op.create_index("idx_rooms_hotel_type_status", "rooms", ["hotel_id", "room_type_id", "status"])
    op.create_index("idx_tariffs_type_dates", "tariffs", ["room_type_id", "start_date", "end_date"])
    op.create_index("idx_bookings_guest", "bookings", ["guest_id"])
    op.create_index("idx_bookings_hotel_status", "bookings", ["hotel_id", "status"])
    op.create_index("idx_booking_rooms_room_dates", "booking_rooms", ["room_id", "check_in_date", "check_out_date"])
    op.create_index("idx_booking_rooms_booking", "booking_rooms", ["booking_id"])
    op.create_index("idx_booking_status_history_booking", "booking_status_history", ["booking_id"])


def downgrade() -> None:
    op.drop_index("idx_booking_status_history_booking", table_name="booking_status_history")
    op.drop_index("idx_booking_rooms_booking", table_name="booking_rooms")
    op.drop_index("idx_booking_rooms_room_dates", table_name="booking_rooms")
    op.drop_index("idx_bookings_hotel_status", table_name="bookings")
    op.drop_index("idx_bookings_guest", table_name="bookings")
    op.drop_index("idx_tariffs_type_dates", table_name="tariffs")
    op.drop_index("idx_rooms_hotel_type_status", table_name="rooms")
    op.drop_index("idx_room_types_hotel", table_name="room_types")

    op.drop_table("booking_status_history")
    op.drop_table("booking_rooms")
    op.drop_table("bookings")
    op.drop_table("discounts")
    op.drop_table("tariffs")
    op.drop_table("rooms")
    op.drop_table("room_types")
    op.drop_table("hotels")
    op.drop_table("guests")
