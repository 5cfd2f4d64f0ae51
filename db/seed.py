from __future__ import annotations

import argparse
import hashlib
import json
import math
import os
import random
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from db.settings import SETTINGS, sync_database_url


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _det_uuid(*parts: str) -> uuid.UUID:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return uuid.UUID(h[:32])


def _round_money(x: float) -> float:
    return math.floor(x * 100 + 0.5) / 100.0


@dataclass(frozen=True)
class CitySpec:
    city: str
    state: str
    country: str
    postal_prefix: str


CITY_SPECS: list[CitySpec] = [
    CitySpec(city="Austin", state="TX", country="US", postal_prefix="787"),
    CitySpec(city="San Diego", state="CA", country="US", postal_prefix="921"),
    CitySpec(city="Chicago", state="IL", country="US", postal_prefix="606"),
    CitySpec(city="Seattle", state="WA", country="US", postal_prefix="981"),
]


@dataclass(frozen=True)
class RoomTypeSpec:
    name: str
    max_occupancy: int
    bed_type: str
    base_price: float
    amenities: list[str]


ROOM_TYPE_SPECS: list[RoomTypeSpec] = [
    RoomTypeSpec("Standard Queen", 2, "1 Queen", 110.0, ["wifi", "tv"]),
    RoomTypeSpec("Deluxe King", 2, "1 King", 165.0, ["wifi", "tv", "minibar"]),
    RoomTypeSpec("Family Double", 4, "2 Doubles", 190.0, ["wifi", "tv", "sofa_bed"]),
    RoomTypeSpec("Junior Suite", 3, "1 King", 260.0, ["wifi", "tv", "minibar", "bathtub", "lounge_access"]),
]

# (season_name, month_start, day_start, month_end, day_end, multiplier)
SEASONS = [
    ("summer", 6, 1, 8, 31, 1.25),
    ("holidays", 12, 20, 12, 31, 1.4),
]

BRANDS = ["Apex", "Harbor", "Civic", "Summit", "Oak & Ivy", "MetroStay", "Sunset"]
FIRST_NAMES = ["Ana", "Ben", "Chen", "Dara", "Eli", "Fatima", "Gus", "Hana", "Ivo", "Jules"]
LAST_NAMES = ["Okafor", "Novak", "Silva", "Kim", "Haddad", "Larsen", "Moreau", "Tanaka"]


def seed(
    database_url: str,
    seed_value: int,
    hotels_n: int,
    rooms_per_type: int,
    guests_n: int,
    *,
    tariff_years: list[int] | None = None,
) -> dict[str, int]:
    rng = random.Random(seed_value)
    now = _now()
    today = date.today()
    if tariff_years is None:
        tariff_years = [today.year, today.year + 1]

    engine = sa.create_engine(sync_database_url(database_url), future=True)
    meta = sa.MetaData()

    guests = sa.Table(
        "guests",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.Text()),
        sa.Column("last_name", sa.Text()),
        sa.Column("email", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    hotels = sa.Table(
        "hotels",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text()),
        sa.Column("address", sa.Text()),
        sa.Column("city", sa.Text()),
        sa.Column("state", sa.Text()),
        sa.Column("country", sa.Text()),
        sa.Column("postal_code", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("star_rating", sa.Integer()),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    room_types = sa.Table(
        "room_types",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", UUID(as_uuid=True)),
        sa.Column("name", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("max_occupancy", sa.Integer()),
        sa.Column("bed_type", sa.Text()),
        sa.Column("amenities", JSONB),
        sa.Column("base_price", sa.Numeric(10, 2)),
    )
    rooms = sa.Table(
        "rooms",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", UUID(as_uuid=True)),
        sa.Column("room_type_id", UUID(as_uuid=True)),
        sa.Column("room_number", sa.Text()),
        sa.Column("floor", sa.Text()),
        sa.Column("status", sa.Text()),
    )
    tariffs = sa.Table(
        "tariffs",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("room_type_id", UUID(as_uuid=True)),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("currency", sa.Text()),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("season_name", sa.Text()),
    )
    discounts = sa.Table(
        "discounts",
        meta,
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("amount_type", sa.Text()),
        sa.Column("amount", sa.Numeric(10, 2)),
        sa.Column("max_discount_amount", sa.Numeric(10, 2)),
        sa.Column("valid_from", sa.Date()),
        sa.Column("valid_to", sa.Date()),
        sa.Column("usage_limit", sa.Integer()),
        sa.Column("usage_count", sa.Integer()),
        sa.Column("is_active", sa.Boolean()),
    )

    guest_rows: list[dict] = []
    for i in range(guests_n):
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        guest_rows.append(
            dict(
                id=_det_uuid("guest", str(i)),
                first_name=first,
                last_name=last,
                email=f"{first.lower()}.{last.lower()}.{i}@example.invalid",
                phone=f"+1-555-{rng.randint(1000, 9999)}",
                created_at=now,
            )
        )

    hotel_rows: list[dict] = []
    room_type_rows: list[dict] = []
    room_rows: list[dict] = []
    tariff_rows: list[dict] = []

    for i in range(hotels_n):
        city_spec = CITY_SPECS[i % len(CITY_SPECS)]
        hotel_id = _det_uuid("hotel", str(i))
        star = rng.choice([3, 3, 4, 4, 5])
        hotel_rows.append(
            dict(
                id=hotel_id,
                name=f"{rng.choice(BRANDS)} {city_spec.city} Hotel",
                address=f"{100 + i} {rng.choice(['Main', 'Market', 'Congress', 'Pine', 'Lake'])} St",
                city=city_spec.city,
                state=city_spec.state,
                country=city_spec.country,
                postal_code=f"{city_spec.postal_prefix}{rng.randint(10, 99)}",
                phone=f"+1-555-{rng.randint(1000, 9999)}",
                star_rating=star,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )

        # Star rating scales prices, stable per hotel.
        hotel_factor = 0.8 + 0.1 * star
        for t_i, spec in enumerate(ROOM_TYPE_SPECS):
            room_type_id = _det_uuid("room_type", str(i), spec.name)
            base_price = _round_money(spec.base_price * hotel_factor)
            room_type_rows.append(
                dict(
                    id=room_type_id,
                    hotel_id=hotel_id,
                    name=spec.name,
                    description=f"{spec.name} with {spec.bed_type.lower()}.",
                    max_occupancy=spec.max_occupancy,
                    bed_type=spec.bed_type,
                    amenities=spec.amenities,
                    base_price=base_price,
                )
            )

            for r_i in range(rooms_per_type):
                floor = t_i + 1
                room_rows.append(
                    dict(
                        id=_det_uuid("room", str(i), spec.name, str(r_i)),
                        hotel_id=hotel_id,
                        room_type_id=room_type_id,
                        room_number=f"{floor}{r_i + 1:02d}",
                        floor=str(floor),
                        # A few rooms out of service so resolution has something to skip.
                        status="maintenance" if rng.random() < 0.05 else "available",
                    )
                )

            for year in tariff_years:
                for season_name, m0, d0, m1, d1, mult in SEASONS:
                    tariff_rows.append(
                        dict(
                            id=_det_uuid("tariff", str(room_type_id), str(year), season_name),
                            room_type_id=room_type_id,
                            price=_round_money(base_price * mult),
                            currency="USD",
                            start_date=date(year, m0, d0),
                            end_date=date(year, m1, d1),
                            season_name=season_name,
                        )
                    )

    discount_rows = [
        dict(
            id=_det_uuid("discount", "WELCOME10"),
            code="WELCOME10",
            description="10% off, capped at 50",
            amount_type="percentage",
            amount=10,
            max_discount_amount=50,
            valid_from=today - timedelta(days=30),
            valid_to=today + timedelta(days=365),
            usage_limit=None,
            usage_count=0,
            is_active=True,
        ),
        dict(
            id=_det_uuid("discount", "FLAT25"),
            code="FLAT25",
            description="25 off any stay",
            amount_type="fixed",
            amount=25,
            max_discount_amount=None,
            valid_from=today - timedelta(days=30),
            valid_to=today + timedelta(days=90),
            usage_limit=100,
            usage_count=0,
            is_active=True,
        ),
        dict(
            id=_det_uuid("discount", "SPRING"),
            code="SPRING",
            description="Expired seasonal promotion",
            amount_type="percentage",
            amount=15,
            max_discount_amount=None,
            valid_from=today - timedelta(days=200),
            valid_to=today - timedelta(days=100),
            usage_limit=None,
            usage_count=0,
            is_active=True,
        ),
    ]

    # Truncate existing rows for deterministic idempotence in dev.
    with engine.begin() as conn:
        conn.execute(
            sa.text(
                "TRUNCATE TABLE booking_status_history, booking_rooms, bookings, discounts, tariffs, "
                "rooms, room_types, hotels, guests CASCADE"
            )
        )
        conn.execute(guests.insert(), guest_rows)
        conn.execute(hotels.insert(), hotel_rows)
        conn.execute(room_types.insert(), room_type_rows)
        conn.execute(rooms.insert(), room_rows)
        conn.execute(tariffs.insert(), tariff_rows)
        conn.execute(discounts.insert(), discount_rows)

        counts = {}
        for table in ["guests", "hotels", "room_types", "rooms", "tariffs", "discounts"]:
            counts[table] = conn.execute(sa.text(f"SELECT COUNT(1) FROM {table}")).scalar_one()

    print(json.dumps({"seed": seed_value, "counts": counts}, indent=2, default=str))
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Load deterministic hotel inventory for local development.")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL") or SETTINGS.database_url)
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--hotels", type=int, default=12)
    parser.add_argument("--rooms-per-type", type=int, default=6)
    parser.add_argument("--guests", type=int, default=40)
    parser.add_argument(
        "--tariff-years", default=None, help="Comma-separated years to generate seasonal tariffs for (e.g. 2026,2027)."
    )
    args = parser.parse_args()
    tariff_years = None
    if args.tariff_years:
        tariff_years = [int(x.strip()) for x in str(args.tariff_years).split(",") if x.strip()]
    seed(
        args.database_url,
        args.seed,
        args.hotels,
        args.rooms_per_type,
        args.guests,
        tariff_years=tariff_years,
    )


if __name__ == "__main__":
    main()
