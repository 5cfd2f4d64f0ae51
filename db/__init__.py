"""
Database utilities, migrations, and seeding.

Runtime DB access lives in `services.booking.app`. This package is for repo-level DB operations:
- Alembic migrations config
- Deterministic seed generator for hotels, room inventory, tariffs and discount codes
"""
