"""
Add price snapshot and partial payment columns

Migration to add:
- bookings.price_cents (price of the service at booking time)
- invoices.amount_paid (running total of partial payments)

Until this runs the API keeps working without them (see app/schema_capabilities.py).

Run with: python migrations/add_booking_price_and_amount_paid.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text  # noqa: E402

from app.schema_capabilities import SchemaCapabilities, reset_schema_capabilities  # noqa: E402

COLUMNS = [
    ("bookings", "price_cents", "INTEGER NOT NULL DEFAULT 0"),
    ("invoices", "amount_paid", "NUMERIC(12, 2) NOT NULL DEFAULT 0"),
]


def _default_engine():
    from app.database import engine

    return engine


def upgrade(engine=None):
    """Add the optional columns that are missing"""
    engine = engine or _default_engine()
    capabilities = SchemaCapabilities.detect(engine)
    added = []

    with engine.connect() as conn:
        for table, column, ddl in COLUMNS:
            if capabilities.has_column(table, column):
                print(f"ℹ️  {table}.{column} already exists")
                continue
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
            added.append(f"{table}.{column}")
            print(f"✅ Added {table}.{column}")
        conn.commit()

    # Running API processes still need a restart to pick this up
    reset_schema_capabilities()
    print("\n✅ Migration completed successfully!")
    return added


def downgrade(engine=None):
    """Remove the optional columns"""
    engine = engine or _default_engine()
    with engine.connect() as conn:
        for table, column, _ddl in COLUMNS:
            conn.execute(text(f"ALTER TABLE {table} DROP COLUMN IF EXISTS {column}"))
        conn.commit()
    reset_schema_capabilities()
    print("✅ Migration rolled back successfully!")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage booking price / amount paid migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        print("Rolling back migration...")
        downgrade()
    else:
        print("Running migration...")
        upgrade()
