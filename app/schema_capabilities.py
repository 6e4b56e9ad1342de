"""
Schema capability detection.

Deployed databases can lag behind the models (older deployments lack
bookings.price_cents or invoices.amount_paid). The live column sets are
inspected once per process and write shapes are chosen from them.
"""

import logging
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

PROBED_TABLES = ("bookings", "invoices", "transactions")

# Cache for detected capabilities
_cached_capabilities = None


class SchemaCapabilities:
    """Column sets of the tables whose shape varies between deployments"""

    def __init__(self, columns: dict[str, set[str]]):
        self.columns = {table: set(cols) for table, cols in columns.items()}

    def has_column(self, table: str, column: str) -> bool:
        return column in self.columns.get(table, set())

    @property
    def booking_price_snapshot(self) -> bool:
        return self.has_column("bookings", "price_cents")

    @property
    def invoice_amount_paid(self) -> bool:
        return self.has_column("invoices", "amount_paid")

    @classmethod
    def from_models(cls) -> "SchemaCapabilities":
        """Capabilities of a database created from the current models"""
        from .database import Base

        return cls(
            {
                name: {c.name for c in Base.metadata.tables[name].columns}
                for name in PROBED_TABLES
                if name in Base.metadata.tables
            }
        )

    @classmethod
    def detect(cls, engine: Engine) -> "SchemaCapabilities":
        inspector = inspect(engine)
        columns = {}
        for table in PROBED_TABLES:
            if inspector.has_table(table):
                columns[table] = {col["name"] for col in inspector.get_columns(table)}
            else:
                columns[table] = set()
        return cls(columns)


def get_schema_capabilities(engine: Optional[Engine] = None) -> SchemaCapabilities:
    """Detect capabilities once and reuse them for the life of the process"""
    global _cached_capabilities
    if _cached_capabilities is not None:
        return _cached_capabilities

    if engine is None:
        from .database import engine as default_engine

        engine = default_engine

    _cached_capabilities = SchemaCapabilities.detect(engine)
    logger.info(
        f"📊 Schema capabilities: bookings.price_cents={_cached_capabilities.booking_price_snapshot}, "
        f"invoices.amount_paid={_cached_capabilities.invoice_amount_paid}"
    )
    return _cached_capabilities


def reset_schema_capabilities() -> None:
    """Forget cached capabilities (after migrations)"""
    global _cached_capabilities
    _cached_capabilities = None
