"""Invoices domain - Booking invoices, numbering and notes"""

from .repository import InvoiceRepository
from .service import InvoiceService

__all__ = ["InvoiceRepository", "InvoiceService"]
