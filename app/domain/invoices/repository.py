"""Invoice repository - Database operations for invoices"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice, InvoiceItem


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def get_invoice(db: Session, business_id: str, invoice_id: int) -> Optional[Invoice]:
        """Get a specific invoice"""
        return (
            db.query(Invoice)
            .filter(Invoice.business_id == business_id, Invoice.id == invoice_id)
            .first()
        )

    @staticmethod
    def get_invoice_for_booking(db: Session, business_id: str, booking_id: int) -> Optional[Invoice]:
        """Get the invoice that points back at a booking"""
        return (
            db.query(Invoice)
            .filter(Invoice.business_id == business_id, Invoice.booking_id == booking_id)
            .order_by(Invoice.id.desc())
            .first()
        )

    @staticmethod
    def get_recent_invoice_numbers(db: Session, business_id: str, prefix: str, limit: int = 250) -> list[str]:
        """Most recent invoice numbers starting with prefix"""
        rows = (
            db.query(Invoice.invoice_number)
            .filter(Invoice.business_id == business_id, Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def create_invoice(db: Session, business_id: str, **invoice_data) -> Invoice:
        """Create a new invoice"""
        invoice = Invoice(business_id=business_id, **invoice_data)
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def create_invoice_item(db: Session, invoice_id: int, **item_data) -> InvoiceItem:
        item = InvoiceItem(invoice_id=invoice_id, **item_data)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def update_invoice(db: Session, invoice: Invoice, **updates) -> Invoice:
        """Update an invoice with provided fields"""
        for key, value in updates.items():
            if hasattr(invoice, key):
                setattr(invoice, key, value)

        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def delete_invoice(db: Session, invoice: Invoice) -> None:
        """Delete an invoice"""
        db.delete(invoice)
        db.commit()
