"""Transaction repository - Database operations for ledger transactions"""

from sqlalchemy.orm import Session

from ...models_transaction import Transaction


class TransactionRepository:
    """Repository for transaction database operations"""

    @staticmethod
    def get_invoice_transactions(db: Session, business_id: str, invoice_id: int) -> list[Transaction]:
        """Get transactions linked to an invoice, oldest first"""
        return (
            db.query(Transaction)
            .filter(Transaction.business_id == business_id, Transaction.invoice_id == invoice_id)
            .order_by(Transaction.id.asc())
            .all()
        )

    @staticmethod
    def create_transaction(db: Session, business_id: str, **data) -> Transaction:
        """Create a new transaction"""
        transaction = Transaction(business_id=business_id, **data)
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction

    @staticmethod
    def update_transaction(db: Session, transaction: Transaction, **updates) -> Transaction:
        """Update a transaction with provided fields"""
        for key, value in updates.items():
            if hasattr(transaction, key):
                setattr(transaction, key, value)

        db.commit()
        db.refresh(transaction)
        return transaction

    @staticmethod
    def delete_transactions(db: Session, business_id: str, transaction_ids: list[int]) -> int:
        """Delete transactions by id"""
        if not transaction_ids:
            return 0
        deleted = (
            db.query(Transaction)
            .filter(Transaction.business_id == business_id, Transaction.id.in_(transaction_ids))
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def delete_invoice_transactions(db: Session, business_id: str, invoice_id: int) -> int:
        """Delete every transaction linked to an invoice. Returns the number removed."""
        deleted = (
            db.query(Transaction)
            .filter(Transaction.business_id == business_id, Transaction.invoice_id == invoice_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted
