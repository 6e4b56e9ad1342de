"""Transactions domain - Ledger entries, revenue sync and tax tagging"""

from .revenue_sync import (
    delete_invoice_linked_transactions,
    sync_revenue_transaction,
    upsert_revenue_transaction_for_invoice,
)
from .router import router
from .tax_tagger import classify_tax_tag

__all__ = [
    "router",
    "classify_tax_tag",
    "upsert_revenue_transaction_for_invoice",
    "delete_invoice_linked_transactions",
    "sync_revenue_transaction",
]
