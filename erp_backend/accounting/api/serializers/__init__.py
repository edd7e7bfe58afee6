from .ledger_entries import (
    VendorLedgerEntrySerializer,
    VendorReconcileSerializer,
    VendorTransactionsQuerySerializer,
)

__all__ = [
    "VendorLedgerEntrySerializer",
    "VendorReconcileSerializer",
    "VendorTransactionsQuerySerializer",
]
