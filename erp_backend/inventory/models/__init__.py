from .sequence import InventorySequence
from .transaction import InventoryTransaction, InventoryTransactionItem

__all__ = [
    "InventorySequence",
    "InventoryTransaction",
    "InventoryTransactionItem",
]
