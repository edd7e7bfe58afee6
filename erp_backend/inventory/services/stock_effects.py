# inventory/services/stock_effects.py

"""
STOCK EFFECTS OF INVENTORY TRANSACTIONS

Per item, by transaction type (fresh = current_stock, damaged = damaged_stock):

    purchase          fresh +q
    purchase_return   fresh -q        (source_type=fresh)
                      damaged -q      (source_type=damaged)
    damage            fresh -q, damaged +q
    adjustment        fresh +q / -q   (signed quantity)

apply_stock_effects() runs at approval and records stock_before / stock_after
on every item. reverse_stock_effects() runs on void and leaves the approval
snapshot untouched; the reversal is visible in the StockMovement log.

Items are processed in variant id order so concurrent approvals lock variant
rows in the same order.
"""

from __future__ import annotations

from inventory.models import InventoryTransaction, InventoryTransactionItem
from products.models import StockMovement
from products.services.stock import change_stock

MOVEMENT_REASONS = {
    InventoryTransaction.TYPE_PURCHASE: StockMovement.Reason.PURCHASE,
    InventoryTransaction.TYPE_PURCHASE_RETURN: StockMovement.Reason.PURCHASE_RETURN,
    InventoryTransaction.TYPE_DAMAGE: StockMovement.Reason.DAMAGE,
    InventoryTransaction.TYPE_ADJUSTMENT: StockMovement.Reason.ADJUSTMENT,
}


def pool_deltas(transaction_type: str, item: InventoryTransactionItem) -> tuple[int, int]:
    """(fresh_delta, damaged_delta) for one item."""
    qty = int(item.quantity)

    if transaction_type == InventoryTransaction.TYPE_PURCHASE:
        return qty, 0
    if transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN:
        if item.source_type == InventoryTransactionItem.SOURCE_DAMAGED:
            return 0, -qty
        return -qty, 0
    if transaction_type == InventoryTransaction.TYPE_DAMAGE:
        return -qty, qty
    if transaction_type == InventoryTransaction.TYPE_ADJUSTMENT:
        return qty, 0

    raise ValueError(f"Unknown transaction_type: {transaction_type!r}")


def tracks_damaged_pool(transaction_type: str, item: InventoryTransactionItem) -> bool:
    return (
        transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN
        and item.source_type == InventoryTransactionItem.SOURCE_DAMAGED
    )


def _ordered_items(txn: InventoryTransaction) -> list[InventoryTransactionItem]:
    return sorted(txn.items.all(), key=lambda it: str(it.variant_id))


def apply_stock_effects(txn: InventoryTransaction, *, user=None, update_cost_price: bool = False) -> None:
    reason = MOVEMENT_REASONS[txn.transaction_type]

    for item in _ordered_items(txn):
        fresh_delta, damaged_delta = pool_deltas(txn.transaction_type, item)

        change = change_stock(
            variant_id=item.variant_id,
            reason=reason,
            fresh_delta=fresh_delta,
            damaged_delta=damaged_delta,
            cost_price=item.unit_cost if update_cost_price else None,
            reference_id=txn.id,
            user=user,
            note=txn.invoice_no,
        )

        if tracks_damaged_pool(txn.transaction_type, item):
            item.stock_before, item.stock_after = change.damaged_before, change.damaged_after
        else:
            item.stock_before, item.stock_after = change.fresh_before, change.fresh_after
        item.save(update_fields=["stock_before", "stock_after"])


def reverse_stock_effects(txn: InventoryTransaction, *, user=None) -> None:
    for item in _ordered_items(txn):
        fresh_delta, damaged_delta = pool_deltas(txn.transaction_type, item)

        change_stock(
            variant_id=item.variant_id,
            reason=StockMovement.Reason.VOID_REVERSAL,
            fresh_delta=-fresh_delta,
            damaged_delta=-damaged_delta,
            reference_id=txn.id,
            user=user,
            note=f"void {txn.invoice_no}",
        )
