# inventory/services/returns.py

"""
RETURNABLE QUANTITY

For an approved purchase transaction:
    remaining = purchased - (quantities in pending + approved returns referencing it)

Pending returns count so two open requests cannot together exceed the purchase.
Checked when a return is created and again when it is approved.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from django.db.models import Sum

from core.money import money
from inventory.models import InventoryTransaction, InventoryTransactionItem
from inventory.services.exceptions import InventoryTransactionError, ReturnQuantityExceededError

OPEN_RETURN_STATUSES = (
    InventoryTransaction.STATUS_PENDING,
    InventoryTransaction.STATUS_APPROVED,
)


@dataclass(frozen=True)
class ReturnableLine:
    variant_id: str
    sku: str
    purchased: int
    returned: int
    remaining: int
    unit_cost: Decimal


def returnable_quantities(purchase_txn: InventoryTransaction, *, exclude_transaction_id=None) -> dict[str, ReturnableLine]:
    purchased: dict[str, int] = defaultdict(int)
    cost_total: dict[str, Decimal] = defaultdict(Decimal)
    skus: dict[str, str] = {}

    for item in purchase_txn.items.select_related("variant"):
        key = str(item.variant_id)
        purchased[key] += int(item.quantity)
        cost_total[key] += Decimal(int(item.quantity)) * Decimal(str(item.unit_cost))
        skus[key] = item.variant.sku

    returned_qs = InventoryTransactionItem.objects.filter(
        transaction__reference_transaction_id=purchase_txn.id,
        transaction__transaction_type=InventoryTransaction.TYPE_PURCHASE_RETURN,
        transaction__status__in=OPEN_RETURN_STATUSES,
    )
    if exclude_transaction_id:
        returned_qs = returned_qs.exclude(transaction_id=exclude_transaction_id)

    returned = {
        str(row["variant_id"]): int(row["qty"] or 0)
        for row in returned_qs.values("variant_id").annotate(qty=Sum("quantity")).order_by()
    }

    lines = {}
    for key, qty in purchased.items():
        already = returned.get(key, 0)
        lines[key] = ReturnableLine(
            variant_id=key,
            sku=skus[key],
            purchased=qty,
            returned=already,
            remaining=max(qty - already, 0),
            unit_cost=money(cost_total[key] / qty) if qty else money(0),
        )
    return lines


def assert_within_returnable(
    purchase_txn: InventoryTransaction,
    requested: dict[str, int],
    *,
    exclude_transaction_id=None,
) -> dict[str, ReturnableLine]:
    """
    `requested` maps variant id -> total quantity asked for in the return.
    """
    lines = returnable_quantities(purchase_txn, exclude_transaction_id=exclude_transaction_id)

    for variant_id, qty in requested.items():
        line = lines.get(str(variant_id))
        if line is None:
            raise InventoryTransactionError(
                f"Variant {variant_id} was not part of purchase {purchase_txn.invoice_no}",
                details={"variant_id": str(variant_id)},
            )
        if qty > line.remaining:
            raise ReturnQuantityExceededError(
                f"Return exceeds remaining quantity for {line.sku}: {line.remaining} left",
                details={
                    "variant_id": line.variant_id,
                    "sku": line.sku,
                    "requested": qty,
                    "remaining": line.remaining,
                },
            )

    return lines
