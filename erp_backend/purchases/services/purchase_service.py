# purchases/services/purchase_service.py

"""
======================================================
PATH: purchases/services/purchase_service.py
======================================================
PURCHASE RECORDER

Record a vendor purchase atomically:

1) Validate lines (non-empty, quantity > 0, cost >= 0) before touching the DB
2) Lock vendor (serializes every writer of that vendor, retries included)
3) Idempotency replay (same key => same purchase, nothing posted twice),
   resolve variants
4) Insert Purchase header (COMPLETED) + items with catalog snapshots
5) Insert the approved purchase InventoryTransaction (+ items)
6) Move stock: current_stock += qty, cost_price = latest cost (per variant, locked)
7) Post exactly ONE ledger debit (total_amount) through accounting.services.posting

Any failure raises and rolls the whole unit back: no stock without ledger,
no ledger without stock.

Cancelling a purchase voids its inventory transaction, which reverses stock
and posts a purchase_reversal credit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models import VendorLedgerEntry
from accounting.services.posting import post_purchase_to_ledger
from core.exceptions import ConflictError, NotFoundError, ValidationFailed
from core.money import ZERO, money
from inventory.models import InventoryTransaction, InventoryTransactionItem
from inventory.services.approval_service import void_inventory_transaction
from inventory.services.numbering import insert_transaction, next_invoice_number
from inventory.services.stock_effects import apply_stock_effects
from products.models import ProductVariant
from purchases.models import Purchase, PurchaseItem, Vendor

logger = logging.getLogger(__name__)


class PurchaseRecordingError(ValidationFailed):
    pass


@dataclass(frozen=True)
class PurchaseLine:
    variant_id: Any
    quantity: int
    cost_price: Decimal


@dataclass(frozen=True)
class PurchaseResult:
    purchase_id: str
    total_amount: Decimal
    items_count: int
    invoice_no: str
    inventory_transaction_id: str
    ledger_entry_id: Optional[str]
    replayed: bool = False

    def as_dict(self) -> dict:
        return {
            "success": True,
            "purchase_id": self.purchase_id,
            "total_amount": str(self.total_amount),
            "items_count": self.items_count,
            "invoice_no": self.invoice_no,
            "inventory_transaction_id": self.inventory_transaction_id,
            "ledger_entry_id": self.ledger_entry_id,
            "replayed": self.replayed,
        }


def _validate_lines(items: Sequence[PurchaseLine]) -> list[PurchaseLine]:
    if not items:
        raise PurchaseRecordingError("Purchase must contain at least one item")

    lines = []
    for idx, line in enumerate(items, start=1):
        try:
            variant_id = uuid.UUID(str(line.variant_id))
        except (TypeError, ValueError):
            raise PurchaseRecordingError(f"Item {idx}: variant_id must be a valid id")

        if isinstance(line.quantity, bool):
            raise PurchaseRecordingError(f"Item {idx}: quantity must be an integer")
        try:
            qty = int(line.quantity)
        except (TypeError, ValueError):
            raise PurchaseRecordingError(f"Item {idx}: quantity must be an integer")
        if qty <= 0:
            raise PurchaseRecordingError(f"Item {idx}: quantity must be > 0")

        try:
            cost = money(line.cost_price)
        except ValueError as exc:
            raise PurchaseRecordingError(f"Item {idx}: {exc}") from exc
        if cost < ZERO:
            raise PurchaseRecordingError(f"Item {idx}: cost_price cannot be negative")

        lines.append(PurchaseLine(variant_id=variant_id, quantity=qty, cost_price=cost))
    return lines


def _result_for(purchase: Purchase, *, replayed: bool = False) -> PurchaseResult:
    entry = (
        VendorLedgerEntry.objects.filter(
            reference_id=purchase.id, entry_type=VendorLedgerEntry.PURCHASE
        )
        .order_by("created_at")
        .first()
    )
    txn = InventoryTransaction.objects.filter(purchase=purchase).only("id").first()
    return PurchaseResult(
        purchase_id=str(purchase.id),
        total_amount=money(purchase.total_amount),
        items_count=purchase.items.count(),
        invoice_no=purchase.invoice_no,
        inventory_transaction_id=str(txn.id) if txn else "",
        ledger_entry_id=str(entry.id) if entry else None,
        replayed=replayed,
    )


def _replay(*, idempotency_key: str, vendor_id, total: Decimal) -> Optional[PurchaseResult]:
    existing = Purchase.objects.filter(idempotency_key=idempotency_key).first()
    if existing is None:
        return None

    if str(existing.vendor_id) != str(vendor_id) or money(existing.total_amount) != total:
        raise ConflictError(
            "idempotency_key was already used for a different purchase",
            details={"purchase_id": str(existing.id)},
        )

    logger.info(
        "Purchase replayed by idempotency key",
        extra={"purchase_id": str(existing.id), "idempotency_key": idempotency_key},
    )
    return _result_for(existing, replayed=True)


@transaction.atomic
def create_purchase(
    *,
    vendor_id,
    items: Sequence[PurchaseLine],
    invoice_no: Optional[str] = None,
    invoice_date: Optional[date] = None,
    discount=ZERO,
    tax=ZERO,
    notes: str = "",
    created_by=None,
    idempotency_key: Optional[str] = None,
) -> PurchaseResult:
    lines = _validate_lines(items)

    discount = money(discount)
    tax = money(tax)
    if discount < ZERO:
        raise PurchaseRecordingError("discount cannot be negative")
    if tax < ZERO:
        raise PurchaseRecordingError("tax cannot be negative")

    subtotal = money(sum((Decimal(ln.quantity) * ln.cost_price for ln in lines), ZERO))
    total = subtotal - discount + tax
    if total < ZERO:
        raise PurchaseRecordingError("discount cannot exceed subtotal + tax")

    try:
        vendor = Vendor.objects.select_for_update().get(id=vendor_id)
    except (Vendor.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise PurchaseRecordingError("Vendor not found") from exc

    # replay is looked up under the vendor lock
    idempotency_key = (idempotency_key or "").strip() or None
    if idempotency_key:
        replay = _replay(idempotency_key=idempotency_key, vendor_id=vendor_id, total=total)
        if replay is not None:
            return replay

    if not vendor.is_active:
        raise PurchaseRecordingError("Vendor not found")

    variant_ids = {ln.variant_id for ln in lines}
    variants = {
        str(v.id): v
        for v in ProductVariant.objects.select_related("product").filter(id__in=variant_ids)
    }
    missing = sorted(str(v) for v in variant_ids if str(v) not in variants)
    if missing:
        raise PurchaseRecordingError(
            f"Product variant not found: {', '.join(missing)}",
            details={"missing_variant_ids": missing},
        )

    txn_invoice_no = next_invoice_number(InventoryTransaction.TYPE_PURCHASE)
    invoice_no = (invoice_no or "").strip() or txn_invoice_no

    if Purchase.objects.filter(vendor=vendor, invoice_no=invoice_no).exists():
        raise ConflictError(
            f"Invoice {invoice_no} is already recorded for this vendor",
            details={"invoice_no": invoice_no},
        )

    invoice_date = invoice_date or timezone.localdate()

    try:
        with transaction.atomic():
            purchase = Purchase.objects.create(
                vendor=vendor,
                invoice_no=invoice_no,
                invoice_date=invoice_date,
                status=Purchase.STATUS_COMPLETED,
                subtotal=subtotal,
                discount_amount=discount,
                tax_amount=tax,
                total_amount=total,
                notes=notes or "",
                idempotency_key=idempotency_key,
                created_by=created_by,
            )
    except (IntegrityError, DjangoValidationError):
        if idempotency_key and Purchase.objects.filter(idempotency_key=idempotency_key).exists():
            raise ConflictError(
                "idempotency_key was already used for a different purchase",
                details={"idempotency_key": idempotency_key},
            )
        raise

    for ln in lines:
        variant = variants[str(ln.variant_id)]
        PurchaseItem.objects.create(
            purchase=purchase,
            variant=variant,
            product_name=variant.product.name,
            variant_name=variant.name,
            sku=variant.sku,
            quantity=ln.quantity,
            cost_price=ln.cost_price,
        )

    now = timezone.now()
    txn = insert_transaction(
        transaction_type=InventoryTransaction.TYPE_PURCHASE,
        invoice_no=txn_invoice_no,
        transaction_date=invoice_date,
        status=InventoryTransaction.STATUS_APPROVED,
        vendor=vendor,
        purchase=purchase,
        notes=notes or "",
        total_cost=subtotal,
        performed_by=created_by,
        approved_by=created_by,
        approval_date=now,
    )
    for ln in lines:
        InventoryTransactionItem.objects.create(
            transaction=txn,
            variant=variants[str(ln.variant_id)],
            quantity=ln.quantity,
            unit_cost=ln.cost_price,
        )

    apply_stock_effects(txn, user=created_by, update_cost_price=True)

    entry = post_purchase_to_ledger(purchase=purchase, performed_by=created_by)

    logger.info(
        "Purchase recorded",
        extra={
            "purchase_id": str(purchase.id),
            "vendor_id": str(vendor.id),
            "total_amount": str(total),
            "items_count": len(lines),
            "ledger_entry_id": str(entry.id) if entry else None,
        },
    )

    return PurchaseResult(
        purchase_id=str(purchase.id),
        total_amount=total,
        items_count=len(lines),
        invoice_no=purchase.invoice_no,
        inventory_transaction_id=str(txn.id),
        ledger_entry_id=str(entry.id) if entry else None,
    )


@transaction.atomic
def cancel_purchase(*, purchase_id, actor, reason: str) -> Purchase:
    """
    Cancel a completed purchase by voiding its inventory transaction.

    Stock is taken back out and a purchase_reversal credit is posted; the
    original purchase ledger entry stays (ledger is append-only).
    """
    try:
        purchase = Purchase.objects.get(id=purchase_id)
    except (Purchase.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise NotFoundError("Purchase not found") from exc

    txn = InventoryTransaction.objects.filter(purchase=purchase).first()
    if txn is None:
        raise PurchaseRecordingError("Purchase has no inventory transaction to void")

    void_inventory_transaction(transaction_id=txn.id, actor=actor, reason=reason)

    purchase.refresh_from_db()
    return purchase
