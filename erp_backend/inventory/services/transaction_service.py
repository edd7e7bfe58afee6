# inventory/services/transaction_service.py

"""
CREATE INVENTORY TRANSACTION

Entry point for purchase / purchase_return / damage / adjustment.

- purchase: delegated to the purchase recorder (always approved, ledger debit)
- everything else:
    validate input -> insert header + items as PENDING
    -> privileged actor: approve in the same atomic unit (stock + ledger now)
    -> otherwise: leave PENDING, no stock effect

A purchase_return either references an approved purchase transaction of the
same vendor (unit cost taken from that purchase, quantity capped by what is
still returnable) or stands alone as a debit note.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.exceptions import IntegrityViolation
from core.money import ZERO, money
from inventory.lifecycle import APPROVED, initial_status
from inventory.models import InventoryTransaction, InventoryTransactionItem
from inventory.services.approval_service import apply_approval
from inventory.services.exceptions import ApprovalPermissionError, InventoryTransactionError
from inventory.services.numbering import insert_transaction
from inventory.services.returns import assert_within_returnable
from permissions.roles import CAP_INVENTORY_CREATE, has_capability, is_privileged
from products.models import ProductVariant
from purchases.models import Vendor
from purchases.services.purchase_service import PurchaseLine, create_purchase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionLine:
    variant_id: Any
    quantity: int
    unit_cost: Optional[Decimal] = None
    source_type: str = InventoryTransactionItem.SOURCE_FRESH


@dataclass(frozen=True)
class TransactionResult:
    transaction: InventoryTransaction
    requires_approval: bool


def _min_reason_length() -> int:
    return int(getattr(settings, "INVENTORY_REASON_MIN_LENGTH", 5))


def _validate_lines(transaction_type: str, items: Sequence[TransactionLine]) -> list[TransactionLine]:
    if not items:
        raise InventoryTransactionError("At least one item is required")

    valid_sources = {s for s, _ in InventoryTransactionItem.SOURCE_TYPES}
    lines = []
    for idx, line in enumerate(items, start=1):
        try:
            variant_id = uuid.UUID(str(line.variant_id))
        except (TypeError, ValueError):
            raise InventoryTransactionError(f"Item {idx}: variant_id must be a valid id")

        if isinstance(line.quantity, bool):
            raise InventoryTransactionError(f"Item {idx}: quantity must be an integer")
        try:
            qty = int(line.quantity)
        except (TypeError, ValueError):
            raise InventoryTransactionError(f"Item {idx}: quantity must be an integer")

        if transaction_type == InventoryTransaction.TYPE_ADJUSTMENT:
            if qty == 0:
                raise InventoryTransactionError(f"Item {idx}: adjustment quantity cannot be 0")
        elif qty <= 0:
            raise InventoryTransactionError(f"Item {idx}: quantity must be > 0")

        source_type = (line.source_type or InventoryTransactionItem.SOURCE_FRESH).lower()
        if source_type not in valid_sources:
            raise InventoryTransactionError(f"Item {idx}: invalid source_type {line.source_type!r}")
        if (
            source_type == InventoryTransactionItem.SOURCE_DAMAGED
            and transaction_type != InventoryTransaction.TYPE_PURCHASE_RETURN
        ):
            raise InventoryTransactionError(
                f"Item {idx}: source_type 'damaged' is only valid for purchase returns"
            )

        unit_cost = None
        if line.unit_cost is not None and line.unit_cost != "":
            try:
                unit_cost = money(line.unit_cost)
            except ValueError as exc:
                raise InventoryTransactionError(f"Item {idx}: {exc}") from exc
            if unit_cost < ZERO:
                raise InventoryTransactionError(f"Item {idx}: unit_cost cannot be negative")

        lines.append(
            TransactionLine(
                variant_id=variant_id,
                quantity=qty,
                unit_cost=unit_cost,
                source_type=source_type,
            )
        )
    return lines


def _resolve_reference(reference_transaction_id, *, vendor: Vendor) -> InventoryTransaction:
    try:
        reference = InventoryTransaction.objects.get(id=reference_transaction_id)
    except (InventoryTransaction.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise InventoryTransactionError("Referenced purchase transaction not found") from exc

    if reference.transaction_type != InventoryTransaction.TYPE_PURCHASE:
        raise InventoryTransactionError("Returns can only reference a purchase transaction")
    if reference.status != APPROVED:
        raise IntegrityViolation(
            f"Referenced purchase {reference.invoice_no} is {reference.status}; "
            "returns need an approved purchase"
        )
    if reference.vendor_id != vendor.id:
        raise InventoryTransactionError("Referenced purchase belongs to a different vendor")
    return reference


def _create_purchase_transaction(
    *, lines, vendor_id, invoice_no, transaction_date, notes, actor, idempotency_key
) -> TransactionResult:
    purchase_lines = []
    for idx, ln in enumerate(lines, start=1):
        if ln.unit_cost is None:
            raise InventoryTransactionError(f"Item {idx}: unit_cost is required for purchases")
        purchase_lines.append(
            PurchaseLine(variant_id=ln.variant_id, quantity=ln.quantity, cost_price=ln.unit_cost)
        )

    result = create_purchase(
        vendor_id=vendor_id,
        items=purchase_lines,
        invoice_no=invoice_no,
        invoice_date=transaction_date,
        notes=notes,
        created_by=actor,
        idempotency_key=idempotency_key,
    )
    txn = InventoryTransaction.objects.get(id=result.inventory_transaction_id)
    return TransactionResult(transaction=txn, requires_approval=False)


@transaction.atomic
def create_inventory_transaction(
    *,
    transaction_type: str,
    items: Sequence[TransactionLine],
    actor,
    vendor_id=None,
    reason: str = "",
    reference_transaction_id=None,
    invoice_no: Optional[str] = None,
    transaction_date: Optional[date] = None,
    notes: str = "",
    idempotency_key: Optional[str] = None,
) -> TransactionResult:
    if transaction_type not in InventoryTransaction.INVOICE_PREFIXES:
        raise InventoryTransactionError(f"Invalid transaction_type: {transaction_type!r}")

    if not has_capability(actor, CAP_INVENTORY_CREATE):
        raise ApprovalPermissionError("You are not allowed to create inventory transactions")

    lines = _validate_lines(transaction_type, items)
    invoice_no = (invoice_no or "").strip() or None

    if transaction_type == InventoryTransaction.TYPE_PURCHASE:
        return _create_purchase_transaction(
            lines=lines,
            vendor_id=vendor_id,
            invoice_no=invoice_no,
            transaction_date=transaction_date,
            notes=notes,
            actor=actor,
            idempotency_key=idempotency_key,
        )

    reason = (reason or "").strip()
    min_len = _min_reason_length()
    if len(reason) < min_len:
        raise InventoryTransactionError(
            f"Reason must be at least {min_len} characters for {transaction_type}"
        )

    vendor = None
    reference = None
    if transaction_type == InventoryTransaction.TYPE_PURCHASE_RETURN:
        if not vendor_id:
            raise InventoryTransactionError("vendor_id is required for purchase returns")
        try:
            vendor = Vendor.objects.get(id=vendor_id, is_active=True)
        except (Vendor.DoesNotExist, ValueError, DjangoValidationError) as exc:
            raise InventoryTransactionError("Vendor not found") from exc

        if reference_transaction_id:
            reference = _resolve_reference(reference_transaction_id, vendor=vendor)
    elif reference_transaction_id:
        raise InventoryTransactionError("Only purchase returns can reference another transaction")

    variant_ids = {ln.variant_id for ln in lines}
    variants = {str(v.id): v for v in ProductVariant.objects.filter(id__in=variant_ids)}
    missing = sorted(str(v) for v in variant_ids if str(v) not in variants)
    if missing:
        raise InventoryTransactionError(
            f"Product variant not found: {', '.join(missing)}",
            details={"missing_variant_ids": missing},
        )

    returnable = {}
    if reference is not None:
        requested: dict[str, int] = {}
        for ln in lines:
            key = str(ln.variant_id)
            requested[key] = requested.get(key, 0) + ln.quantity
        returnable = assert_within_returnable(reference, requested)

    def unit_cost_for(ln: TransactionLine) -> Decimal:
        if reference is not None:
            return returnable[str(ln.variant_id)].unit_cost
        if ln.unit_cost is not None:
            return ln.unit_cost
        return money(variants[str(ln.variant_id)].cost_price)

    costs = [unit_cost_for(ln) for ln in lines]
    total_cost = money(sum((Decimal(abs(ln.quantity)) * c for ln, c in zip(lines, costs)), ZERO))

    txn = insert_transaction(
        transaction_type=transaction_type,
        invoice_no=invoice_no,
        transaction_date=transaction_date or timezone.localdate(),
        status=InventoryTransaction.STATUS_PENDING,
        vendor=vendor,
        reference_transaction=reference,
        reason=reason,
        notes=notes or "",
        total_cost=total_cost,
        performed_by=actor,
    )
    for ln, cost in zip(lines, costs):
        InventoryTransactionItem.objects.create(
            transaction=txn,
            variant=variants[str(ln.variant_id)],
            quantity=ln.quantity,
            unit_cost=cost,
            source_type=ln.source_type,
        )

    status = initial_status(transaction_type=transaction_type, privileged=is_privileged(actor))
    if status == APPROVED:
        apply_approval(txn, approver=actor)

    logger.info(
        "Inventory transaction created",
        extra={
            "transaction_id": str(txn.id),
            "invoice_no": txn.invoice_no,
            "transaction_type": transaction_type,
            "status": txn.status,
            "performed_by": str(getattr(actor, "id", "")),
        },
    )

    return TransactionResult(transaction=txn, requires_approval=txn.status != APPROVED)
