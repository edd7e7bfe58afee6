# inventory/services/numbering.py

"""
INVENTORY INVOICE NUMBERS

PUR-000001, RET-000001, DMG-000001, ADJ-000001: one zero-padded sequence per
transaction type, held in InventorySequence and bumped under a row lock.
Hand-entered numbers that already occupy a slot are skipped.

Uniqueness is backed by InventoryTransaction.invoice_no; insert_transaction()
turns a lost insert race into a retry (generated numbers) or a ConflictError
(hand-entered numbers).
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from core.exceptions import ConflictError
from inventory.models import InventorySequence, InventoryTransaction

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 6
MAX_ATTEMPTS = 5


def format_invoice_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"


def next_invoice_number(transaction_type: str) -> str:
    """
    Allocate the next free number of the type's sequence.

    Must run inside the caller's transaction: the counter row stays locked
    until it commits, so concurrent callers queue instead of drawing the same
    number.
    """
    prefix = InventoryTransaction.INVOICE_PREFIXES[transaction_type]

    InventorySequence.objects.get_or_create(transaction_type=transaction_type)
    sequence = InventorySequence.objects.select_for_update().get(transaction_type=transaction_type)

    value = sequence.next_value
    invoice_no = format_invoice_number(prefix, value)
    while InventoryTransaction.objects.filter(invoice_no=invoice_no).exists():
        value += 1
        invoice_no = format_invoice_number(prefix, value)

    sequence.next_value = value + 1
    sequence.save(update_fields=["next_value", "updated_at"])
    return invoice_no


def insert_transaction(*, invoice_no=None, **fields) -> InventoryTransaction:
    """
    Create an InventoryTransaction under a unique invoice_no.

    Each attempt runs in its own savepoint so a lost race on the unique index
    does not poison the outer transaction.
    """
    generated = not invoice_no
    attempts = MAX_ATTEMPTS if generated else 1

    for attempt in range(1, attempts + 1):
        number = next_invoice_number(fields["transaction_type"]) if generated else invoice_no
        try:
            with transaction.atomic():
                return InventoryTransaction.objects.create(invoice_no=number, **fields)
        except (IntegrityError, DjangoValidationError):
            if not InventoryTransaction.objects.filter(invoice_no=number).exists():
                raise
            logger.warning(
                "invoice_no collision on insert",
                extra={"invoice_no": number, "attempt": attempt, "generated": generated},
            )
            if not generated:
                raise ConflictError(
                    f"Invoice number {number} is already in use",
                    details={"invoice_no": number},
                )

    logger.error(
        "Could not allocate a unique invoice_no",
        extra={"transaction_type": fields["transaction_type"], "attempts": attempts},
    )
    raise ConflictError("Could not allocate a unique invoice number, please retry")
