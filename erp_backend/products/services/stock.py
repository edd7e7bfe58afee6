# products/services/stock.py

"""
STOCK CHANGE SERVICE

The ONLY place allowed to mutate ProductVariant.current_stock / damaged_stock.

Rules:
- the variant row is locked (select_for_update) for the duration of the change
- a change that would drive either pool below zero is refused, nothing is written
- every change writes one immutable StockMovement row
- an optional cost_price is applied in the same locked write (purchases)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction

from core.exceptions import IntegrityViolation, ValidationFailed
from core.money import money
from products.models import ProductVariant, StockMovement

logger = logging.getLogger(__name__)


class InsufficientStockError(IntegrityViolation):
    """A pool would go below zero."""

    kind = "insufficient_stock"


@dataclass(frozen=True)
class StockChange:
    variant: ProductVariant
    movement: StockMovement
    fresh_before: int
    fresh_after: int
    damaged_before: int
    damaged_after: int


def _to_int(value, field: str) -> int:
    if isinstance(value, bool):
        # guardrail: bool is an int subclass in Python
        raise ValidationFailed(f"{field} must be an integer")
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer")


@transaction.atomic
def change_stock(
    *,
    variant_id,
    reason: str,
    fresh_delta=0,
    damaged_delta=0,
    cost_price: Optional[Decimal] = None,
    reference_id=None,
    user=None,
    note: str = "",
) -> StockChange:
    """
    Apply a signed delta to one or both stock pools of a variant.

      fresh_delta   +N adds to current_stock, -N removes from it
      damaged_delta +N adds to damaged_stock, -N removes from it
    """
    fresh_delta = _to_int(fresh_delta, "fresh_delta")
    damaged_delta = _to_int(damaged_delta, "damaged_delta")

    if fresh_delta == 0 and damaged_delta == 0:
        raise ValidationFailed("A stock change must move at least one unit")

    try:
        locked = (
            ProductVariant.objects.select_for_update()
            .select_related("product")
            .get(pk=variant_id)
        )
    except ProductVariant.DoesNotExist:
        raise ValidationFailed(f"Product variant {variant_id} not found")

    fresh_before = int(locked.current_stock or 0)
    damaged_before = int(locked.damaged_stock or 0)
    fresh_after = fresh_before + fresh_delta
    damaged_after = damaged_before + damaged_delta

    if fresh_after < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {locked.sku}: available {fresh_before}, requested {abs(fresh_delta)}",
            details={"variant_id": str(locked.id), "pool": "fresh", "available": fresh_before},
        )
    if damaged_after < 0:
        raise InsufficientStockError(
            f"Insufficient damaged stock for {locked.sku}: available {damaged_before}, requested {abs(damaged_delta)}",
            details={"variant_id": str(locked.id), "pool": "damaged", "available": damaged_before},
        )

    locked.current_stock = fresh_after
    locked.damaged_stock = damaged_after
    update_fields = ["current_stock", "damaged_stock", "updated_at"]

    if cost_price is not None:
        locked.cost_price = money(cost_price)
        update_fields.append("cost_price")

    locked.save(update_fields=update_fields)

    movement = StockMovement.objects.create(
        variant=locked,
        reason=reason,
        fresh_change=fresh_delta,
        damaged_change=damaged_delta,
        fresh_before=fresh_before,
        fresh_after=fresh_after,
        damaged_before=damaged_before,
        damaged_after=damaged_after,
        reference_id=reference_id,
        performed_by=user,
        note=(note or "")[:255],
    )

    logger.info(
        "Stock changed",
        extra={
            "variant_id": str(locked.id),
            "reason": reason,
            "fresh_delta": fresh_delta,
            "damaged_delta": damaged_delta,
            "reference_id": str(reference_id) if reference_id else None,
        },
    )

    return StockChange(
        variant=locked,
        movement=movement,
        fresh_before=fresh_before,
        fresh_after=fresh_after,
        damaged_before=damaged_before,
        damaged_after=damaged_after,
    )
