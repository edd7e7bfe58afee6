# accounting/services/vendor_statements.py

"""
Read side for vendors: financial summary (O(1), from projected aggregates)
and the paginated ledger listing.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from accounting.models import VendorLedgerEntry
from core.exceptions import NotFoundError, ValidationFailed
from core.money import money
from purchases.models import Vendor


def _get_vendor(vendor_id) -> Vendor:
    try:
        return Vendor.objects.get(pk=vendor_id)
    except (Vendor.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise NotFoundError("Vendor not found") from exc


def vendor_financial_summary(vendor_id) -> dict:
    vendor = _get_vendor(vendor_id)
    return {
        "vendor_id": str(vendor.id),
        "name": vendor.name,
        "balance": str(money(vendor.balance)),
        "total_purchases": str(money(vendor.total_purchases)),
        "total_payments": str(money(vendor.total_payments)),
        "total_returns": str(money(vendor.total_returns)),
        "purchase_count": vendor.purchase_count,
        "payment_count": vendor.payment_count,
        "return_count": vendor.return_count,
        "last_purchase_date": vendor.last_purchase_date.isoformat() if vendor.last_purchase_date else None,
        "last_payment_date": vendor.last_payment_date.isoformat() if vendor.last_payment_date else None,
        "has_advance": money(vendor.balance) < 0,
    }


def _clamp_limit(limit) -> int:
    max_limit = int(getattr(settings, "VENDOR_TRANSACTIONS_MAX_LIMIT", 100))
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationFailed("limit must be an integer")
    return min(max(limit, 1), max_limit)


def vendor_transactions(
    vendor_id,
    *,
    limit=20,
    offset=0,
    entry_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """
    Ledger entries newest first (reverse chronological order), each carrying
    the running balance it settled at.
    """
    vendor = _get_vendor(vendor_id)

    limit = _clamp_limit(limit)
    try:
        offset = max(int(offset), 0)
    except (TypeError, ValueError):
        raise ValidationFailed("offset must be an integer")

    qs = VendorLedgerEntry.objects.filter(vendor=vendor).select_related("performed_by")

    if entry_type:
        if entry_type not in {t for t, _ in VendorLedgerEntry.ENTRY_TYPES}:
            raise ValidationFailed(f"Invalid entry_type: {entry_type!r}")
        qs = qs.filter(entry_type=entry_type)
    if date_from:
        qs = qs.filter(transaction_date__gte=date_from)
    if date_to:
        qs = qs.filter(transaction_date__lte=date_to)

    total = qs.count()
    rows = qs.order_by("-transaction_date", "-created_at", "-id")[offset:offset + limit]

    return {
        "vendor_id": str(vendor.id),
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
        "results": list(rows),
    }
