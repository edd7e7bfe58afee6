# purchases/services/payment_service.py

"""
PAYMENT RECORDER

record_vendor_payment() (atomic):
1) Validate amount > 0 before touching the DB
2) Lock vendor row
3) Idempotency replay (under the lock); snapshot balance_before / balance_after
4) Allocate payment_no (PAY-YYYYMMDD-NNNN, random suffix, retried on collision)
5) Insert VendorPayment
6) Post exactly ONE ledger credit through accounting.services.posting
7) Check the projected vendor balance equals the payment's balance_after

Overpayment is allowed: the vendor balance goes negative (advance).
"""

from decimal import Decimal
import logging
import random
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.services.posting import post_vendor_payment_to_ledger
from core.exceptions import ConflictError, ValidationFailed
from core.money import ZERO, money
from purchases.models import Vendor, VendorPayment


logger = logging.getLogger("payments")


class VendorPaymentError(ValidationFailed):
    pass


@dataclass(frozen=True)
class PaymentResult:
    payment_id: str
    payment_no: str
    amount: Decimal
    balance_before: Decimal
    new_balance: Decimal
    receipt_url: str = ""
    replayed: bool = False

    @property
    def is_advance(self) -> bool:
        return self.new_balance < ZERO

    def as_dict(self) -> dict:
        return {
            "success": True,
            "payment_id": self.payment_id,
            "payment_no": self.payment_no,
            "amount": str(self.amount),
            "balance_before": str(self.balance_before),
            "new_balance": str(self.new_balance),
            "is_advance": self.is_advance,
            "receipt_url": self.receipt_url,
            "replayed": self.replayed,
        }


def generate_payment_no(on_date=None) -> str:
    d = on_date or timezone.localdate()
    return f"PAY-{d:%Y%m%d}-{random.randint(0, 9999):04d}"


def _max_attempts() -> int:
    return max(int(getattr(settings, "PAYMENT_NO_MAX_ATTEMPTS", 5) or 1), 1)


def _create_with_unique_number(**fields) -> VendorPayment:
    """
    Insert the payment, drawing a fresh payment_no on collision.

    Each attempt runs in its own savepoint so a lost race on the unique index
    does not poison the outer transaction.
    """
    attempts = _max_attempts()
    for attempt in range(1, attempts + 1):
        payment_no = generate_payment_no()
        if VendorPayment.objects.filter(payment_no=payment_no).exists():
            logger.warning(
                "payment_no collision, retrying",
                extra={"payment_no": payment_no, "attempt": attempt},
            )
            continue
        try:
            with transaction.atomic():
                return VendorPayment.objects.create(payment_no=payment_no, **fields)
        except (IntegrityError, DjangoValidationError):
            key = fields.get("idempotency_key")
            if key and VendorPayment.objects.filter(idempotency_key=key).exists():
                raise ConflictError(
                    "idempotency_key was already used for a different payment",
                    details={"idempotency_key": key},
                )
            if not VendorPayment.objects.filter(payment_no=payment_no).exists():
                raise
            logger.warning(
                "payment_no collision on insert, retrying",
                extra={"payment_no": payment_no, "attempt": attempt},
            )

    logger.error("Could not allocate a unique payment_no", extra={"attempts": attempts})
    raise ConflictError("Could not allocate a unique payment number, please retry")


def _replay(*, idempotency_key: str, vendor_id, amount: Decimal) -> Optional[PaymentResult]:
    existing = VendorPayment.objects.filter(idempotency_key=idempotency_key).first()
    if existing is None:
        return None

    if str(existing.vendor_id) != str(vendor_id) or money(existing.amount) != amount:
        raise ConflictError(
            "idempotency_key was already used for a different payment",
            details={"payment_id": str(existing.id)},
        )

    logger.info(
        "Vendor payment replayed by idempotency key",
        extra={"payment_id": str(existing.id), "idempotency_key": idempotency_key},
    )
    return PaymentResult(
        payment_id=str(existing.id),
        payment_no=existing.payment_no,
        amount=money(existing.amount),
        balance_before=money(existing.balance_before),
        new_balance=money(existing.balance_after),
        receipt_url=existing.receipt_url,
        replayed=True,
    )


@transaction.atomic
def record_vendor_payment(
    *,
    vendor_id,
    amount,
    payment_method: str = VendorPayment.METHOD_CASH,
    payment_date=None,
    transaction_ref: str = "",
    bank_name: str = "",
    remarks: str = "",
    receipt_url: str = "",
    created_by=None,
    idempotency_key: Optional[str] = None,
) -> PaymentResult:
    """
    CREATE VENDOR PAYMENT (atomic)
    """

    logger.info(
        "Initiating vendor payment",
        extra={
            "vendor_id": str(vendor_id),
            "amount": str(amount),
            "payment_method": payment_method,
        },
    )

    try:
        amt = money(amount)
    except ValueError as exc:
        raise VendorPaymentError(str(exc)) from exc

    if amt <= ZERO:
        logger.error(
            "Invalid payment amount",
            extra={"amount": str(amount)},
        )
        raise VendorPaymentError("Amount must be > 0")

    method = (payment_method or VendorPayment.METHOD_CASH).lower().strip()
    if method not in {m for m, _ in VendorPayment.METHODS}:
        raise VendorPaymentError(
            f"Invalid payment_method. Use one of: {', '.join(m for m, _ in VendorPayment.METHODS)}"
        )

    try:
        vendor = Vendor.objects.select_for_update().get(id=vendor_id)
    except (Vendor.DoesNotExist, ValueError, DjangoValidationError) as exc:
        logger.error(
            "Vendor not found during payment",
            extra={"vendor_id": str(vendor_id)},
        )
        raise VendorPaymentError("Vendor not found") from exc

    # replay is looked up under the vendor lock
    idempotency_key = (idempotency_key or "").strip() or None
    if idempotency_key:
        replay = _replay(idempotency_key=idempotency_key, vendor_id=vendor_id, amount=amt)
        if replay is not None:
            return replay

    if not vendor.is_active:
        logger.error(
            "Payment to inactive vendor",
            extra={"vendor_id": str(vendor_id)},
        )
        raise VendorPaymentError("Vendor not found")

    balance_before = money(vendor.balance)
    balance_after = balance_before - amt

    payment = _create_with_unique_number(
        vendor=vendor,
        payment_date=payment_date or timezone.localdate(),
        amount=amt,
        payment_method=method,
        reference_number=(transaction_ref or "").strip(),
        bank_name=(bank_name or "").strip(),
        remarks=remarks or "",
        receipt_url=(receipt_url or "").strip(),
        balance_before=balance_before,
        balance_after=balance_after,
        status=VendorPayment.STATUS_COMPLETED,
        idempotency_key=idempotency_key,
        created_by=created_by,
    )

    entry = post_vendor_payment_to_ledger(payment=payment)

    vendor.refresh_from_db(fields=["balance"])
    new_balance = money(vendor.balance)
    if new_balance != balance_after:
        logger.error(
            "Projected vendor balance disagrees with payment snapshot",
            extra={
                "payment_id": str(payment.id),
                "balance_after": str(balance_after),
                "projected_balance": str(new_balance),
            },
        )
        raise ConflictError("Vendor balance changed while recording the payment, please retry")

    if new_balance < ZERO:
        logger.info(
            "Vendor payment created an advance",
            extra={"vendor_id": str(vendor.id), "balance": str(new_balance)},
        )

    logger.info(
        "Vendor payment completed successfully",
        extra={
            "payment_id": str(payment.id),
            "payment_no": payment.payment_no,
            "ledger_entry_id": str(entry.id),
        },
    )

    return PaymentResult(
        payment_id=str(payment.id),
        payment_no=payment.payment_no,
        amount=amt,
        balance_before=balance_before,
        new_balance=new_balance,
        receipt_url=payment.receipt_url,
    )
