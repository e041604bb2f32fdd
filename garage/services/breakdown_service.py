# garage/services/breakdown_service.py
"""
Invoice financial breakdown.

Order of operations (fixed, each step feeds the next):
  1. subtotal       = sum(quantity * unit_price)
  2. discount       = none -> 0, percentage -> subtotal * value / 100, fixed -> value
  3. after_discount = subtotal - discount
  4. tax            = after_discount * tax_rate_percent / 100
  5. total          = after_discount + tax
  6. paid           = sum(payment.amount)
  7. balance_due    = total - paid

No rounding and no clamping: a fixed discount larger than the subtotal yields a
negative after_discount, and an overpaid invoice has a negative balance_due.
Display rounding belongs to the presentation layer.
"""

from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Iterable, List, Optional

from garage.schemas.invoice import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    STATUS_COMPLETED,
    STATUS_PAID,
    STATUS_PARTIAL,
    DiscountSpec,
    Invoice,
    LineItem,
    Payment,
)


@dataclass(frozen=True)
class Breakdown:
    subtotal: float
    discount_amount: float
    after_discount: float
    tax_amount: float
    total: float
    paid_amount: float
    balance_due: float


def calculate_subtotal(items: Iterable[LineItem]) -> float:
    return sum((item.quantity * item.unit_price for item in items), 0.0)


def calculate_discount(subtotal: float, discount: DiscountSpec) -> float:
    """Unknown discount types are treated like 'none'."""
    if discount.type == DISCOUNT_PERCENTAGE:
        return subtotal * (discount.value / 100)
    if discount.type == DISCOUNT_FIXED:
        return discount.value
    return 0.0


def calculate_paid(payments: Iterable[Payment]) -> float:
    # Every recorded payment counts; there is no payment state to filter on.
    return sum((payment.amount for payment in payments), 0.0)


def compute_breakdown(invoice: Invoice) -> Breakdown:
    subtotal = calculate_subtotal(invoice.items)
    discount_amount = calculate_discount(subtotal, invoice.discount)
    after_discount = subtotal - discount_amount
    # Tax is levied on the discounted amount, never on the raw subtotal.
    tax_amount = after_discount * (invoice.tax_rate_percent / 100)
    total = after_discount + tax_amount
    paid_amount = calculate_paid(invoice.payments)

    return Breakdown(
        subtotal=subtotal,
        discount_amount=discount_amount,
        after_discount=after_discount,
        tax_amount=tax_amount,
        total=total,
        paid_amount=paid_amount,
        balance_due=total - paid_amount,
    )


def breakdown_to_dict(breakdown: Breakdown) -> dict:
    """Convert Breakdown to JSON-serializable dict."""
    return asdict(breakdown)


# ---------------------------------------------------------------------------
# Portfolio aggregates
# ---------------------------------------------------------------------------


def calculate_invoice_total(invoice: Invoice) -> float:
    return compute_breakdown(invoice).total


def calculate_total_receivables(invoices: Iterable[Invoice]) -> float:
    """Gross total of every invoice not marked paid (payments are not netted)."""
    return sum(
        (
            calculate_invoice_total(invoice)
            for invoice in invoices
            if invoice.status != STATUS_PAID
        ),
        0.0,
    )


def calculate_overdue_amount(
    invoices: Iterable[Invoice], today: Optional[date] = None
) -> float:
    """Gross total of unpaid invoices whose due date is strictly before today."""
    as_of = today or datetime.utcnow().date()
    return sum(
        (
            calculate_invoice_total(invoice)
            for invoice in invoices
            if invoice.status != STATUS_PAID
            and invoice.due_date is not None
            and invoice.due_date < as_of
        ),
        0.0,
    )


def derive_payment_status(breakdown: Breakdown, current_status: str) -> str:
    """
    Status an invoice should carry after its payment list changed.

    With nothing paid, an invoice previously marked paid/partial falls back to
    'completed'; any other status is left alone. Amounts are compared at cent
    precision so float residue never leaves an exactly paid invoice partial.
    """
    if round(breakdown.paid_amount, 2) <= 0:
        if current_status in (STATUS_PAID, STATUS_PARTIAL):
            return STATUS_COMPLETED
        return current_status
    if round(breakdown.balance_due, 2) <= 0:
        return STATUS_PAID
    return STATUS_PARTIAL


def find_status_mismatches(invoices: Iterable[Invoice]) -> List[dict]:
    """Invoices whose stored status disagrees with their payments."""
    mismatches = []
    for invoice in invoices:
        breakdown = compute_breakdown(invoice)
        expected = derive_payment_status(breakdown, invoice.status)
        if expected != invoice.status:
            mismatches.append(
                {
                    "invoice_id": invoice.id,
                    "status": invoice.status,
                    "expected_status": expected,
                    "total": breakdown.total,
                    "paid_amount": breakdown.paid_amount,
                    "balance_due": breakdown.balance_due,
                }
            )
    return mismatches
