from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field

KIND_PART = "part"
KIND_LABOR = "labor"
KIND_OTHER = "other"

DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"

STATUS_OPEN = "open"
STATUS_PAID = "paid"
STATUS_PARTIAL = "partial"
STATUS_OVERDUE = "overdue"
STATUS_DRAFT = "draft"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"

EDITABLE_STATUSES = {
    STATUS_OPEN,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_PARTIAL,
    STATUS_DRAFT,
}


class LineItem(BaseModel):
    # quantity/unit_price are deliberately unconstrained; the form layer validates.
    id: Optional[str] = None
    invoice_id: Optional[str] = None
    description: str = ""
    kind: str = KIND_PART
    quantity: float = 1
    unit_price: float = 0
    source_part_id: Optional[str] = None
    source_task_id: Optional[str] = None
    is_auto_added: bool = False
    unit_of_measure: Optional[str] = None

    @property
    def amount(self) -> float:
        return self.quantity * self.unit_price


class DiscountSpec(BaseModel):
    type: str = DISCOUNT_NONE
    value: float = 0


class Payment(BaseModel):
    id: str
    invoice_id: str
    date: datetime
    amount: float
    method: str
    notes: Optional[str] = None


class Invoice(BaseModel):
    id: str
    items: List[LineItem] = Field(default_factory=list)
    discount: DiscountSpec = Field(default_factory=DiscountSpec)
    tax_rate_percent: float = 0
    payments: List[Payment] = Field(default_factory=list)
    status: str = STATUS_OPEN
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    organization_id: Optional[str] = None
    customer_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None


def is_editable(invoice: Invoice) -> bool:
    return invoice.status in EDITABLE_STATUSES
