# garage/services/item_store.py
"""
Storage collaborator for invoice line items, plus the invoice read model.

SqlAlchemyInvoiceItemStore uses the caller's session and only flushes; the
caller owns the transaction (see database.session_scope).
"""

import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from garage.models.invoice import Invoice as InvoiceRow, InvoiceItem as InvoiceItemRow
from garage.models.payment import Payment as PaymentRow
from garage.schemas.invoice import (
    DISCOUNT_NONE,
    DiscountSpec,
    Invoice,
    LineItem,
    Payment,
)

logger = structlog.get_logger()

# LineItem field -> invoice_items column
_UPDATABLE_COLUMNS = {
    "description": "description",
    "quantity": "quantity",
    "unit_price": "price",
    "kind": "type",
    "unit_of_measure": "unit_of_measure",
}


class InvoiceItemStore(Protocol):
    async def list_items(self, invoice_id: str) -> List[LineItem]: ...

    async def insert_items(
        self, items: List[LineItem], organization_id: Optional[str] = None
    ) -> List[LineItem]: ...

    async def update_item(self, item_id: str, fields: dict) -> LineItem: ...

    async def delete_items(self, ids: List[str]) -> None: ...


def _to_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    if not value:
        return None
    return uuid.UUID(str(value))


def _to_str(value) -> Optional[str]:
    return str(value) if value is not None else None


def item_from_row(row: InvoiceItemRow) -> LineItem:
    return LineItem(
        id=str(row.id),
        invoice_id=_to_str(row.invoice_id),
        description=row.description,
        kind=row.type,
        quantity=float(row.quantity),
        unit_price=float(row.price),
        source_part_id=_to_str(row.part_id),
        source_task_id=_to_str(row.task_id),
        is_auto_added=bool(row.is_auto_added),
        unit_of_measure=row.unit_of_measure,
    )


def payment_from_row(row: PaymentRow) -> Payment:
    return Payment(
        id=str(row.id),
        invoice_id=str(row.invoice_id),
        date=row.date,
        amount=float(row.amount),
        method=row.method,
        notes=row.notes,
    )


def invoice_from_row(
    row: InvoiceRow, items: List[LineItem], payments: List[Payment]
) -> Invoice:
    return Invoice(
        id=str(row.id),
        items=items,
        discount=DiscountSpec(
            type=row.discount_type or DISCOUNT_NONE,
            value=float(row.discount_value or 0),
        ),
        tax_rate_percent=float(row.tax_rate or 0),
        payments=payments,
        status=row.status,
        invoice_date=row.invoice_date,
        due_date=row.due_date,
        organization_id=_to_str(row.organization_id),
        customer_id=_to_str(row.customer_id),
        vehicle_id=_to_str(row.vehicle_id),
        notes=row.notes,
    )


class SqlAlchemyInvoiceItemStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_items(self, invoice_id: str) -> List[LineItem]:
        result = await self.session.execute(
            select(InvoiceItemRow)
            .where(InvoiceItemRow.invoice_id == _to_uuid(invoice_id))
            .order_by(InvoiceItemRow.created_at.asc())
        )
        return [item_from_row(row) for row in result.scalars().all()]

    async def insert_items(
        self, items: List[LineItem], organization_id: Optional[str] = None
    ) -> List[LineItem]:
        rows = [
            InvoiceItemRow(
                id=_to_uuid(item.id) or uuid.uuid4(),
                invoice_id=_to_uuid(item.invoice_id),
                organization_id=_to_uuid(organization_id),
                description=item.description,
                type=item.kind,
                quantity=item.quantity,
                price=item.unit_price,
                part_id=_to_uuid(item.source_part_id),
                task_id=_to_uuid(item.source_task_id),
                is_auto_added=item.is_auto_added,
                unit_of_measure=item.unit_of_measure,
            )
            for item in items
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return [item_from_row(row) for row in rows]

    async def update_item(self, item_id: str, fields: dict) -> LineItem:
        row = await self.session.get(InvoiceItemRow, _to_uuid(item_id))
        if row is None:
            raise LookupError(f"Invoice item {item_id} not found")
        for name, value in fields.items():
            setattr(row, _UPDATABLE_COLUMNS[name], value)
        await self.session.flush()
        return item_from_row(row)

    async def delete_items(self, ids: List[str]) -> None:
        if not ids:
            return
        await self.session.execute(
            delete(InvoiceItemRow).where(
                InvoiceItemRow.id.in_([_to_uuid(item_id) for item_id in ids])
            )
        )
        await self.session.flush()


# ---------------------------------------------------------------------------
# Invoice read model
# ---------------------------------------------------------------------------


async def _items_and_payments(
    session: AsyncSession, invoice_ids: List[uuid.UUID]
) -> tuple[Dict[str, List[LineItem]], Dict[str, List[Payment]]]:
    items: Dict[str, List[LineItem]] = defaultdict(list)
    payments: Dict[str, List[Payment]] = defaultdict(list)
    if not invoice_ids:
        return items, payments

    items_result = await session.execute(
        select(InvoiceItemRow)
        .where(InvoiceItemRow.invoice_id.in_(invoice_ids))
        .order_by(InvoiceItemRow.created_at.asc())
    )
    for row in items_result.scalars().all():
        items[str(row.invoice_id)].append(item_from_row(row))

    payments_result = await session.execute(
        select(PaymentRow)
        .where(PaymentRow.invoice_id.in_(invoice_ids))
        .order_by(PaymentRow.date.desc())
    )
    for row in payments_result.scalars().all():
        payments[str(row.invoice_id)].append(payment_from_row(row))

    return items, payments


async def load_invoice(session: AsyncSession, invoice_id: str) -> Optional[Invoice]:
    row = await session.get(InvoiceRow, _to_uuid(invoice_id))
    if row is None:
        logger.warning("invoice_not_found", invoice_id=invoice_id)
        return None
    items, payments = await _items_and_payments(session, [row.id])
    key = str(row.id)
    return invoice_from_row(row, items[key], payments[key])


async def list_invoices(
    session: AsyncSession, organization_id: Optional[str] = None
) -> List[Invoice]:
    query = select(InvoiceRow).order_by(InvoiceRow.created_at.desc())
    if organization_id:
        query = query.where(InvoiceRow.organization_id == _to_uuid(organization_id))
    result = await session.execute(query)
    rows = result.scalars().all()

    items, payments = await _items_and_payments(session, [row.id for row in rows])
    return [
        invoice_from_row(row, items[str(row.id)], payments[str(row.id)])
        for row in rows
    ]
