# garage/services/reconciliation_service.py
"""
Invoice line-item reconciliation: persisted items vs the items after an edit.

Match rules (priority order):
  1. Both items reference the same inventory part.
  2. Both items reference the same task.
  3. Neither references a source, and description and kind are equal.

Quantity, price and id never take part in matching, so two manual items with
the same description and kind are indistinguishable.

Apply order is delete -> update -> insert. The store is not assumed to be
transactional: a failing phase raises ReconciliationError carrying what is
still pending, and nothing already applied is rolled back.
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from garage.config import settings
from garage.schemas.invoice import LineItem
from garage.services.item_store import InvoiceItemStore

logger = structlog.get_logger()

PHASE_FETCH = "fetch"
PHASE_DELETE = "delete"
PHASE_UPDATE = "update"
PHASE_INSERT = "insert"


@dataclass
class ItemUpdate:
    existing_id: str
    new_values: LineItem


@dataclass
class ItemDiff:
    to_add: List[LineItem] = field(default_factory=list)
    to_update: List[ItemUpdate] = field(default_factory=list)
    to_delete_ids: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_delete_ids)

    def summary(self) -> dict:
        return {
            "to_add": len(self.to_add),
            "to_update": len(self.to_update),
            "to_delete": len(self.to_delete_ids),
        }


class ReconciliationError(Exception):
    """A storage call failed while applying an ItemDiff."""

    def __init__(
        self,
        phase: str,
        invoice_id: str,
        pending: ItemDiff,
        cause: Optional[BaseException] = None,
    ):
        self.phase = phase
        self.invoice_id = invoice_id
        self.pending = pending
        self.cause = cause
        super().__init__(
            f"Failed to {phase} invoice items for invoice {invoice_id}: {cause}"
        )

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "invoice_id": self.invoice_id,
            "error": str(self.cause) if self.cause else None,
            "pending": {
                "to_add": [item.model_dump() for item in self.pending.to_add],
                "to_update": [
                    {
                        "existing_id": update.existing_id,
                        "new_values": update.new_values.model_dump(),
                    }
                    for update in self.pending.to_update
                ],
                "to_delete_ids": list(self.pending.to_delete_ids),
            },
        }


# ---------------------------------------------------------------------------
# Matching and diff
# ---------------------------------------------------------------------------


def _has_source(item: LineItem) -> bool:
    return bool(item.source_part_id or item.source_task_id)


def items_match(a: LineItem, b: LineItem) -> bool:
    if a.source_part_id and b.source_part_id and a.source_part_id == b.source_part_id:
        return True
    if a.source_task_id and b.source_task_id and a.source_task_id == b.source_task_id:
        return True
    return (
        not _has_source(a)
        and not _has_source(b)
        and a.description == b.description
        and a.kind == b.kind
    )


def _needs_update(existing: LineItem, desired: LineItem) -> bool:
    return (
        existing.quantity != desired.quantity
        or existing.unit_price != desired.unit_price
        or existing.description != desired.description
    )


def diff_items(existing: List[LineItem], desired: List[LineItem]) -> ItemDiff:
    """Three-way diff of persisted vs desired items. Mutates nothing."""
    diff = ItemDiff()

    for new_item in desired:
        match = next((old for old in existing if items_match(old, new_item)), None)
        if match is None:
            diff.to_add.append(new_item)
        elif _needs_update(match, new_item):
            diff.to_update.append(ItemUpdate(existing_id=str(match.id), new_values=new_item))

    for old_item in existing:
        if not any(items_match(old_item, new_item) for new_item in desired):
            diff.to_delete_ids.append(str(old_item.id))

    return diff


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


def _update_fields(item: LineItem) -> dict:
    return {
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "kind": item.kind,
        "unit_of_measure": item.unit_of_measure or settings.DEFAULT_UNIT_OF_MEASURE,
    }


def _prepare_insert(item: LineItem, invoice_id: str) -> LineItem:
    """Fresh identity for a new row; the desired item itself is left untouched."""
    return item.model_copy(
        update={
            "id": str(uuid.uuid4()),
            "invoice_id": invoice_id,
            "unit_of_measure": item.unit_of_measure or settings.DEFAULT_UNIT_OF_MEASURE,
        }
    )


async def apply_diff(
    invoice_id: str,
    diff: ItemDiff,
    store: InvoiceItemStore,
    organization_id: Optional[str] = None,
) -> None:
    """
    Apply a diff through the store: deletes, then updates, then inserts.

    Each phase awaits completion before the next starts. Empty phases make no
    storage call. Raises ReconciliationError on the first failing call.
    """
    if diff.to_delete_ids:
        try:
            await store.delete_items(list(diff.to_delete_ids))
        except Exception as exc:
            pending = ItemDiff(
                to_add=list(diff.to_add),
                to_update=list(diff.to_update),
                to_delete_ids=list(diff.to_delete_ids),
            )
            raise ReconciliationError(PHASE_DELETE, invoice_id, pending, exc) from exc
        logger.info(
            "invoice_items_deleted", invoice_id=invoice_id, count=len(diff.to_delete_ids)
        )

    for index, update in enumerate(diff.to_update):
        try:
            await store.update_item(update.existing_id, _update_fields(update.new_values))
        except Exception as exc:
            pending = ItemDiff(
                to_add=list(diff.to_add), to_update=list(diff.to_update[index:])
            )
            raise ReconciliationError(PHASE_UPDATE, invoice_id, pending, exc) from exc
    if diff.to_update:
        logger.info(
            "invoice_items_updated", invoice_id=invoice_id, count=len(diff.to_update)
        )

    if diff.to_add:
        new_items = [_prepare_insert(item, invoice_id) for item in diff.to_add]
        try:
            await store.insert_items(new_items, organization_id)
        except Exception as exc:
            pending = ItemDiff(to_add=list(diff.to_add))
            raise ReconciliationError(PHASE_INSERT, invoice_id, pending, exc) from exc
        logger.info(
            "invoice_items_inserted", invoice_id=invoice_id, count=len(new_items)
        )


async def reconcile_invoice_items(
    store: InvoiceItemStore,
    invoice_id: str,
    desired: List[LineItem],
    organization_id: Optional[str] = None,
) -> ItemDiff:
    """Read persisted items, diff against desired, apply. Returns the applied diff."""
    try:
        existing = await store.list_items(invoice_id)
    except Exception as exc:
        logger.error(
            "invoice_items_reconcile_failed",
            invoice_id=invoice_id,
            phase=PHASE_FETCH,
            error=str(exc),
        )
        raise ReconciliationError(PHASE_FETCH, invoice_id, ItemDiff(), exc) from exc

    diff = diff_items(existing, desired)
    logger.info("invoice_items_diff_computed", invoice_id=invoice_id, **diff.summary())

    if diff.is_empty:
        return diff

    try:
        await apply_diff(invoice_id, diff, store, organization_id)
    except ReconciliationError as exc:
        logger.error(
            "invoice_items_reconcile_failed",
            invoice_id=invoice_id,
            phase=exc.phase,
            pending=exc.pending.summary(),
            error=str(exc.cause),
        )
        raise

    return diff
