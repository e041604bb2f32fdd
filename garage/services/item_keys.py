"""
Line-item keys used by the invoice form to spot and fold duplicate entries.

These keys include the unit price for custom items, so they are stricter than
the reconciliation match in reconciliation_service and must not replace it.
"""

from typing import Dict, List

from garage.schemas.invoice import LineItem


def create_item_key(item: LineItem) -> str:
    if item.source_part_id:
        return f"part-{item.source_part_id}"
    if item.source_task_id:
        return f"task-{item.source_task_id}"
    return f"custom-{item.kind}-{item.description}-{item.unit_price}"


def deduplicate_items(items: List[LineItem]) -> List[LineItem]:
    """Keep the first item for each key, preserving order."""
    seen = set()
    deduplicated: List[LineItem] = []
    for item in items:
        key = create_item_key(item)
        if key not in seen:
            seen.add(key)
            deduplicated.append(item)
    return deduplicated


def has_conflicting_item(new_item: LineItem, existing_items: List[LineItem]) -> bool:
    new_key = create_item_key(new_item)
    return any(create_item_key(item) == new_key for item in existing_items)


def merge_item_quantities(items: List[LineItem]) -> List[LineItem]:
    """Fold same-key items into the first occurrence by summing quantities."""
    merged: Dict[str, LineItem] = {}
    for item in items:
        key = create_item_key(item)
        existing = merged.get(key)
        if existing is not None:
            merged[key] = existing.model_copy(
                update={"quantity": existing.quantity + item.quantity}
            )
        else:
            merged[key] = item.model_copy()
    return list(merged.values())
