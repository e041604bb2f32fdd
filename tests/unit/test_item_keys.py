"""
Unit tests for garage/services/item_keys.py
"""

from typing import Optional

from garage.schemas.invoice import KIND_LABOR, KIND_PART, LineItem
from garage.services.item_keys import (
    create_item_key,
    deduplicate_items,
    has_conflicting_item,
    merge_item_quantities,
)


def _item(
    description: str = "Coolant",
    kind: str = KIND_PART,
    quantity: float = 1,
    unit_price: float = 15,
    part_id: Optional[str] = None,
    task_id: Optional[str] = None,
) -> LineItem:
    return LineItem(
        description=description,
        kind=kind,
        quantity=quantity,
        unit_price=unit_price,
        source_part_id=part_id,
        source_task_id=task_id,
    )


def test_item_key_prefers_part_then_task():
    assert create_item_key(_item(part_id="P1", task_id="T1")) == "part-P1"
    assert create_item_key(_item(task_id="T1")) == "task-T1"
    assert create_item_key(_item()) == "custom-part-Coolant-15.0"


def test_custom_key_includes_price():
    assert create_item_key(_item(unit_price=15)) != create_item_key(_item(unit_price=16))


def test_deduplicate_keeps_first_occurrence_in_order():
    first = _item(part_id="P1", quantity=1)
    items = [first, _item(description="Labor", kind=KIND_LABOR), _item(part_id="P1", quantity=7)]

    result = deduplicate_items(items)

    assert len(result) == 2
    assert result[0] is first
    assert result[1].description == "Labor"


def test_has_conflicting_item():
    existing = [_item(task_id="T1", kind=KIND_LABOR)]
    assert has_conflicting_item(_item(task_id="T1", kind=KIND_LABOR, unit_price=99), existing)
    assert not has_conflicting_item(_item(task_id="T2"), existing)


def test_merge_item_quantities_sums_without_touching_input():
    a = _item(part_id="P1", quantity=2)
    b = _item(part_id="P1", quantity=3)
    c = _item(description="Rotation", kind=KIND_LABOR)

    merged = merge_item_quantities([a, b, c])

    assert [m.quantity for m in merged] == [5, 1]
    assert a.quantity == 2
    assert b.quantity == 3
