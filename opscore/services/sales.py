from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from opscore.errors import AttributionGap
from opscore.models import (
    LegacyPlate,
    MenuItem,
    Order,
    OrderItem,
    SalesRecord,
    SnapshotArray,
    SnapshotSingle,
    Variant,
)
from opscore.utils import DateLike, in_range, parse_local_date

logger = logging.getLogger(__name__)


@dataclass
class Attribution:
    items_sold: dict[tuple[str, Variant], float] = field(default_factory=dict)
    billed: dict[str, float] = field(default_factory=dict)
    gaps: list[AttributionGap] = field(default_factory=list)
    orders_counted: int = 0

    def add(self, sku_id: str, qty: float) -> None:
        self.billed[sku_id] = self.billed.get(sku_id, 0.0) + float(qty)


def line_consumption(item: OrderItem, menu: Optional[MenuItem]) -> Optional[list[tuple[str, float]]]:
    """
    Raw-SKU pieces consumed by one order line, by strict precedence:

      1. `consumed` snapshot (array or single object): the line total, used verbatim
      2. legacy `plate` snapshot: per-unit quantity x item quantity
      3. live menu recipe for the line's variant, per ingredient x item quantity
      4. None when nothing matches (counted as zero by the caller)

    Exactly one path contributes per line.
    """
    ov = item.override
    if isinstance(ov, SnapshotArray):
        return [(e.sku_id, e.quantity) for e in ov.entries]
    if isinstance(ov, SnapshotSingle):
        return [(ov.entry.sku_id, ov.entry.quantity)]
    if isinstance(ov, LegacyPlate):
        return [(ov.sku_id, ov.per_unit_qty * item.quantity)]
    if menu is None:
        return None
    return [(ing.sku_id, ing.quantity * item.quantity) for ing in menu.recipe_for(item.variant)]


def select_orders(
    orders: Iterable[Order],
    *,
    branch_id: Optional[str] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> list[Order]:
    s = parse_local_date(start) if start is not None else None
    e = parse_local_date(end) if end is not None else None
    return [
        o
        for o in orders
        if not o.is_cancelled
        and (branch_id is None or o.branch_id == branch_id)
        and in_range(o.date, s, e)
    ]


def compute_attribution(
    orders: Iterable[Order],
    menu_items: Sequence[MenuItem],
    *,
    branch_id: Optional[str] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> Attribution:
    """
    Billed raw-SKU consumption and menu-item x variant quantities for the
    non-cancelled orders in scope. Quantities are summed unrounded; the result
    does not depend on order sequence.
    """
    menu_by_id = {m.id: m for m in menu_items}
    result = Attribution()

    for o in select_orders(orders, branch_id=branch_id, start=start, end=end):
        result.orders_counted += 1
        for item in o.items:
            key = (item.menu_item_id, item.variant)
            result.items_sold[key] = result.items_sold.get(key, 0.0) + float(item.quantity)

            consumed = line_consumption(item, menu_by_id.get(item.menu_item_id))
            if consumed is None:
                result.gaps.append(
                    AttributionGap(order_id=o.id, menu_item_id=item.menu_item_id, name=item.name, quantity=item.quantity)
                )
                continue
            for sku_id, qty in consumed:
                result.add(sku_id, qty)

        for cs in o.custom_sku_items:
            result.add(cs.sku_id, cs.quantity)

    if result.gaps:
        logger.warning(
            "%d order line(s) matched no menu item and carry no snapshot; counted as zero", len(result.gaps)
        )
    logger.debug("Attributed %d order(s) to %d SKU(s)", result.orders_counted, len(result.billed))
    return result


def compute_external_sales(
    records: Iterable[SalesRecord],
    *,
    branch_id: Optional[str] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> dict[str, float]:
    """Platform statement counts (Zomato/Swiggy imports) per SKU."""
    s = parse_local_date(start) if start is not None else None
    e = parse_local_date(end) if end is not None else None
    out: dict[str, float] = {}
    for r in records:
        if branch_id is not None and r.branch_id != branch_id:
            continue
        if not in_range(r.date, s, e):
            continue
        out[r.sku_id] = out.get(r.sku_id, 0.0) + float(r.quantity_sold)
    return out


def combine_sold(*parts: dict[str, float]) -> dict[str, float]:
    out: dict[str, float] = {}
    for p in parts:
        for k, v in p.items():
            out[k] = out.get(k, 0.0) + float(v)
    return out
